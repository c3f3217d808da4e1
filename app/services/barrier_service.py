# app/services/barrier_service.py
"""
Outbound commands to the barrier controller (ESP32).
Fire-and-forget: the device never acknowledges, so a True return only means
the broker accepted the message.

Topic: {prefix}/puerta/control   payload: abrirEntrada | cerrarEntrada |
                                          abrirSalida | cerrarSalida | auto | manual
Topic: {prefix}/wifi/config      payload: {"ssid": ..., "pass": ...}
"""

import json
from typing import Callable, Optional

from app.config import settings
from app.exceptions import ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

_COMMANDS = {
    ("entry", "open"): "abrirEntrada",
    ("entry", "close"): "cerrarEntrada",
    ("exit", "open"): "abrirSalida",
    ("exit", "close"): "cerrarSalida",
}


class BarrierController:
    def __init__(self, publish: Optional[Callable[[str, str], bool]] = None,
                 topic_prefix: str = settings.MQTT_TOPIC_PREFIX):
        self._publish = publish
        self.control_topic = f"{topic_prefix}/puerta/control"
        self.wifi_topic = f"{topic_prefix}/wifi/config"

    def _send(self, topic: str, payload: str) -> bool:
        if self._publish is None:
            logger.warning(f"[BARRIER] No transport — '{payload}' to {topic} not sent")
            return False
        sent = self._publish(topic, payload)
        if sent:
            logger.info(f"[BARRIER] → {topic}: {payload}")
        else:
            logger.warning(f"[BARRIER] Broker rejected '{payload}' to {topic}")
        return sent

    def command(self, gate: str, action: str) -> bool:
        cmd = _COMMANDS.get((gate, action))
        if cmd is None:
            raise ValidationError(f"Unknown barrier command: {gate}/{action}")
        return self._send(self.control_topic, cmd)

    def open_entry(self) -> bool:
        return self.command("entry", "open")

    def close_entry(self) -> bool:
        return self.command("entry", "close")

    def open_exit(self) -> bool:
        return self.command("exit", "open")

    def close_exit(self) -> bool:
        return self.command("exit", "close")

    def set_mode(self, automatic: bool) -> bool:
        return self._send(self.control_topic, "auto" if automatic else "manual")

    def push_wifi_config(self, ssid: str, password: str) -> bool:
        if not ssid or not password:
            raise ValidationError("Both SSID and password are required")
        return self._send(self.wifi_topic, json.dumps({"ssid": ssid, "pass": password}))
