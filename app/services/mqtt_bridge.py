# app/services/mqtt_bridge.py
"""
MQTT transport — connects the reconciliation engine to the parking controller.

paho runs its network loop in its own thread (loop_start). Incoming messages
are handed to the asyncio loop with call_soon_threadsafe, so parsing and
reconciliation always happen on the engine's thread. Reconnects and backoff
are paho's job; the engine only sees messages that arrive.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional

import paho.mqtt.client as mqtt

from app.config import settings
from app.services.event_parser import inbound_topics
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Reconnect delay in seconds (doubles on each failure, max 60s)
_MIN_BACKOFF = 2
_MAX_BACKOFF = 60

MessageHandler = Callable[[str, bytes, datetime], object]


class MqttBridge:
    def __init__(self, host: str = settings.MQTT_BROKER_HOST, port: int = settings.MQTT_BROKER_PORT,
                 topic_prefix: str = settings.MQTT_TOPIC_PREFIX, client: Optional[mqtt.Client] = None):
        self._host = host
        self._port = port
        self._topics = inbound_topics(topic_prefix)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handler: Optional[MessageHandler] = None

        if client is None:
            client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=settings.MQTT_CLIENT_ID,
                                 clean_session=True)
            if settings.MQTT_USER:
                client.username_pw_set(settings.MQTT_USER, settings.MQTT_PASSWORD)
            if settings.MQTT_USE_TLS:
                client.tls_set()
            client.reconnect_delay_set(min_delay=_MIN_BACKOFF, max_delay=_MAX_BACKOFF)
        self.client = client
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

    def start(self, loop: asyncio.AbstractEventLoop, handler: MessageHandler):
        """Connect in the background; paho keeps retrying until the broker answers."""
        self._loop = loop
        self._handler = handler
        logger.info(f"📡 [MQTT] Connecting to {self._host}:{self._port}...")
        self.client.connect_async(self._host, self._port, keepalive=60)
        self.client.loop_start()

    def stop(self):
        self.client.disconnect()
        self.client.loop_stop()
        logger.info("[MQTT] Disconnected")

    def is_connected(self) -> bool:
        return self.client.is_connected()

    def publish(self, topic: str, payload: str) -> bool:
        result = self.client.publish(topic, payload)
        return result.rc == mqtt.MQTT_ERR_SUCCESS

    # ── paho callbacks (network thread) ──────────────────────────────────
    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"❌ [MQTT] Connection refused: {reason_code}")
            return
        logger.info(f"✅ [MQTT] Connected to {self._host}:{self._port}")
        for topic in self._topics:
            client.subscribe(topic)
            logger.debug(f"[MQTT] Subscribed to {topic}")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        logger.warning(f"⚠️  [MQTT] Disconnected ({reason_code}) — paho will reconnect")

    def _on_message(self, client, userdata, msg):
        if self._loop is None or self._handler is None:
            return
        self._loop.call_soon_threadsafe(self._handler, msg.topic, bytes(msg.payload), datetime.utcnow())
