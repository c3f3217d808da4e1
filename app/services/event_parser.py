# app/services/event_parser.py
"""
Parses MQTT messages from the parking controller into a unified SensorEvent.
The topic decides the event kind; payloads are JSON except the door and mode
state topics, which carry a bare word.

  {p}/plaza<N>/estado              {"ocupado": true, "distancia": 4.2}
  {p}/eventos/entrada              {"evento": "vehiculo_detectado"}
  {p}/eventos/estacionado          {"evento": "vehiculo_estacionado", "plaza": 2}
  {p}/eventos/salida_detectada     {"evento": "salida_detectada"}
  {p}/eventos/salida               {"evento": "plaza_liberada", "plaza": 2}
  {p}/puerta/entrada/estado        abierta | cerrada
  {p}/puerta/salida/estado         abierta | cerrada
  {p}/modo/estado                  automatico | manual
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from app.config import settings
from app.utils.json_parser import get_first, safe_parse_json
from app.utils.logger import get_logger

logger = get_logger(__name__)


class EventKind(str, Enum):
    SPOT_READING = "spot_reading"
    ENTRY_DETECTED = "entry_detected"
    VEHICLE_PARKED = "vehicle_parked"
    EXIT_DETECTED = "exit_detected"
    SPOT_FREED = "spot_freed"
    DOOR_STATE = "door_state"
    MODE_STATE = "mode_state"


class EventParseError(ValueError):
    """Unknown topic or malformed payload. The message is dropped."""


@dataclass
class SensorEvent:
    kind: EventKind
    topic: str
    received_at: datetime
    raw_payload: str
    spot_id: Optional[int] = None
    occupied: Optional[bool] = None
    distance: Optional[float] = None
    door: Optional[str] = None           # entry | exit
    is_open: Optional[bool] = None
    automatic: Optional[bool] = None

    @property
    def source_key(self) -> str:
        """Events with the same key are processed strictly in arrival order."""
        if self.spot_id is not None:
            return f"spot:{self.spot_id}"
        if self.kind == EventKind.DOOR_STATE:
            return f"door:{self.door}"
        if self.kind == EventKind.ENTRY_DETECTED:
            return "entry"
        if self.kind == EventKind.EXIT_DETECTED:
            return "exit"
        return "mode"


def inbound_topics(prefix: str = settings.MQTT_TOPIC_PREFIX, spot_ids: Optional[List[int]] = None) -> List[str]:
    spot_ids = spot_ids or settings.SPOT_IDS
    return [f"{prefix}/plaza{n}/estado" for n in spot_ids] + [
        f"{prefix}/puerta/entrada/estado",
        f"{prefix}/puerta/salida/estado",
        f"{prefix}/modo/estado",
        f"{prefix}/eventos/entrada",
        f"{prefix}/eventos/estacionado",
        f"{prefix}/eventos/salida_detectada",
        f"{prefix}/eventos/salida",
    ]


def _as_bool(value) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ("true", "1", "ocupado", "occupied", "si", "yes"):
            return True
        if v in ("false", "0", "libre", "free", "no"):
            return False
    return None


def _as_spot(value, topic: str) -> int:
    try:
        spot_id = int(value)
    except (TypeError, ValueError):
        raise EventParseError(f"{topic}: missing or invalid spot number {value!r}")
    if spot_id <= 0:
        raise EventParseError(f"{topic}: invalid spot number {spot_id}")
    return spot_id


def _json_object(raw: bytes, topic: str) -> dict:
    data = safe_parse_json(raw)
    if not isinstance(data, dict):
        raise EventParseError(f"{topic}: payload is not a JSON object")
    return data


def _expect_marker(data: dict, topic: str, expected: str):
    marker = data.get("evento")
    if marker is not None and marker != expected:
        raise EventParseError(f"{topic}: unexpected evento {marker!r} (wanted {expected!r})")


def parse_sensor_event(topic: str, payload: Union[bytes, str], received_at: Optional[datetime] = None,
                       prefix: str = settings.MQTT_TOPIC_PREFIX) -> SensorEvent:
    """Map one transport message to a SensorEvent. Raises EventParseError."""
    raw = payload.encode() if isinstance(payload, str) else payload
    text = raw.decode("utf-8", errors="replace").strip()
    received_at = received_at or datetime.utcnow()

    if not topic.startswith(prefix + "/"):
        raise EventParseError(f"Topic outside {prefix}/: {topic}")
    path = topic[len(prefix) + 1:]

    event = SensorEvent(kind=EventKind.MODE_STATE, topic=topic, received_at=received_at, raw_payload=text)

    spot_match = re.fullmatch(r"plaza(\d+)/estado", path)
    if spot_match:
        data = _json_object(raw, topic)
        occupied = _as_bool(get_first(data, "ocupado", "occupied", "estado"))
        if occupied is None:
            raise EventParseError(f"{topic}: occupancy flag missing")
        event.kind = EventKind.SPOT_READING
        event.spot_id = _as_spot(spot_match.group(1), topic)
        event.occupied = occupied
        distance = get_first(data, "distancia", "distance")
        try:
            event.distance = float(distance) if distance is not None else None
        except (TypeError, ValueError):
            logger.debug(f"{topic}: unreadable distance {distance!r} ignored")
        # The controller piggybacks the entry door state on plaza1 readings
        entry_open = data.get("entradaAbierta")
        if entry_open is not None:
            event.door = "entry"
            event.is_open = _as_bool(entry_open)
        return event

    if path == "eventos/entrada":
        _expect_marker(_json_object(raw, topic), topic, "vehiculo_detectado")
        event.kind = EventKind.ENTRY_DETECTED
        return event

    if path == "eventos/salida_detectada":
        _expect_marker(_json_object(raw, topic), topic, "salida_detectada")
        event.kind = EventKind.EXIT_DETECTED
        return event

    if path == "eventos/estacionado":
        data = _json_object(raw, topic)
        _expect_marker(data, topic, "vehiculo_estacionado")
        event.kind = EventKind.VEHICLE_PARKED
        event.spot_id = _as_spot(get_first(data, "plaza", "spotId", "spot_id"), topic)
        return event

    if path == "eventos/salida":
        data = _json_object(raw, topic)
        _expect_marker(data, topic, "plaza_liberada")
        event.kind = EventKind.SPOT_FREED
        event.spot_id = _as_spot(get_first(data, "plaza", "spotId", "spot_id"), topic)
        return event

    door_match = re.fullmatch(r"puerta/(entrada|salida)/estado", path)
    if door_match:
        event.kind = EventKind.DOOR_STATE
        event.door = "entry" if door_match.group(1) == "entrada" else "exit"
        event.is_open = text.strip('"').lower() == "abierta"
        return event

    if path == "modo/estado":
        event.kind = EventKind.MODE_STATE
        event.automatic = text.strip('"').lower() == "automatico"
        return event

    raise EventParseError(f"Unhandled topic: {topic}")
