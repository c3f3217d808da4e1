# app/routers/events.py
"""
Controller event injection.
POST /events — feeds one controller message (MQTT topic + payload) through the
same parser and engine lanes as the broker. Used by the simulator script and
when the broker is down.
"""

import json
from fastapi import APIRouter, Depends
from app.dependencies import get_engine
from app.schemas.device import EventIn
from app.services.orchestrator import ReconciliationEngine
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/events", summary="Inject a controller event")
async def receive_event(body: EventIn, engine: ReconciliationEngine = Depends(get_engine)):
    """
    Always returns HTTP 200: a malformed event is reported in the body, the
    same way a dropped MQTT message would be logged and skipped.
    """
    payload = body.payload if isinstance(body.payload, str) else json.dumps(body.payload)
    event = engine.submit_raw(body.topic, payload)
    if event is None:
        return {"status": "ignored", "reason": "unrecognised topic or payload"}

    await engine.drain()
    logger.info(f"Injected {event.kind.value} on {event.source_key}")
    return {"status": "ok", "kind": event.kind.value, "source": event.source_key}
