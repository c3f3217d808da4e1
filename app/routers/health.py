# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + MQTT broker connection.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.database import get_db
from app.dependencies import get_bridge
from app.services.mqtt_bridge import MqttBridge
from datetime import datetime
from typing import Optional

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db), bridge: Optional[MqttBridge] = Depends(get_bridge)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - MQTT broker connection ("disabled" when MQTT_ENABLED is off)
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "mqtt": "disabled",
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except SQLAlchemyError as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    if bridge is not None:
        if bridge.is_connected():
            result["mqtt"] = "ok"
        else:
            result["mqtt"] = "disconnected"
            result["status"] = "degraded"

    return result
