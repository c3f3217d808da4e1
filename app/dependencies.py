# app/dependencies.py
"""FastAPI dependencies for the long-lived objects built at startup."""

from typing import Optional

from fastapi import Request

from app.services.mqtt_bridge import MqttBridge
from app.services.orchestrator import ReconciliationEngine


def get_engine(request: Request) -> ReconciliationEngine:
    return request.app.state.engine


def get_bridge(request: Request) -> Optional[MqttBridge]:
    return getattr(request.app.state, "bridge", None)
