# app/schemas/device.py
from pydantic import BaseModel
from typing import Any


class ModeRequest(BaseModel):
    automatic: bool


class WifiConfigRequest(BaseModel):
    ssid: str
    password: str


class EventIn(BaseModel):
    """A controller message injected over HTTP instead of MQTT."""
    topic: str
    payload: Any                 # JSON object, or the bare word door/mode topics carry
