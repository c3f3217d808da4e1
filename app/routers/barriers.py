# app/routers/barriers.py
"""Manual barrier control and device configuration. Commands are fire-and-forget."""

from fastapi import APIRouter, Depends
from app.dependencies import get_engine
from app.schemas.device import ModeRequest, WifiConfigRequest
from app.services.orchestrator import ReconciliationEngine

router = APIRouter()


def _result(sent: bool) -> dict:
    return {"status": "sent" if sent else "not_sent"}


@router.post("/barriers/{gate}/{action}", summary="Open or close a barrier (gate: entry|exit, action: open|close)")
def barrier_command(gate: str, action: str, engine: ReconciliationEngine = Depends(get_engine)):
    return _result(engine.barrier.command(gate, action))


@router.post("/barriers/mode", summary="Switch the controller between automatic and manual mode")
def barrier_mode(body: ModeRequest, engine: ReconciliationEngine = Depends(get_engine)):
    return {**_result(engine.set_mode(body.automatic)), "automatic": body.automatic}


@router.post("/device/wifi", summary="Push WiFi credentials to the controller")
def push_wifi(body: WifiConfigRequest, engine: ReconciliationEngine = Depends(get_engine)):
    return _result(engine.barrier.push_wifi_config(body.ssid, body.password))
