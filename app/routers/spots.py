# app/routers/spots.py
from fastapi import APIRouter, Depends
from app.dependencies import get_engine
from app.schemas.status import EngineStatusOut
from app.services.orchestrator import ReconciliationEngine

router = APIRouter()


@router.get("/spots", response_model=EngineStatusOut, summary="Spot occupancy, barrier doors and prompts")
def get_spots(engine: ReconciliationEngine = Depends(get_engine)):
    return engine.snapshot()
