# app/routers/sessions.py
"""Parked vehicles — live fee quotes, exit lookup and payment."""

from fastapi import APIRouter, Depends
from app.dependencies import get_engine
from app.schemas.session import PaymentOut, PlateRequest, QuoteOut, SessionOut
from app.services.orchestrator import ReconciliationEngine

router = APIRouter()


@router.get("/vehicles/active", response_model=list[SessionOut], summary="Open sessions (parked or waiting to pay)")
def list_active(engine: ReconciliationEngine = Depends(get_engine)):
    return engine.sessions.active_sessions()


@router.get("/vehicles/{plate}/quote", response_model=QuoteOut, summary="Current fee for a plate")
def quote(plate: str, engine: ReconciliationEngine = Depends(get_engine)):
    """Read-only. The fee keeps growing until the exit time is frozen."""
    return engine.quote(plate)


@router.post("/vehicles/mark-exit", response_model=QuoteOut, summary="Exit desk lookup — freezes the exit time")
async def mark_exit(body: PlateRequest, engine: ReconciliationEngine = Depends(get_engine)):
    return await engine.lookup_exit(body.plate)


@router.post("/vehicles/exit", response_model=PaymentOut, summary="Confirm payment and open the exit barrier")
async def confirm_exit(body: PlateRequest, engine: ReconciliationEngine = Depends(get_engine)):
    return await engine.confirm_payment(body.plate)
