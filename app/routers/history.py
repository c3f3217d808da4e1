# app/routers/history.py
"""Archived sessions and earnings summary."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from app.dependencies import get_engine
from app.schemas.session import SessionOut
from app.schemas.status import DashboardOut
from app.services.orchestrator import ReconciliationEngine

router = APIRouter()


@router.get("/history", response_model=list[SessionOut], summary="Paid sessions, newest first")
async def get_history(limit: Optional[int] = Query(default=100, ge=1),
                      engine: ReconciliationEngine = Depends(get_engine)):
    return await engine.store.list_history(limit=limit)


@router.get("/dashboard", response_model=DashboardOut, summary="Earnings today / this month, average stay")
async def get_dashboard(engine: ReconciliationEngine = Depends(get_engine)):
    return await engine.store.dashboard_metrics()
