# app/routers/tariff.py
"""Tariff — applies to sessions opened after the change."""

from fastapi import APIRouter, Depends
from app.dependencies import get_engine
from app.schemas.tariff import TariffIn, TariffOut
from app.services.orchestrator import ReconciliationEngine

router = APIRouter()


@router.get("/rates", response_model=TariffOut, summary="Current tariff")
async def get_rates(engine: ReconciliationEngine = Depends(get_engine)):
    return await engine.current_tariff()


@router.post("/rates", response_model=TariffOut, summary="Update the tariff")
async def update_rates(body: TariffIn, engine: ReconciliationEngine = Depends(get_engine)):
    return await engine.update_tariff(body.base, body.minute_price)
