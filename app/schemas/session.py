# app/schemas/session.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from app.services.records import SessionState


class PlateRequest(BaseModel):
    plate: str


class SessionOut(BaseModel):
    id: int
    plate: str
    spot_id: int
    state: SessionState
    entry_time: datetime
    exit_time: Optional[datetime] = None
    rate_base_at_entry: float
    rate_minute_at_entry: float
    total_minutes: Optional[int] = None
    fee: Optional[float] = None
    closed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuoteOut(BaseModel):
    plate: str
    spot_id: int
    entry_time: datetime
    end_time: datetime
    elapsed_minutes: int
    elapsed_seconds: int
    fee: float
    rate_base_at_entry: float
    rate_minute_at_entry: float
    frozen: bool

    class Config:
        from_attributes = True


class PaymentOut(BaseModel):
    session: SessionOut
    elapsed_minutes: int
    fee: float

    class Config:
        from_attributes = True
