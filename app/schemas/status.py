# app/schemas/status.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class SpotOut(BaseModel):
    spot_id: int
    occupied: bool
    distance: float
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class EngineStatusOut(BaseModel):
    spots: List[SpotOut]
    entry_door_open: bool
    exit_door_open: bool
    automatic_mode: bool
    entry_prompt_pending: bool
    exit_prompt_pending: bool
    queue_length: int
    active_sessions: int


class DashboardOut(BaseModel):
    earnings_today: float
    earnings_month: float
    average_minutes: float
    best_month: str
