# app/schemas/queue.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class EnqueueRequest(BaseModel):
    plate: str


class PendingEntryOut(BaseModel):
    id: int
    plate: str
    detected_at: datetime

    class Config:
        from_attributes = True


class AssignRequest(BaseModel):
    spot_id: int
    detected_at: Optional[datetime] = None   # defaults to the pending detection for that spot


class AmbiguousOut(BaseModel):
    spot_id: int
    detected_at: datetime
    candidates: List[PendingEntryOut]

    class Config:
        from_attributes = True
