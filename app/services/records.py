# app/services/records.py
"""
Plain records passed between the engine components and the store.
ORM rows never leave parking_store; every call returns one of these.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional


class SessionState(str, Enum):
    ACTIVE = "active"              # parked, exit_time unset
    EXIT_PENDING = "exit_pending"  # exit_time frozen, waiting for payment
    CLOSED = "closed"              # paid and archived


@dataclass(frozen=True)
class PendingEntry:
    id: int
    plate: str
    detected_at: datetime


@dataclass(frozen=True)
class SessionRecord:
    id: int
    plate: str
    spot_id: int
    entry_time: datetime
    rate_base_at_entry: float
    rate_minute_at_entry: float
    exit_time: Optional[datetime] = None
    queue_entry_id: Optional[int] = None
    total_minutes: Optional[int] = None
    fee: Optional[float] = None
    closed_at: Optional[datetime] = None

    @property
    def state(self) -> SessionState:
        if self.closed_at is not None:
            return SessionState.CLOSED
        if self.exit_time is not None:
            return SessionState.EXIT_PENDING
        return SessionState.ACTIVE

    def with_exit(self, exit_time: datetime) -> "SessionRecord":
        return replace(self, exit_time=exit_time)


@dataclass(frozen=True)
class Quote:
    plate: str
    spot_id: int
    entry_time: datetime
    end_time: datetime
    elapsed_minutes: int
    elapsed_seconds: int
    fee: float                   # rounded to cents for display
    rate_base_at_entry: float
    rate_minute_at_entry: float
    frozen: bool                 # True once exit_time is set


@dataclass(frozen=True)
class Payment:
    session: SessionRecord
    elapsed_minutes: int
    fee: float


@dataclass
class AmbiguousAssignment:
    """An occupied spot waiting for an operator to pick which queued vehicle parked there."""
    spot_id: int
    detected_at: datetime
    candidates: List[PendingEntry] = field(default_factory=list)
