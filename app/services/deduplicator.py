# app/services/deduplicator.py
"""
Suppresses repeated physical notifications.

The transport can deliver the same message twice, and a presence sensor can
flap while a car settles into a spot. Every event source (one per spot
transition, one for exit detection, ...) keeps the timestamp of the last event
accepted from it:

  - the exact same (source, timestamp) pair again   → dropped
  - same source inside DEDUP_WINDOW_SECONDS         → dropped (window 0 = off)
  - spot freed less than MIN_DWELL_SECONDS after the
    session's entry time                            → dropped (sensor noise)

Records live for the lifetime of the process only. After a restart the
resolver's idempotency keys and the store's state are what protect against
double processing.
"""

from datetime import datetime, timedelta
from typing import Dict, Optional

from app.config import settings
from app.utils.logger import get_logger

logger = get_logger(__name__)


def occupied_source(spot_id: int) -> str:
    return f"spot:{spot_id}:occupied"


def exit_source(spot_id: int) -> str:
    return f"spot:{spot_id}:exit"


class EventDeduplicator:
    def __init__(self, window_seconds: Optional[float] = None, min_dwell_seconds: Optional[float] = None):
        if window_seconds is None:
            window_seconds = settings.DEDUP_WINDOW_SECONDS
        if min_dwell_seconds is None:
            min_dwell_seconds = settings.MIN_DWELL_SECONDS
        self.window = timedelta(seconds=window_seconds)
        self.min_dwell = timedelta(seconds=min_dwell_seconds)
        self._last_accepted: Dict[str, datetime] = {}

    def accept(self, source_key: str, event_time: datetime) -> bool:
        """True if the event should be processed. Records it when accepted."""
        last = self._last_accepted.get(source_key)
        if last is not None:
            if event_time == last:
                logger.debug(f"[DEDUP] {source_key} @ {event_time.isoformat()} already processed")
                return False
            if self.window and abs(event_time - last) < self.window:
                logger.debug(f"[DEDUP] {source_key} inside debounce window ({self.window.total_seconds()}s)")
                return False
        self._last_accepted[source_key] = event_time
        return True

    def dwell_satisfied(self, entry_time: datetime, now: datetime) -> bool:
        return now - entry_time >= self.min_dwell

    def accept_exit(self, source_key: str, event_time: datetime, entry_time: datetime) -> bool:
        """
        Exit detection: dedup first, then the minimum-dwell check.
        The event is recorded even when the dwell check rejects it, so a
        re-delivery of the same noisy signal is not reconsidered later.
        """
        if not self.accept(source_key, event_time):
            return False
        if not self.dwell_satisfied(entry_time, event_time):
            logger.info(
                f"[DEDUP] {source_key} ignored — vehicle parked "
                f"{(event_time - entry_time).total_seconds():.1f}s ago (< {self.min_dwell.total_seconds()}s)"
            )
            return False
        return True

    def last_accepted(self, source_key: str) -> Optional[datetime]:
        return self._last_accepted.get(source_key)

    def forget(self, source_key: str, event_time: datetime):
        """Un-record an accepted event whose processing failed, so a re-delivery is retried."""
        if self._last_accepted.get(source_key) == event_time:
            del self._last_accepted[source_key]

    def reset(self):
        self._last_accepted.clear()
