# app/services/assignment_resolver.py
"""
Matches a "spot became occupied" signal to a queued vehicle.

  queue empty     → anomaly: the car skipped the entry barrier. Reported, no session.
  one candidate   → automatic match: claim it, open the session at detection time.
  2+ candidates   → ambiguous: parked until an operator calls resolve_ambiguous().

A spot holds at most one ACTIVE session, so an occupied signal for a spot that
already has one (or is being matched, is waiting for an operator, or was reported as
an anomaly) is the same physical car seen twice, e.g. the occupancy edge and
the "vehicle parked" event both firing. Every successful match is also kept
under its (spot_id, detected_at) idempotency key so a re-delivered event can
never open a second session.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from app.exceptions import NotFound, PersistenceError, ValidationError
from app.services.alert_service import AMBIGUOUS_ASSIGNMENT, UNQUEUED_PARKING, report_anomaly
from app.services.deduplicator import EventDeduplicator, occupied_source
from app.services.entry_queue import EntryQueueManager
from app.services.records import AmbiguousAssignment, PendingEntry, SessionRecord
from app.services.session_manager import SessionLifecycleManager
from app.utils.logger import get_logger

logger = get_logger(__name__)


class Outcome(str, Enum):
    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"
    ANOMALY = "anomaly"
    DUPLICATE = "duplicate"
    ABORTED = "aborted"      # lost the claim race to another spot


@dataclass
class Resolution:
    outcome: Outcome
    spot_id: int
    detected_at: datetime
    session: Optional[SessionRecord] = None
    candidates: List[PendingEntry] = field(default_factory=list)


class AssignmentResolver:
    def __init__(self, queue: EntryQueueManager, sessions: SessionLifecycleManager,
                 dedup: EventDeduplicator, store, now: Callable[[], datetime] = datetime.utcnow):
        self._queue = queue
        self._sessions = sessions
        self._dedup = dedup
        self._store = store
        self._now = now
        self._matched: Dict[Tuple[int, datetime], SessionRecord] = {}
        self._ambiguous: Dict[int, AmbiguousAssignment] = {}
        self._unqueued: Dict[int, datetime] = {}
        self._assigning: Set[int] = set()    # spots with a match in flight

    def pending_disambiguations(self) -> List[AmbiguousAssignment]:
        return sorted(self._ambiguous.values(), key=lambda a: a.detected_at)

    def spot_released(self, spot_id: int):
        """The spot is physically free again; a later occupancy is a new car."""
        self._unqueued.pop(spot_id, None)
        pending = self._ambiguous.pop(spot_id, None)
        if pending is not None:
            plates = ", ".join(c.plate for c in pending.candidates)
            logger.info(f"[ASSIGN] Spot {spot_id} freed before an operator chose ({plates}) — assignment dropped")

    def dismiss(self, spot_id: int):
        """Operator gave up on an ambiguous assignment."""
        if self._ambiguous.pop(spot_id, None) is None:
            raise NotFound(f"No pending assignment for spot {spot_id}")
        logger.info(f"[ASSIGN] Ambiguous assignment for spot {spot_id} dismissed")

    async def on_spot_occupied(self, spot_id: int, detected_at: datetime) -> Resolution:
        key = (spot_id, detected_at)
        if key in self._matched or not self._dedup.accept(occupied_source(spot_id), detected_at):
            return Resolution(Outcome.DUPLICATE, spot_id, detected_at, session=self._matched.get(key))

        current = self._sessions.find_active_on_spot(spot_id)
        if current is not None:
            logger.info(f"[ASSIGN] Spot {spot_id} already holds {current.plate} — occupied signal ignored")
            return Resolution(Outcome.DUPLICATE, spot_id, detected_at, session=current)
        if spot_id in self._ambiguous or spot_id in self._unqueued or spot_id in self._assigning:
            logger.debug(f"[ASSIGN] Spot {spot_id} already reported — occupied signal ignored")
            return Resolution(Outcome.DUPLICATE, spot_id, detected_at)

        candidates = self._queue.entries()

        if not candidates:
            self._unqueued[spot_id] = detected_at
            await report_anomaly(self._store, UNQUEUED_PARKING,
                                 f"Vehicle parked on spot {spot_id} but the entry queue is empty",
                                 spot_id=spot_id, source="vehicle-parked")
            return Resolution(Outcome.ANOMALY, spot_id, detected_at)

        if len(candidates) == 1:
            try:
                session = await self._match(candidates[0].id, spot_id, detected_at)
            except NotFound as e:
                logger.warning(f"[ASSIGN] Spot {spot_id}: assignment aborted — {e}")
                return Resolution(Outcome.ABORTED, spot_id, detected_at)
            except PersistenceError:
                self._dedup.forget(occupied_source(spot_id), detected_at)
                raise
            return Resolution(Outcome.MATCHED, spot_id, detected_at, session=session)

        self._ambiguous[spot_id] = AmbiguousAssignment(spot_id=spot_id, detected_at=detected_at,
                                                       candidates=list(candidates))
        plates = ", ".join(c.plate for c in candidates)
        await report_anomaly(self._store, AMBIGUOUS_ASSIGNMENT,
                             f"Spot {spot_id} occupied with {len(candidates)} vehicles queued ({plates}) — operator must choose",
                             spot_id=spot_id, source="vehicle-parked")
        return Resolution(Outcome.AMBIGUOUS, spot_id, detected_at, candidates=list(candidates))

    async def resolve_ambiguous(self, entry_id: int, spot_id: int, detected_at: Optional[datetime] = None) -> SessionRecord:
        """Operator picked which queued vehicle parked on spot_id."""
        pending = self._ambiguous.get(spot_id)
        if detected_at is None:
            detected_at = pending.detected_at if pending else self._now()

        existing = self._matched.get((spot_id, detected_at))
        if existing is not None:
            if existing.queue_entry_id == entry_id:
                return existing
            raise NotFound(f"Spot {spot_id} was already assigned to {existing.plate} for this event")

        if spot_id in self._assigning:
            raise ValidationError(f"Spot {spot_id} is already being assigned")
        current = self._sessions.find_active_on_spot(spot_id)
        if current is not None:
            raise ValidationError(f"Spot {spot_id} already holds {current.plate}")
        if pending is not None and entry_id not in {c.id for c in pending.candidates}:
            raise ValidationError(f"Entry {entry_id} was not queued when spot {spot_id} became occupied")

        session = await self._match(entry_id, spot_id, detected_at)
        self._ambiguous.pop(spot_id, None)
        return session

    async def _match(self, entry_id: int, spot_id: int, detected_at: datetime) -> SessionRecord:
        self._assigning.add(spot_id)
        try:
            entry = await self._queue.claim(entry_id, spot_id)
            try:
                session = await self._sessions.open_session(entry, spot_id, detected_at)
            except PersistenceError:
                await self._queue.release(entry)
                raise
        finally:
            self._assigning.discard(spot_id)
        self._matched[(spot_id, detected_at)] = session
        self._unqueued.pop(spot_id, None)
        logger.info(f"[ASSIGN] {entry.plate} → spot {spot_id}")
        return session
