# app/services/session_manager.py
"""
Session lifecycle: ACTIVE → EXIT_PENDING → CLOSED.

  - open_session()        called only by the assignment resolver, with a claimed queue entry
  - mark_exit_detected()  spot freed → freeze exit_time (dwell + dedup checked)
  - freeze_exit()         operator looked the plate up at the exit desk
  - quote()               live fee, never mutates anything
  - confirm_payment()     final fee from frozen times + captured rates, archive, open exit barrier

Rates are copied from the current tariff when the session opens. A tariff
change afterwards only affects sessions opened after it.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Set

from app.exceptions import NotFound, PersistenceError, ValidationError
from app.services.alert_service import ORPHAN_EXIT, report_anomaly
from app.services.deduplicator import EventDeduplicator, exit_source
from app.services.fee_calculator import Tariff, calculate_fee, round_fee
from app.services.records import Payment, PendingEntry, Quote, SessionRecord, SessionState
from app.utils.logger import get_logger
from app.utils.plate import normalize_plate

logger = get_logger(__name__)


class SessionLifecycleManager:
    def __init__(self, store, dedup: EventDeduplicator, barrier, now: Callable[[], datetime] = datetime.utcnow):
        self._store = store
        self._dedup = dedup
        self._barrier = barrier
        self._now = now
        self._active: Dict[int, SessionRecord] = {}
        self._tariff: Optional[Tariff] = None
        self._left: Set[int] = set()                      # sessions whose car the sensor saw leave
        self._paid_on_spot: Dict[int, SessionRecord] = {}  # paid at the desk, car still on the spot

    async def load(self):
        self._tariff = await self._store.get_tariff()
        sessions = await self._store.list_active_sessions()
        self._active = {s.id: s for s in sessions}
        logger.info(
            f"[SESSION] Loaded {len(self._active)} open sessions | "
            f"tariff base={self._tariff.base} minute={self._tariff.minute_price}"
        )

    # ── tariff ───────────────────────────────────────────────────────────
    async def current_tariff(self) -> Tariff:
        if self._tariff is None:
            self._tariff = await self._store.get_tariff()
        return self._tariff

    async def update_tariff(self, base: float, minute_price: float) -> Tariff:
        if base is None or minute_price is None or base < 0 or minute_price < 0:
            raise ValidationError("Tariff values must be non-negative numbers")
        self._tariff = await self._store.update_tariff(Tariff(base=float(base), minute_price=float(minute_price)))
        logger.info(f"[SESSION] Tariff updated: base={self._tariff.base} minute={self._tariff.minute_price}")
        return self._tariff

    # ── lookups ──────────────────────────────────────────────────────────
    def active_sessions(self) -> List[SessionRecord]:
        return sorted(self._active.values(), key=lambda s: s.entry_time)

    def find_by_plate(self, plate: str) -> Optional[SessionRecord]:
        matches = [s for s in self._active.values() if s.plate == plate]
        return max(matches, key=lambda s: s.entry_time) if matches else None

    def find_active_on_spot(self, spot_id: int) -> Optional[SessionRecord]:
        """The session still physically on the spot (exit not detected yet)."""
        for s in self._active.values():
            if s.spot_id == spot_id and s.state == SessionState.ACTIVE:
                return s
        return None

    def _require(self, plate: str) -> SessionRecord:
        plate = normalize_plate(plate)
        session = self.find_by_plate(plate)
        if session is None:
            raise NotFound(f"No active session for plate {plate}")
        return session

    # ── transitions ──────────────────────────────────────────────────────
    async def open_session(self, entry: PendingEntry, spot_id: int, entry_time: datetime) -> SessionRecord:
        tariff = await self.current_tariff()
        session = await self._store.create_session(
            entry.plate, spot_id, tariff, entry_time=entry_time, queue_entry_id=entry.id,
        )
        self._active[session.id] = session
        self._paid_on_spot.pop(spot_id, None)
        logger.info(
            f"[SESSION] Opened {session.plate} on spot {spot_id} at {entry_time.isoformat()} "
            f"(base={tariff.base}, minute={tariff.minute_price})"
        )
        return session

    async def mark_exit_detected(self, spot_id: int, event_time: Optional[datetime] = None) -> Optional[SessionRecord]:
        """Spot freed. Returns the updated session, or None when the signal was ignored."""
        event_time = event_time or self._now()
        session = self.find_active_on_spot(spot_id)
        if session is None:
            paid = self._paid_on_spot.pop(spot_id, None)
            if paid is not None:
                logger.info(f"[SESSION] {paid.plate} left spot {spot_id} after paying")
            elif any(s.spot_id == spot_id for s in self._active.values()):
                logger.debug(f"[SESSION] Spot {spot_id} freed again — exit already recorded")
            else:
                await report_anomaly(self._store, ORPHAN_EXIT,
                                     f"Spot {spot_id} freed but no active session is parked there",
                                     spot_id=spot_id, source="spot-freed")
            return None

        source_key = exit_source(spot_id)
        if not self._dedup.accept_exit(source_key, event_time, session.entry_time):
            return None

        try:
            updated = await self._store.mark_exit_time(session.plate, event_time)
        except PersistenceError:
            self._dedup.forget(source_key, event_time)
            raise
        if updated is None:
            logger.warning(f"[SESSION] {session.plate} was closed elsewhere — dropping local copy")
            self._active.pop(session.id, None)
            return None

        self._active[updated.id] = updated
        self._left.add(updated.id)
        logger.info(f"[SESSION] Exit detected: {updated.plate} left spot {spot_id} at {updated.exit_time.isoformat()}")
        return updated

    async def freeze_exit(self, plate: str) -> SessionRecord:
        """Manual exit: set exit_time now unless already set."""
        session = self._require(plate)
        if session.exit_time is not None:
            return session
        updated = await self._store.mark_exit_time(session.plate, self._now())
        if updated is None:
            self._active.pop(session.id, None)
            raise NotFound(f"No active session for plate {session.plate}")
        self._active[updated.id] = updated
        logger.info(f"[SESSION] Exit time frozen for {updated.plate} (operator lookup)")
        return updated

    def quote(self, plate: str, at: Optional[datetime] = None) -> Quote:
        session = self._require(plate)
        end = session.exit_time or at or self._now()
        breakdown = calculate_fee(
            session.entry_time, end,
            Tariff(base=session.rate_base_at_entry, minute_price=session.rate_minute_at_entry),
        )
        return Quote(
            plate=session.plate,
            spot_id=session.spot_id,
            entry_time=session.entry_time,
            end_time=end,
            elapsed_minutes=breakdown.elapsed_minutes,
            elapsed_seconds=breakdown.elapsed_seconds,
            fee=round_fee(breakdown.fee),
            rate_base_at_entry=session.rate_base_at_entry,
            rate_minute_at_entry=session.rate_minute_at_entry,
            frozen=session.exit_time is not None,
        )

    async def confirm_payment(self, plate: str) -> Payment:
        session = self._require(plate)
        exit_time = session.exit_time or self._now()
        breakdown = calculate_fee(
            session.entry_time, exit_time,
            Tariff(base=session.rate_base_at_entry, minute_price=session.rate_minute_at_entry),
        )
        fee = round_fee(breakdown.fee)

        closed = await self._store.close_session(session.plate, exit_time, breakdown.elapsed_minutes, fee)
        self._active.pop(session.id, None)
        if closed is None:
            raise NotFound(f"No active session for plate {session.plate}")
        if session.id in self._left:
            self._left.discard(session.id)
        else:
            self._paid_on_spot[closed.spot_id] = closed

        logger.info(f"[FEE] {closed.plate}: {breakdown.elapsed_minutes} min → {fee:.2f} — session archived")
        self._barrier.open_exit()
        return Payment(session=closed, elapsed_minutes=breakdown.elapsed_minutes, fee=fee)
