# app/services/parking_store.py
"""
Persistence collaborator for the reconciliation engine.

Every operation opens its own DB session, runs in Starlette's threadpool so the
event loop keeps draining sensor events while the write is in flight, and
returns plain records (app.services.records) instead of ORM rows.

Any SQLAlchemy failure is rolled back and re-raised as PersistenceError; the
caller must treat the operation as not having happened.
"""

from collections import defaultdict
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.database import SessionLocal
from app.exceptions import PersistenceError
from app.models.alert import Alert
from app.models.parking_session import ParkingSession
from app.models.queue_entry import QueueEntry
from app.models.tariff import TariffSetting
from app.services.fee_calculator import Tariff
from app.services.records import PendingEntry, SessionRecord
from app.utils.logger import get_logger

logger = get_logger(__name__)

TARIFF_ROW_ID = 1


def _to_entry(row: QueueEntry) -> PendingEntry:
    return PendingEntry(id=row.id, plate=row.plate_number, detected_at=row.detected_at)


def _to_session(row: ParkingSession) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        plate=row.plate_number,
        spot_id=row.spot_id,
        entry_time=row.entry_time,
        exit_time=row.exit_time,
        rate_base_at_entry=row.rate_base_at_entry,
        rate_minute_at_entry=row.rate_minute_at_entry,
        queue_entry_id=row.queue_entry_id,
        total_minutes=row.total_minutes,
        fee=row.fee,
        closed_at=row.closed_at,
    )


def _open_session_for(db: Session, plate: str) -> Optional[ParkingSession]:
    return (
        db.query(ParkingSession)
        .filter(ParkingSession.plate_number == plate, ParkingSession.closed_at == None)  # noqa: E711
        .order_by(ParkingSession.entry_time.desc())
        .first()
    )


class ParkingStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, now: Callable[[], datetime] = datetime.utcnow):
        self._session_factory = session_factory
        self._now = now

    # ── plumbing ─────────────────────────────────────────────────────────
    def _call(self, op_name: str, fn, *args):
        db = self._session_factory()
        try:
            return fn(db, *args)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[STORE] {op_name} failed: {e}")
            raise PersistenceError(f"{op_name} failed: {e}") from e
        finally:
            db.close()

    async def _run(self, op_name: str, fn, *args):
        return await run_in_threadpool(self._call, op_name, fn, *args)

    # ── tariff ───────────────────────────────────────────────────────────
    async def get_tariff(self) -> Tariff:
        def op(db: Session):
            row = db.get(TariffSetting, TARIFF_ROW_ID)
            if row is None:
                row = TariffSetting(id=TARIFF_ROW_ID, base=settings.DEFAULT_RATE_BASE,
                                    minute_price=settings.DEFAULT_RATE_MINUTE, updated_at=self._now())
                db.add(row)
                db.commit()
            return Tariff(base=row.base, minute_price=row.minute_price)
        return await self._run("get_tariff", op)

    async def update_tariff(self, tariff: Tariff) -> Tariff:
        def op(db: Session):
            row = db.get(TariffSetting, TARIFF_ROW_ID)
            if row is None:
                row = TariffSetting(id=TARIFF_ROW_ID)
                db.add(row)
            row.base = tariff.base
            row.minute_price = tariff.minute_price
            row.updated_at = self._now()
            db.commit()
            return Tariff(base=row.base, minute_price=row.minute_price)
        return await self._run("update_tariff", op)

    # ── entry queue ──────────────────────────────────────────────────────
    async def list_queue(self) -> List[PendingEntry]:
        def op(db: Session):
            rows = (
                db.query(QueueEntry)
                .filter(QueueEntry.assigned_at == None)  # noqa: E711
                .order_by(QueueEntry.detected_at.asc(), QueueEntry.id.asc())
                .all()
            )
            return [_to_entry(r) for r in rows]
        return await self._run("list_queue", op)

    async def create_queue_entry(self, plate: str, detected_at: datetime) -> PendingEntry:
        def op(db: Session):
            row = QueueEntry(plate_number=plate, detected_at=detected_at)
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_entry(row)
        return await self._run("create_queue_entry", op)

    async def delete_queue_entry(self, entry_id: int) -> bool:
        """False if the entry was already gone."""
        def op(db: Session):
            row = db.get(QueueEntry, entry_id)
            if row is None or row.assigned_at is not None:
                return False
            db.delete(row)
            db.commit()
            return True
        return await self._run("delete_queue_entry", op)

    async def mark_queue_entry_assigned(self, entry_id: int, spot_id: int) -> bool:
        def op(db: Session):
            row = db.get(QueueEntry, entry_id)
            if row is None or row.assigned_at is not None:
                return False
            row.assigned_at = self._now()
            row.assigned_spot = spot_id
            db.commit()
            return True
        return await self._run("mark_queue_entry_assigned", op)

    async def release_queue_entry(self, entry_id: int) -> bool:
        """Clear the assigned mark so the entry is pending again."""
        def op(db: Session):
            row = db.get(QueueEntry, entry_id)
            if row is None:
                return False
            row.assigned_at = None
            row.assigned_spot = None
            db.commit()
            return True
        return await self._run("release_queue_entry", op)

    # ── sessions ─────────────────────────────────────────────────────────
    async def list_active_sessions(self) -> List[SessionRecord]:
        def op(db: Session):
            rows = (
                db.query(ParkingSession)
                .filter(ParkingSession.closed_at == None)  # noqa: E711
                .order_by(ParkingSession.entry_time.asc())
                .all()
            )
            return [_to_session(r) for r in rows]
        return await self._run("list_active_sessions", op)

    async def list_history(self, limit: Optional[int] = None) -> List[SessionRecord]:
        def op(db: Session):
            q = (
                db.query(ParkingSession)
                .filter(ParkingSession.closed_at != None)  # noqa: E711
                .order_by(ParkingSession.closed_at.desc())
            )
            if limit:
                q = q.limit(limit)
            return [_to_session(r) for r in q.all()]
        return await self._run("list_history", op)

    async def create_session(self, plate: str, spot_id: int, tariff: Tariff,
                             entry_time: Optional[datetime] = None,
                             queue_entry_id: Optional[int] = None) -> SessionRecord:
        """Vehicle entry. entry_time defaults to the server clock."""
        def op(db: Session):
            row = ParkingSession(
                plate_number=plate,
                spot_id=spot_id,
                entry_time=entry_time or self._now(),
                rate_base_at_entry=tariff.base,
                rate_minute_at_entry=tariff.minute_price,
                queue_entry_id=queue_entry_id,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_session(row)
        return await self._run("create_session", op)

    async def mark_exit_time(self, plate: str, exit_time: datetime) -> Optional[SessionRecord]:
        """Freeze exit_time without closing. Never overwrites an exit_time already set."""
        def op(db: Session):
            row = _open_session_for(db, plate)
            if row is None:
                return None
            if row.exit_time is None:
                row.exit_time = exit_time
                db.commit()
                db.refresh(row)
            return _to_session(row)
        return await self._run("mark_exit_time", op)

    async def close_session(self, plate: str, exit_time: datetime, total_minutes: int, fee: float) -> Optional[SessionRecord]:
        """Vehicle exit: archive the open session for this plate. None if there is none."""
        def op(db: Session):
            row = _open_session_for(db, plate)
            if row is None:
                return None
            if row.exit_time is None:
                row.exit_time = exit_time
            row.total_minutes = total_minutes
            row.fee = fee
            row.closed_at = self._now()
            db.commit()
            db.refresh(row)
            return _to_session(row)
        return await self._run("close_session", op)

    # ── alerts ───────────────────────────────────────────────────────────
    async def create_alert(self, alert_type: str, description: str, spot_id: Optional[int] = None,
                           plate: Optional[str] = None, source: Optional[str] = None) -> int:
        def op(db: Session):
            row = Alert(alert_type=alert_type, spot_id=spot_id, plate_number=plate, source=source,
                        description=description, is_resolved=0, triggered_at=self._now())
            db.add(row)
            db.commit()
            return row.id
        return await self._run("create_alert", op)

    # ── dashboard ────────────────────────────────────────────────────────
    async def dashboard_metrics(self) -> dict:
        """Earnings today / this month, average billed minutes, best month (YYYY-MM)."""
        def op(db: Session):
            now = self._now()
            day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
            month_start = day_start.replace(day=1)
            closed = ParkingSession.closed_at != None  # noqa: E711

            today = db.query(func.sum(ParkingSession.fee)).filter(
                closed, ParkingSession.closed_at >= day_start).scalar() or 0
            month = db.query(func.sum(ParkingSession.fee)).filter(
                closed, ParkingSession.closed_at >= month_start).scalar() or 0
            avg_minutes = db.query(func.avg(ParkingSession.total_minutes)).filter(closed).scalar() or 0

            per_month = defaultdict(float)
            for closed_at, fee in db.query(ParkingSession.closed_at, ParkingSession.fee).filter(closed):
                per_month[closed_at.strftime("%Y-%m")] += fee or 0
            best = max(per_month, key=per_month.get) if per_month else "N/A"

            return {
                "earnings_today": round(today, 2),
                "earnings_month": round(month, 2),
                "average_minutes": round(avg_minutes, 1),
                "best_month": best,
            }
        return await self._run("dashboard_metrics", op)

    async def ping(self) -> bool:
        def op(db: Session):
            db.execute(text("SELECT 1"))
            return True
        return await self._run("ping", op)
