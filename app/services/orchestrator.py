# app/services/orchestrator.py
"""
Reconciliation engine — the single owner of queue, sessions, spot table and
dedup state. Constructed once at startup and held on app.state.engine.

Event flow:
    transport → submit() → inbound queue → _run() → per-source lane → handle()

Each source (one per spot, entry, exit, each door, mode) has its own lane and
worker task. Events of one source are handled strictly in arrival order; a slow
store write on spot 1 never holds up spot 2 or the intake loop itself.

handle() never raises: malformed events, lost races and store failures are
logged and the next event is processed. A failed event stays unresolved and
is safe to re-deliver.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from app.config import settings
from app.exceptions import ParkingError, PersistenceError, ValidationError
from app.services.assignment_resolver import AssignmentResolver, Resolution
from app.services.barrier_service import BarrierController
from app.services.deduplicator import EventDeduplicator
from app.services.entry_queue import EntryQueueManager
from app.services.event_parser import EventKind, EventParseError, SensorEvent, parse_sensor_event
from app.services.fee_calculator import Tariff
from app.services.records import PendingEntry, Payment, Quote, SessionRecord
from app.services.session_manager import SessionLifecycleManager
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SpotState:
    spot_id: int
    occupied: bool = False
    distance: float = 0.0
    updated_at: Optional[datetime] = None


class ReconciliationEngine:
    def __init__(self, store, barrier: Optional[BarrierController] = None,
                 dedup: Optional[EventDeduplicator] = None, spot_ids: Optional[List[int]] = None,
                 now: Callable[[], datetime] = datetime.utcnow):
        self.store = store
        self.barrier = barrier or BarrierController()
        self.dedup = dedup or EventDeduplicator()
        self._now = now

        self.queue = EntryQueueManager(store, now=now)
        self.sessions = SessionLifecycleManager(store, self.dedup, self.barrier, now=now)
        self.resolver = AssignmentResolver(self.queue, self.sessions, self.dedup, store, now=now)

        self.spots: Dict[int, SpotState] = {i: SpotState(i) for i in (spot_ids or settings.SPOT_IDS)}
        self.entry_door_open = False
        self.exit_door_open = False
        self.automatic_mode = False
        self.entry_prompt_pending = False    # car at the entry barrier, plate not typed yet
        self.exit_prompt_pending = False     # car at the exit barrier

        self._inbound: Optional[asyncio.Queue] = None
        self._lanes: Dict[str, asyncio.Queue] = {}
        self._tasks: List[asyncio.Task] = []

    # ── lifecycle ────────────────────────────────────────────────────────
    async def load(self):
        await self.queue.load()
        await self.sessions.load()

    async def start(self):
        """Load state from the store and start draining the inbound queue."""
        await self.load()
        self._inbound = asyncio.Queue()
        self._tasks.append(asyncio.create_task(self._run(), name="reconciler-intake"))
        logger.info(f"🚀 Reconciliation engine running — spots {sorted(self.spots)}")

    async def stop(self):
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._lanes.clear()
        logger.info("🛑 Reconciliation engine stopped")

    # ── intake ───────────────────────────────────────────────────────────
    def submit(self, event: SensorEvent):
        """Queue an event for processing. Must be called on the engine's event loop."""
        if self._inbound is None:
            raise RuntimeError("Engine not started")
        self._inbound.put_nowait(event)

    def submit_raw(self, topic: str, payload: Union[bytes, str], received_at: Optional[datetime] = None) -> Optional[SensorEvent]:
        """Parse a transport message and queue it. Malformed messages are logged and dropped."""
        try:
            event = parse_sensor_event(topic, payload, received_at or self._now())
        except EventParseError as e:
            logger.warning(f"[EVENT] Dropped message: {e}")
            return None
        self.submit(event)
        return event

    async def drain(self):
        """Wait until every queued event has been handled."""
        if self._inbound is None:
            return
        await self._inbound.join()
        for lane in list(self._lanes.values()):
            await lane.join()

    async def _run(self):
        while True:
            event = await self._inbound.get()
            try:
                self._lane(event.source_key).put_nowait(event)
            finally:
                self._inbound.task_done()

    def _lane(self, key: str) -> asyncio.Queue:
        lane = self._lanes.get(key)
        if lane is None:
            lane = asyncio.Queue()
            self._lanes[key] = lane
            self._tasks.append(asyncio.create_task(self._lane_worker(lane), name=f"lane-{key}"))
        return lane

    async def _lane_worker(self, lane: asyncio.Queue):
        while True:
            event = await lane.get()
            try:
                await self.handle(event)
            finally:
                lane.task_done()

    # ── routing ──────────────────────────────────────────────────────────
    async def handle(self, event: SensorEvent) -> Optional[Union[Resolution, SessionRecord]]:
        """Apply one event. Never raises."""
        try:
            return await self._route(event)
        except PersistenceError as e:
            logger.error(f"[EVENT] {event.kind.value} on {event.source_key} left unresolved — store unavailable: {e}")
        except ParkingError as e:
            logger.warning(f"[EVENT] {event.kind.value} on {event.source_key} rejected: {e}")
        except Exception as e:
            logger.error(f"[EVENT] Unexpected error handling {event.topic}: {e}", exc_info=True)
        return None

    async def _route(self, event: SensorEvent):
        kind = event.kind
        logger.debug(f"[EVENT] {kind.value} | {event.topic} | {event.raw_payload}")

        if event.spot_id is not None and event.spot_id not in self.spots:
            logger.warning(f"[EVENT] {kind.value} for unknown spot {event.spot_id} ignored")
            return None

        if kind == EventKind.SPOT_READING:
            return await self._on_spot_reading(event)

        if kind == EventKind.VEHICLE_PARKED:
            self.entry_prompt_pending = False
            return await self.resolver.on_spot_occupied(event.spot_id, event.received_at)

        if kind == EventKind.SPOT_FREED:
            self.resolver.spot_released(event.spot_id)
            return await self.sessions.mark_exit_detected(event.spot_id, event.received_at)

        if kind == EventKind.ENTRY_DETECTED:
            if not self.entry_door_open:
                self.entry_prompt_pending = True
                logger.info("[EVENT] Vehicle at entry barrier — waiting for plate")
            return None

        if kind == EventKind.EXIT_DETECTED:
            self.exit_prompt_pending = True
            logger.info("[EVENT] Vehicle at exit barrier — waiting for payment")
            return None

        if kind == EventKind.DOOR_STATE:
            self._mirror_door(event.door, event.is_open)
            return None

        if kind == EventKind.MODE_STATE:
            self.automatic_mode = bool(event.automatic)
            return None

        return None

    async def _on_spot_reading(self, event: SensorEvent):
        spot = self.spots[event.spot_id]
        was_occupied = spot.occupied
        spot.occupied = event.occupied
        if event.distance is not None:
            spot.distance = event.distance
        spot.updated_at = event.received_at
        if event.door is not None and event.is_open is not None:
            self._mirror_door(event.door, event.is_open)

        if event.occupied and not was_occupied:
            return await self.resolver.on_spot_occupied(spot.spot_id, event.received_at)
        if was_occupied and not event.occupied:
            self.resolver.spot_released(spot.spot_id)
        return None

    def _mirror_door(self, door: str, is_open: bool):
        if door == "entry":
            self.entry_door_open = is_open
        else:
            self.exit_door_open = is_open

    # ── operator actions ─────────────────────────────────────────────────
    async def enqueue(self, plate: str) -> PendingEntry:
        """Plate typed at the entry prompt: queue it and lift the entry barrier."""
        entry = await self.queue.enqueue(plate)
        self.entry_prompt_pending = False
        self.barrier.open_entry()
        return entry

    def dismiss_entry_prompt(self):
        self.entry_prompt_pending = False

    async def remove_pending(self, entry_id: int):
        await self.queue.remove(entry_id)

    async def resolve_ambiguous(self, entry_id: int, spot_id: int, detected_at: Optional[datetime] = None) -> SessionRecord:
        if spot_id not in self.spots:
            raise ValidationError(f"Unknown spot {spot_id}")
        return await self.resolver.resolve_ambiguous(entry_id, spot_id, detected_at)

    def quote(self, plate: str) -> Quote:
        return self.sessions.quote(plate)

    async def lookup_exit(self, plate: str) -> Quote:
        """Exit desk lookup: freeze the clock for this plate, then quote."""
        await self.sessions.freeze_exit(plate)
        return self.sessions.quote(plate)

    async def confirm_payment(self, plate: str) -> Payment:
        payment = await self.sessions.confirm_payment(plate)
        self.exit_prompt_pending = False
        return payment

    def set_mode(self, automatic: bool) -> bool:
        sent = self.barrier.set_mode(automatic)
        self.automatic_mode = automatic
        return sent

    async def current_tariff(self) -> Tariff:
        return await self.sessions.current_tariff()

    async def update_tariff(self, base: float, minute_price: float) -> Tariff:
        return await self.sessions.update_tariff(base, minute_price)

    def snapshot(self) -> dict:
        return {
            "spots": [self.spots[i] for i in sorted(self.spots)],
            "entry_door_open": self.entry_door_open,
            "exit_door_open": self.exit_door_open,
            "automatic_mode": self.automatic_mode,
            "entry_prompt_pending": self.entry_prompt_pending,
            "exit_prompt_pending": self.exit_prompt_pending,
            "queue_length": len(self.queue),
            "active_sessions": len(self.sessions.active_sessions()),
        }
