# app/services/entry_queue.py
"""
Entry queue — vehicles confirmed at the entry barrier that have not been
matched to a spot yet.

The store is the system of record; the in-memory dict is a FIFO cache ordered
by detection time. claim() takes the entry out of the cache before its first
await, so two spots becoming occupied at the same moment can never both claim
the same vehicle: the loser gets NotFound and must treat the assignment as
aborted.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional

from app.exceptions import NotFound, PersistenceError
from app.services.records import PendingEntry
from app.utils.logger import get_logger
from app.utils.plate import normalize_plate

logger = get_logger(__name__)


class EntryQueueManager:
    def __init__(self, store, now: Callable[[], datetime] = datetime.utcnow):
        self._store = store
        self._now = now
        self._entries: Dict[int, PendingEntry] = {}

    async def load(self):
        """Replace the cache with the store's pending entries."""
        entries = await self._store.list_queue()
        self._entries = {e.id: e for e in entries}
        self._sort()
        logger.info(f"[QUEUE] Loaded {len(self._entries)} pending entries")

    def _sort(self):
        ordered = sorted(self._entries.values(), key=lambda e: (e.detected_at, e.id))
        self._entries = {e.id: e for e in ordered}

    def entries(self) -> List[PendingEntry]:
        return list(self._entries.values())

    def get(self, entry_id: int) -> Optional[PendingEntry]:
        return self._entries.get(entry_id)

    def __len__(self):
        return len(self._entries)

    async def enqueue(self, plate: str) -> PendingEntry:
        plate = normalize_plate(plate)
        entry = await self._store.create_queue_entry(plate, self._now())
        self._entries[entry.id] = entry
        self._sort()
        logger.info(f"[QUEUE] + {plate} (id={entry.id}) — {len(self._entries)} waiting")
        return entry

    async def remove(self, entry_id: int):
        """Operator discard of a mis-registered vehicle."""
        entry = self._entries.pop(entry_id, None)
        if entry is None:
            raise NotFound(f"Queue entry {entry_id} not found")
        try:
            deleted = await self._store.delete_queue_entry(entry_id)
        except PersistenceError:
            self._restore(entry)
            raise
        if not deleted:
            logger.warning(f"[QUEUE] Entry {entry_id} was already gone from the store")
        logger.info(f"[QUEUE] - {entry.plate} (id={entry_id}) removed by operator")

    async def claim(self, entry_id: int, spot_id: int) -> PendingEntry:
        """Take the entry out of the queue for session creation."""
        entry = self._entries.pop(entry_id, None)
        if entry is None:
            raise NotFound(f"Queue entry {entry_id} already claimed or removed")
        try:
            marked = await self._store.mark_queue_entry_assigned(entry_id, spot_id)
        except PersistenceError:
            self._restore(entry)
            raise
        if not marked:
            raise NotFound(f"Queue entry {entry_id} already claimed or removed")
        logger.info(f"[QUEUE] {entry.plate} (id={entry_id}) claimed for spot {spot_id}")
        return entry

    async def release(self, entry: PendingEntry):
        """Undo a claim whose session could not be created."""
        self._restore(entry)
        try:
            await self._store.release_queue_entry(entry.id)
        except PersistenceError as e:
            logger.error(f"[QUEUE] Could not release entry {entry.id} in the store: {e}")
        logger.info(f"[QUEUE] {entry.plate} (id={entry.id}) returned to the queue")

    def _restore(self, entry: PendingEntry):
        self._entries[entry.id] = entry
        self._sort()
