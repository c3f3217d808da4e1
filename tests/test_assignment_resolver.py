# tests/test_assignment_resolver.py
"""Matching occupied spots to queued vehicles."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock
from app.exceptions import NotFound, PersistenceError, ValidationError
from app.services.assignment_resolver import AssignmentResolver, Outcome
from app.services.entry_queue import EntryQueueManager
from app.services.session_manager import SessionLifecycleManager


@pytest.fixture
def parts(store, dedup, barrier, clock):
    queue = EntryQueueManager(store, now=clock)
    sessions = SessionLifecycleManager(store, dedup, barrier, now=clock)
    resolver = AssignmentResolver(queue, sessions, dedup, store, now=clock)
    return queue, sessions, resolver


class TestSingleCandidate:
    @pytest.mark.asyncio
    async def test_auto_match_uses_detection_time(self, parts, clock):
        queue, sessions, resolver = parts
        await queue.enqueue("ABC123")
        detected = clock.advance(seconds=40)

        result = await resolver.on_spot_occupied(1, detected)
        assert result.outcome == Outcome.MATCHED
        assert result.session.plate == "ABC123"
        assert result.session.entry_time == detected
        assert len(queue) == 0
        assert sessions.find_active_on_spot(1).plate == "ABC123"

    @pytest.mark.asyncio
    async def test_redelivered_event_creates_one_session(self, parts, clock, store):
        queue, sessions, resolver = parts
        await queue.enqueue("ABC123")
        detected = clock.advance(seconds=1)

        first = await resolver.on_spot_occupied(2, detected)
        second = await resolver.on_spot_occupied(2, detected)
        assert first.outcome == Outcome.MATCHED
        assert second.outcome == Outcome.DUPLICATE
        assert second.session == first.session
        assert len(await store.list_active_sessions()) == 1

    @pytest.mark.asyncio
    async def test_occupied_spot_with_active_session_is_duplicate(self, parts, clock):
        queue, sessions, resolver = parts
        await queue.enqueue("ABC123")
        await resolver.on_spot_occupied(1, clock())
        await queue.enqueue("DEF456")

        # vehicle-parked arriving after the occupancy edge for the same car
        result = await resolver.on_spot_occupied(1, clock.advance(seconds=1))
        assert result.outcome == Outcome.DUPLICATE
        assert [e.plate for e in queue.entries()] == ["DEF456"]

    @pytest.mark.asyncio
    async def test_session_failure_returns_entry_to_queue(self, parts, clock, store, dedup):
        queue, sessions, resolver = parts
        await queue.enqueue("ABC123")
        store.create_session = AsyncMock(side_effect=PersistenceError("db down"))

        with pytest.raises(PersistenceError):
            await resolver.on_spot_occupied(1, clock())
        assert [e.plate for e in queue.entries()] == ["ABC123"]
        assert [e.plate for e in await store.list_queue()] == ["ABC123"]


class TestEmptyQueue:
    @pytest.mark.asyncio
    async def test_anomaly_reported_once(self, parts, clock, store):
        queue, sessions, resolver = parts
        store.create_alert = AsyncMock(return_value=1)

        first = await resolver.on_spot_occupied(3, clock())
        second = await resolver.on_spot_occupied(3, clock.advance(seconds=1))
        assert first.outcome == Outcome.ANOMALY
        assert second.outcome == Outcome.DUPLICATE
        assert sessions.active_sessions() == []
        store.create_alert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_spot_released_rearms_detection(self, parts, clock, store):
        queue, sessions, resolver = parts
        store.create_alert = AsyncMock(return_value=1)
        await resolver.on_spot_occupied(3, clock())
        resolver.spot_released(3)

        await queue.enqueue("ABC123")
        result = await resolver.on_spot_occupied(3, clock.advance(minutes=1))
        assert result.outcome == Outcome.MATCHED


class TestAmbiguous:
    @pytest.mark.asyncio
    async def test_two_candidates_wait_for_operator(self, parts, clock):
        queue, sessions, resolver = parts
        first = await queue.enqueue("ABC123")
        second = await queue.enqueue("DEF456")
        detected = clock.advance(seconds=30)

        result = await resolver.on_spot_occupied(1, detected)
        assert result.outcome == Outcome.AMBIGUOUS
        assert [c.id for c in result.candidates] == [first.id, second.id]
        assert sessions.active_sessions() == []
        assert [a.spot_id for a in resolver.pending_disambiguations()] == [1]

        session = await resolver.resolve_ambiguous(second.id, 1)
        assert session.plate == "DEF456"
        assert session.entry_time == detected
        assert [e.plate for e in queue.entries()] == ["ABC123"]
        assert resolver.pending_disambiguations() == []

    @pytest.mark.asyncio
    async def test_resolve_is_idempotent(self, parts, clock, store):
        queue, sessions, resolver = parts
        await queue.enqueue("ABC123")
        second = await queue.enqueue("DEF456")
        detected = clock()

        one = await resolver.resolve_ambiguous(second.id, 2, detected)
        again = await resolver.resolve_ambiguous(second.id, 2, detected)
        assert one == again
        assert len(await store.list_active_sessions()) == 1

    @pytest.mark.asyncio
    async def test_same_event_cannot_be_reassigned(self, parts, clock):
        queue, sessions, resolver = parts
        first = await queue.enqueue("ABC123")
        second = await queue.enqueue("DEF456")
        detected = clock()

        await resolver.resolve_ambiguous(first.id, 2, detected)
        with pytest.raises(NotFound):
            await resolver.resolve_ambiguous(second.id, 2, detected)

    @pytest.mark.asyncio
    async def test_concurrent_resolutions_claim_once(self, parts, clock):
        queue, sessions, resolver = parts
        entry = await queue.enqueue("ABC123")
        await queue.enqueue("DEF456")

        results = await asyncio.gather(
            resolver.resolve_ambiguous(entry.id, 1, clock()),
            resolver.resolve_ambiguous(entry.id, 2, clock() + timedelta(seconds=1)),
            return_exceptions=True,
        )
        assert sum(1 for r in results if isinstance(r, NotFound)) == 1
        assert len(sessions.active_sessions()) == 1

    @pytest.mark.asyncio
    async def test_dismiss(self, parts, clock):
        queue, sessions, resolver = parts
        await queue.enqueue("ABC123")
        await queue.enqueue("DEF456")
        await resolver.on_spot_occupied(1, clock())

        resolver.dismiss(1)
        assert resolver.pending_disambiguations() == []
        with pytest.raises(NotFound):
            resolver.dismiss(1)

    @pytest.mark.asyncio
    async def test_spot_released_drops_pending_choice(self, parts, clock):
        queue, sessions, resolver = parts
        first = await queue.enqueue("AAA111")
        await queue.enqueue("BBB222")
        await resolver.on_spot_occupied(1, clock())

        resolver.spot_released(1)
        assert resolver.pending_disambiguations() == []

        await queue.remove(first.id)
        result = await resolver.on_spot_occupied(1, clock.advance(seconds=60))
        assert result.outcome == Outcome.MATCHED
        assert result.session.plate == "BBB222"

    @pytest.mark.asyncio
    async def test_resolve_rejects_occupied_spot(self, parts, clock, store):
        queue, sessions, resolver = parts
        await queue.enqueue("AAA111")
        await resolver.on_spot_occupied(1, clock())
        second = await queue.enqueue("BBB222")

        with pytest.raises(ValidationError):
            await resolver.resolve_ambiguous(second.id, 1, clock.advance(seconds=120))
        assert [s.plate for s in await store.list_active_sessions()] == ["AAA111"]
        assert [e.plate for e in queue.entries()] == ["BBB222"]

    @pytest.mark.asyncio
    async def test_resolve_rejects_entry_queued_after_detection(self, parts, clock):
        queue, sessions, resolver = parts
        await queue.enqueue("AAA111")
        await queue.enqueue("BBB222")
        await resolver.on_spot_occupied(1, clock())
        late = await queue.enqueue("CCC333")

        with pytest.raises(ValidationError):
            await resolver.resolve_ambiguous(late.id, 1)
        assert sessions.active_sessions() == []
        assert [a.spot_id for a in resolver.pending_disambiguations()] == [1]
