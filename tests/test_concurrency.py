"""
Concurrency safety tests.

Demonstrates:
1. Two concurrent accepts on the same open trip: exactly one pairs it.
2. A stale read of the trip (a competing accept committed in between)
   makes the commit fail with a version conflict; the retry re-checks the
   preconditions and fails with ``FailedPrecondition``.
3. Distributed lock prevents simultaneous acquire.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.orm.exc import StaleDataError

from peerride.domain.enums import PairRequestStatus, TripStatus
from peerride.domain.errors import FailedPrecondition, NotFound, Unavailable
from peerride.infrastructure.database import session_scope
from peerride.infrastructure.locks import DistributedLock, LockNotAcquired
from peerride.infrastructure.models import PairRequestModel, TripModel
from peerride.services import pair_requests as pair_request_service
from tests.conftest import HOST, OTHER_RIDER, RIDER


class TestConcurrentAccept:
    @pytest.mark.asyncio
    async def test_exactly_one_of_two_concurrent_accepts_wins(
        self, session_factory, make_trip, make_pair_request
    ):
        trip = await make_trip()
        first = await make_pair_request(trip, RIDER)
        second = await make_pair_request(trip, OTHER_RIDER)

        results = await asyncio.gather(
            pair_request_service.accept_pair_request(session_factory, None, HOST, first.id),
            pair_request_service.accept_pair_request(session_factory, None, HOST, second.id),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, pair_request_service.AcceptResult)]
        failures = [r for r in results if isinstance(r, FailedPrecondition)]
        assert len(successes) == 1
        assert len(failures) == 1

        winner_id = successes[0].pair_request_id
        async with session_scope(session_factory) as session:
            trip = await session.get(TripModel, trip.id)
            winner = await session.get(PairRequestModel, winner_id)
            loser = await session.get(
                PairRequestModel, second.id if winner_id == first.id else first.id
            )
        assert trip.status == TripStatus.PAIRED
        assert trip.guest["id"] == winner.requester_id
        assert winner.status == PairRequestStatus.ACCEPTED
        assert loser.status == PairRequestStatus.DECLINED

    @pytest.mark.asyncio
    async def test_stale_trip_read_is_retried_and_rejected(
        self, session_factory, make_trip, make_pair_request, monkeypatch
    ):
        trip = await make_trip()
        mine = await make_pair_request(trip, RIDER)
        competing = await make_pair_request(trip, OTHER_RIDER)

        real = pair_request_service._accept_in_transaction
        attempts: list[int] = []

        async def _interleaved(session, caller, pair_request_id):
            attempts.append(pair_request_id)
            result = await real(session, caller, pair_request_id)
            if len(attempts) == 1:
                # a competing accept commits between our read and our write
                async with session_scope(session_factory) as other:
                    await real(other, caller, competing.id)
            return result

        monkeypatch.setattr(pair_request_service, "_accept_in_transaction", _interleaved)

        with pytest.raises(FailedPrecondition):
            await pair_request_service.accept_pair_request(
                session_factory, None, HOST, mine.id
            )
        assert attempts == [mine.id, mine.id]

        async with session_scope(session_factory) as session:
            trip = await session.get(TripModel, trip.id)
            mine = await session.get(PairRequestModel, mine.id)
        assert trip.guest["id"] == OTHER_RIDER.uid
        assert mine.status == PairRequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_persistent_conflicts_give_up_as_unavailable(
        self, session_factory, make_trip, make_pair_request, monkeypatch
    ):
        trip = await make_trip()
        pair_request = await make_pair_request(trip)
        conflict = AsyncMock(side_effect=StaleDataError("trips row changed"))
        monkeypatch.setattr(pair_request_service, "_accept_in_transaction", conflict)

        with pytest.raises(Unavailable):
            await pair_request_service.accept_pair_request(
                session_factory, None, HOST, pair_request.id, max_attempts=3
            )
        assert conflict.await_count == 3

    @pytest.mark.asyncio
    async def test_precondition_failures_are_not_retried(self, session_factory, monkeypatch):
        missing = AsyncMock(side_effect=NotFound("Pairing request not found."))
        monkeypatch.setattr(pair_request_service, "_accept_in_transaction", missing)

        with pytest.raises(NotFound):
            await pair_request_service.accept_pair_request(session_factory, None, HOST, 42)
        assert missing.await_count == 1


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "cleanup_sweep", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with(
            "peerride:lock:cleanup_sweep", lock.token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=None)

        lock = DistributedLock(mock_redis, "cleanup_sweep")
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_release_only_when_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "cleanup_sweep")
        await lock.acquire()
        await lock.release()
        mock_redis.eval.assert_not_called()

    @pytest.mark.asyncio
    async def test_context_manager_releases(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        async with DistributedLock(mock_redis, "cleanup_sweep") as lock:
            assert lock.held
        mock_redis.eval.assert_awaited_once()
        assert not lock.held

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        with pytest.raises(LockNotAcquired):
            async with DistributedLock(mock_redis, "cleanup_sweep"):
                pass
