"""Daily cleanup sweep: cutoffs, per-trip isolation, scheduling and locking."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from peerride.domain.enums import TripStatus
from peerride.infrastructure.database import session_scope
from peerride.infrastructure.models import (
    MailModel,
    PairRequestModel,
    TripMessageModel,
    TripModel,
)
from peerride.infrastructure.repositories import TripRepository
from peerride.services.cleanup import run_cleanup
from peerride.workers import cleanup as cleanup_worker
from tests.conftest import RIDER


def _guest() -> dict:
    return {"id": RIDER.uid, "nickname": RIDER.name, "luggage": {}, "contact_method": "chat"}


async def _ended(make_trip, now, *, ago: timedelta, paired: bool = False) -> TripModel:
    end = now - ago
    overrides = dict(departure_start=end - timedelta(hours=2), departure_end=end)
    if paired:
        overrides.update(status=TripStatus.PAIRED, guest=_guest())
    return await make_trip(**overrides)


async def _trip_ids(session_factory) -> set[int]:
    async with session_scope(session_factory) as session:
        return set((await session.execute(select(TripModel.id))).scalars().all())


class TestRunCleanup:
    @pytest.mark.asyncio
    async def test_open_trip_past_one_day_is_deleted_with_children(
        self, session_factory, make_trip, make_pair_request, now
    ):
        trip = await _ended(make_trip, now, ago=timedelta(days=2))
        await make_pair_request(trip)
        async with session_scope(session_factory) as session:
            session.add(TripMessageModel(trip_id=trip.id, sender_id=RIDER.uid, body="hi"))

        report = await run_cleanup(session_factory, now=now)

        assert report.trips_deleted == 1
        assert report.failed_trip_ids == []
        async with session_scope(session_factory) as session:
            assert (await session.execute(select(TripModel))).first() is None
            assert (await session.execute(select(PairRequestModel))).first() is None
            assert (await session.execute(select(TripMessageModel))).first() is None

    @pytest.mark.asyncio
    async def test_cutoffs_by_status(self, session_factory, make_trip, now):
        recent_open = await _ended(make_trip, now, ago=timedelta(hours=12))
        paired_two_days = await _ended(make_trip, now, ago=timedelta(days=2), paired=True)
        paired_four_days = await _ended(make_trip, now, ago=timedelta(days=4), paired=True)
        upcoming = await make_trip()

        report = await run_cleanup(session_factory, now=now)

        assert report.trips_deleted == 1
        assert await _trip_ids(session_factory) == {
            recent_open.id,
            paired_two_days.id,
            upcoming.id,
        }
        assert paired_four_days.id not in await _trip_ids(session_factory)

    @pytest.mark.asyncio
    async def test_old_mail_is_deleted(self, session_factory, now):
        async with session_scope(session_factory) as session:
            session.add_all(
                [
                    MailModel(
                        recipient="old@campus.edu",
                        message={"subject": "s", "html": "h"},
                        created_at=now - timedelta(days=8),
                    ),
                    MailModel(
                        recipient="new@campus.edu",
                        message={"subject": "s", "html": "h"},
                        created_at=now - timedelta(days=6),
                    ),
                ]
            )

        report = await run_cleanup(session_factory, now=now)

        assert report.mail_deleted == 1
        async with session_scope(session_factory) as session:
            remaining = (await session.execute(select(MailModel.recipient))).scalars().all()
        assert remaining == ["new@campus.edu"]

    @pytest.mark.asyncio
    async def test_one_failing_trip_does_not_block_the_rest(
        self, session_factory, make_trip, now, monkeypatch
    ):
        broken = await _ended(make_trip, now, ago=timedelta(days=5))
        fine = await _ended(make_trip, now, ago=timedelta(days=5))
        real_delete = TripRepository.delete_with_children

        async def _flaky(self, trip_id):
            if trip_id == broken.id:
                raise RuntimeError("row locked")
            await real_delete(self, trip_id)

        monkeypatch.setattr(TripRepository, "delete_with_children", _flaky)

        report = await run_cleanup(session_factory, now=now)

        assert report.trips_deleted == 1
        assert report.failed_trip_ids == [broken.id]
        assert await _trip_ids(session_factory) == {broken.id}
        assert fine.id not in await _trip_ids(session_factory)


class TestSchedule:
    def test_later_today(self):
        now = datetime(2026, 10, 19, 1, 30, tzinfo=timezone.utc)
        assert cleanup_worker.seconds_until_next_run(now, 3, "UTC") == 90 * 60

    def test_rolls_over_to_tomorrow(self):
        now = datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc)
        assert cleanup_worker.seconds_until_next_run(now, 3, "UTC") == 24 * 3600

    def test_respects_timezone(self):
        # 09:00 UTC is 02:00 in Los Angeles (PDT, UTC-7)
        now = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
        assert cleanup_worker.seconds_until_next_run(now, 3, "America/Los_Angeles") == 3600


class TestScheduledCleanup:
    @pytest.mark.asyncio
    async def test_skips_when_lock_is_held(self, session_factory, monkeypatch):
        redis = AsyncMock()
        redis.set = AsyncMock(return_value=None)
        sweep = AsyncMock()
        monkeypatch.setattr(cleanup_worker, "get_redis", lambda: redis)
        monkeypatch.setattr(cleanup_worker, "run_cleanup", sweep)

        assert await cleanup_worker.run_scheduled_cleanup(session_factory) is None
        sweep.assert_not_awaited()
        redis.eval.assert_not_called()

    @pytest.mark.asyncio
    async def test_retries_then_releases_lock(self, session_factory, monkeypatch):
        redis = AsyncMock()
        redis.set = AsyncMock(return_value=True)
        redis.eval = AsyncMock(return_value=1)
        report = object()
        sweep = AsyncMock(side_effect=[RuntimeError("db down"), report])
        monkeypatch.setattr(cleanup_worker, "get_redis", lambda: redis)
        monkeypatch.setattr(cleanup_worker, "run_cleanup", sweep)
        monkeypatch.setattr(cleanup_worker.settings, "cleanup_retry_backoff_seconds", 0)

        assert await cleanup_worker.run_scheduled_cleanup(session_factory) is report
        assert sweep.await_count == 2
        redis.eval.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, session_factory, monkeypatch):
        redis = AsyncMock()
        redis.set = AsyncMock(return_value=True)
        redis.eval = AsyncMock(return_value=1)
        sweep = AsyncMock(side_effect=RuntimeError("db down"))
        monkeypatch.setattr(cleanup_worker, "get_redis", lambda: redis)
        monkeypatch.setattr(cleanup_worker, "run_cleanup", sweep)
        monkeypatch.setattr(cleanup_worker.settings, "cleanup_retry_backoff_seconds", 0)
        monkeypatch.setattr(cleanup_worker.settings, "cleanup_max_retries", 2)

        assert await cleanup_worker.run_scheduled_cleanup(session_factory) is None
        assert sweep.await_count == 3
        redis.eval.assert_awaited_once()
