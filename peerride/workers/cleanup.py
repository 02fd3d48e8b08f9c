"""
Scheduled Cleanup Worker
========================

Runs ``run_cleanup`` once a day at ``CLEANUP_HOUR`` in
``CLEANUP_TIMEZONE``.

Concurrency safety
------------------
* Every API process runs this loop; a **Redis distributed lock** makes
  sure only one of them sweeps per schedule slot.
* A sweep that raises (e.g. the database is briefly unreachable) is
  retried up to ``CLEANUP_MAX_RETRIES`` times with linear backoff.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_incrementing,
)

from peerride.config import settings
from peerride.infrastructure.locks import DistributedLock, LockNotAcquired
from peerride.infrastructure.redis_client import get_redis
from peerride.services.cleanup import CleanupReport, run_cleanup

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_cleanup_loop(session_factory: async_sessionmaker[AsyncSession]) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(session_factory))
    logger.info(
        "Cleanup worker started (daily at %02d:00 %s)",
        settings.cleanup_hour,
        settings.cleanup_timezone,
    )


async def stop_cleanup_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Cleanup worker stopped")


def seconds_until_next_run(now: datetime, hour: int, tz_name: str) -> float:
    """Seconds from *now* until the next ``hour:00`` in *tz_name*."""
    local_now = now.astimezone(ZoneInfo(tz_name))
    next_run = local_now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= local_now:
        next_run += timedelta(days=1)
    return (next_run - local_now).total_seconds()


async def run_scheduled_cleanup(
    session_factory: async_sessionmaker[AsyncSession],
) -> Optional[CleanupReport]:
    """One scheduled sweep under the distributed lock, with retries."""
    try:
        async with DistributedLock(get_redis(), "cleanup_sweep", ttl_seconds=3600):
            return await _run_with_retries(session_factory)
    except LockNotAcquired:
        logger.debug("Lock held by another worker; skipping sweep")
        return None


# ── Internals ─────────────────────────────────────────────────────────


async def _run_with_retries(
    session_factory: async_sessionmaker[AsyncSession],
) -> Optional[CleanupReport]:
    backoff = settings.cleanup_retry_backoff_seconds
    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.cleanup_max_retries + 1),
        wait=wait_incrementing(start=backoff, increment=backoff),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    try:
        return await retrying(run_cleanup, session_factory)
    except Exception:
        logger.exception(
            "Cleanup sweep failed after %d attempts", settings.cleanup_max_retries + 1
        )
        return None


async def _loop(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Sleep until the next slot, sweep, repeat."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        delay = seconds_until_next_run(
            datetime.now(timezone.utc), settings.cleanup_hour, settings.cleanup_timezone
        )
        try:
            await asyncio.wait_for(_stop_event.wait(), timeout=delay)
            break
        except asyncio.TimeoutError:
            pass  # slot reached

        try:
            await run_scheduled_cleanup(session_factory)
        except Exception:
            logger.exception("Unhandled error in cleanup worker")
