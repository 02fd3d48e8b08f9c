"""
Cleanup sweep
=============

Cutoffs (relative to ``now``)
-----------------------------
* open trips whose ``departure_end`` is more than 1 day past
* trips of any status whose ``departure_end`` is more than 3 days past
* mail rows older than 7 days

Each selected trip is deleted together with its pairing requests and chat
messages in its own commit, so one failing trip does not block the rest.
Expired mail goes in a single statement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from peerride.config import Settings, settings as default_settings
from peerride.infrastructure.database import session_scope
from peerride.infrastructure.repositories import MailRepository, TripRepository

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    trips_deleted: int = 0
    failed_trip_ids: list[int] = field(default_factory=list)
    mail_deleted: int = 0


@dataclass(frozen=True)
class Cutoffs:
    open_trips: datetime
    any_trips: datetime
    mail: datetime

    @classmethod
    def from_now(cls, now: datetime, settings: Settings) -> "Cutoffs":
        return cls(
            open_trips=now - timedelta(days=settings.open_trip_grace_days),
            any_trips=now - timedelta(days=settings.any_trip_grace_days),
            mail=now - timedelta(days=settings.mail_retention_days),
        )


async def run_cleanup(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    settings: Settings = default_settings,
    now: Optional[datetime] = None,
) -> CleanupReport:
    cutoffs = Cutoffs.from_now(now or datetime.now(timezone.utc), settings)
    report = CleanupReport()

    async with session_scope(session_factory) as session:
        trip_ids = await TripRepository(session).get_expired_ids(
            cutoffs.open_trips, cutoffs.any_trips
        )

    for trip_id in trip_ids:
        try:
            async with session_scope(session_factory) as session:
                await TripRepository(session).delete_with_children(trip_id)
            report.trips_deleted += 1
        except Exception:
            logger.exception("Cleanup failed for trip %s", trip_id)
            report.failed_trip_ids.append(trip_id)

    try:
        async with session_scope(session_factory) as session:
            report.mail_deleted = await MailRepository(session).delete_older_than(
                cutoffs.mail
            )
    except Exception:
        logger.exception("Cleanup failed for expired mail")

    logger.info(
        "Cleanup sweep: %d trips deleted, %d failed, %d mail deleted",
        report.trips_deleted,
        len(report.failed_trip_ids),
        report.mail_deleted,
    )
    return report
