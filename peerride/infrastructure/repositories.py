"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    ACTIVE_REQUEST_INDEX,
    ConfigDocumentModel,
    MailModel,
    PairRequestModel,
    TripMessageModel,
    TripModel,
    UserModel,
)
from peerride.domain.enums import (
    ACTIVE_PAIR_REQUEST_STATUSES,
    ACTIVE_TRIP_STATUSES,
    PairRequestStatus,
    TripStatus,
)

_SQLITE_ACTIVE_REQUEST_CONFLICT = (
    "UNIQUE constraint failed: pair_requests.trip_id, pair_requests.requester_id"
)


def is_active_request_conflict(exc: IntegrityError) -> bool:
    """True when *exc* was raised by the one-active-request-per-requester index."""
    # asyncpg keeps the constraint name on the driver exception
    cause = getattr(exc.orig, "__cause__", None)
    if getattr(cause, "constraint_name", None) == ACTIVE_REQUEST_INDEX:
        return True
    message = str(exc.orig)
    return ACTIVE_REQUEST_INDEX in message or _SQLITE_ACTIVE_REQUEST_CONFLICT in message


def is_foreign_key_violation(exc: IntegrityError) -> bool:
    return "foreign key" in str(exc.orig).lower()


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, trip: TripModel) -> TripModel:
        self.session.add(trip)
        await self.session.flush()
        return trip

    async def get_by_id(self, trip_id: int) -> Optional[TripModel]:
        return await self.session.get(TripModel, trip_id)

    async def get_for_update(self, trip_id: int) -> Optional[TripModel]:
        """SELECT ... FOR UPDATE so concurrent accepts serialise on the trip."""
        return await self.session.get(TripModel, trip_id, with_for_update=True)

    async def count_active_for_host(
        self, host_id: str, departing_after: Optional[datetime] = None
    ) -> int:
        query = (
            select(func.count())
            .select_from(TripModel)
            .where(TripModel.host_id == host_id)
            .where(TripModel.status.in_(ACTIVE_TRIP_STATUSES))
        )
        if departing_after is not None:
            query = query.where(TripModel.departure_end >= departing_after)
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def get_expired_ids(
        self, open_before: datetime, any_before: datetime
    ) -> list[int]:
        """Open trips that ended before *open_before*, any trip before *any_before*."""
        result = await self.session.execute(
            select(TripModel.id)
            .where(
                or_(
                    (TripModel.status == TripStatus.OPEN)
                    & (TripModel.departure_end < open_before),
                    TripModel.departure_end < any_before,
                )
            )
            .order_by(TripModel.id)
        )
        return list(result.scalars().all())

    async def delete_with_children(self, trip_id: int) -> None:
        """Delete a trip together with its pairing requests and chat messages."""
        await self.session.execute(
            delete(PairRequestModel).where(PairRequestModel.trip_id == trip_id)
        )
        await self.session.execute(
            delete(TripMessageModel).where(TripMessageModel.trip_id == trip_id)
        )
        await self.session.execute(delete(TripModel).where(TripModel.id == trip_id))


class PairRequestRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, pair_request: PairRequestModel) -> PairRequestModel:
        self.session.add(pair_request)
        await self.session.flush()
        return pair_request

    async def get_by_id(self, pair_request_id: int) -> Optional[PairRequestModel]:
        return await self.session.get(PairRequestModel, pair_request_id)

    async def get_for_update(self, pair_request_id: int) -> Optional[PairRequestModel]:
        return await self.session.get(
            PairRequestModel, pair_request_id, with_for_update=True
        )

    async def find_active(
        self, trip_id: int, requester_id: str
    ) -> Optional[PairRequestModel]:
        result = await self.session.execute(
            select(PairRequestModel)
            .where(PairRequestModel.trip_id == trip_id)
            .where(PairRequestModel.requester_id == requester_id)
            .where(PairRequestModel.status.in_(ACTIVE_PAIR_REQUEST_STATUSES))
            .limit(1)
        )
        return result.scalars().first()

    async def get_for_trip(self, trip_id: int) -> list[PairRequestModel]:
        result = await self.session.execute(
            select(PairRequestModel)
            .where(PairRequestModel.trip_id == trip_id)
            .order_by(PairRequestModel.created_at, PairRequestModel.id)
        )
        return list(result.scalars().all())

    async def get_pending_siblings(
        self, trip_id: int, exclude_id: int
    ) -> list[PairRequestModel]:
        result = await self.session.execute(
            select(PairRequestModel)
            .where(PairRequestModel.trip_id == trip_id)
            .where(PairRequestModel.id != exclude_id)
            .where(PairRequestModel.status == PairRequestStatus.PENDING)
        )
        return list(result.scalars().all())

    async def count_pending_for_host(self, host_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(PairRequestModel)
            .where(PairRequestModel.host_id == host_id)
            .where(PairRequestModel.status == PairRequestStatus.PENDING)
        )
        return result.scalar() or 0


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def add_if_missing(
        self, user_id: str, email: Optional[str], display_name: Optional[str]
    ) -> Optional[UserModel]:
        """Insert a user record; an existing record is never modified.

        Returns the new record, or ``None`` when *user_id* already exists.
        """
        if await self.get_by_id(user_id) is not None:
            return None
        user = UserModel(id=user_id, email=email, display_name=display_name)
        self.session.add(user)
        await self.session.flush()
        return user


class MailRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def enqueue(self, recipient: str, subject: str, html: str) -> MailModel:
        mail = MailModel(recipient=recipient, message={"subject": subject, "html": html})
        self.session.add(mail)
        await self.session.flush()
        return mail

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(MailModel).where(MailModel.created_at < cutoff)
        )
        return result.rowcount or 0


class ConfigRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_document(self, key: str) -> Optional[dict[str, Any]]:
        doc = await self.session.get(ConfigDocumentModel, key)
        return doc.data if doc is not None else None

    async def put_document(self, key: str, data: dict[str, Any]) -> None:
        doc = await self.session.get(ConfigDocumentModel, key)
        if doc is None:
            self.session.add(ConfigDocumentModel(key=key, data=data))
        else:
            doc.data = data
        await self.session.flush()
