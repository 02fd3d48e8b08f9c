"""
Trip creation and lookup.

The per-host cap is a count-then-insert without a lock: two trips created
concurrently by the same host may both pass the check, so the cap is a
soft limit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from peerride.api.schemas import TripCreateRequest
from peerride.config import Settings, settings as default_settings
from peerride.domain.entities import Caller, Luggage, host_has_capacity
from peerride.domain.enums import TripStatus
from peerride.domain.errors import NotFound, PermissionDenied, ResourceExhausted
from peerride.infrastructure.models import PairRequestModel, TripModel
from peerride.infrastructure.repositories import PairRequestRepository, TripRepository

logger = logging.getLogger(__name__)


async def create_trip(
    session: AsyncSession,
    caller: Caller,
    body: TripCreateRequest,
    *,
    settings: Settings = default_settings,
    now: Optional[datetime] = None,
) -> TripModel:
    repo = TripRepository(session)
    now = now or datetime.now(timezone.utc)

    departing_after = now if settings.active_trip_requires_future_departure else None
    active = await repo.count_active_for_host(caller.uid, departing_after)
    if not host_has_capacity(active, settings.max_active_trips_per_host):
        raise ResourceExhausted(
            f"You can have at most {settings.max_active_trips_per_host} active trips."
        )

    luggage = Luggage(**body.luggage.model_dump())
    trip = await repo.create(
        TripModel(
            host_id=caller.uid,
            host_nickname=(body.host_nickname or "").strip() or caller.name,
            origin_id=body.origin.id,
            origin_name=body.origin.name,
            destination_id=body.destination.id,
            destination_name=body.destination.name,
            departure_start=body.departure_start,
            departure_end=body.departure_end,
            luggage=luggage.as_dict(),
            host_contact_method=body.host_contact_method,
            host_contact_value=body.host_contact_value,
            status=TripStatus.OPEN,
            guest=None,
        )
    )
    logger.info("Trip %s created by host %s", trip.id, caller.uid)
    return trip


async def get_trip(session: AsyncSession, trip_id: int) -> TripModel:
    trip = await TripRepository(session).get_by_id(trip_id)
    if trip is None:
        raise NotFound("Trip not found.")
    return trip


async def list_trip_pair_requests(
    session: AsyncSession, caller: Caller, trip_id: int
) -> list[PairRequestModel]:
    """Pairing requests for a trip; only its host may list them."""
    trip = await get_trip(session, trip_id)
    if trip.host_id != caller.uid:
        raise PermissionDenied("Only the trip host can view its pairing requests.")
    return await PairRequestRepository(session).get_for_trip(trip_id)
