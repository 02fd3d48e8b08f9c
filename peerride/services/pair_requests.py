"""
Pairing-request lifecycle
=========================

create  -- requester asks to join an open trip (status ``pending``).
accept  -- the host picks one request; two phases:

1. **Atomic phase.**  The request and the trip are read ``FOR UPDATE``
   and written in a single transaction: request -> ``accepted``,
   trip -> ``paired`` with the requester embedded as ``guest``.  The trip
   row is versioned, so a concurrent accept that slipped past the row
   lock fails its UPDATE with ``StaleDataError``.  The transaction is then
   retried from scratch and the retry re-checks every precondition, which
   makes the losing accept fail with ``FailedPrecondition`` instead of
   overwriting the winner.
2. **Best-effort phase.**  After commit, the remaining pending requests
   on the trip are declined in one separate commit.  If this fails the
   accept stands; siblings stay ``pending`` on a paired trip until the
   cleanup sweep removes them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from peerride.api.schemas import PairRequestCreateRequest
from peerride.domain.entities import (
    Caller,
    GuestSnapshot,
    InvalidStateTransition,
    Luggage,
    transition,
)
from peerride.domain.enums import (
    PAIR_REQUEST_TRANSITIONS,
    TRIP_TRANSITIONS,
    PairRequestStatus,
    TripStatus,
)
from peerride.domain.errors import (
    AlreadyExists,
    FailedPrecondition,
    NotFound,
    PermissionDenied,
    Unavailable,
)
from peerride.infrastructure.database import session_scope
from peerride.infrastructure.events import EventBus
from peerride.infrastructure.models import PairRequestModel, TripModel
from peerride.infrastructure.repositories import (
    PairRequestRepository,
    TripRepository,
    is_active_request_conflict,
    is_foreign_key_violation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcceptResult:
    trip_id: int
    pair_request_id: int
    declined_count: int


# ── Create ────────────────────────────────────────────────────────────


async def create_pair_request(
    session: AsyncSession, caller: Caller, body: PairRequestCreateRequest
) -> PairRequestModel:
    trip = await TripRepository(session).get_by_id(body.trip_id)
    if trip is None:
        raise NotFound("Trip not found.")
    if not trip.host_id:
        raise FailedPrecondition("Trip host is missing.")
    if trip.status != TripStatus.OPEN:
        raise FailedPrecondition("This trip is not accepting pairing requests.")
    if trip.host_id == caller.uid:
        raise FailedPrecondition("You are the host for this trip.")

    repo = PairRequestRepository(session)
    # Racy on its own; the partial unique index is the backstop.
    if await repo.find_active(trip.id, caller.uid) is not None:
        raise AlreadyExists("You already have an active pairing request for this trip.")

    requester_name = (body.requester_name or "").strip() or caller.name or "Anonymous"
    note = body.note.strip() if body.note and body.note.strip() else None

    try:
        pair_request = await repo.create(
            PairRequestModel(
                trip_id=trip.id,
                host_id=trip.host_id,
                host_nickname=trip.host_nickname or "Host",
                requester_id=caller.uid,
                requester_name=requester_name,
                requester_contact_method=body.contact_method,
                requester_contact_value=body.contact_value,
                luggage=Luggage(**body.luggage.model_dump()).as_dict(),
                note=note,
                status=PairRequestStatus.PENDING,
            )
        )
    except IntegrityError as exc:
        if is_active_request_conflict(exc):
            raise AlreadyExists(
                "You already have an active pairing request for this trip."
            ) from exc
        if is_foreign_key_violation(exc):
            # the trip was deleted after the lookup above
            raise NotFound("Trip not found.") from exc
        raise

    logger.info(
        "Pairing request %s created on trip %s by %s",
        pair_request.id,
        trip.id,
        caller.uid,
    )
    return pair_request


# ── Accept ────────────────────────────────────────────────────────────


async def _accept_in_transaction(
    session: AsyncSession, caller: Caller, pair_request_id: int
) -> TripModel:
    pair_request = await PairRequestRepository(session).get_for_update(pair_request_id)
    if pair_request is None:
        raise NotFound("Pairing request not found.")
    if pair_request.status != PairRequestStatus.PENDING:
        raise FailedPrecondition("This pairing request has already been resolved.")
    if not pair_request.trip_id:
        raise FailedPrecondition("Pairing request is missing its trip.")

    trip = await TripRepository(session).get_for_update(pair_request.trip_id)
    if trip is None:
        raise NotFound("Trip not found.")
    if trip.host_id != caller.uid:
        raise PermissionDenied("Only the trip host can accept pairing requests.")
    if trip.status != TripStatus.OPEN:
        raise FailedPrecondition("This trip is already paired.")

    try:
        pair_request.status = transition(
            PairRequestStatus(pair_request.status),
            PairRequestStatus.ACCEPTED,
            PAIR_REQUEST_TRANSITIONS,
        )
        trip.status = transition(
            TripStatus(trip.status), TripStatus.PAIRED, TRIP_TRANSITIONS
        )
    except InvalidStateTransition as exc:
        raise FailedPrecondition(str(exc)) from exc

    trip.guest = GuestSnapshot(
        id=pair_request.requester_id,
        nickname=pair_request.requester_name,
        luggage=Luggage.from_dict(pair_request.luggage),
        note=pair_request.note,
        contact_method=pair_request.requester_contact_method,
        contact_value=pair_request.requester_contact_value,
    ).as_dict()
    return trip


async def decline_pending_siblings(
    session_factory: async_sessionmaker[AsyncSession],
    bus: Optional[EventBus],
    trip_id: int,
    accepted_id: int,
) -> int:
    """Decline every other pending request on *trip_id* in one commit."""
    async with session_scope(session_factory, bus) as session:
        siblings = await PairRequestRepository(session).get_pending_siblings(
            trip_id, accepted_id
        )
        for sibling in siblings:
            sibling.status = transition(
                PairRequestStatus(sibling.status),
                PairRequestStatus.DECLINED,
                PAIR_REQUEST_TRANSITIONS,
            )
    return len(siblings)


async def accept_pair_request(
    session_factory: async_sessionmaker[AsyncSession],
    bus: Optional[EventBus],
    caller: Caller,
    pair_request_id: int,
    *,
    max_attempts: int = 5,
) -> AcceptResult:
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(StaleDataError),
        stop=stop_after_attempt(max_attempts),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    try:
        async for attempt in retrying:
            with attempt:
                async with session_scope(session_factory, bus) as session:
                    trip = await _accept_in_transaction(
                        session, caller, pair_request_id
                    )
    except RetryError as exc:
        logger.warning(
            "Accept of pairing request %s gave up after %d concurrent trip updates",
            pair_request_id,
            max_attempts,
        )
        raise Unavailable(
            "The trip was modified concurrently. Please try again."
        ) from exc

    logger.info("Pairing request %s accepted; trip %s paired", pair_request_id, trip.id)

    declined = 0
    try:
        declined = await decline_pending_siblings(
            session_factory, bus, trip.id, pair_request_id
        )
    except Exception:
        # Siblings stay pending on a paired trip; cleanup removes them later.
        logger.exception("Failed to decline sibling requests for trip %s", trip.id)

    return AcceptResult(
        trip_id=trip.id, pair_request_id=pair_request_id, declined_count=declined
    )
