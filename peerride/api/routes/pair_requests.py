"""
Pairing-request endpoints
=========================

POST /api/v1/pair-requests                 -- request to join an open trip (201)
POST /api/v1/pair-requests/{id}/accept     -- host accepts; trip becomes paired
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from peerride.api.auth import get_caller
from peerride.api.dependencies import get_db, get_event_bus, get_session_factory
from peerride.api.middleware import limiter
from peerride.api.schemas import (
    AcceptResponse,
    PairRequestCreatedResponse,
    PairRequestCreateRequest,
)
from peerride.config import settings
from peerride.domain.entities import Caller
from peerride.infrastructure.events import EventBus
from peerride.services import pair_requests as pair_request_service

router = APIRouter(prefix="/pair-requests", tags=["pair-requests"])


@router.post(
    "",
    status_code=201,
    response_model=PairRequestCreatedResponse,
    summary="Create a pairing request",
)
@limiter.limit(settings.rate_limit)
async def create_pair_request(
    request: Request,
    body: PairRequestCreateRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    pair_request = await pair_request_service.create_pair_request(db, caller, body)
    return PairRequestCreatedResponse(
        id=pair_request.id, created_at=pair_request.created_at
    )


@router.post(
    "/{pair_request_id}/accept",
    response_model=AcceptResponse,
    summary="Accept a pairing request",
    description=(
        "Atomically marks the request accepted and the trip paired, then "
        "declines the trip's other pending requests on a best-effort basis."
    ),
)
@limiter.limit(settings.rate_limit)
async def accept_pair_request(
    request: Request,
    pair_request_id: int,
    caller: Caller = Depends(get_caller),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    bus: EventBus = Depends(get_event_bus),
):
    result = await pair_request_service.accept_pair_request(
        session_factory,
        bus,
        caller,
        pair_request_id,
        max_attempts=settings.transaction_max_attempts,
    )
    return AcceptResponse(
        trip_id=result.trip_id,
        pair_request_id=result.pair_request_id,
        declined_count=result.declined_count,
    )
