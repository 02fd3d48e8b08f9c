"""
Trip endpoints
==============

POST /api/v1/trips                          -- offer a ride window (201)
GET  /api/v1/trips/{trip_id}                -- trip details and pairing status
GET  /api/v1/trips/{trip_id}/pair-requests  -- requests on the trip (host only)
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from peerride.api.auth import get_caller
from peerride.api.dependencies import get_db
from peerride.api.middleware import limiter
from peerride.api.schemas import PairRequestResponse, TripCreateRequest, TripResponse
from peerride.config import settings
from peerride.domain.entities import Caller
from peerride.services import trips as trip_service

router = APIRouter(prefix="/trips", tags=["trips"])


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Create a trip",
    responses={429: {"description": "Host already has the maximum of active trips."}},
)
@limiter.limit(settings.rate_limit)
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    trip = await trip_service.create_trip(db, caller, body)
    return TripResponse.from_model(trip)


@router.get("/{trip_id}", response_model=TripResponse, summary="Get a trip")
@limiter.limit(settings.rate_limit)
async def get_trip(
    request: Request,
    trip_id: int,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    trip = await trip_service.get_trip(db, trip_id)
    return TripResponse.from_model(trip)


@router.get(
    "/{trip_id}/pair-requests",
    response_model=list[PairRequestResponse],
    summary="List pairing requests for a trip",
)
@limiter.limit(settings.rate_limit)
async def list_pair_requests(
    request: Request,
    trip_id: int,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await trip_service.list_trip_pair_requests(db, caller, trip_id)
