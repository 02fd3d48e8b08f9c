"""
Admin / operations endpoints
============================

GET  /api/v1/admin/health   -- simple health check
POST /api/v1/admin/cleanup  -- run the cleanup sweep now
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from peerride.api.auth import get_caller
from peerride.api.dependencies import get_session_factory
from peerride.api.middleware import limiter
from peerride.api.schemas import CleanupResponse, HealthResponse
from peerride.config import settings
from peerride.domain.entities import Caller
from peerride.domain.errors import PermissionDenied
from peerride.services.cleanup import run_cleanup

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    summary="Delete expired trips and old mail immediately",
)
@limiter.limit("10/minute")
async def cleanup_now(
    request: Request,
    caller: Caller = Depends(get_caller),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    if caller.uid not in settings.admin_user_ids:
        raise PermissionDenied("Admin access required.")
    report = await run_cleanup(session_factory)
    return CleanupResponse(
        trips_deleted=report.trips_deleted,
        failed_trip_ids=report.failed_trip_ids,
        mail_deleted=report.mail_deleted,
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
