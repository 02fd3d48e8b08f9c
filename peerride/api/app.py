"""
FastAPI application factory.

* Registers routes for trips, pairing requests, identity hooks and admin.
* Wires the event bus to the notification consumer.
* Starts / stops the scheduled cleanup worker via lifespan events.
* Renders ``PeerRideError`` subclasses as ``{"error", "detail"}`` bodies.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from peerride.api.middleware import limiter
from peerride.api.routes import admin, identity, pair_requests, trips
from peerride.config import settings
from peerride.domain.errors import InvalidArgument, PeerRideError
from peerride.infrastructure.database import async_session_factory
from peerride.infrastructure.events import EventBus
from peerride.infrastructure.recaptcha import RecaptchaVerifier
from peerride.services.domains import AllowedDomainCache
from peerride.services.notifications import NotificationService
from peerride.workers import cleanup as _cleanup

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the cleanup worker on startup; stop on shutdown."""
    if settings.cleanup_enabled:
        await _cleanup.start_cleanup_loop(app.state.session_factory)
    yield
    if settings.cleanup_enabled:
        await _cleanup.stop_cleanup_loop()


async def _peer_ride_error_handler(request: Request, exc: PeerRideError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message},
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report only the first violation, as an ``InvalidArgument``."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request.")
    detail = f"{location}: {message}" if location else message
    return await _peer_ride_error_handler(request, InvalidArgument(detail))


def create_app(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> FastAPI:
    app = FastAPI(
        title="Peer Ride Pairing API",
        description=(
            "Hosts offer ride windows, riders request to pair, the host "
            "accepts one request.  State changes queue notification emails "
            "and a daily sweep prunes stale trips."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.session_factory = session_factory or async_session_factory
    app.state.events = EventBus()
    app.state.domain_cache = AllowedDomainCache(
        settings.allowed_domains_config_key,
        ttl_seconds=settings.allowed_domains_cache_ttl_seconds,
    )
    app.state.recaptcha = RecaptchaVerifier(
        settings.recaptcha_secret_key,
        verify_url=settings.recaptcha_verify_url,
        min_score=settings.recaptcha_min_score,
        disabled=settings.recaptcha_disabled,
        timeout=settings.recaptcha_timeout_seconds,
    )
    NotificationService(app.state.session_factory, settings.frontend_url).register(
        app.state.events
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Tagged failures
    app.add_exception_handler(PeerRideError, _peer_ride_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(pair_requests.router, prefix="/api/v1")
    app.include_router(identity.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
