"""FastAPI dependency injection helpers."""

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from peerride.infrastructure.database import session_scope
from peerride.infrastructure.events import EventBus
from peerride.infrastructure.recaptcha import RecaptchaVerifier
from peerride.services.domains import AllowedDomainCache


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.events


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield a request-scoped session; commit on success, rollback on error."""
    async with session_scope(
        request.app.state.session_factory, request.app.state.events
    ) as session:
        yield session


def get_domain_cache(request: Request) -> AllowedDomainCache:
    return request.app.state.domain_cache


def get_recaptcha(request: Request) -> RecaptchaVerifier:
    return request.app.state.recaptcha
