"""
Shared test fixtures.

Each test gets its own SQLite database file (via aiosqlite) so tests run
without Docker / PostgreSQL / Redis, and separate sessions use separate
connections, which the concurrency tests rely on.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from peerride.config import settings
from peerride.domain.entities import Caller, Luggage
from peerride.domain.enums import ContactMethod, PairRequestStatus, TripStatus
from peerride.infrastructure.database import Base, session_scope
from peerride.infrastructure.events import EventBus
from peerride.infrastructure.models import (
    ConfigDocumentModel,
    PairRequestModel,
    TripModel,
    UserModel,
)

HOST = Caller(uid="host-1", email="host@campus.edu", name="Hana")
RIDER = Caller(uid="rider-1", email="rider@campus.edu", name="Ravi")
OTHER_RIDER = Caller(uid="rider-2", email="other@campus.edu", name="Olga")


def bearer(caller: Caller) -> dict[str, str]:
    claims = {"sub": caller.uid}
    if caller.email:
        claims["email"] = caller.email
    if caller.name:
        claims["name"] = caller.name
    token = jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


def luggage_payload(**overrides) -> dict[str, float]:
    payload = {"carry_on_small": 1, "carry_on_large": 0, "checked_small": 0, "checked_large": 1}
    payload.update(overrides)
    return payload


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh database file with all tables, dispose afterwards."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'peerride.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def make_trip(session_factory, now):
    """Insert a trip directly, bypassing the service-level checks."""

    async def _make(host: Caller = HOST, **overrides) -> TripModel:
        values = dict(
            host_id=host.uid,
            host_nickname=host.name,
            origin_id="campus",
            origin_name="Main Campus",
            destination_id="sfo",
            destination_name="SFO",
            departure_start=now + timedelta(days=1),
            departure_end=now + timedelta(days=1, hours=2),
            luggage=Luggage(carry_on_small=1).as_dict(),
            host_contact_method=ContactMethod.CHAT,
            status=TripStatus.OPEN,
            guest=None,
        )
        values.update(overrides)
        async with session_scope(session_factory) as session:
            trip = TripModel(**values)
            session.add(trip)
        return trip

    return _make


@pytest.fixture
def make_pair_request(session_factory):
    async def _make(trip: TripModel, requester: Caller = RIDER, **overrides) -> PairRequestModel:
        values = dict(
            trip_id=trip.id,
            host_id=trip.host_id,
            host_nickname=trip.host_nickname or "Host",
            requester_id=requester.uid,
            requester_name=requester.name,
            requester_contact_method=ContactMethod.EMAIL,
            requester_contact_value=requester.email,
            luggage=Luggage(checked_large=1).as_dict(),
            note=None,
            status=PairRequestStatus.PENDING,
        )
        values.update(overrides)
        async with session_scope(session_factory) as session:
            pair_request = PairRequestModel(**values)
            session.add(pair_request)
        return pair_request

    return _make


@pytest.fixture
def add_users(session_factory):
    async def _add(*callers: Caller) -> None:
        async with session_scope(session_factory) as session:
            for caller in callers:
                session.add(
                    UserModel(id=caller.uid, email=caller.email, display_name=caller.name)
                )

    return _add


@pytest.fixture
def set_allowed_domains(session_factory):
    async def _set(data) -> None:
        async with session_scope(session_factory) as session:
            session.add(ConfigDocumentModel(key=settings.allowed_domains_config_key, data=data))

    return _set
