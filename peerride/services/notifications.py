"""
Notification trigger
====================

Consumes pairing-request events published after commit and queues rows in
the ``mail`` table for the external relay:

* ``PairRequestCreated``            -> host is told about the new request
* ``PairRequestUpdated`` accepted   -> requester and host, each with the
                                       other party's contact details
* ``PairRequestUpdated`` declined   -> requester

Every lookup and enqueue is best-effort: failures are logged and
swallowed, one recipient's failure never blocks the other's email.
Duplicate event delivery produces duplicate mail.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import email_templates as templates
from peerride.domain.entities import Luggage
from peerride.domain.enums import PairRequestStatus
from peerride.domain.events import PairRequestCreated, PairRequestUpdated
from peerride.infrastructure.database import session_scope
from peerride.infrastructure.events import EventBus
from peerride.infrastructure.models import PairRequestModel, TripModel
from peerride.infrastructure.repositories import (
    MailRepository,
    PairRequestRepository,
    TripRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

EmailBuilder = Callable[[], tuple[str, str]]


class NotificationService:
    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], frontend_url: str
    ):
        self.session_factory = session_factory
        self.frontend_url = frontend_url.rstrip("/")

    def register(self, bus: EventBus) -> None:
        bus.subscribe(PairRequestCreated, self.on_pair_request_created)
        bus.subscribe(PairRequestUpdated, self.on_pair_request_updated)

    def trip_url(self, trip_id: int) -> str:
        return f"{self.frontend_url}/trips/{trip_id}"

    # ── Handlers ──────────────────────────────────────────────────────

    async def on_pair_request_created(self, evt: PairRequestCreated) -> None:
        try:
            loaded = await self._load(evt.pair_request_id, evt.trip_id)
            if loaded is None:
                return
            pair_request, trip, pending = loaded
            await self._send(
                trip.host_id,
                lambda: templates.new_request_email(
                    host_nickname=trip.host_nickname or pair_request.host_nickname,
                    requester_name=pair_request.requester_name,
                    route=templates.route_label(trip.origin_name, trip.destination_name),
                    window=templates.format_window(trip.departure_start, trip.departure_end),
                    pending_count=pending,
                    trip_url=self.trip_url(trip.id),
                ),
            )
        except Exception:
            logger.exception(
                "New-request notification failed for pairing request %s",
                evt.pair_request_id,
            )

    async def on_pair_request_updated(self, evt: PairRequestUpdated) -> None:
        if not evt.status_changed:
            return
        if evt.after_status not in (
            PairRequestStatus.ACCEPTED,
            PairRequestStatus.DECLINED,
        ):
            return

        try:
            loaded = await self._load(evt.pair_request_id, evt.trip_id)
            if loaded is None:
                return
            pair_request, trip, _ = loaded
            route = templates.route_label(trip.origin_name, trip.destination_name)
            window = templates.format_window(trip.departure_start, trip.departure_end)

            if evt.after_status == PairRequestStatus.DECLINED:
                await self._send(
                    pair_request.requester_id,
                    lambda: templates.declined_email(
                        requester_name=pair_request.requester_name,
                        route=route,
                        window=window,
                        trips_url=f"{self.frontend_url}/trips",
                    ),
                )
                return

            await self._send(
                pair_request.requester_id,
                lambda: templates.accepted_for_requester_email(
                    requester_name=pair_request.requester_name,
                    host_nickname=pair_request.host_nickname,
                    route=route,
                    window=window,
                    host_contact_method=trip.host_contact_method,
                    host_contact_value=trip.host_contact_value,
                    trip_url=self.trip_url(trip.id),
                ),
            )
            await self._send(
                trip.host_id,
                lambda: templates.accepted_for_host_email(
                    host_nickname=pair_request.host_nickname,
                    requester_name=pair_request.requester_name,
                    route=route,
                    window=window,
                    luggage=Luggage.from_dict(pair_request.luggage),
                    requester_contact_method=pair_request.requester_contact_method,
                    requester_contact_value=pair_request.requester_contact_value,
                    trip_url=self.trip_url(trip.id),
                ),
            )
        except Exception:
            logger.exception(
                "Status notification failed for pairing request %s",
                evt.pair_request_id,
            )

    # ── Internals ─────────────────────────────────────────────────────

    async def _load(
        self, pair_request_id: int, trip_id: Optional[int]
    ) -> Optional[tuple[PairRequestModel, TripModel, int]]:
        async with session_scope(self.session_factory) as session:
            pair_request = await PairRequestRepository(session).get_by_id(pair_request_id)
            trip = await TripRepository(session).get_by_id(trip_id) if trip_id else None
            if pair_request is None or trip is None:
                logger.warning(
                    "Skipping notification: pairing request %s or trip %s is gone",
                    pair_request_id,
                    trip_id,
                )
                return None
            pending = await PairRequestRepository(session).count_pending_for_host(
                trip.host_id
            )
        return pair_request, trip, pending

    async def _send(self, user_id: str, build: EmailBuilder) -> None:
        try:
            async with session_scope(self.session_factory) as session:
                user = await UserRepository(session).get_by_id(user_id)
                if user is None or not user.email:
                    logger.info("No email on record for user %s; skipping", user_id)
                    return
                subject, html = build()
                await MailRepository(session).enqueue(user.email, subject, html)
        except Exception:
            logger.exception("Failed to queue email for user %s", user_id)
