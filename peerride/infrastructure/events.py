"""
Domain-event capture and in-process event bus.

Pairing-request writes are observed at the ORM level: an ``after_flush``
listener records ``PairRequestCreated`` / ``PairRequestUpdated`` events
in ``session.info``; ``after_rollback`` discards them.  ``session_scope``
calls ``EventBus.publish_committed`` once the commit succeeded, so
subscribers only ever see durable changes.

Subscribers are best-effort: an exception in one handler is logged and
does not affect the caller or the other handlers.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable

from sqlalchemy import event, inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from .models import PairRequestModel
from peerride.domain.enums import PairRequestStatus
from peerride.domain.events import PairRequestCreated, PairRequestUpdated

logger = logging.getLogger(__name__)

PENDING_EVENTS_KEY = "peerride.pending_events"

Handler = Callable[[Any], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    async def publish(self, evt: Any) -> None:
        for handler in list(self._handlers.get(type(evt), [])):
            try:
                await handler(evt)
            except Exception:
                logger.exception(
                    "Event handler %r failed for %s", handler, type(evt).__name__
                )

    async def publish_committed(self, session: AsyncSession) -> None:
        """Publish (and clear) the events captured by *session*."""
        events = session.info.pop(PENDING_EVENTS_KEY, [])
        for evt in events:
            await self.publish(evt)


# ── ORM capture ───────────────────────────────────────────────────────


@event.listens_for(Session, "after_flush")
def _capture_pair_request_events(session: Session, flush_context) -> None:
    pending = session.info.setdefault(PENDING_EVENTS_KEY, [])

    for obj in session.new:
        if isinstance(obj, PairRequestModel):
            pending.append(PairRequestCreated(pair_request_id=obj.id, trip_id=obj.trip_id))

    for obj in session.dirty:
        if not isinstance(obj, PairRequestModel):
            continue
        history = inspect(obj).attrs.status.history
        if not history.added or not history.deleted:
            continue
        pending.append(
            PairRequestUpdated(
                pair_request_id=obj.id,
                trip_id=obj.trip_id,
                before_status=PairRequestStatus(history.deleted[0]),
                after_status=PairRequestStatus(history.added[0]),
            )
        )


@event.listens_for(Session, "after_rollback")
def _discard_pair_request_events(session: Session) -> None:
    session.info.pop(PENDING_EVENTS_KEY, None)
