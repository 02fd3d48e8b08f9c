"""
Allowed signup domains.

The ``emailDomains`` configuration document is read through a
process-wide cache with a fixed TTL.  Concurrent refreshes are not
coalesced; a stampede only costs redundant reads of the same document.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from peerride.api.schemas import SignupCheckRequest
from peerride.domain.allowlist import ensure_email_allowed, parse_domains
from peerride.infrastructure.repositories import ConfigRepository, UserRepository

logger = logging.getLogger(__name__)


class AllowedDomainCache:
    def __init__(
        self,
        config_key: str,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config_key = config_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._domains: Optional[list[str]] = None
        self._fetched_at = 0.0

    def is_fresh(self) -> bool:
        return (
            self._domains is not None
            and self._clock() - self._fetched_at < self.ttl_seconds
        )

    async def get(self, session: AsyncSession) -> list[str]:
        if self.is_fresh():
            return self._domains  # type: ignore[return-value]
        return await self.refresh(session)

    async def refresh(self, session: AsyncSession) -> list[str]:
        """Re-read the configuration document; invalid config is not cached."""
        document = await ConfigRepository(session).get_document(self.config_key)
        domains = parse_domains(document)
        self._domains = domains
        self._fetched_at = self._clock()
        logger.debug("Loaded %d allowed signup domains", len(domains))
        return domains

    def invalidate(self) -> None:
        self._domains = None


async def check_signup(
    session: AsyncSession, cache: AllowedDomainCache, body: SignupCheckRequest
) -> None:
    """Pre-create hook: reject disallowed domains, record new users.

    Records of existing users are left untouched.
    """
    allowed_domains = await cache.get(session)
    ensure_email_allowed(body.email, allowed_domains)

    if body.uid:
        created = await UserRepository(session).add_if_missing(
            body.uid, body.email, body.display_name
        )
        if created is None:
            logger.warning("Signup hook called for existing user %s; record kept", body.uid)
        else:
            logger.info("Signup allowed for user %s", body.uid)
