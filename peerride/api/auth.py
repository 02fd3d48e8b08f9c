"""Bearer-token verification for identity-provider issued JWTs, and the hook secret."""

from __future__ import annotations

import logging
import secrets
from typing import Any, Optional

from fastapi import Depends
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from peerride.config import Settings, settings as default_settings
from peerride.domain.entities import Caller
from peerride.domain.errors import FailedPrecondition, Unauthenticated

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)
_hook_secret = APIKeyHeader(name="X-Hook-Secret", auto_error=False)


def decode_token(token: str, settings: Settings = default_settings) -> dict[str, Any]:
    options = {
        "verify_aud": settings.auth_jwt_audience is not None,
        "verify_iss": settings.auth_jwt_issuer is not None,
    }
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            issuer=settings.auth_jwt_issuer,
            options=options,
        )
    except JWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise Unauthenticated("Invalid or expired credentials.") from exc


def caller_from_claims(claims: dict[str, Any]) -> Caller:
    uid = claims.get("sub") or claims.get("uid")
    if not uid:
        raise Unauthenticated("Token has no subject.")
    return Caller(uid=str(uid), email=claims.get("email"), name=claims.get("name"))


async def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Caller:
    """Resolve the authenticated caller, or fail with ``Unauthenticated``."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Sign in to continue.")
    return caller_from_claims(decode_token(credentials.credentials))


async def require_hook_secret(provided: Optional[str] = Depends(_hook_secret)) -> None:
    """Only the identity provider, holding the shared secret, may call hooks."""
    expected = default_settings.identity_hook_secret
    if not expected:
        raise FailedPrecondition("Identity hook secret is not configured.")
    if not provided or not secrets.compare_digest(provided, expected):
        raise Unauthenticated("Invalid identity hook credentials.")
