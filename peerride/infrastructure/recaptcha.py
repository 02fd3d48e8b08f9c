"""Async client for reCAPTCHA-style human challenge verification."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from peerride.domain.errors import (
    FailedPrecondition,
    InvalidArgument,
    PermissionDenied,
    Unavailable,
)

logger = logging.getLogger(__name__)


class RecaptchaVerifier:
    """Verifies client challenge tokens against the siteverify endpoint."""

    def __init__(
        self,
        secret_key: Optional[str],
        *,
        verify_url: str,
        min_score: float = 0.5,
        disabled: bool = False,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.verify_url = verify_url
        self.min_score = min_score
        self.disabled = disabled
        self.timeout = timeout
        self._transport = transport

    async def verify(self, token: Optional[str], action: Optional[str] = None) -> None:
        """
        Verify *token*, optionally checking that it was issued for *action*.

        Raises:
            FailedPrecondition: No secret key is configured.
            InvalidArgument: The token is missing.
            Unavailable: The verification service could not be reached.
            PermissionDenied: The token failed verification.
        """
        if self.disabled:
            return

        if not self.secret_key:
            raise FailedPrecondition("reCAPTCHA secret is not configured.")
        if not token or not isinstance(token, str):
            raise InvalidArgument("reCAPTCHA token is required.")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.verify_url,
                    data={"secret": self.secret_key, "response": token},
                )
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("reCAPTCHA verification call failed: %s", exc)
            raise Unavailable("Failed to verify reCAPTCHA token.") from exc

        score = result.get("score")
        if not result.get("success") or (
            isinstance(score, (int, float)) and score < self.min_score
        ):
            raise PermissionDenied("reCAPTCHA verification failed.")

        returned_action = result.get("action")
        if action and returned_action and returned_action != action:
            raise PermissionDenied("reCAPTCHA action mismatch.")
