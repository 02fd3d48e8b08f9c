"""Signup email-domain allow-list rules."""

from __future__ import annotations

from typing import Any, Optional

from .errors import FailedPrecondition, InvalidArgument, PermissionDenied


def parse_domains(document: Optional[dict[str, Any]]) -> list[str]:
    """Normalise the ``{"domains": [...]}`` configuration document."""
    domains = (document or {}).get("domains")
    if not isinstance(domains, list) or any(not isinstance(d, str) for d in domains):
        raise FailedPrecondition(
            "Allowed email domains configuration is missing or invalid."
        )
    return [d.lower().strip() for d in domains]


def email_domain(email: str) -> Optional[str]:
    parts = email.split("@")
    if len(parts) < 2 or not parts[1]:
        return None
    return parts[1].lower()


def ensure_email_allowed(email: Optional[str], allowed_domains: list[str]) -> str:
    """Return the email's domain, raising if signup is not permitted."""
    if not email:
        raise InvalidArgument("Email is required for registration.")

    domain = email_domain(email)
    if not domain or domain not in allowed_domains:
        raise PermissionDenied(
            f'Unauthorized email domain "{domain or "unknown"}". '
            "Please use an allowed campus email."
        )
    return domain
