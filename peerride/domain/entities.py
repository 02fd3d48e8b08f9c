"""
Domain value objects and lifecycle rules.

Patterns used
-------------
- **State Pattern** via ``transition``: trip and pairing-request statuses
  only move along ``TRIP_TRANSITIONS`` / ``PAIR_REQUEST_TRANSITIONS``
  (open -> paired, pending -> accepted | declined).
- ``host_has_capacity`` encapsulates the per-host active-trip cap.
- ``GuestSnapshot`` is the copy of the accepted request embedded in a
  paired trip.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional, TypeVar

from .enums import ContactMethod

S = TypeVar("S")


class InvalidStateTransition(Exception):
    """Raised when a status change violates the state machine."""


def transition(current: S, new: S, rules: Mapping[S, set[S]]) -> S:
    """Return *new* if moving from *current* is legal, else raise."""
    allowed = rules.get(current, set())
    if new not in allowed:
        raise InvalidStateTransition(f"Cannot transition from {current} to {new}")
    return new


def host_has_capacity(active_trips: int, max_active_trips: int) -> bool:
    return active_trips < max_active_trips


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Caller:
    """Authenticated identity taken from the identity provider's token."""

    uid: str
    email: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class Luggage:
    carry_on_small: float = 0
    carry_on_large: float = 0
    checked_small: float = 0
    checked_large: float = 0

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Luggage":
        data = data or {}
        return cls(
            carry_on_small=data.get("carry_on_small", 0),
            carry_on_large=data.get("carry_on_large", 0),
            checked_small=data.get("checked_small", 0),
            checked_large=data.get("checked_large", 0),
        )

    def as_dict(self) -> dict[str, float]:
        return asdict(self)

    def total(self) -> float:
        return (
            self.carry_on_small
            + self.carry_on_large
            + self.checked_small
            + self.checked_large
        )


@dataclass(frozen=True)
class GuestSnapshot:
    id: str
    nickname: str
    luggage: Luggage
    note: Optional[str] = None
    contact_method: ContactMethod = ContactMethod.CHAT
    contact_value: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "nickname": self.nickname,
            "luggage": self.luggage.as_dict(),
            "note": self.note,
            "contact_method": ContactMethod(self.contact_method).value,
            "contact_value": self.contact_value,
        }
