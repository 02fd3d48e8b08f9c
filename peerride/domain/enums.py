"""Domain enumerations and state-transition rules."""

import enum


class TripStatus(str, enum.Enum):
    OPEN = "open"
    PAIRED = "paired"


class PairRequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


# A request in one of these states blocks a second request by the same
# requester on the same trip.
ACTIVE_PAIR_REQUEST_STATUSES = (PairRequestStatus.PENDING, PairRequestStatus.ACCEPTED)

# Trips that count towards the per-host cap.
ACTIVE_TRIP_STATUSES = (TripStatus.OPEN, TripStatus.PAIRED)


# State machine: maps current status -> set of valid next statuses
TRIP_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.OPEN: {TripStatus.PAIRED},
    TripStatus.PAIRED: set(),
}

PAIR_REQUEST_TRANSITIONS: dict[PairRequestStatus, set[PairRequestStatus]] = {
    PairRequestStatus.PENDING: {PairRequestStatus.ACCEPTED, PairRequestStatus.DECLINED},
    PairRequestStatus.ACCEPTED: set(),
    PairRequestStatus.DECLINED: set(),
}


class ContactMethod(str, enum.Enum):
    CHAT = "chat"
    EMAIL = "email"
    PHONE = "phone"
