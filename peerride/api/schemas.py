"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from peerride.domain.enums import ContactMethod, PairRequestStatus, TripStatus

# Strict so that "3" or true are rejected rather than coerced.
LuggageCount = Annotated[float, Field(ge=0, strict=True, allow_inf_nan=False)]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _require_contact_value(method: ContactMethod, value: Optional[str]) -> Optional[str]:
    value = value.strip() if value else None
    if method != ContactMethod.CHAT and not value:
        raise ValueError(f"contact value is required for contact method '{method.value}'")
    return value


# ── Requests ──────────────────────────────────────────────────────────


class LuggageIn(BaseModel):
    carry_on_small: LuggageCount
    carry_on_large: LuggageCount
    checked_small: LuggageCount
    checked_large: LuggageCount


class LocationIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)


class TripCreateRequest(BaseModel):
    origin: LocationIn
    destination: LocationIn
    departure_start: datetime
    departure_end: datetime
    luggage: LuggageIn
    host_nickname: Optional[str] = Field(None, max_length=120)
    host_contact_method: ContactMethod = ContactMethod.CHAT
    host_contact_value: Optional[str] = Field(None, max_length=255)

    @field_validator("departure_start", "departure_end")
    @classmethod
    def normalise_departure(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def check_host_contact(self) -> "TripCreateRequest":
        self.host_contact_value = _require_contact_value(
            self.host_contact_method, self.host_contact_value
        )
        return self


class PairRequestCreateRequest(BaseModel):
    trip_id: int = Field(..., gt=0, strict=True)
    luggage: LuggageIn
    note: Optional[str] = Field(None, max_length=1000)
    requester_name: Optional[str] = Field(None, max_length=120)
    contact_method: ContactMethod = ContactMethod.CHAT
    contact_value: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def check_requester_contact(self) -> "PairRequestCreateRequest":
        self.contact_value = _require_contact_value(
            self.contact_method, self.contact_value
        )
        return self


class RecaptchaVerifyRequest(BaseModel):
    token: Optional[str] = None
    action: Optional[str] = None


class SignupCheckRequest(BaseModel):
    uid: Optional[str] = Field(None, max_length=128)
    email: Optional[str] = Field(None, max_length=255)
    display_name: Optional[str] = Field(None, max_length=120)


# ── Responses ─────────────────────────────────────────────────────────


class LocationOut(BaseModel):
    id: str
    name: str


class TripResponse(BaseModel):
    id: int
    host_id: str
    host_nickname: Optional[str] = None
    origin: LocationOut
    destination: LocationOut
    departure_start: datetime
    departure_end: datetime
    luggage: dict[str, float]
    host_contact_method: ContactMethod
    host_contact_value: Optional[str] = None
    status: TripStatus
    guest: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, trip) -> "TripResponse":
        return cls(
            id=trip.id,
            host_id=trip.host_id,
            host_nickname=trip.host_nickname,
            origin=LocationOut(id=trip.origin_id, name=trip.origin_name),
            destination=LocationOut(id=trip.destination_id, name=trip.destination_name),
            departure_start=trip.departure_start,
            departure_end=trip.departure_end,
            luggage=trip.luggage,
            host_contact_method=trip.host_contact_method,
            host_contact_value=trip.host_contact_value,
            status=trip.status,
            guest=trip.guest,
            created_at=trip.created_at,
            updated_at=trip.updated_at,
        )


class PairRequestResponse(BaseModel):
    id: int
    trip_id: Optional[int] = None
    host_id: str
    host_nickname: str
    requester_id: str
    requester_name: str
    requester_contact_method: ContactMethod
    requester_contact_value: Optional[str] = None
    luggage: dict[str, float]
    note: Optional[str] = None
    status: PairRequestStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PairRequestCreatedResponse(BaseModel):
    id: int
    created_at: datetime


class AcceptResponse(BaseModel):
    success: bool = True
    trip_id: int
    pair_request_id: int
    declined_count: int


class RecaptchaVerifyResponse(BaseModel):
    success: bool = True


class SignupCheckResponse(BaseModel):
    allowed: bool = True


class CleanupResponse(BaseModel):
    trips_deleted: int
    failed_trip_ids: list[int] = []
    mail_deleted: int


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    detail: str
