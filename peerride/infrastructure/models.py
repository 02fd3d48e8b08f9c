"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``             -- identity-provider mirror (uid, email, display name)
* ``trips``             -- ride windows offered by a host
* ``pair_requests``     -- requests to join a trip
* ``trip_messages``     -- per-trip chat
* ``mail``              -- outbound email queue consumed by the mail relay
* ``config_documents``  -- keyed JSON configuration (e.g. allowed domains)

Indexes
-------
* **B-Tree** on ``host_id``/``status``/``departure_end`` for the capacity
  check and the cleanup sweep, on ``trip_id``/``requester_id``/``status``
  for duplicate detection and sibling fan-out.
* **Partial unique** index on ``pair_requests (trip_id, requester_id)``
  restricted to pending/accepted rows.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)

from .database import Base
from peerride.domain.enums import ContactMethod, PairRequestStatus, TripStatus


ACTIVE_REQUEST_INDEX = "uq_pair_requests_active_requester"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls, name: str) -> Enum:
    # persist the lower-case values ("open"), not the member names
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
    )


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    email = Column(String(255), nullable=True)
    display_name = Column(String(120), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    host_id = Column(String(128), nullable=False)
    host_nickname = Column(String(120), nullable=True)

    origin_id = Column(String(64), nullable=False)
    origin_name = Column(String(200), nullable=False)
    destination_id = Column(String(64), nullable=False)
    destination_name = Column(String(200), nullable=False)

    departure_start = Column(DateTime(timezone=True), nullable=False)
    departure_end = Column(DateTime(timezone=True), nullable=False)

    luggage = Column(JSON, nullable=False)
    host_contact_method = Column(
        _enum(ContactMethod, "contactmethod"),
        default=ContactMethod.CHAT,
        nullable=False,
    )
    host_contact_value = Column(String(255), nullable=True)

    status = Column(
        _enum(TripStatus, "tripstatus"), default=TripStatus.OPEN, nullable=False
    )
    guest = Column(JSON(none_as_null=True), nullable=True)

    # Optimistic concurrency: every UPDATE checks and bumps this counter
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "(status = 'paired' AND guest IS NOT NULL) "
            "OR (status = 'open' AND guest IS NULL)",
            name="ck_trips_guest_iff_paired",
        ),
        Index("idx_trips_host_status", "host_id", "status"),
        Index("idx_trips_departure_end", "departure_end"),
    )


class PairRequestModel(Base):
    __tablename__ = "pair_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=True)
    host_id = Column(String(128), nullable=False)
    host_nickname = Column(String(120), nullable=False)

    requester_id = Column(String(128), nullable=False)
    requester_name = Column(String(120), nullable=False)
    requester_contact_method = Column(
        _enum(ContactMethod, "contactmethod"),
        default=ContactMethod.CHAT,
        nullable=False,
    )
    requester_contact_value = Column(String(255), nullable=True)

    luggage = Column(JSON, nullable=False)
    note = Column(Text, nullable=True)
    status = Column(
        _enum(PairRequestStatus, "pairrequeststatus"),
        default=PairRequestStatus.PENDING,
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_pair_requests_trip_status", "trip_id", "status"),
        Index("idx_pair_requests_host_status", "host_id", "status"),
        Index(
            ACTIVE_REQUEST_INDEX,
            "trip_id",
            "requester_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'accepted')"),
            sqlite_where=text("status IN ('pending', 'accepted')"),
        ),
    )


class TripMessageModel(Base):
    __tablename__ = "trip_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    sender_id = Column(String(128), nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_trip_messages_trip", "trip_id"),)


class MailModel(Base):
    __tablename__ = "mail"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient = Column(String(255), nullable=False)
    # {"subject": str, "html": str}
    message = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_mail_created", "created_at"),)


class ConfigDocumentModel(Base):
    __tablename__ = "config_documents"

    key = Column(String(120), primary_key=True)
    data = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
