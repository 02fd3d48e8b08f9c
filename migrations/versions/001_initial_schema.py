"""Initial schema: users, trips, pairing requests, chat, mail queue, config.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

_CONTACT_METHOD = sa.Enum(
    "chat", "email", "phone", name="contactmethod", native_enum=False
)


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(120), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )

    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("host_id", sa.String(128), nullable=False),
        sa.Column("host_nickname", sa.String(120), nullable=True),
        sa.Column("origin_id", sa.String(64), nullable=False),
        sa.Column("origin_name", sa.String(200), nullable=False),
        sa.Column("destination_id", sa.String(64), nullable=False),
        sa.Column("destination_name", sa.String(200), nullable=False),
        sa.Column("departure_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("departure_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("luggage", sa.JSON, nullable=False),
        sa.Column("host_contact_method", _CONTACT_METHOD, nullable=False),
        sa.Column("host_contact_value", sa.String(255), nullable=True),
        sa.Column(
            "status",
            sa.Enum("open", "paired", name="tripstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("guest", sa.JSON(none_as_null=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint(
            "(status = 'paired' AND guest IS NOT NULL) "
            "OR (status = 'open' AND guest IS NULL)",
            name="ck_trips_guest_iff_paired",
        ),
    )
    op.create_index("idx_trips_host_status", "trips", ["host_id", "status"])
    op.create_index("idx_trips_departure_end", "trips", ["departure_end"])

    # ── pair_requests ─────────────────────────────────────────────────
    op.create_table(
        "pair_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=True),
        sa.Column("host_id", sa.String(128), nullable=False),
        sa.Column("host_nickname", sa.String(120), nullable=False),
        sa.Column("requester_id", sa.String(128), nullable=False),
        sa.Column("requester_name", sa.String(120), nullable=False),
        sa.Column("requester_contact_method", _CONTACT_METHOD, nullable=False),
        sa.Column("requester_contact_value", sa.String(255), nullable=True),
        sa.Column("luggage", sa.JSON, nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "accepted",
                "declined",
                name="pairrequeststatus",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index(
        "idx_pair_requests_trip_status", "pair_requests", ["trip_id", "status"]
    )
    op.create_index(
        "idx_pair_requests_host_status", "pair_requests", ["host_id", "status"]
    )
    op.create_index(
        "uq_pair_requests_active_requester",
        "pair_requests",
        ["trip_id", "requester_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'accepted')"),
    )

    # ── trip_messages ─────────────────────────────────────────────────
    op.create_table(
        "trip_messages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("sender_id", sa.String(128), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("idx_trip_messages_trip", "trip_messages", ["trip_id"])

    # ── mail ──────────────────────────────────────────────────────────
    op.create_table(
        "mail",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("message", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("idx_mail_created", "mail", ["created_at"])

    # ── config_documents ──────────────────────────────────────────────
    op.create_table(
        "config_documents",
        sa.Column("key", sa.String(120), primary_key=True),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table("config_documents")
    op.drop_table("mail")
    op.drop_table("trip_messages")
    op.drop_table("pair_requests")
    op.drop_table("trips")
    op.drop_table("users")
