# backend/alembic/versions/001_studio_booking_core.py
"""Studio booking core - tenants, catalog, credit ledger, bookings

Revision ID: 001_studio_booking_core
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates every table of the booking core. On PostgreSQL it also installs
btree_gist and adds the exclusion constraint that makes double-booking a
trainer impossible even under concurrent writers:

    EXCLUDE USING gist (trainer_id WITH =, tstzrange(scheduled_at, ends_at, '[)') WITH &&)
    WHERE (status IN ('confirmed', 'soft-hold', 'checked-in'))

Half-open ranges, so back-to-back sessions do not collide.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_studio_booking_core"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

OVERLAP_CONSTRAINT_NAME = "bookings_no_overlap_per_trainer"

JSON_DOCUMENT = postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def upgrade() -> None:
    """Create booking core tables."""
    print("Creating studio and membership tables...")

    op.create_table(
        "studios",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("owner_id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("booking_model", sa.String(20), nullable=True),
        sa.Column("soft_hold_length", sa.Integer(), nullable=True),
        sa.Column("opening_hours", JSON_DOCUMENT, nullable=True),
        sa.Column("cancellation_window_hours", sa.Integer(), nullable=True),
        sa.Column("cancellation_policy", JSON_DOCUMENT, nullable=True),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "booking_model IS NULL OR booking_model IN ('self-service', 'trainer-led')",
            name="ck_studios_booking_model",
        ),
        sa.CheckConstraint(
            "soft_hold_length IS NULL OR soft_hold_length > 0",
            name="ck_studios_soft_hold_positive",
        ),
        sa.CheckConstraint(
            "cancellation_window_hours IS NULL OR cancellation_window_hours >= 0",
            name="ck_studios_cancellation_window_non_negative",
        ),
    )
    op.create_index("ix_studios_owner_id", "studios", ["owner_id"])

    op.create_table(
        "studio_staff",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("studio_id", sa.String(26), nullable=False),
        sa.Column("staff_type", sa.String(20), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "staff_type IN ('owner', 'trainer', 'instructor', 'admin')",
            name="ck_studio_staff_type",
        ),
    )
    op.create_index("ix_studio_staff_studio_id", "studio_staff", ["studio_id"])
    op.create_index("ix_studio_staff_studio_type", "studio_staff", ["studio_id", "staff_type"])

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("studio_id", sa.String(26), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_profiles_studio_id", "profiles", ["studio_id"])

    op.create_table(
        "clients",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("studio_id", sa.String(26), nullable=True),
        sa.Column("invited_by", sa.String(26), nullable=True),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "self_booking_allowed", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("is_guest", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("credits >= 0", name="ck_clients_credits_non_negative"),
    )
    op.create_index("ix_clients_email", "clients", ["email"])
    op.create_index("ix_clients_studio_id", "clients", ["studio_id"])
    op.create_index("ix_clients_invited_by", "clients", ["invited_by"])

    print("Creating service catalog...")
    op.create_table(
        "services",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("credits_required", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("studio_id", sa.String(26), nullable=True),
        sa.Column("created_by", sa.String(26), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("duration > 0", name="ck_services_duration_positive"),
        sa.CheckConstraint(
            "credits_required >= 1", name="ck_services_credits_required_positive"
        ),
    )
    op.create_index("ix_services_studio_id", "services", ["studio_id"])
    op.create_index("ix_services_created_by", "services", ["created_by"])

    print("Creating credit ledger...")
    op.create_table(
        "client_packages",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("client_id", sa.String(26), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("trainer_id", sa.String(26), nullable=True),
        sa.Column("package_id", sa.String(26), nullable=True),
        sa.Column("sessions_total", sa.Integer(), nullable=False),
        sa.Column("sessions_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sessions_remaining", sa.Integer(), nullable=False),
        sa.Column("purchased_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("sessions_total >= 0", name="ck_client_packages_total_non_negative"),
        sa.CheckConstraint("sessions_used >= 0", name="ck_client_packages_used_non_negative"),
        sa.CheckConstraint(
            "sessions_remaining >= 0", name="ck_client_packages_remaining_non_negative"
        ),
        sa.CheckConstraint(
            "sessions_remaining = sessions_total - sessions_used",
            name="ck_client_packages_remaining_consistent",
        ),
        sa.CheckConstraint(
            "status IN ('active', 'expired', 'exhausted')", name="ck_client_packages_status"
        ),
    )
    op.create_index("ix_client_packages_client_id", "client_packages", ["client_id"])
    op.create_index("ix_client_packages_trainer_id", "client_packages", ["trainer_id"])
    op.create_index("ix_client_packages_expires_at", "client_packages", ["expires_at"])
    op.create_index(
        "ix_client_packages_client_status_expiry",
        "client_packages",
        ["client_id", "status", "expires_at"],
    )

    op.create_table(
        "credit_usage",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column(
            "client_package_id",
            sa.String(26),
            sa.ForeignKey("client_packages.id"),
            nullable=True,
        ),
        sa.Column("client_id", sa.String(26), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=True),
        sa.Column("credits_used", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(30), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(26), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "reason IN ('booking', 'refund', 'manual_addition')", name="ck_credit_usage_reason"
        ),
        sa.CheckConstraint("credits_used <> 0", name="ck_credit_usage_non_zero"),
    )
    op.create_index("ix_credit_usage_client_package_id", "credit_usage", ["client_package_id"])
    op.create_index("ix_credit_usage_client_id", "credit_usage", ["client_id"])
    op.create_index("ix_credit_usage_booking_id", "credit_usage", ["booking_id"])
    op.create_index("ix_credit_usage_created_at", "credit_usage", ["created_at"])
    op.create_index("ix_credit_usage_booking_reason", "credit_usage", ["booking_id", "reason"])

    print("Creating booking tables...")
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("client_id", sa.String(26), nullable=False),
        sa.Column("trainer_id", sa.String(26), nullable=False),
        sa.Column("service_id", sa.String(26), nullable=True),
        sa.Column("studio_id", sa.String(26), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        sa.Column("hold_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(26), nullable=True),
        *_timestamps(),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(26), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('confirmed', 'soft-hold', 'checked-in', 'completed', "
            "'cancelled', 'no-show', 'late')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint("duration > 0", name="ck_bookings_duration_positive"),
        sa.CheckConstraint("ends_at > scheduled_at", name="ck_bookings_time_order"),
    )
    op.create_index("ix_bookings_client_id", "bookings", ["client_id"])
    op.create_index("ix_bookings_trainer_id", "bookings", ["trainer_id"])
    op.create_index("ix_bookings_service_id", "bookings", ["service_id"])
    op.create_index("ix_bookings_studio_id", "bookings", ["studio_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_trainer_schedule", "bookings", ["trainer_id", "scheduled_at"])
    op.create_index("ix_bookings_client_schedule", "bookings", ["client_id", "scheduled_at"])

    if _is_postgres():
        print("Adding trainer overlap exclusion constraint...")
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            f"""
            ALTER TABLE bookings
              ADD CONSTRAINT {OVERLAP_CONSTRAINT_NAME}
              EXCLUDE USING gist (
                trainer_id WITH =,
                tstzrange(scheduled_at, ends_at, '[)') WITH &&
              )
              WHERE (status IN ('confirmed', 'soft-hold', 'checked-in'))
            """
        )

    op.create_table(
        "booking_requests",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("studio_id", sa.String(26), nullable=True),
        sa.Column("trainer_id", sa.String(26), nullable=False),
        sa.Column("client_id", sa.String(26), nullable=False),
        sa.Column("service_id", sa.String(26), nullable=False),
        sa.Column("preferred_times", JSON_DOCUMENT, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booking_id", sa.String(26), nullable=True),
        sa.Column("responded_by", sa.String(26), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decline_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'expired')",
            name="ck_booking_requests_status",
        ),
    )
    op.create_index("ix_booking_requests_studio_id", "booking_requests", ["studio_id"])
    op.create_index("ix_booking_requests_client_id", "booking_requests", ["client_id"])
    op.create_index(
        "ix_booking_requests_trainer_status", "booking_requests", ["trainer_id", "status"]
    )

    print("Creating notification queue...")
    op.create_table(
        "notification_queue",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=True),
        sa.Column("recipient_id", sa.String(26), nullable=False),
        sa.Column("notification_type", sa.String(40), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payload", JSON_DOCUMENT, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'sent', 'cancelled', 'failed')",
            name="ck_notification_queue_status",
        ),
    )
    op.create_index("ix_notification_queue_booking_id", "notification_queue", ["booking_id"])
    op.create_index("ix_notification_queue_due", "notification_queue", ["status", "scheduled_for"])

    print("Studio booking core created.")


def downgrade() -> None:
    """Drop booking core tables."""
    op.drop_table("notification_queue")
    op.drop_table("booking_requests")
    if _is_postgres():
        op.execute(f"ALTER TABLE bookings DROP CONSTRAINT IF EXISTS {OVERLAP_CONSTRAINT_NAME}")
    op.drop_table("bookings")
    op.drop_table("credit_usage")
    op.drop_table("client_packages")
    op.drop_table("services")
    op.drop_table("clients")
    op.drop_table("profiles")
    op.drop_table("studio_staff")
    op.drop_table("studios")
