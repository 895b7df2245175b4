"""Initial schema: providers, weekly_rules, date_overrides, bookings, reminder_records.

Revision ID: 001_initial
Revises:
Create Date: 2025-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

override_kind = sa.Enum("UNAVAILABLE", "CUSTOM_HOURS", name="overridekind")
booking_status = sa.Enum("REQUESTED", "CONFIRMED", "CANCELLED", "COMPLETED", "NO_SHOW", name="bookingstatus")
reminder_type = sa.Enum("TWENTY_FOUR_HOUR", "ONE_HOUR", name="remindertype")


def upgrade() -> None:
    op.create_table(
        "providers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("timezone", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_providers_email"), "providers", ["email"], unique=False)

    op.create_table(
        "weekly_rules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("start_time < end_time", name="ck_weekly_rules_range"),
    )
    op.create_index(op.f("ix_weekly_rules_provider_id"), "weekly_rules", ["provider_id"], unique=False)
    op.create_index(op.f("ix_weekly_rules_day_of_week"), "weekly_rules", ["day_of_week"], unique=False)

    op.create_table(
        "date_overrides",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_id", sa.Integer(), nullable=False),
        sa.Column("override_date", sa.Date(), nullable=False),
        sa.Column("kind", override_kind, nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_id", "override_date", name="uq_date_overrides_provider_date"),
    )
    op.create_index(op.f("ix_date_overrides_provider_id"), "date_overrides", ["provider_id"], unique=False)
    op.create_index(op.f("ix_date_overrides_override_date"), "date_overrides", ["override_date"], unique=False)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_id", sa.Integer(), nullable=False),
        sa.Column("subject_ids", sa.JSON(), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(), nullable=False),
        sa.Column("ends_at", sa.DateTime(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", booking_status, nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("provider_notes", sa.String(), nullable=True),
        sa.Column("cancellation_reason", sa.String(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bookings_provider_id"), "bookings", ["provider_id"], unique=False)
    op.create_index(op.f("ix_bookings_scheduled_at"), "bookings", ["scheduled_at"], unique=False)
    op.create_index(op.f("ix_bookings_ends_at"), "bookings", ["ends_at"], unique=False)
    op.create_index(op.f("ix_bookings_status"), "bookings", ["status"], unique=False)

    op.create_table(
        "reminder_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("booking_id", sa.Integer(), nullable=False),
        sa.Column("reminder_type", reminder_type, nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("booking_id", "reminder_type", name="uq_reminder_records_booking_type"),
    )
    op.create_index(op.f("ix_reminder_records_booking_id"), "reminder_records", ["booking_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_reminder_records_booking_id"), table_name="reminder_records")
    op.drop_table("reminder_records")
    op.drop_index(op.f("ix_bookings_status"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_ends_at"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_scheduled_at"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_provider_id"), table_name="bookings")
    op.drop_table("bookings")
    op.drop_index(op.f("ix_date_overrides_override_date"), table_name="date_overrides")
    op.drop_index(op.f("ix_date_overrides_provider_id"), table_name="date_overrides")
    op.drop_table("date_overrides")
    op.drop_index(op.f("ix_weekly_rules_day_of_week"), table_name="weekly_rules")
    op.drop_index(op.f("ix_weekly_rules_provider_id"), table_name="weekly_rules")
    op.drop_table("weekly_rules")
    op.drop_index(op.f("ix_providers_email"), table_name="providers")
    op.drop_table("providers")
    reminder_type.drop(op.get_bind(), checkfirst=True)
    booking_status.drop(op.get_bind(), checkfirst=True)
    override_kind.drop(op.get_bind(), checkfirst=True)
