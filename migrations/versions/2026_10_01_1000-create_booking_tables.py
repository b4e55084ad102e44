"""Create booking, closed slot and verification tables

Revision ID: 8b1f2c7d4e10
Revises:
Create Date: 2026-10-01 10:00:00.000000+00:00

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "8b1f2c7d4e10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("customer_name", sa.String(length=100), nullable=False),
        sa.Column("customer_phone", sa.String(length=20), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("booking_time", sa.String(length=5), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("reminder_sent", sa.Boolean(), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_bookings_customer_phone"), "bookings", ["customer_phone"], unique=False
    )
    op.create_index(
        op.f("ix_bookings_booking_date"), "bookings", ["booking_date"], unique=False
    )
    op.create_index(op.f("ix_bookings_status"), "bookings", ["status"], unique=False)
    op.create_index(
        op.f("ix_bookings_created_at"), "bookings", ["created_at"], unique=False
    )
    op.create_index(
        "uq_bookings_confirmed_slot",
        "bookings",
        ["booking_date", "booking_time"],
        unique=True,
        postgresql_where=sa.text("status = 'confirmed'"),
        sqlite_where=sa.text("status = 'confirmed'"),
    )

    op.create_table(
        "closed_slots",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("closed_date", sa.Date(), nullable=False),
        sa.Column("closed_time", sa.String(length=5), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_closed_slots_closed_date"), "closed_slots", ["closed_date"], unique=False
    )

    op.create_table(
        "verification_codes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=False),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_verification_codes_phone"), "verification_codes", ["phone"], unique=False
    )
    op.create_index(
        op.f("ix_verification_codes_expires_at"),
        "verification_codes",
        ["expires_at"],
        unique=False,
    )

    op.create_table(
        "sms_rate_limits",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_sms_rate_limits_phone"), "sms_rate_limits", ["phone"], unique=False
    )
    op.create_index(
        op.f("ix_sms_rate_limits_created_at"),
        "sms_rate_limits",
        ["created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_sms_rate_limits_created_at"), table_name="sms_rate_limits")
    op.drop_index(op.f("ix_sms_rate_limits_phone"), table_name="sms_rate_limits")
    op.drop_table("sms_rate_limits")
    op.drop_index(
        op.f("ix_verification_codes_expires_at"), table_name="verification_codes"
    )
    op.drop_index(op.f("ix_verification_codes_phone"), table_name="verification_codes")
    op.drop_table("verification_codes")
    op.drop_index(op.f("ix_closed_slots_closed_date"), table_name="closed_slots")
    op.drop_table("closed_slots")
    op.drop_index("uq_bookings_confirmed_slot", table_name="bookings")
    op.drop_index(op.f("ix_bookings_created_at"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_status"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_booking_date"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_customer_phone"), table_name="bookings")
    op.drop_table("bookings")
