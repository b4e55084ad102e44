import uuid
from sqlalchemy import Column, String, DateTime, Boolean, Date, Index, Uuid, text
from datetime import datetime
from barbershop.core.db import Base


BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_name = Column(String(100), nullable=False)
    # Canonical international form, e.g. +972501234567
    customer_phone = Column(String(20), nullable=False, index=True)
    booking_date = Column(Date, nullable=False, index=True)
    booking_time = Column(String(5), nullable=False)

    status = Column(String(32), default=BOOKING_CONFIRMED, nullable=False, index=True)
    reminder_sent = Column(Boolean, default=False, nullable=False)
    source = Column(String(20), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # One confirmed booking per (date, time); enforced by the database so that
    # concurrent reservations cannot both commit.
    __table_args__ = (
        Index(
            "uq_bookings_confirmed_slot",
            "booking_date",
            "booking_time",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
    )

    def __repr__(self):
        return f"<Booking {self.booking_date} {self.booking_time} {self.status}>"


class ClosedSlot(Base):
    __tablename__ = "closed_slots"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    closed_date = Column(Date, nullable=False, index=True)
    # NULL closes the whole day
    closed_time = Column(String(5), nullable=True)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class VerificationCode(Base):
    __tablename__ = "verification_codes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    phone = Column(String(20), nullable=False, index=True)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class SmsRateLimit(Base):
    __tablename__ = "sms_rate_limits"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    phone = Column(String(20), nullable=False, index=True)
    action = Column(String(32), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
