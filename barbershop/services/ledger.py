"""Booking ledger: the only writer of Booking rows.

Every path that claims a slot (customer, admin, edits) runs the availability
check and the write in one transaction. The partial unique index on
``(booking_date, booking_time) WHERE status = 'confirmed'`` backs that check,
so a concurrent writer that slipped past the read fails on flush and is
reported as ``SlotTaken``.
"""

from datetime import date, datetime, timezone
from typing import List, Optional
import logging
import re
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from barbershop.core.clock import booking_timezone, now_local, slot_start
from barbershop.core.errors import BadCode, NotFound, SlotTaken, ValidationFailed
from barbershop.core.models import BOOKING_CONFIRMED, Booking
from barbershop.core.phone import mask_phone, normalize_phone
from barbershop.services.availability import SlotAvailability, parse_booking_date
from barbershop.services.notifications import (
    KIND_BOOKING_CANCELLED,
    KIND_BOOKING_CONFIRMATION,
    KIND_BOOKING_UPDATED,
    Notifier,
    booking_payload,
    dispatch_after_commit,
)
from barbershop.services.verification import PhoneVerifier

logger = logging.getLogger(__name__)

NAME_RE = re.compile(r"^(?:[^\W\d_]|[\s\-'])+$")
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100

UPDATABLE_FIELDS = ("customer_name", "customer_phone", "booking_date", "booking_time")


def validate_customer_name(name: Optional[str]) -> str:
    """Letters (any script), spaces, hyphens and apostrophes."""
    value = (name or "").strip()
    if len(value) < NAME_MIN_LENGTH:
        raise ValidationFailed("Customer name is too short (minimum 2 characters)")
    if len(value) > NAME_MAX_LENGTH:
        raise ValidationFailed("Customer name is too long (maximum 100 characters)")
    if not NAME_RE.match(value):
        raise ValidationFailed("Customer name contains invalid characters")
    return value


def _parse_booking_id(booking_id) -> uuid.UUID:
    if isinstance(booking_id, uuid.UUID):
        return booking_id
    try:
        return uuid.UUID(str(booking_id))
    except ValueError:
        raise NotFound("Booking not found")


class BookingLedger:
    def __init__(
        self,
        db: Session,
        verifier: Optional[PhoneVerifier] = None,
        availability: Optional[SlotAvailability] = None,
        notify: Optional[Notifier] = None,
    ):
        self.db = db
        self.verifier = verifier or PhoneVerifier(db)
        self.availability = availability or SlotAvailability(db)
        self.notify = notify

    def _commit_claim(self, booking: Booking) -> None:
        """Flush and commit a new or moved booking, mapping the unique index."""
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.info(
                f"Concurrent claim lost for {booking.booking_date} {booking.booking_time}"
            )
            raise SlotTaken()
        self.db.commit()
        self.db.refresh(booking)

    def reserve(
        self,
        phone: str,
        code: str,
        name: str,
        booking_date,
        booking_time: str,
        now: Optional[datetime] = None,
    ) -> Booking:
        """Verify the code and claim the slot as a single unit of work.

        If the slot turns out to be taken or closed the whole unit rolls
        back, including the code consumption.
        """
        canonical = normalize_phone(phone)
        customer_name = validate_customer_name(name)
        slot_date = parse_booking_date(booking_date)
        now = now or now_local()

        try:
            code_now = now.astimezone(timezone.utc).replace(tzinfo=None)
            if not self.verifier.consume(canonical, code, now=code_now):
                logger.info(f"Reservation rejected, bad code for {mask_phone(canonical)}")
                raise BadCode()

            self.availability.check_slot(
                slot_date, booking_time, now=now, enforce_horizon=True
            )

            booking = Booking(
                customer_name=customer_name,
                customer_phone=canonical,
                booking_date=slot_date,
                booking_time=booking_time,
                status=BOOKING_CONFIRMED,
                reminder_sent=False,
                source="web",
            )
            self.db.add(booking)
            self._commit_claim(booking)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Booking {booking.id} created for {slot_date} {booking_time}")
        dispatch_after_commit(
            self.notify, canonical, KIND_BOOKING_CONFIRMATION, booking_payload(booking)
        )
        return booking

    def admin_reserve(self, name: str, phone: str, booking_date, booking_time: str) -> Booking:
        """Create a booking on behalf of a customer; the caller is a trusted admin."""
        canonical = normalize_phone(phone)
        customer_name = validate_customer_name(name)
        slot_date = parse_booking_date(booking_date)

        try:
            self.availability.check_slot(slot_date, booking_time, allow_past=True)
            booking = Booking(
                customer_name=customer_name,
                customer_phone=canonical,
                booking_date=slot_date,
                booking_time=booking_time,
                status=BOOKING_CONFIRMED,
                reminder_sent=False,
                source="admin",
            )
            self.db.add(booking)
            self._commit_claim(booking)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Admin booking {booking.id} created for {slot_date} {booking_time}")
        dispatch_after_commit(
            self.notify, canonical, KIND_BOOKING_CONFIRMATION, booking_payload(booking)
        )
        return booking

    def get(self, booking_id) -> Booking:
        booking = self.db.get(Booking, _parse_booking_id(booking_id))
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    def update(self, booking_id, patch: dict) -> Booking:
        """Apply an admin edit. Moving to another slot re-runs the slot check."""
        booking = self.get(booking_id)
        changes = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS and v is not None}
        if not changes:
            return booking

        try:
            if "customer_name" in changes:
                booking.customer_name = validate_customer_name(changes["customer_name"])
            if "customer_phone" in changes:
                booking.customer_phone = normalize_phone(changes["customer_phone"])

            new_date = (
                parse_booking_date(changes["booking_date"])
                if "booking_date" in changes
                else booking.booking_date
            )
            new_time = changes.get("booking_time", booking.booking_time)
            slot_changed = (new_date, new_time) != (booking.booking_date, booking.booking_time)

            if slot_changed:
                self.availability.check_slot(
                    new_date, new_time, exclude_booking_id=booking.id, allow_past=True
                )
                booking.booking_date = new_date
                booking.booking_time = new_time
                booking.reminder_sent = False

            self._commit_claim(booking)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Booking {booking.id} updated")
        dispatch_after_commit(
            self.notify, booking.customer_phone, KIND_BOOKING_UPDATED, booking_payload(booking)
        )
        return booking

    def cancel(self, booking_id) -> None:
        """Hard-delete a booking, freeing its slot."""
        booking = self.get(booking_id)
        phone = booking.customer_phone
        payload = booking_payload(booking)

        try:
            self.db.delete(booking)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Booking {booking_id} cancelled")
        dispatch_after_commit(self.notify, phone, KIND_BOOKING_CANCELLED, payload)

    def nearest_upcoming(self, phone: str, now: Optional[datetime] = None) -> Optional[Booking]:
        canonical = normalize_phone(phone)
        now = now or now_local()
        today = now.astimezone(booking_timezone()).date()

        candidates = (
            self.db.query(Booking)
            .filter(
                Booking.customer_phone == canonical,
                Booking.status == BOOKING_CONFIRMED,
                Booking.booking_date >= today,
            )
            .order_by(Booking.booking_date.asc(), Booking.booking_time.asc())
            .all()
        )
        for booking in candidates:
            if slot_start(booking.booking_date, booking.booking_time) >= now:
                return booking
        return None

    def list_bookings(self, booking_date: Optional[date] = None) -> List[Booking]:
        query = self.db.query(Booking).filter(Booking.status == BOOKING_CONFIRMED)
        if booking_date is not None:
            query = query.filter(Booking.booking_date == booking_date)
        return query.order_by(Booking.booking_date.asc(), Booking.booking_time.asc()).all()

    def booked_times(self, booking_date: date):
        return self.availability.booked_times(booking_date)
