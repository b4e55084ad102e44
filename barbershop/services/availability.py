from datetime import date, datetime, timedelta
from typing import List, Optional, Set
import logging
import re
import uuid

from sqlalchemy.orm import Session

from barbershop.core.clock import booking_timezone, now_local, slot_start
from barbershop.core.config import settings
from barbershop.core.errors import BookingError, SlotClosed, SlotTaken, ValidationFailed
from barbershop.core.models import BOOKING_CONFIRMED, Booking, ClosedSlot

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def generate_time_slots() -> List[str]:
    """Slot start times from opening hour while the start is before closing."""
    slots = []
    current = settings.BOOKING_OPENING_HOUR * 60
    end = settings.BOOKING_CLOSING_HOUR * 60
    step = max(settings.BOOKING_SLOT_MINUTES, 1)
    while current < end:
        slots.append(f"{current // 60:02d}:{current % 60:02d}")
        current += step
    return slots


def is_on_grid(value: Optional[str]) -> bool:
    return value in generate_time_slots()


def parse_booking_date(value) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValidationFailed("Invalid date (format: YYYY-MM-DD)")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationFailed("Invalid date")


def validate_slot_time(value: Optional[str]) -> str:
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValidationFailed("Invalid time (format: HH:MM)")
    if not is_on_grid(value):
        raise ValidationFailed("Time is not on the booking grid")
    return value


def _as_local(now: Optional[datetime]) -> datetime:
    if now is None:
        return now_local()
    if now.tzinfo is None:
        return now.replace(tzinfo=booking_timezone())
    return now.astimezone(booking_timezone())


class SlotAvailability:
    """Read model over bookings and closed slots.

    Nothing here is cached; callers that are about to write must re-run
    ``check_slot`` inside their own transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def is_closed(self, slot_date: date, slot_time: Optional[str] = None) -> bool:
        if slot_date.weekday() in settings.closed_weekdays:
            return True

        day_closed = (
            self.db.query(ClosedSlot.id)
            .filter(ClosedSlot.closed_date == slot_date, ClosedSlot.closed_time.is_(None))
            .first()
        )
        if day_closed:
            return True

        if slot_time:
            time_closed = (
                self.db.query(ClosedSlot.id)
                .filter(
                    ClosedSlot.closed_date == slot_date,
                    ClosedSlot.closed_time == slot_time,
                )
                .first()
            )
            return time_closed is not None

        return False

    def booked_times(
        self, slot_date: date, exclude_booking_id: Optional[uuid.UUID] = None
    ) -> Set[str]:
        query = self.db.query(Booking.booking_time).filter(
            Booking.booking_date == slot_date,
            Booking.status == BOOKING_CONFIRMED,
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return {row[0] for row in query.all()}

    def check_slot(
        self,
        slot_date: date,
        slot_time: str,
        now: Optional[datetime] = None,
        exclude_booking_id: Optional[uuid.UUID] = None,
        allow_past: bool = False,
        enforce_horizon: bool = False,
    ) -> None:
        """Raise the reason a slot cannot be claimed, or return None.

        Conflicts are reported before timing: a taken slot is SlotTaken and a
        closed one SlotClosed regardless of the date. Only today's slots are
        checked against the clock.
        """
        validate_slot_time(slot_time)

        if slot_time in self.booked_times(slot_date, exclude_booking_id=exclude_booking_id):
            raise SlotTaken()

        if self.is_closed(slot_date, slot_time):
            raise SlotClosed()

        if not allow_past:
            current = _as_local(now)
            today = current.date()
            if slot_date == today and slot_start(slot_date, slot_time) < current:
                raise SlotClosed("This time slot has already started")
            if enforce_horizon and slot_date > today + timedelta(days=settings.BOOKING_DAYS_AHEAD):
                raise ValidationFailed("Date is too far in the future")

    def is_bookable(
        self, slot_date: date, slot_time: str, now: Optional[datetime] = None
    ) -> bool:
        try:
            self.check_slot(slot_date, slot_time, now=now)
        except BookingError:
            return False
        return True

    def day_overview(self, slot_date: date, now: Optional[datetime] = None) -> List[dict]:
        results = []
        for slot_time in generate_time_slots():
            try:
                self.check_slot(slot_date, slot_time, now=now, enforce_horizon=True)
                results.append({"time": slot_time, "available": True, "reason": None})
            except BookingError as e:
                results.append({"time": slot_time, "available": False, "reason": e.code})
        return results
