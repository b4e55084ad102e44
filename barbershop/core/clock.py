from datetime import date, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from barbershop.core.config import settings


def booking_timezone() -> ZoneInfo:
    try:
        return ZoneInfo(settings.BOOKING_TIMEZONE)
    except ZoneInfoNotFoundError:
        return ZoneInfo("UTC")


def now_local() -> datetime:
    return datetime.now(booking_timezone())


def parse_slot_time(value: str) -> time:
    return datetime.strptime(value, "%H:%M").time()


def slot_start(slot_date: date, slot_time: str) -> datetime:
    """Start of a slot as an aware datetime in the booking timezone."""
    return datetime.combine(slot_date, parse_slot_time(slot_time), tzinfo=booking_timezone())
