from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from barbershop.api.deps import get_availability, get_ledger
from barbershop.core.models import Booking, ClosedSlot
from barbershop.core.phone import to_local_phone
from barbershop.services.availability import SlotAvailability, parse_booking_date
from barbershop.services.ledger import BookingLedger

router = APIRouter()


class VerifyAndBookRequest(BaseModel):
    phone: str = Field(..., pattern=r"^05\d{8}$")
    code: str = Field(..., max_length=6)
    name: str = Field(..., max_length=100)
    date: str = Field(..., max_length=10)
    time: str = Field(..., max_length=5)


class BookingOut(BaseModel):
    id: str
    customer_name: str
    customer_phone: str
    booking_date: str
    booking_time: str
    status: str
    reminder_sent: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BookingEnvelope(BaseModel):
    booking: BookingOut


class SlotItem(BaseModel):
    time: str
    available: bool
    reason: Optional[str] = None


class DaySlots(BaseModel):
    date: str
    slots: List[SlotItem]


def booking_out(booking: Booking) -> BookingOut:
    return BookingOut(
        id=str(booking.id),
        customer_name=booking.customer_name,
        customer_phone=to_local_phone(booking.customer_phone),
        booking_date=booking.booking_date.isoformat(),
        booking_time=booking.booking_time,
        status=booking.status,
        reminder_sent=bool(booking.reminder_sent),
        created_at=booking.created_at.isoformat() if booking.created_at else None,
        updated_at=booking.updated_at.isoformat() if booking.updated_at else None,
    )


def closed_slot_out(slot: ClosedSlot) -> dict:
    return {
        "id": str(slot.id),
        "closed_date": slot.closed_date.isoformat(),
        "closed_time": slot.closed_time,
        "reason": slot.reason,
        "created_at": slot.created_at.isoformat() if slot.created_at else None,
    }


@router.get("/slots", response_model=DaySlots)
def list_slots(date: str, availability: SlotAvailability = Depends(get_availability)):
    slot_date = parse_booking_date(date)
    return DaySlots(
        date=slot_date.isoformat(),
        slots=[SlotItem(**row) for row in availability.day_overview(slot_date)],
    )


@router.post("", response_model=BookingEnvelope)
def verify_and_book(
    payload: VerifyAndBookRequest, ledger: BookingLedger = Depends(get_ledger)
):
    """Customer booking: consumes the SMS code and claims the slot atomically"""
    booking = ledger.reserve(
        phone=payload.phone,
        code=payload.code,
        name=payload.name,
        booking_date=payload.date,
        booking_time=payload.time,
    )
    return BookingEnvelope(booking=booking_out(booking))
