from datetime import date as date_type
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field
import logging
import secrets

from barbershop.api.booking import BookingEnvelope, BookingOut, booking_out, closed_slot_out
from barbershop.api.deps import get_admin_slots, get_ledger
from barbershop.core.auth import ADMIN_ROLE, authenticate_admin, verify_access_token
from barbershop.core.config import settings
from barbershop.core.errors import Forbidden, Unauthorized
from barbershop.services.admin_slots import AdminSlotControl
from barbershop.services.availability import parse_booking_date
from barbershop.services.ledger import BookingLedger

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBasic(auto_error=False)


def _admin_auth(
    request: Request, credentials: Optional[HTTPBasicCredentials] = Depends(security)
):
    """Allow X-Admin-Token, an admin Bearer token, or HTTP Basic (ADMIN_USER/ADMIN_PASSWORD)."""
    # Check header token first
    header = request.headers.get("x-admin-token")
    if settings.ADMIN_TOKEN:
        if header and secrets.compare_digest(header, settings.ADMIN_TOKEN):
            return True

    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        payload = verify_access_token(authorization[7:].strip())
        if payload:
            if payload.get("role") != ADMIN_ROLE:
                logger.warning("Non-admin token used on admin endpoint")
                raise Forbidden()
            return True

    # Fallback to HTTP Basic if configured
    if credentials and authenticate_admin(credentials.username, credentials.password):
        return True

    # Nothing matched
    logger.warning("Admin authentication failed")
    raise Unauthorized()


class AdminBookingCreate(BaseModel):
    name: str = Field(..., max_length=100)
    phone: str = Field(..., pattern=r"^05\d{8}$")
    date: str = Field(..., max_length=10)
    time: str = Field(..., max_length=5)


class BookingPatch(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, pattern=r"^05\d{8}$")
    date: Optional[str] = Field(default=None, max_length=10)
    time: Optional[str] = Field(default=None, max_length=5)


class CloseSlotRequest(BaseModel):
    date: str = Field(..., max_length=10)
    time: Optional[str] = Field(default=None, max_length=5)
    reason: Optional[str] = Field(default=None, max_length=255)


class OpenSlotRequest(BaseModel):
    id: str = Field(..., max_length=64)


@router.post("/bookings", response_model=BookingEnvelope)
def admin_create_booking(
    payload: AdminBookingCreate,
    ledger: BookingLedger = Depends(get_ledger),
    _auth: bool = Depends(_admin_auth),
):
    booking = ledger.admin_reserve(payload.name, payload.phone, payload.date, payload.time)
    return BookingEnvelope(booking=booking_out(booking))


@router.get("/bookings", response_model=List[BookingOut])
def admin_list_bookings(
    date: Optional[str] = Query(default=None),
    ledger: BookingLedger = Depends(get_ledger),
    _auth: bool = Depends(_admin_auth),
):
    booking_date = parse_booking_date(date) if date else None
    return [booking_out(b) for b in ledger.list_bookings(booking_date)]


@router.patch("/bookings/{booking_id}", response_model=BookingEnvelope)
def admin_update_booking(
    booking_id: str,
    payload: BookingPatch,
    ledger: BookingLedger = Depends(get_ledger),
    _auth: bool = Depends(_admin_auth),
):
    booking = ledger.update(
        booking_id,
        {
            "customer_name": payload.name,
            "customer_phone": payload.phone,
            "booking_date": payload.date,
            "booking_time": payload.time,
        },
    )
    return BookingEnvelope(booking=booking_out(booking))


@router.delete("/bookings/{booking_id}")
def admin_delete_booking(
    booking_id: str,
    ledger: BookingLedger = Depends(get_ledger),
    _auth: bool = Depends(_admin_auth),
):
    ledger.cancel(booking_id)
    return {"ok": True}


@router.post("/slots/close")
def admin_close_slot(
    payload: CloseSlotRequest,
    slots: AdminSlotControl = Depends(get_admin_slots),
    _auth: bool = Depends(_admin_auth),
):
    closed = slots.close_slot(payload.date, payload.time, payload.reason)
    return closed_slot_out(closed)


@router.post("/slots/open")
def admin_open_slot(
    payload: OpenSlotRequest,
    slots: AdminSlotControl = Depends(get_admin_slots),
    _auth: bool = Depends(_admin_auth),
):
    slots.open_slot(payload.id)
    return {"ok": True}


@router.get("/slots/closed")
def admin_list_closed_slots(
    date_from: Optional[str] = Query(default=None),
    slots: AdminSlotControl = Depends(get_admin_slots),
    _auth: bool = Depends(_admin_auth),
) -> List[dict]:
    start: Optional[date_type] = parse_booking_date(date_from) if date_from else None
    return [closed_slot_out(s) for s in slots.list_closed(start)]
