from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional
import logging

import httpx
from sqlalchemy.orm import Session

from barbershop.core.clock import booking_timezone, now_local, slot_start
from barbershop.core.config import settings
from barbershop.core.errors import DispatchFailed, InvalidPhone, NotFound
from barbershop.core.models import BOOKING_CONFIRMED, Booking
from barbershop.core.phone import mask_phone, normalize_phone

logger = logging.getLogger(__name__)

KIND_VERIFICATION_CODE = "verification_code"
KIND_BOOKING_CONFIRMATION = "booking_confirmation"
KIND_BOOKING_UPDATED = "booking_updated"
KIND_BOOKING_CANCELLED = "booking_cancelled"
KIND_BOOKING_REMINDER = "booking_reminder"
KIND_CANCELLATION_REFUSED = "cancellation_refused"
KIND_NO_ACTIVE_BOOKING = "no_active_booking"

NOTIFICATION_KINDS = {
    KIND_VERIFICATION_CODE,
    KIND_BOOKING_CONFIRMATION,
    KIND_BOOKING_UPDATED,
    KIND_BOOKING_CANCELLED,
    KIND_BOOKING_REMINDER,
    KIND_CANCELLATION_REFUSED,
    KIND_NO_ACTIVE_BOOKING,
}

CANCEL_COMMAND = "0"

# Sunday first, indexed by (date.weekday() + 1) % 7
HEBREW_DAYS = ["ראשון", "שני", "שלישי", "רביעי", "חמישי", "שישי", "שבת"]

# (phone, kind, payload); implementations must not block on delivery
Notifier = Callable[[str, str, dict], None]


def format_date_localized(value) -> str:
    if isinstance(value, str):
        value = datetime.strptime(value, "%Y-%m-%d").date()
    day_name = HEBREW_DAYS[(value.weekday() + 1) % 7]
    return f"יום {day_name} {value.day}/{value.month}"


def render_message(kind: str, payload: dict) -> str:
    signature = settings.SMS_SIGNATURE
    when = format_date_localized(payload["date"]) if payload.get("date") else ""
    slot_time = payload.get("time", "")

    if kind == KIND_VERIFICATION_CODE:
        text = f"קוד האימות שלך הוא: {payload['code']}"
    elif kind == KIND_BOOKING_CONFIRMATION:
        text = (
            f"התור שלך אושר!\nתאריך: {when}\nשעה: {slot_time}\n\n"
            f"לביטול התור שלח {CANCEL_COMMAND} "
            f"(לפחות {settings.BOOKING_MIN_CANCEL_HOURS} שעות לפני התור)"
        )
    elif kind == KIND_BOOKING_UPDATED:
        text = f"התור שלך עודכן!\nתאריך: {when}\nשעה: {slot_time}"
    elif kind == KIND_BOOKING_CANCELLED:
        text = f"התור שלך בתאריך {when} בשעה {slot_time} בוטל."
    elif kind == KIND_BOOKING_REMINDER:
        text = (
            f"תזכורת! מחר יש לך תור 💈\nשם: {payload.get('name', '')}\n"
            f"תאריך: {when}\nשעה: {slot_time}\n\nנתראה!"
        )
    elif kind == KIND_CANCELLATION_REFUSED:
        text = (
            f"לא ניתן לבטל תור פחות מ-{settings.BOOKING_MIN_CANCEL_HOURS} שעות לפני המועד.\n"
            f"התור שלך ב-{when} בשעה {slot_time} נשאר בתוקף."
        )
    elif kind == KIND_NO_ACTIVE_BOOKING:
        text = "לא נמצא תור פעיל לביטול."
    else:
        raise ValueError(f"Unknown notification kind: {kind}")

    return f"{text}\n{signature}"


def booking_payload(booking: Booking) -> dict:
    return {
        "name": booking.customer_name,
        "date": booking.booking_date.isoformat(),
        "time": booking.booking_time,
    }


def dispatch_after_commit(
    notify: Optional[Notifier], phone: str, kind: str, payload: dict
) -> None:
    """Hand a notification off without letting its failure reach the caller."""
    if notify is None:
        return
    try:
        notify(phone, kind, payload)
    except Exception as e:
        logger.error(f"Failed to queue {kind} notification for {mask_phone(phone)}: {e}")


class SmsGateway:
    """HTTP client for the SMS gateway's message endpoint"""

    def __init__(
        self,
        url: str = None,
        login: str = None,
        password: str = None,
        timeout: float = None,
        transport: httpx.BaseTransport = None,
    ):
        self.url = url or settings.SMS_GATEWAY_URL
        self.login = login if login is not None else settings.SMS_GATEWAY_LOGIN
        self.password = password if password is not None else settings.SMS_GATEWAY_PASSWORD
        self.timeout = timeout or settings.SMS_GATEWAY_TIMEOUT
        self.transport = transport

    def send(self, phone: str, text: str) -> None:
        if not self.login or not self.password:
            raise DispatchFailed("SMS gateway not configured")

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    self.url,
                    auth=(self.login, self.password),
                    json={"textMessage": {"text": text}, "phoneNumbers": [phone]},
                )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DispatchFailed(f"SMS gateway request failed: {e}")

        if response.status_code >= 400:
            logger.error(f"SMS gateway error ({response.status_code}): {response.text[:200]}")
            raise DispatchFailed(f"SMS gateway returned {response.status_code}")


def get_sms_gateway() -> SmsGateway:
    return SmsGateway()


@dataclass
class SendResult:
    ok: bool
    error: Optional[str] = None


class NotificationDispatcher:
    """Formats booking lifecycle messages and delivers them over SMS"""

    def __init__(self, gateway: SmsGateway = None):
        self.gateway = gateway or get_sms_gateway()

    def send(self, phone: str, kind: str, payload: dict) -> SendResult:
        try:
            canonical = normalize_phone(phone)
            text = render_message(kind, payload or {})
            self.gateway.send(canonical, text)
        except (DispatchFailed, InvalidPhone, ValueError, KeyError) as e:
            logger.error(f"Sending {kind} to {mask_phone(phone)} failed: {e}")
            return SendResult(ok=False, error=str(e))

        logger.info(f"Sent {kind} to {mask_phone(canonical)}")
        return SendResult(ok=True)

    def handle_inbound_reply(
        self, ledger, from_phone: str, body: str, now: Optional[datetime] = None
    ) -> str:
        """Process an inbound SMS; returns a short outcome label.

        Only the cancel command is acted on. With several upcoming bookings
        the nearest one is cancelled.
        """
        if (body or "").strip() != CANCEL_COMMAND:
            return "ignored"

        try:
            phone = normalize_phone(from_phone)
        except InvalidPhone:
            logger.warning(f"Cancel request from unrecognised number {mask_phone(from_phone)}")
            return "invalid_sender"

        now = now or now_local()
        booking = ledger.nearest_upcoming(phone, now=now)
        if booking is None:
            logger.info(f"No upcoming booking to cancel for {mask_phone(phone)}")
            self.send(phone, KIND_NO_ACTIVE_BOOKING, {})
            return "no_booking"

        start = slot_start(booking.booking_date, booking.booking_time)
        hours_until = (start - now).total_seconds() / 3600
        if hours_until < settings.BOOKING_MIN_CANCEL_HOURS:
            logger.info(
                f"Cancellation too late for booking {booking.id}: {hours_until:.1f}h before start"
            )
            self.send(phone, KIND_CANCELLATION_REFUSED, booking_payload(booking))
            return "refused"

        try:
            ledger.cancel(booking.id)
        except NotFound:
            self.send(phone, KIND_NO_ACTIVE_BOOKING, {})
            return "no_booking"

        logger.info(f"Booking {booking.id} cancelled via SMS")
        return "cancelled"

    def send_reminders(self, db: Session, now: Optional[datetime] = None) -> dict:
        """Remind tomorrow's customers; safe to re-run after partial failure."""
        now = now or now_local()
        if now.tzinfo is not None:
            now = now.astimezone(booking_timezone())
        tomorrow: date = now.date() + timedelta(days=1)

        bookings = (
            db.query(Booking)
            .filter(
                Booking.booking_date == tomorrow,
                Booking.status == BOOKING_CONFIRMED,
                Booking.reminder_sent.is_(False),
            )
            .order_by(Booking.booking_time.asc())
            .all()
        )

        sent = 0
        failed = 0
        for booking in bookings:
            result = self.send(booking.customer_phone, KIND_BOOKING_REMINDER, booking_payload(booking))
            if not result.ok:
                failed += 1
                continue
            try:
                booking.reminder_sent = True
                db.commit()
                sent += 1
            except Exception as e:
                db.rollback()
                failed += 1
                logger.error(f"Failed to mark reminder sent for {booking.id}: {e}")

        logger.info(f"Reminders for {tomorrow}: {sent} sent, {failed} failed")
        return {"date": tomorrow.isoformat(), "sent": sent, "failed": failed, "total": len(bookings)}
