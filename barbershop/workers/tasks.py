from .celery_app import celery_app
from barbershop.core.config import settings
from barbershop.core.db import SessionLocal
from barbershop.core.errors import DispatchFailed
from barbershop.core.phone import mask_phone
from barbershop.services.ledger import BookingLedger
from barbershop.services.notifications import NotificationDispatcher
import logging

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True, max_retries=settings.NOTIFICATION_MAX_RETRIES, name="send_notification_task"
)
def send_notification_task(self, phone: str, kind: str, payload: dict):
    """Deliver one notification, retrying with backoff while the gateway fails"""
    result = NotificationDispatcher().send(phone, kind, payload)
    if result.ok:
        return {"status": "sent", "kind": kind}

    countdown = 30 * (2**self.request.retries)  # 30s, 1min, 2min
    raise self.retry(exc=DispatchFailed(result.error), countdown=countdown)


def enqueue_notification(phone: str, kind: str, payload: dict) -> None:
    """Fire-and-forget hand-off used after a booking change has committed"""
    try:
        send_notification_task.delay(phone, kind, payload)
    except Exception as e:
        logger.error(f"Could not queue {kind} notification for {mask_phone(phone)}: {e}")


@celery_app.task(bind=True, max_retries=3, name="process_inbound_sms_task")
def process_inbound_sms_task(self, from_phone: str, body: str):
    db = SessionLocal()
    try:
        ledger = BookingLedger(db, notify=enqueue_notification)
        outcome = NotificationDispatcher().handle_inbound_reply(ledger, from_phone, body)
        logger.info(f"Inbound SMS from {mask_phone(from_phone)} processed: {outcome}")
        return {"outcome": outcome}
    except Exception as exc:
        db.rollback()
        logger.error(f"Inbound SMS processing failed for {mask_phone(from_phone)}: {exc}")
        raise self.retry(exc=exc, countdown=60 * (2**self.request.retries))
    finally:
        db.close()


def enqueue_inbound_reply(from_phone: str, body: str) -> None:
    try:
        process_inbound_sms_task.delay(from_phone, body)
    except Exception as e:
        logger.error(f"Could not queue inbound SMS from {mask_phone(from_phone)}: {e}")


@celery_app.task(name="send_reminders_task")
def send_reminders_task():
    """Hourly sweep reminding tomorrow's customers"""
    db = SessionLocal()
    try:
        return NotificationDispatcher().send_reminders(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Reminder sweep failed: {e}")
        raise
    finally:
        db.close()
