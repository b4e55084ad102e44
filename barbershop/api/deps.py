"""FastAPI dependencies wiring the services to a request's session.

The notifier and the inbound SMS hand-off default to Celery; tests override
them with in-process recorders.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from barbershop.core.db import get_db
from barbershop.services.admin_slots import AdminSlotControl
from barbershop.services.availability import SlotAvailability
from barbershop.services.ledger import BookingLedger
from barbershop.services.notifications import NotificationDispatcher
from barbershop.services.verification import PhoneVerifier
from barbershop.workers.tasks import enqueue_inbound_reply, enqueue_notification


def get_notifier():
    return enqueue_notification


def get_inbound_enqueuer():
    return enqueue_inbound_reply


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()


def get_verifier(db: Session = Depends(get_db), notify=Depends(get_notifier)) -> PhoneVerifier:
    return PhoneVerifier(db, notify=notify)


def get_availability(db: Session = Depends(get_db)) -> SlotAvailability:
    return SlotAvailability(db)


def get_ledger(db: Session = Depends(get_db), notify=Depends(get_notifier)) -> BookingLedger:
    return BookingLedger(db, notify=notify)


def get_admin_slots(db: Session = Depends(get_db)) -> AdminSlotControl:
    return AdminSlotControl(db)
