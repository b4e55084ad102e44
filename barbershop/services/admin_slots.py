from datetime import date
from typing import List, Optional
import logging
import uuid

from sqlalchemy.orm import Session

from barbershop.core.errors import SlotTaken
from barbershop.core.models import BOOKING_CONFIRMED, Booking, ClosedSlot
from barbershop.services.availability import parse_booking_date, validate_slot_time

logger = logging.getLogger(__name__)


class AdminSlotControl:
    """Opens and closes slots or whole days for the admin console"""

    def __init__(self, db: Session):
        self.db = db

    def close_slot(
        self, closed_date, closed_time: Optional[str] = None, reason: Optional[str] = None
    ) -> ClosedSlot:
        """Close one slot, or the whole day when ``closed_time`` is None.

        Refuses when a confirmed booking already sits in the closed range;
        the booking has to be moved or cancelled first.
        """
        slot_date = parse_booking_date(closed_date)
        if closed_time is not None:
            validate_slot_time(closed_time)

        query = self.db.query(Booking.id).filter(
            Booking.booking_date == slot_date,
            Booking.status == BOOKING_CONFIRMED,
        )
        if closed_time is not None:
            query = query.filter(Booking.booking_time == closed_time)
        if query.first() is not None:
            raise SlotTaken("Cannot close a slot that holds a confirmed booking")

        closed = ClosedSlot(
            closed_date=slot_date,
            closed_time=closed_time,
            reason=(reason or None),
        )
        try:
            self.db.add(closed)
            self.db.commit()
            self.db.refresh(closed)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Closed {slot_date} {closed_time or 'all day'}")
        return closed

    def open_slot(self, closed_slot_id) -> None:
        """Remove a closure; an unknown id is treated as already open."""
        try:
            slot_id = uuid.UUID(str(closed_slot_id))
        except ValueError:
            return

        deleted = self.db.query(ClosedSlot).filter(ClosedSlot.id == slot_id).delete(
            synchronize_session=False
        )
        self.db.commit()
        if deleted:
            logger.info(f"Opened closed slot {slot_id}")

    def list_closed(self, date_from: Optional[date] = None) -> List[ClosedSlot]:
        query = self.db.query(ClosedSlot)
        if date_from is not None:
            query = query.filter(ClosedSlot.closed_date >= date_from)
        return query.order_by(ClosedSlot.closed_date.asc(), ClosedSlot.closed_time.asc()).all()
