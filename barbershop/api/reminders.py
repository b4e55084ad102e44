from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPBasicCredentials
from sqlalchemy.orm import Session
import secrets

from barbershop.api.admin import _admin_auth, security
from barbershop.api.deps import get_dispatcher
from barbershop.core.config import settings
from barbershop.core.db import get_db
from barbershop.services.notifications import NotificationDispatcher

router = APIRouter()


def _scheduler_auth(
    request: Request, credentials: Optional[HTTPBasicCredentials] = Depends(security)
):
    """The external scheduler sends X-Cron-Token; admins may trigger a sweep too."""
    header = request.headers.get("x-cron-token")
    if settings.CRON_TOKEN and header and secrets.compare_digest(header, settings.CRON_TOKEN):
        return True
    return _admin_auth(request, credentials)


@router.post("/send")
def send_reminders(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    _auth: bool = Depends(_scheduler_auth),
):
    return dispatcher.send_reminders(db)
