from datetime import datetime, timedelta
from typing import Optional
import logging
import math
import re
import secrets

from sqlalchemy import func
from sqlalchemy.orm import Session

from barbershop.core.config import settings
from barbershop.core.errors import BadCode, InvalidPhone, RateLimited
from barbershop.core.models import SmsRateLimit, VerificationCode
from barbershop.core.phone import is_valid_local_phone, mask_phone, normalize_phone, to_local_phone
from barbershop.services.notifications import (
    KIND_VERIFICATION_CODE,
    Notifier,
    dispatch_after_commit,
)

logger = logging.getLogger(__name__)

_CODE_RE = re.compile(r"^\d{6}$")
RATE_LIMIT_ACTION = "verification"


def generate_code() -> str:
    return str(100000 + secrets.randbelow(900000))


class PhoneVerifier:
    """One-time SMS codes proving control of a phone number.

    ``now`` arguments are naive UTC, matching the stored timestamps.
    """

    def __init__(self, db: Session, notify: Optional[Notifier] = None):
        self.db = db
        self.notify = notify

    def _is_test_account(self, phone: str) -> bool:
        if settings.is_production or not settings.TEST_VERIFICATION_CODE:
            return False
        return to_local_phone(phone) in settings.test_phone_numbers

    def _check_rate_limit(self, phone: str, now: datetime) -> None:
        window = timedelta(seconds=settings.SMS_RATE_LIMIT_WINDOW_SECONDS)
        window_start = now - window
        recent_count, oldest = (
            self.db.query(func.count(SmsRateLimit.id), func.min(SmsRateLimit.created_at))
            .filter(
                SmsRateLimit.phone == phone,
                SmsRateLimit.action == RATE_LIMIT_ACTION,
                SmsRateLimit.created_at > window_start,
            )
            .one()
        )
        if recent_count and recent_count >= settings.SMS_RATE_LIMIT_REQUESTS:
            retry_after = max(1, math.ceil((oldest + window - now).total_seconds()))
            logger.info(f"Rate limited verification request for {mask_phone(phone)}")
            raise RateLimited(retry_after=retry_after)

    def request_code(self, phone: str, now: Optional[datetime] = None) -> dict:
        if not is_valid_local_phone(phone):
            raise InvalidPhone()
        canonical = normalize_phone(phone)
        now = now or datetime.utcnow()

        self._check_rate_limit(canonical, now)
        self.db.add(SmsRateLimit(phone=canonical, action=RATE_LIMIT_ACTION, created_at=now))

        test_account = self._is_test_account(canonical)
        if test_account:
            code = settings.TEST_VERIFICATION_CODE
            expires_at = now + timedelta(days=settings.TEST_CODE_TTL_DAYS)
        else:
            code = generate_code()
            expires_at = now + timedelta(minutes=settings.VERIFICATION_CODE_TTL_MINUTES)

        try:
            self.db.query(VerificationCode).filter(VerificationCode.phone == canonical).delete(
                synchronize_session=False
            )
            self.db.add(
                VerificationCode(
                    phone=canonical,
                    code=code,
                    expires_at=expires_at,
                    verified=False,
                    created_at=now,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if test_account:
            logger.info(f"Test account code issued without SMS: {mask_phone(canonical)}")
        else:
            dispatch_after_commit(self.notify, canonical, KIND_VERIFICATION_CODE, {"code": code})
            logger.info(f"Verification code issued for {mask_phone(canonical)}")

        return {"test_account": test_account}

    def consume(self, phone: str, code: str, now: Optional[datetime] = None) -> bool:
        """Mark a matching live code as used; does not commit.

        The conditional update is the single read-and-mark step, so two
        callers racing on the same code cannot both see it succeed.
        """
        if not code or not _CODE_RE.match(code):
            return False
        try:
            canonical = normalize_phone(phone)
        except InvalidPhone:
            return False
        now = now or datetime.utcnow()

        updated = (
            self.db.query(VerificationCode)
            .filter(
                VerificationCode.phone == canonical,
                VerificationCode.code == code,
                VerificationCode.verified.is_(False),
                VerificationCode.expires_at > now,
            )
            .update({VerificationCode.verified: True}, synchronize_session=False)
        )
        return updated == 1

    def verify(self, phone: str, code: str, now: Optional[datetime] = None) -> None:
        if not self.consume(phone, code, now=now):
            self.db.rollback()
            logger.info(f"Invalid or expired code for {mask_phone(phone)}")
            raise BadCode()
        self.db.commit()
