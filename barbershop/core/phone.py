import re

from barbershop.core.config import settings
from barbershop.core.errors import InvalidPhone

LOCAL_PHONE_RE = re.compile(r"^05\d{8}$")
_SEPARATORS_RE = re.compile(r"[\s\-().]")


def is_valid_local_phone(phone: str | None) -> bool:
    return bool(phone) and bool(LOCAL_PHONE_RE.match(phone.strip()))


def normalize_phone(phone: str | None) -> str:
    """Return the canonical international form (+9725XXXXXXXX).

    Accepts the local mobile form (05XXXXXXXX) as well as numbers that are
    already international, with or without the leading plus.
    """
    if not phone:
        raise InvalidPhone()
    cc = settings.PHONE_COUNTRY_CODE
    cleaned = _SEPARATORS_RE.sub("", phone.strip())
    if cleaned.startswith("+"):
        cleaned = cleaned[1:]
    if cleaned.startswith("00" + cc):
        cleaned = cleaned[2:]
    if cleaned.startswith(cc):
        cleaned = "0" + cleaned[len(cc):]
    if not LOCAL_PHONE_RE.match(cleaned):
        raise InvalidPhone()
    return f"+{cc}{cleaned[1:]}"


def to_local_phone(phone: str) -> str:
    cc = settings.PHONE_COUNTRY_CODE
    if phone.startswith("+" + cc):
        return "0" + phone[len(cc) + 1:]
    if phone.startswith(cc):
        return "0" + phone[len(cc):]
    return phone


def mask_phone(phone: str | None) -> str:
    if not phone or len(phone) < 7:
        return "***"
    return f"{phone[:4]}***{phone[-3:]}"
