"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; the exception handlers in ``barbershop.main`` render
them as ``{"error": code, "detail": message}`` with the matching status.
"""

from typing import Any, Optional


class BookingError(Exception):
    code = "InternalError"
    status_code = 500
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None, detail: Any = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.code, "detail": self.detail or self.message}
        return body


class ValidationFailed(BookingError):
    code = "ValidationFailed"
    status_code = 400
    default_message = "Invalid input"


class InvalidPhone(ValidationFailed):
    default_message = "Invalid phone number (format: 05XXXXXXXX)"


class BadCode(BookingError):
    """Covers wrong, expired and already used codes alike."""

    code = "BadCode"
    status_code = 400
    default_message = "Invalid or expired verification code"


InvalidOrExpired = BadCode


class SlotTaken(BookingError):
    code = "SlotTaken"
    status_code = 409
    default_message = "This time slot is already booked"


class SlotClosed(BookingError):
    code = "SlotClosed"
    status_code = 409
    default_message = "This time slot is not available"


class RateLimited(BookingError):
    code = "RateLimited"
    status_code = 429
    default_message = "Too many attempts, try again later"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retryAfter"] = self.retry_after
        return body


class Unauthorized(BookingError):
    code = "Unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(BookingError):
    code = "Forbidden"
    status_code = 403
    default_message = "Forbidden"


class NotFound(BookingError):
    code = "NotFound"
    status_code = 404
    default_message = "Not found"


class DispatchFailed(BookingError):
    code = "DispatchFailed"
    status_code = 502
    default_message = "Message could not be delivered"
