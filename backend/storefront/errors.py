"""
Checkout Errors — Domain exception taxonomy.

Every error raised by a service derives from CheckoutError and carries the
HTTP status and machine-readable code the route boundary reports.
"""
from typing import Dict, List, Optional


class CheckoutError(Exception):
    status_code = 500
    error_code = "CHECKOUT_ERROR"

    def __init__(self, message: str, extra: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> Dict:
        body = {"detail": self.message, "error_code": self.error_code}
        body.update(self.extra)
        return body


class ValidationError(CheckoutError):
    """Shipping form incomplete or malformed. Raised before any write."""

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, errors: List[str]):
        super().__init__(errors[0] if errors else "Invalid input", {"errors": errors})
        self.errors = errors


class NotFoundError(CheckoutError):
    status_code = 404
    error_code = "NOT_FOUND"


class SessionNotFoundError(NotFoundError):
    """Recovery session absent, already verified or expired."""

    error_code = "PAYMENT_SESSION_NOT_FOUND"

    def __init__(self, session_id: str, support_email: str = "", support_phone: str = ""):
        contact = " or ".join(c for c in (support_email, support_phone) if c)
        message = "Payment session not found or expired. Please contact support"
        message += f" ({contact})" if contact else ""
        message += f" with session id {session_id}."
        super().__init__(message, {"session_id": session_id})
        self.session_id = session_id


class WriteFailure(CheckoutError):
    """Backend insert/update rejected. Not retried."""

    status_code = 503
    error_code = "WRITE_FAILED"

    def __init__(self, message: str = "Failed to process order. Please try again.", extra: Optional[Dict] = None):
        super().__init__(message, extra)


class DuplicateOrderError(WriteFailure):
    status_code = 409
    error_code = "DUPLICATE_ORDER"

    def __init__(self, payment_session_id: str):
        super().__init__(
            f"An order already exists for payment session {payment_session_id}",
            {"session_id": payment_session_id},
        )
        self.payment_session_id = payment_session_id


class PaymentNotVerifiedError(CheckoutError):
    status_code = 402
    error_code = "PAYMENT_NOT_VERIFIED"


class InvalidStatusTransition(CheckoutError):
    status_code = 409
    error_code = "INVALID_STATUS_TRANSITION"


class RateLimitExceeded(CheckoutError):
    status_code = 429
    error_code = "RATE_LIMITED"


class NotificationFailure(CheckoutError):
    """Email relay rejected or unreachable. Always swallowed by the notifier."""

    error_code = "NOTIFICATION_FAILED"
