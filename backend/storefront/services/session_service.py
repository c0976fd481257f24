"""
Session Service — Mints checkout session ids and session snapshots.
"""
import secrets
import string
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List

from storefront.config import get_settings
from storefront.schemas.schemas import CartLine, CheckoutSession, ShippingForm
from storefront.utils.clock import utcnow

settings = get_settings()

_BASE36 = string.digits + string.ascii_lowercase


class SessionService:
    """Generates checkout session identifiers."""

    @staticmethod
    def generate_session_id(now: datetime = None) -> str:
        """Build a session id from the epoch millisecond timestamp and a random suffix.

        Format: sess_<epoch-ms>_<9 base36 chars>. Uniqueness is probabilistic;
        nothing is checked against storage.
        """
        now = now or utcnow()
        millis = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
        suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
        return f"sess_{millis}_{suffix}"

    @staticmethod
    def start_session(
        amount: Decimal,
        cart: List[CartLine],
        form: ShippingForm,
        now: datetime = None,
        window_seconds: int = None,
    ) -> CheckoutSession:
        """Open a checkout session whose QR payload is valid for one countdown window."""
        now = now or utcnow()
        window = window_seconds or settings.QR_WINDOW_SECONDS
        return CheckoutSession(
            session_id=SessionService.generate_session_id(now),
            created_at=now,
            expires_at=now + timedelta(seconds=window),
            amount=amount,
            cart_snapshot=list(cart),
            shipping_form=form,
        )
