"""
UPI Service — Payment URI construction, QR rendering and the rotating
countdown presenter for UPI checkout.
"""
import asyncio
import logging
from base64 import b64encode
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from io import BytesIO
from typing import List, Optional
from urllib.parse import quote

import qrcode

from storefront.config import get_settings
from storefront.schemas.schemas import CheckoutSession
from storefront.services.session_service import SessionService
from storefront.utils.clock import utcnow
from storefront.utils.validators import normalize_upi_id

logger = logging.getLogger(__name__)
settings = get_settings()


def format_amount(amount) -> str:
    """Two-decimal rendering used in the am= field."""
    return str(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def payment_note(session_id: str) -> str:
    return f"Order {session_id}"


def build_payment_uri(payee_id: str, payee_name: str, amount, note: str, currency: str = "INR") -> str:
    """Build a UPI deep link.

    Field order is pa, pn, am, tn, cu; common wallet apps expect it.
    """
    return (
        f"upi://pay?pa={normalize_upi_id(payee_id)}"
        f"&pn={quote(payee_name)}"
        f"&am={format_amount(amount)}"
        f"&tn={quote(note, safe='')}"
        f"&cu={currency}"
    )


def render_qr_data_url(payload: str) -> str:
    """Render a payload as a PNG QR code and return it as a data URL."""
    img = qrcode.make(payload)
    buffered = BytesIO()
    img.save(buffered, format="PNG")
    return "data:image/png;base64," + b64encode(buffered.getvalue()).decode("utf-8")


class QRPaymentPresenter:
    """Shows one checkout session as a UPI QR code with a visible countdown.

    States: Active(time_left) while counting down; when time_left reaches 0
    the presenter rotates: a new session id is minted, the snapshot is
    written to the device mirror, and the countdown restarts. Rotation never
    touches pending records already persisted for earlier session ids.
    """

    def __init__(
        self,
        session: CheckoutSession,
        mirror=None,
        window_seconds: int = None,
        warning_seconds: int = None,
        payee_id: str = None,
        payee_name: str = None,
    ):
        self.session = session
        self.mirror = mirror
        self.window_seconds = window_seconds or settings.QR_WINDOW_SECONDS
        self.warning_seconds = warning_seconds if warning_seconds is not None else settings.QR_WARNING_SECONDS
        self.payee_id = payee_id or settings.UPI_PAYEE_ID
        self.payee_name = payee_name or settings.UPI_PAYEE_NAME
        self.time_left = self.window_seconds
        self.previous_session_ids: List[str] = []
        self._task: Optional[asyncio.Task] = None

        if self.mirror is not None:
            self.mirror.save(self.session)

    @property
    def payment_uri(self) -> str:
        return build_payment_uri(
            self.payee_id,
            self.payee_name,
            self.session.amount,
            payment_note(self.session.session_id),
            settings.CURRENCY,
        )

    @property
    def expiring_soon(self) -> bool:
        """Visual flag only; rotation timing is unaffected."""
        return self.time_left <= self.warning_seconds

    def qr_data_url(self) -> str:
        return render_qr_data_url(self.payment_uri)

    def tick(self) -> bool:
        """Advance the countdown by one second. Returns True if it rotated."""
        self.time_left -= 1
        if self.time_left <= 0:
            self.rotate()
            return True
        return False

    def rotate(self) -> CheckoutSession:
        old_id = self.session.session_id
        now = utcnow()
        new_id = SessionService.generate_session_id(now)
        while new_id == old_id:
            new_id = SessionService.generate_session_id(now)

        self.previous_session_ids.append(old_id)
        self.session = self.session.model_copy(update={
            "session_id": new_id,
            "created_at": now,
            "expires_at": now + timedelta(seconds=self.window_seconds),
        })
        if self.mirror is not None:
            self.mirror.save(self.session)
        self.time_left = self.window_seconds

        logger.info("QR session rotated", extra={"session_id": new_id})
        return self.session

    # ─── Countdown loop ──────────────────────────────────────────────
    async def _countdown(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            self.tick()

    def start(self, interval: float = 1.0) -> asyncio.Task:
        """Start ticking on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._countdown(interval))
        return self._task

    def stop(self):
        """Cancel the countdown. Persisted records are left alone."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
