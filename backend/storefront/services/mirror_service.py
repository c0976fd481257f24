"""
Checkout Mirror — Device-local copy of the in-progress UPI checkout, used to
offer a resume on the same device.
"""
import json
import logging
import os
from datetime import datetime, timedelta
from typing import Optional

from storefront.config import get_settings
from storefront.schemas.schemas import CheckoutSession
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)
settings = get_settings()

MIRROR_KEY = "kichofy_pending_payment"


class CheckoutMirror:
    """One JSON document per device holding the latest checkout snapshot."""

    def __init__(self, directory: str = None, device_id: str = "default", resume_minutes: int = None):
        self.directory = directory or settings.MIRROR_DIR
        self.device_id = device_id
        self.resume_window = timedelta(minutes=resume_minutes or settings.RESUME_WINDOW_MINUTES)

    @property
    def path(self) -> str:
        return os.path.join(self.directory, f"{self.device_id}.{MIRROR_KEY}.json")

    def save(self, session: CheckoutSession, now: datetime = None):
        os.makedirs(self.directory, exist_ok=True)
        document = {
            "session_id": session.session_id,
            "timestamp": (now or utcnow()).isoformat(),
            "amount": str(session.amount),
            "session": session.model_dump(mode="json"),
        }
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(document, f)

    def load(self, now: datetime = None) -> Optional[CheckoutSession]:
        """Return the mirrored session if it is still inside the resume window.

        Stale or unreadable mirrors are dropped silently.
        """
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                document = json.load(f)
            saved_at = datetime.fromisoformat(document["timestamp"])
            session = CheckoutSession.model_validate(document["session"])
        except (OSError, ValueError, KeyError) as exc:
            logger.warning("Dropping unreadable checkout mirror: %s", exc)
            self.clear()
            return None

        if (now or utcnow()) - saved_at >= self.resume_window:
            self.clear()
            return None
        return session

    def clear(self):
        """Delete the mirror (order submitted or user declined the resume)."""
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
