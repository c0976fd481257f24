"""
Notification Service — Order confirmation emails through the relay.

Sends are fire-and-forget: every failure is logged and swallowed, never retried.
"""
import logging
from typing import Any, Dict

import httpx

from storefront.config import get_settings
from storefront.errors import NotificationFailure
from storefront.utils.validators import validate_email

logger = logging.getLogger(__name__)
settings = get_settings()


class NotificationService:
    @staticmethod
    def order_summary(order) -> Dict[str, Any]:
        """Plain-JSON summary of an order, safe to hand to a background task."""
        return {
            "order_id": order.id,
            "user_id": order.user_id,
            "total_amount": str(order.total_amount),
            "status": order.status,
            "payment_status": order.payment_status,
            "payment_session_id": order.payment_session_id,
            "shipping_address": order.shipping_address or {},
            "items": [
                {
                    "product_id": item.product_id,
                    "name": item.product_name,
                    "quantity": item.quantity,
                    "price": str(item.price),
                    "size": item.size,
                    "color": item.color,
                }
                for item in order.items
            ],
            "created_at": order.created_at.isoformat() if order.created_at else None,
        }

    @staticmethod
    def _post(payload: Dict[str, Any]):
        if not settings.EMAIL_RELAY_URL:
            raise NotificationFailure("Email relay is not configured")
        if not validate_email(payload.get("to")):
            raise NotificationFailure(f"Recipient is not a deliverable address: {payload.get('to')!r}")
        try:
            response = httpx.post(
                settings.EMAIL_RELAY_URL,
                json=payload,
                timeout=settings.EMAIL_RELAY_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationFailure(f"Email relay error: {exc}") from exc

    @staticmethod
    def send_order_confirmation(summary: Dict[str, Any]) -> bool:
        """Send the order confirmation email. Returns False on any failure."""
        recipient = (summary.get("shipping_address") or {}).get("email")
        payload = {
            "from": settings.EMAIL_FROM,
            "to": recipient,
            "subject": f"Order Confirmed - {summary.get('order_id')}",
            "template": "order_confirmation",
            "order": summary,
        }
        try:
            NotificationService._post(payload)
        except NotificationFailure as exc:
            logger.warning(
                "Order confirmation email not sent: %s", exc.message,
                extra={"order_id": summary.get("order_id")},
            )
            return False

        logger.info("Order confirmation email sent", extra={"order_id": summary.get("order_id")})
        return True
