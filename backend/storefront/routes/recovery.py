"""
Recovery Routes — Turn a paid-but-unconfirmed UPI session into an order.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.database import get_db
from storefront.errors import SessionNotFoundError
from storefront.schemas.schemas import (
    GatewayWebhookRequest, PendingPaymentResponse, RecoveryRequest, RecoveryResponse,
)
from storefront.services.pending_payment_service import PendingPaymentService
from storefront.services.recovery_service import (
    PaymentVerificationStrategy, RecoveryService, ThirdPartyPolling, get_strategy,
)
from storefront.utils.rate_limiter import rate_limit

settings = get_settings()

router = APIRouter(prefix="/api/recovery", tags=["Recovery"])


def get_verification_strategy() -> PaymentVerificationStrategy:
    """FastAPI dependency: the configured payment verification strategy."""
    return get_strategy()


@router.get("/{session_id}", response_model=PendingPaymentResponse)
def get_pending_payment(session_id: str, db: Session = Depends(get_db)):
    """Look up a pending, unexpired payment session."""
    record = PendingPaymentService.get_pending_payment(db, session_id.strip())
    if not record:
        raise SessionNotFoundError(session_id, settings.SUPPORT_EMAIL, settings.SUPPORT_PHONE)
    return record


@router.post("/verify", response_model=RecoveryResponse)
def verify_payment(
    payload: RecoveryRequest,
    db: Session = Depends(get_db),
    strategy: PaymentVerificationStrategy = Depends(get_verification_strategy),
    _throttle: bool = Depends(rate_limit(
        requests=settings.RECOVERY_RATE_LIMIT,
        window=settings.RECOVERY_RATE_WINDOW_SECONDS,
        scope="recovery",
    )),
):
    """Verify a payment session and confirm its order."""
    order = RecoveryService.verify_payment_and_create_order(db, payload.session_id.strip(), strategy)
    return RecoveryResponse(
        success=True,
        message="Payment verified successfully! Your order has been created.",
        order_id=order.id,
        confirmation_path=f"/order-confirmation/{order.id}",
    )


@router.post("/webhook")
def gateway_webhook(payload: GatewayWebhookRequest, db: Session = Depends(get_db)):
    """Record a gateway's payment confirmation against a pending session."""
    if payload.status.upper() not in ThirdPartyPolling.SUCCESS_STATES:
        return {"ok": True, "recorded": False}

    record = RecoveryService.record_gateway_confirmation(db, payload.session_id, payload.reference)
    return {"ok": True, "recorded": True, "session_id": record.session_id}
