"""
Checkout Routes — Cash on delivery and UPI checkout.
Handles: quotes, COD orders, UPI session start/rotation, payment claims and
same-device resume of an interrupted UPI checkout.
"""
import logging
import re
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.database import get_db
from storefront.errors import CheckoutError, NotFoundError, ValidationError, WriteFailure
from storefront.schemas.schemas import (
    CheckoutRequest, CheckoutSession, OrderPlacedResponse, OrderResponse,
    QuoteRequest, QuoteResponse, UPIClaimRequest, UPIRotateRequest, UPISessionResponse,
)
from storefront.services.mirror_service import CheckoutMirror
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.pending_payment_service import PendingPaymentService
from storefront.services.recovery_service import RecoveryService
from storefront.services.session_service import SessionService
from storefront.services.upi_service import QRPaymentPresenter
from storefront.utils.validators import validate_shipping_form

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api/checkout", tags=["Checkout"])

DEVICE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

REVIEW_MESSAGE = (
    "Your order is placed and waiting for payment verification. "
    "We will confirm your order once payment is verified."
)


def get_device_mirror(device_id: Optional[str] = Header(None, alias="x-device-id")) -> Optional[CheckoutMirror]:
    """FastAPI dependency: the caller's device mirror, or None without an x-device-id header."""
    if device_id is None:
        return None
    if not DEVICE_ID_PATTERN.match(device_id):
        raise ValidationError(["Invalid device id"])
    return CheckoutMirror(device_id=device_id)


def require_device_mirror(mirror: Optional[CheckoutMirror] = Depends(get_device_mirror)) -> CheckoutMirror:
    if mirror is None:
        raise ValidationError(["x-device-id header is required"])
    return mirror


def _session_response(session: CheckoutSession, mirror: CheckoutMirror = None) -> UPISessionResponse:
    presenter = QRPaymentPresenter(session, mirror=mirror)
    return UPISessionResponse(
        session=session,
        payment_uri=presenter.payment_uri,
        qr_data_url=presenter.qr_data_url(),
        window_seconds=presenter.window_seconds,
        warning_seconds=presenter.warning_seconds,
    )


def _placed(order, payment_pending: bool, message: str) -> OrderPlacedResponse:
    return OrderPlacedResponse(
        order=OrderResponse.model_validate(order),
        payment_pending=payment_pending,
        message=message,
        confirmation_path=f"/order-confirmation/{order.id}",
    )
@router.post("/quote", response_model=QuoteResponse)
def quote(payload: QuoteRequest):
    """Price a cart: subtotal, shipping and total."""
    totals = OrderService.calculate_totals(payload.items)
    return QuoteResponse(
        subtotal=totals.subtotal,
        shipping=totals.shipping,
        total=totals.total,
        free_shipping_threshold=settings.FREE_SHIPPING_THRESHOLD,
    )


@router.post("/cod", response_model=OrderPlacedResponse)
def place_cod_order(
    payload: CheckoutRequest,
    background_tasks: BackgroundTasks,
    user_id: str = Header(..., alias="x-user-id"),
    db: Session = Depends(get_db),
    mirror: Optional[CheckoutMirror] = Depends(get_device_mirror),
):
    """Place a cash-on-delivery order (confirmed, payment pending)."""
    validate_shipping_form(payload.shipping)

    order = OrderService.place_cod_order(db, user_id, payload.shipping, payload.items)
    if mirror is not None:
        mirror.clear()
    background_tasks.add_task(
        NotificationService.send_order_confirmation, NotificationService.order_summary(order),
    )
    return _placed(order, False, "Your order has been placed successfully!")


@router.post("/upi/session", response_model=UPISessionResponse)
def start_upi_session(
    payload: CheckoutRequest,
    user_id: str = Header(..., alias="x-user-id"),
    db: Session = Depends(get_db),
    mirror: Optional[CheckoutMirror] = Depends(get_device_mirror),
):
    """Mint a payment session and its QR payload; persist it for recovery."""
    validate_shipping_form(payload.shipping)

    totals = OrderService.calculate_totals(payload.items)
    session = SessionService.start_session(totals.total, payload.items, payload.shipping)
    try:
        PendingPaymentService.create_pending_payment(
            db, session.session_id, user_id, totals.total,
            PendingPaymentService.build_order_data(payload.shipping, payload.items),
        )
    except WriteFailure:
        logger.warning(
            "Continuing UPI checkout without a recovery record",
            extra={"session_id": session.session_id, "user_id": user_id},
        )
    return _session_response(session, mirror)


@router.post("/upi/rotate", response_model=UPISessionResponse)
def rotate_upi_session(
    payload: UPIRotateRequest,
    user_id: str = Header(..., alias="x-user-id"),
    mirror: Optional[CheckoutMirror] = Depends(get_device_mirror),
):
    """Replace a lapsed QR payload with a fresh session id and a full window."""
    presenter = QRPaymentPresenter(payload.session)
    presenter.rotate()
    logger.info(
        "UPI session rotated",
        extra={"user_id": user_id, "session_id": presenter.session.session_id},
    )
    return _session_response(presenter.session, mirror)


@router.post("/upi/claim", response_model=OrderPlacedResponse)
def claim_upi_payment(
    payload: UPIClaimRequest,
    background_tasks: BackgroundTasks,
    user_id: str = Header(..., alias="x-user-id"),
    db: Session = Depends(get_db),
    mirror: Optional[CheckoutMirror] = Depends(get_device_mirror),
):
    """Customer says the UPI payment is done: hold the order in payment review."""
    validate_shipping_form(payload.shipping)

    totals = OrderService.calculate_totals(payload.items)
    if not PendingPaymentService.get_pending_payment(db, payload.session_id):
        try:
            PendingPaymentService.create_pending_payment(
                db, payload.session_id, user_id, totals.total,
                PendingPaymentService.build_order_data(payload.shipping, payload.items),
            )
        except WriteFailure:
            logger.warning(
                "Payment review order written without a recovery record",
                extra={"session_id": payload.session_id, "user_id": user_id},
            )

    order = OrderService.place_upi_review_order(
        db, user_id, payload.session_id, payload.shipping, payload.items,
    )
    if mirror is not None:
        mirror.clear()
    payment_pending, message = True, REVIEW_MESSAGE

    if settings.AUTO_VERIFY_ON_CLAIM:
        try:
            order = RecoveryService.verify_payment_and_create_order(db, payload.session_id)
            payment_pending, message = False, "Payment verified! Your order is now confirmed."
        except CheckoutError as exc:
            logger.warning(
                "Automatic payment verification failed: %s", exc.message,
                extra={"session_id": payload.session_id, "order_id": order.id},
            )

    background_tasks.add_task(
        NotificationService.send_order_confirmation, NotificationService.order_summary(order),
    )
    return _placed(order, payment_pending, message)


@router.get("/upi/resume", response_model=UPISessionResponse)
def resume_upi_session(mirror: CheckoutMirror = Depends(require_device_mirror)):
    """Offer the UPI checkout this device left unfinished within the resume window."""
    session = mirror.load()
    if session is None:
        raise NotFoundError("No checkout to resume on this device")
    return _session_response(session)


@router.delete("/upi/resume")
def decline_upi_resume(mirror: CheckoutMirror = Depends(require_device_mirror)):
    """The customer declined to resume; forget the device copy."""
    mirror.clear()
    return {"ok": True}
