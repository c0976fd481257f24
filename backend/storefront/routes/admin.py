"""
Admin Routes — Order operations dashboard and manual payment reconciliation.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.schemas.schemas import (
    ExpireSweepResponse, OrderResponse, OrderStatisticsResponse, OrderStatusUpdate,
    PaymentStatusUpdate, PendingPaymentResponse,
)
from storefront.services.order_service import OrderService
from storefront.services.pending_payment_service import PendingPaymentService

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/dashboard", response_model=OrderStatisticsResponse)
def get_dashboard(user_id: Optional[str] = None, db: Session = Depends(get_db)):
    """Order counts and paid revenue, optionally for one customer."""
    return OrderService.get_order_statistics(db, user_id)


@router.get("/pending-payments/{user_id}", response_model=List[PendingPaymentResponse])
def list_user_pending_payments(user_id: str, db: Session = Depends(get_db)):
    """Unexpired pending payments for a customer, newest first."""
    return PendingPaymentService.get_user_pending_payments(db, user_id)


@router.post("/pending-payments/expire", response_model=ExpireSweepResponse)
def expire_pending_payments(db: Session = Depends(get_db)):
    """Mark every pending payment past its expiry as expired."""
    return ExpireSweepResponse(expired=PendingPaymentService.expire_stale(db))


@router.put("/orders/{order_id}/status", response_model=OrderResponse)
def update_order_status(order_id: int, payload: OrderStatusUpdate, db: Session = Depends(get_db)):
    return OrderService.update_order_status(db, order_id, payload.status, payload.note)


@router.put("/orders/{order_id}/payment-status", response_model=OrderResponse)
def update_payment_status(order_id: int, payload: PaymentStatusUpdate, db: Session = Depends(get_db)):
    return OrderService.update_payment_status(db, order_id, payload.payment_status)
