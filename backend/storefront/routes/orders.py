"""
Order Routes — A customer's own orders.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.schemas.schemas import (
    OrderCancelRequest, OrderListResponse, OrderResponse, StatusHistoryEntry,
)
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.get("", response_model=OrderListResponse)
def list_orders(
    user_id: str = Header(..., alias="x-user-id"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    total, orders = OrderService.get_user_orders(db, user_id, page=page, limit=limit, status=status)
    return OrderListResponse(
        total=total, page=page, limit=limit,
        orders=[OrderResponse.model_validate(o) for o in orders],
    )


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: int, user_id: str = Header(..., alias="x-user-id"), db: Session = Depends(get_db)):
    return OrderService.get_order(db, order_id, user_id)


@router.get("/{order_id}/history", response_model=List[StatusHistoryEntry])
def get_order_history(order_id: int, user_id: str = Header(..., alias="x-user-id"), db: Session = Depends(get_db)):
    return OrderService.get_status_history(db, order_id, user_id)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: int,
    payload: OrderCancelRequest,
    user_id: str = Header(..., alias="x-user-id"),
    db: Session = Depends(get_db),
):
    """Cancel an order that has not shipped yet."""
    return OrderService.cancel_order(db, order_id, user_id, payload.reason)
