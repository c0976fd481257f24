"""
Pydantic Schemas — Request & Response models for API validation.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, List
from pydantic import BaseModel, Field


# ──────────────── Cart & Shipping ────────────────

class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    price: Decimal = Field(..., ge=0, description="Unit price in INR at the time of checkout")
    size: Optional[str] = None
    color: Optional[str] = None
    name: Optional[str] = None


class ShippingForm(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""


class QuoteRequest(BaseModel):
    items: List[CartLine] = Field(..., min_length=1)


class QuoteResponse(BaseModel):
    subtotal: Decimal
    shipping: Decimal
    total: Decimal
    free_shipping_threshold: int


class CheckoutRequest(BaseModel):
    shipping: ShippingForm
    items: List[CartLine] = Field(..., min_length=1)


# ──────────────── Checkout Session / UPI ────────────────

class CheckoutSession(BaseModel):
    session_id: str
    created_at: datetime
    expires_at: datetime
    amount: Decimal
    cart_snapshot: List[CartLine]
    shipping_form: ShippingForm


class UPISessionResponse(BaseModel):
    session: CheckoutSession
    payment_uri: str
    qr_data_url: Optional[str] = None
    window_seconds: int
    warning_seconds: int


class UPIRotateRequest(BaseModel):
    session: CheckoutSession


class UPIClaimRequest(BaseModel):
    session_id: str = Field(..., min_length=1)
    shipping: ShippingForm
    items: List[CartLine] = Field(..., min_length=1)


# ──────────────── Orders ────────────────

class OrderItemResponse(BaseModel):
    id: int
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    price: Decimal
    size: Optional[str] = None
    color: Optional[str] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    user_id: str
    total_amount: Decimal
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    payment_session_id: Optional[str] = None
    shipping_address: Optional[Dict] = None
    items: List[OrderItemResponse] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderPlacedResponse(BaseModel):
    success: bool = True
    order: OrderResponse
    payment_pending: bool = False
    message: str = ""
    confirmation_path: str


class OrderListResponse(BaseModel):
    total: int
    page: int
    limit: int
    orders: List[OrderResponse]


class StatusHistoryEntry(BaseModel):
    id: int
    status: str
    note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OrderCancelRequest(BaseModel):
    reason: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: str
    note: Optional[str] = None


class PaymentStatusUpdate(BaseModel):
    payment_status: str


# ──────────────── Recovery ────────────────

class PendingPaymentResponse(BaseModel):
    id: int
    session_id: str
    user_id: str
    amount: Decimal
    status: str
    order_data: Optional[Dict] = None
    created_at: datetime
    expires_at: datetime

    class Config:
        from_attributes = True


class RecoveryRequest(BaseModel):
    session_id: str = Field(..., min_length=1, description="Payment session id shown on the payment page")


class RecoveryResponse(BaseModel):
    success: bool
    message: str
    order_id: int
    confirmation_path: str


class GatewayWebhookRequest(BaseModel):
    session_id: str
    reference: str
    status: str = "SUCCESS"


# ──────────────── Admin ────────────────

class OrderStatisticsResponse(BaseModel):
    total_orders: int
    pending_orders: int
    payment_review_orders: int
    completed_orders: int
    total_revenue: Decimal


class ExpireSweepResponse(BaseModel):
    expired: int


# ──────────────── Generic ────────────────

class HealthResponse(BaseModel):
    status: str
    database: str
    version: str
    uptime_seconds: float


class ErrorResponse(BaseModel):
    detail: str
    error_code: Optional[str] = None
