from storefront.models.order import Order, OrderItem, OrderStatusHistory, OrderStatus, PaymentStatus
from storefront.models.pending_payment import PendingPayment, PendingStatus

__all__ = [
    "Order", "OrderItem", "OrderStatusHistory", "OrderStatus", "PaymentStatus",
    "PendingPayment", "PendingStatus",
]
