from storefront.services.session_service import SessionService
from storefront.services.upi_service import QRPaymentPresenter, build_payment_uri
from storefront.services.mirror_service import CheckoutMirror
from storefront.services.pending_payment_service import PendingPaymentService
from storefront.services.order_service import OrderService
from storefront.services.recovery_service import RecoveryService, get_strategy
from storefront.services.notification_service import NotificationService

__all__ = [
    "SessionService", "QRPaymentPresenter", "build_payment_uri", "CheckoutMirror",
    "PendingPaymentService", "OrderService", "RecoveryService", "get_strategy",
    "NotificationService",
]
