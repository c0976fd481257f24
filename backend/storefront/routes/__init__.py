from storefront.routes.checkout import router as checkout_router
from storefront.routes.recovery import router as recovery_router
from storefront.routes.orders import router as orders_router
from storefront.routes.admin import router as admin_router

__all__ = ["checkout_router", "recovery_router", "orders_router", "admin_router"]
