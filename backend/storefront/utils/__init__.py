from storefront.utils.clock import utcnow
from storefront.utils.validators import (
    validate_phone, validate_pincode, validate_email, validate_shipping_form,
)

__all__ = [
    "utcnow",
    "validate_phone", "validate_pincode", "validate_email", "validate_shipping_form",
]
