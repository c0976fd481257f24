"""
Validators — Regex and rule-based validation for Indian shipping details.
"""
import re

from storefront.errors import ValidationError

PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
PINCODE_PATTERN = re.compile(r"^\d{6}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REQUIRED_FIELDS = ("name", "email", "phone", "address", "city", "state", "pincode")


def validate_phone(phone: str | None) -> bool:
    """Validate an Indian mobile number: 10 digits starting 6-9, after stripping non-digits."""
    if not phone:
        return False
    return bool(PHONE_PATTERN.match(re.sub(r"\D", "", phone)))


def validate_pincode(pincode: str | None) -> bool:
    """Validate an Indian PIN code: exactly 6 digits."""
    if not pincode:
        return False
    return bool(PINCODE_PATTERN.match(pincode.strip()))


def validate_email(email: str | None) -> bool:
    if not email:
        return False
    return len(email) <= 255 and bool(EMAIL_PATTERN.match(email.strip()))


def validate_shipping_form(form) -> None:
    """Check a shipping form before anything is written.

    Args:
        form: ShippingForm (or any object with the shipping attributes).

    Raises:
        ValidationError: listing every problem found, required fields first.
    """
    missing = [f for f in REQUIRED_FIELDS if not (getattr(form, f, "") or "").strip()]
    if missing:
        raise ValidationError(
            ["Please fill all required shipping information"]
            + [f"{field} is required" for field in missing]
        )

    errors = []
    if not validate_phone(form.phone):
        errors.append("Please enter a valid 10-digit phone number")
    if not validate_pincode(form.pincode):
        errors.append("Please enter a valid 6-digit PIN code")
    if errors:
        raise ValidationError(errors)


def normalize_upi_id(upi_id: str) -> str:
    """Trim, lowercase and drop whitespace from a UPI VPA."""
    return re.sub(r"\s+", "", upi_id.strip().lower())


def validate_upi_vpa(vpa: str | None) -> bool:
    """Validate UPI VPA format: user@provider."""
    if not vpa:
        return False
    return bool(re.match(r"^[\w.-]+@[\w]+$", vpa.strip()))
