"""
Application Configuration — Environment & Settings
Centralizes checkout, payment and notification config from .env with Pydantic Settings.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "Kichofy Storefront Checkout API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'storefront.db'}"

    # --- UPI ---
    UPI_PAYEE_ID: str = "kaviyamurugan286-1@okaxis"
    UPI_PAYEE_NAME: str = "Kichofy"
    CURRENCY: str = "INR"
    QR_WINDOW_SECONDS: int = 120
    QR_WARNING_SECONDS: int = 30

    # --- Pending payments / recovery ---
    PENDING_PAYMENT_TTL_HOURS: int = 24
    RESUME_WINDOW_MINUTES: int = 10
    PAYMENT_VERIFICATION: str = "manual"  # manual | webhook | polling
    GATEWAY_STATUS_URL: str = ""
    GATEWAY_TIMEOUT_SECONDS: float = 5.0
    AUTO_VERIFY_ON_CLAIM: bool = False
    RECOVERY_RATE_LIMIT: int = 10
    RECOVERY_RATE_WINDOW_SECONDS: int = 60

    # --- Shipping ---
    FREE_SHIPPING_THRESHOLD: int = 999
    SHIPPING_FEE: int = 1

    # --- Email relay ---
    EMAIL_RELAY_URL: str = ""
    EMAIL_RELAY_TIMEOUT_SECONDS: float = 5.0
    EMAIL_FROM: str = "orders@kichofy.resend.dev"

    # --- Support ---
    SUPPORT_EMAIL: str = "support@kichofy.com"
    SUPPORT_PHONE: str = "+91-9876543210"

    # --- Local persistence / logging ---
    MIRROR_DIR: str = str(BASE_DIR / "data" / "mirror")
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
