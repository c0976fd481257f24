"""
Storefront Checkout — FastAPI Application Entry Point

Aggregates all routers, configures middleware and error handling,
and initializes the database on startup.
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from storefront.config import get_settings
from storefront.database import SessionLocal, init_db
from storefront.errors import CheckoutError
from storefront.logging_config import setup_logging
from storefront.routes import checkout_router, recovery_router, orders_router, admin_router
from storefront.schemas.schemas import HealthResponse

settings = get_settings()
logger = logging.getLogger("storefront")

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Checkout API for the Kichofy storefront. "
        "Covers cash-on-delivery orders, UPI QR checkout with rotating payment sessions, "
        "pending-payment recovery and order management."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── Startup ─────────────────────────────────────────────────────────
BOOT_TIME = time.time()


@app.on_event("startup")
def on_startup():
    """Configure logging, create tables and log boot info."""
    setup_logging("storefront", settings.LOG_LEVEL, settings.LOG_DIR)
    init_db()

    logger.info(
        "%s v%s started | database=%s | verification=%s | email relay=%s | debug=%s",
        settings.APP_NAME,
        settings.APP_VERSION,
        settings.DATABASE_URL,
        settings.PAYMENT_VERIFICATION,
        "configured" if settings.EMAIL_RELAY_URL else "disabled",
        settings.DEBUG,
    )


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info(
            "%s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration,
                "user_id": request.headers.get("x-user-id"),
            },
        )

    return response


# ─── Error Handling ──────────────────────────────────────────────────
@app.exception_handler(CheckoutError)
async def checkout_error_handler(request: Request, exc: CheckoutError):
    """Turn domain errors into JSON bodies carrying an error code."""
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error_code, exc.message, extra={"path": request.url.path})
    else:
        logger.warning("%s: %s", exc.error_code, exc.message, extra={"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(checkout_router)
app.include_router(recovery_router)
app.include_router(orders_router)
app.include_router(admin_router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health():
    """Health check including database connectivity."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        logger.exception("Health check could not reach the database")
    finally:
        db.close()

    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        database="connected" if db_ok else "disconnected",
        version=settings.APP_VERSION,
        uptime_seconds=round(time.time() - BOOT_TIME, 1),
    )
