"""
Storefront Checkout Backend — Uvicorn Launcher
Run this file to start the development server, or to run the pending-payment
expiry sweep once (for cron).

Usage:
    python run.py
    python run.py --port 8000
    python run.py --reload
    python run.py --expire-pending
"""
import argparse
import uvicorn


def expire_pending_payments() -> int:
    """Mark every pending payment past its 24h expiry as expired."""
    from storefront.database import SessionLocal, init_db
    from storefront.services.pending_payment_service import PendingPaymentService

    init_db()
    db = SessionLocal()
    try:
        return PendingPaymentService.expire_stale(db)
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Storefront Checkout Backend Server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload for development")
    parser.add_argument("--workers", type=int, default=1, help="Number of workers (default: 1)")
    parser.add_argument(
        "--expire-pending", action="store_true",
        help="Expire stale pending UPI payments and exit instead of serving",
    )

    args = parser.parse_args(argv)

    if args.expire_pending:
        print(f"Expired {expire_pending_payments()} pending payment(s)")
        return

    if args.workers > 1:
        # The recovery rate limiter keeps its counters in process memory
        print("Note: rate limits are tracked per worker process")

    print(f"""
    ========================================================
      Kichofy Storefront Checkout
      API:       http://{args.host}:{args.port}
      Docs:      http://localhost:{args.port}/docs
      Recovery:  POST /api/recovery/verify
    ========================================================
    """)

    uvicorn.run(
        "storefront.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=args.workers,
        log_level="info",
    )


if __name__ == "__main__":
    main()
