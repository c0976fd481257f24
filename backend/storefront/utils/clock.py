"""
Clock helpers — naive UTC timestamps, matching what SQLite hands back.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
