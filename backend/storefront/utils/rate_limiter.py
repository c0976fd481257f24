"""
Memory-based sliding-window rate limiter.
Per-process only; a multi-worker deployment needs a shared store.
"""
import time
from collections import deque
from typing import Deque, Dict, Tuple

from fastapi import Request

from storefront.errors import RateLimitExceeded

# {(scope, ip): timestamps of recent hits}
_hits: Dict[Tuple[str, str], Deque[float]] = {}
# {scope: monotonic time of the last idle-client sweep}
_last_sweep: Dict[str, float] = {}


def reset():
    _hits.clear()
    _last_sweep.clear()


def _sweep(scope: str, now: float, window: int):
    """Forget clients of this scope whose every hit has aged out of the window."""
    idle = [key for key, hits in _hits.items() if key[0] == scope and (not hits or now - hits[-1] >= window)]
    for key in idle:
        del _hits[key]
    _last_sweep[scope] = now


def rate_limit(requests: int, window: int, scope: str = "default"):
    """
    Dependency for rate limiting.
    Example: Depends(rate_limit(requests=10, window=60, scope="recovery"))
    """
    def limiter(request: Request):
        ip = request.client.host if request.client else "unknown"
        now = time.monotonic()

        if scope not in _last_sweep or now - _last_sweep[scope] >= window:
            _sweep(scope, now, window)

        hits = _hits.setdefault((scope, ip), deque())
        while hits and now - hits[0] >= window:
            hits.popleft()

        if len(hits) >= requests:
            retry_in = int(window - (now - hits[0])) + 1
            raise RateLimitExceeded(
                f"Too many attempts. Try again in {retry_in} seconds.",
                {"retry_after": retry_in},
            )

        hits.append(now)
        return True

    return limiter
