"""System health and rate limiting."""

import logging
import math
import time
from datetime import datetime, timezone
from typing import Tuple

from fastapi import APIRouter, HTTPException, Request, status
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from config import settings_conf

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/api",
    tags=["System"]
)

class RateLimiter:
    """Fixed-window request limit per client identifier, backed by limits.

    Windows live in process memory only; a restart forgets them.
    """

    def __init__(self, window_seconds: int, max_requests: int):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.item = RateLimitItemPerSecond(max_requests, window_seconds)
        self._storage = MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)

    def check(self, identifier: str) -> Tuple[bool, int, float]:
        """Count a request for identifier.

        Returns:
            Tuple of (allowed, remaining requests, window reset time as epoch seconds)
        """
        allowed = self._strategy.hit(self.item, identifier)
        reset_time, remaining = self._strategy.get_window_stats(self.item, identifier)
        return allowed, remaining, reset_time

    def retry_after(self, reset_time: float) -> int:
        """Whole seconds until a window resets."""
        return max(1, math.ceil(reset_time - time.time()))

    def reset(self) -> None:
        self._storage.reset()

def get_client_identifier(request: Request) -> str:
    """Identify the caller by forwarded address, real IP or socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"

# Create global instance
limiter = RateLimiter(
    settings_conf['rate_limit_window_seconds'],
    settings_conf['rate_limit_max_requests'],
)

async def rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing the global rate limit.

    Raises:
        HTTPException: 429 with Retry-After when the window is exhausted
    """
    identifier = get_client_identifier(request)
    allowed, remaining, reset_time = limiter.check(identifier)
    if not allowed:
        logger.warning(f"Rate limit exceeded for {identifier} on {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
            headers={
                "Retry-After": str(limiter.retry_after(reset_time)),
                "X-RateLimit-Limit": str(limiter.max_requests),
                "X-RateLimit-Remaining": str(remaining),
            }
        )

@router.get("/health")
async def health():
    """Liveness check."""
    return {
        "status": "ok",
        "environment": settings_conf.get('environment'),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
