"""
Rate limiting for the public API.

Uses slowapi with per-IP buckets. Every route gets the default limit; the
manual ingestion trigger gets a much tighter one since each call turns
into a burst of requests against the upstream archive.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from fastapi import Request
from fastapi.responses import JSONResponse

from .config import config

UNLIMITED = "1000000/minute"


def _per_minute(limit: int) -> str:
    return f"{limit}/minute" if limit > 0 else UNLIMITED


def default_rate_limit() -> str:
    """Limit applied to every route."""
    return _per_minute(config.RATE_LIMIT_PER_MINUTE)


def ingest_rate_limit() -> str:
    """Limit for manual ingestion triggers."""
    return _per_minute(config.INGEST_RATE_LIMIT_PER_MINUTE)


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[default_rate_limit],
    storage_uri="memory://",
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = getattr(exc, "retry_after", 60)
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}", "retry_after": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


def setup_rate_limiting(app):
    """Attach the limiter, its middleware, and the 429 handler to an app."""
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
