"""Rate limiting for the functions app.

Uses slowapi; state lives in ``RATE_LIMIT_STORAGE_URI`` (in-memory by default,
a Redis URI when several instances run).
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings


def _get_client_ip(request: Request) -> str:
    """First address of ``X-Forwarded-For`` when proxied, else the peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _get_user_or_ip(request: Request) -> str:
    user = getattr(request.state, "user", None)
    if user is not None and user.user_id:
        return f"user:{user.user_id}"
    return f"ip:{_get_client_ip(request)}"


@lru_cache
def get_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=_get_user_or_ip,
        default_limits=["100/minute"],
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        strategy="fixed-window",
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    retry_after = exc.detail.split("per")[0].strip() if exc.detail else "1 minute"
    return JSONResponse(
        status_code=429,
        content={
            "error": f"Trop de requêtes. Réessayez dans {retry_after}.",
            "code": "RATE_LIMIT_EXCEEDED",
        },
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )


def payment_limit(func: Callable) -> Callable:
    """Checkout endpoints (5/minute)."""
    return limiter.limit("5/minute")(func)


def invite_limit(func: Callable) -> Callable:
    """Invitation and email endpoints (10/minute)."""
    return limiter.limit("10/minute")(func)


def admin_limit(func: Callable) -> Callable:
    """Account provisioning (20/minute)."""
    return limiter.limit("20/minute")(func)
