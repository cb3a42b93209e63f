"""
Request Rate Limiting

Per-IP request limits on the read endpoints (listing, book page, review
list) using slowapi. Review submissions have their own, stricter allowance
in submission_guard.py; both count in the same `limits` storage.
"""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from bookshelf.config import get_settings
from bookshelf.exceptions import RateLimitError

logger = logging.getLogger(__name__)
settings = get_settings()


def get_client_ip(request: Request) -> str:
    """
    Client address, used for the read limits and the review allowance.

    Proxy headers are only honoured when the socket peer is one of the
    configured trusted proxies; then the first X-Forwarded-For entry wins,
    then X-Real-IP (nginx). Any other peer is identified by its own
    address, whatever headers it sends.
    """
    peer = get_remote_address(request)
    if peer not in settings.trusted_proxies_list:
        return peer

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return peer


def create_limiter() -> Limiter:
    """Build the read-endpoint limiter from the settings."""
    limiter = Limiter(
        key_func=get_client_ip,
        default_limits=[settings.rate_limit_default],
        storage_uri=settings.rate_limit_storage_uri,
        strategy=settings.rate_limit_strategy,
        enabled=settings.rate_limit_enabled,
    )

    logger.info(
        f"Request limiter initialized - enabled: {settings.rate_limit_enabled}, "
        f"read limit: {settings.rate_limit_default}, "
        f"storage: {settings.rate_limit_storage_uri.split('://')[0]}"
    )

    return limiter


limiter = create_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    429 for a client over the read limit.

    The body has the same shape as a review submission denial; Retry-After
    is the length of the limit's window.
    """
    limit_detail = str(exc.detail)
    error = RateLimitError(limit_detail, exc.limit.limit.get_expiry())

    logger.warning(f"Read limit exceeded for {get_client_ip(request)}: {limit_detail}")

    return JSONResponse(
        status_code=429,
        content=error.to_dict(),
        headers={
            "Retry-After": str(error.retry_after),
            "X-RateLimit-Limit": limit_detail,
        },
    )
