"""
Security Middleware for Double M Arena.

Login and registration are rate limited per client address; every response
carries a fixed set of browser security headers.
"""

import logging
from collections.abc import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from limits import parse as parse_limit
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

# Seconds until a client blocked on login/register may retry
LOGIN_RETRY_AFTER = parse_limit(settings.rate_limit_login).get_expiry()

SECURITY_HEADERS = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add SECURITY_HEADERS to responses that do not already set them."""

    def __init__(self, app: FastAPI, headers: dict[str, str] | None = None):
        super().__init__(app)
        self.headers = headers or SECURITY_HEADERS

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Answer a throttled login or registration attempt with 429."""
    logger.warning(
        f"Rate limit ({exc.detail}) hit on {request.url.path} by {get_remote_address(request)}"
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": "Too many attempts. Please wait a minute and try again."},
        headers={"Retry-After": str(LOGIN_RETRY_AFTER)},
    )


def setup_security_middleware(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SecurityHeadersMiddleware)


def rate_limit_login() -> Callable:
    """Rate limit decorator for login and registration endpoints."""
    return limiter.limit(settings.rate_limit_login)
