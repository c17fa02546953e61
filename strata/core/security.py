import logging
from typing import Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import Settings

logger = logging.getLogger(__name__)

BASE_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "same-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    # Pages carry per-session CSRF tokens and levy balances.
    "Cache-Control": "no-store",
}
HSTS_VALUE = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach common security headers to every response.

    HSTS is sent on HTTPS requests, and on every request when ``cookie_secure``
    is ``always`` (TLS terminated in front of the app).
    """

    def __init__(self, app, *, config: Settings, csp: Optional[str] = None) -> None:
        super().__init__(app)
        self.always_https = config.cookie_secure == "always"
        self.csp = csp

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        response = await call_next(request)
        headers = response.headers
        for name, value in BASE_HEADERS.items():
            headers.setdefault(name, value)
        if self.always_https or request.url.scheme == "https":
            headers.setdefault("Strict-Transport-Security", HSTS_VALUE)
        if self.csp:
            headers.setdefault("Content-Security-Policy", self.csp)
        return response


def log_security_warnings(config: Settings) -> None:
    if config.cookie_secure == "never":
        logger.warning("Session and remember-me cookies are sent without the Secure flag; set COOKIE_SECURE=auto.")
    if config.login_rate_limit_backend == "session":
        logger.warning(
            "Login throttling is scoped to the session; clients that discard cookies are not limited. "
            "Set LOGIN_RATE_LIMIT_BACKEND=memory to key attempts by client address only."
        )
    if config.password_hash_memory_cost < 65536:
        logger.warning("Password hashing memory cost is below 64 MiB; use the default outside of tests.")
    if "*" in config.cors_origins:
        logger.warning("CORS allows any origin while credentials are enabled; list explicit origins instead.")
