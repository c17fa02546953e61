import logging
import secrets
from typing import Optional

from fastapi import Request

from ..core.errors import CSRFError
from .sessions import AuthContext

logger = logging.getLogger(__name__)

SESSION_KEY = "csrf_token"
HEADER_NAME = "X-CSRF-Token"
FORM_FIELD = "csrf_token"


def issue_token(ctx: AuthContext) -> str:
    """Return the session's token, creating it on first use."""
    token = ctx.session.get(SESSION_KEY)
    if not token:
        token = secrets.token_hex(32)
        ctx.session[SESSION_KEY] = token
    return token


def validate(ctx: AuthContext, token: Optional[str]) -> bool:
    expected = ctx.session.get(SESSION_KEY)
    if not expected or not token:
        return False
    return secrets.compare_digest(expected, token)


async def _submitted_token(request: Request) -> Optional[str]:
    token = request.headers.get(HEADER_NAME)
    if token:
        return token
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        value = form.get(FORM_FIELD)
        return value if isinstance(value, str) else None
    return None


async def require_csrf(request: Request) -> None:
    ctx: AuthContext = request.state.auth
    if not validate(ctx, await _submitted_token(request)):
        logger.warning("CSRF validation failed for %s %s from %s", request.method, request.url.path, ctx.client_id)
        raise CSRFError()
