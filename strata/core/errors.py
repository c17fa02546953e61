import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from ..config import settings

logger = logging.getLogger(__name__)


class StrataError(Exception):
    """Base class for errors that map onto an HTTP response.

    ``message`` is what gets logged. Clients only see it when ``expose_detail``
    is set; otherwise they get ``public_message``.
    """

    status_code = 500
    public_message = "Internal server error."
    expose_detail = False

    def __init__(self, message: Optional[str] = None, *, headers: Optional[Dict[str, str]] = None) -> None:
        self.message = message or self.public_message
        self.headers = headers or {}
        super().__init__(self.message)

    @property
    def client_detail(self) -> str:
        return self.message if self.expose_detail else self.public_message


class ValidationError(StrataError):
    status_code = 400
    public_message = "Please fill in all required fields."
    expose_detail = True


class AuthenticationError(StrataError):
    status_code = 401
    public_message = "Invalid email or password"


class LoginRequiredError(StrataError):
    status_code = 401
    public_message = "Authentication required."


class AuthorizationError(StrataError):
    status_code = 403
    public_message = "You do not have permission to access this page."


class CSRFError(StrataError):
    status_code = 403
    public_message = "Invalid request. Please try again."


class NotFoundError(StrataError):
    status_code = 404
    public_message = "Not found."
    expose_detail = True


class PreconditionError(StrataError):
    status_code = 409
    public_message = "The request cannot be completed in the current state."
    expose_detail = True


class RateLimitError(StrataError):
    status_code = 429
    public_message = "Too many login attempts. Please try again later."

    def __init__(self, retry_after: int, message: Optional[str] = None) -> None:
        super().__init__(message, headers={"Retry-After": str(max(int(retry_after), 1))})
        self.retry_after = retry_after


class PersistenceError(StrataError):
    status_code = 503
    public_message = "Database error. Please try again."


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StrataError)
    async def strata_exception_handler(request: Request, exc: StrataError):  # type: ignore[override]
        if not exc.expose_detail and exc.message != exc.public_message:
            logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        if isinstance(exc, LoginRequiredError) and _wants_html(request):
            return RedirectResponse(settings.login_path, status_code=303)

        payload: Dict[str, Any] = {"detail": exc.client_detail, "path": str(request.url)}
        if isinstance(exc, LoginRequiredError):
            payload["login_url"] = settings.login_path
        return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers or None)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore[override]
        return JSONResponse(
            status_code=422,
            content={
                "detail": "Validation failed.",
                "errors": [
                    {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
                    for error in exc.errors()
                ],
                "path": str(request.url),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # type: ignore[override]
        payload: Dict[str, Any] = {"detail": exc.detail or "HTTP error.", "path": str(request.url)}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore[override]
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error.",
                "path": str(request.url),
            },
        )
