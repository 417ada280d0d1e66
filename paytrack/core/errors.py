"""
Paytrack — core/errors.py
─────────────────────────────────────────────────────────────────
Error taxonomy + FastAPI handlers.

Every error leaves the API in one shape:

    {"error": "Authentication required"}

Usage:
    from paytrack.core.errors import NotFoundError

    if not user:
        raise NotFoundError("User not found")
─────────────────────────────────────────────────────────────────
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("paytrack.errors")


# ─────────────────────────────────────────────
# Exceptions
# ─────────────────────────────────────────────
class APIError(Exception):
    """Base API error. Subclasses pin the status code and default message."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str = None):
        if message:
            self.message = message
        super().__init__(self.message)


class ValidationError(APIError):
    """Missing or invalid required field."""
    status_code = 400
    message = "Invalid request"


class AuthenticationError(APIError):
    """No bearer token on a protected route."""
    status_code = 401
    message = "Authentication required"


class InvalidTokenError(APIError):
    """Bearer token present but rejected by the verifier."""
    status_code = 403
    message = "Invalid token"


class NotFoundError(APIError):
    status_code = 404
    message = "Not found"


class PersistenceError(APIError):
    """
    Any database failure. The cause is logged where it is raised;
    clients only ever see the generic message.
    """
    status_code = 500
    message = "Internal server error"

    def __init__(self, detail: str = "database error"):
        super().__init__()
        self.detail = detail

    def __str__(self):
        return self.detail


class DuplicateKeyError(PersistenceError):
    """A write hit a unique index (e.g. a reference code already taken)."""


# ─────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────
def _error(status_code: int, message: str, headers: dict = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


def _describe(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return ValidationError.message
    first = errors[0]
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    field = ".".join(loc)
    return f"{field}: {first.get('msg')}" if field else first.get("msg", ValidationError.message)


def register_error_handlers(app: FastAPI):
    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        if isinstance(exc, PersistenceError):
            logger.error(f"Persistence error on {request.method} {request.url.path}: {exc.detail}")
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, _describe(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {exc}", exc_info=True)
        return _error(500, "Internal server error")
