"""
Error taxonomy and the exception handlers that render it.

Every failure leaves the API as ``{"success": false, "error": <message>}``.
Unexpected faults are logged server-side and reported as a generic 500.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


class MarketplaceError(Exception):
    """Base class for errors that map onto an HTTP status and message."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class UnauthenticatedError(AuthenticationError):
    default_message = "Access token required"


class InvalidTokenError(AuthenticationError):
    default_message = "Invalid or expired token"


class InvalidCredentialsError(AuthenticationError):
    default_message = "Invalid email or password"


class ForbiddenError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already exists"


def error_body(message: str) -> dict:
    return {"success": False, "error": message}


def first_validation_message(exc) -> str:
    """
    Message of the first violated rule, without pydantic's prefixes.

    Accepts FastAPI's ``RequestValidationError`` as well as a plain
    ``pydantic.ValidationError``; both expose ``errors()``.
    """
    errors = exc.errors()
    if not errors:
        return ValidationError.default_message
    first = errors[0]
    message = str(first.get("msg") or ValidationError.default_message)
    for prefix in ("Value error, ", "Assertion failed, "):
        if message.startswith(prefix):
            return message[len(prefix):]
    if first.get("type") in ("missing", "json_invalid", "model_attributes_type"):
        loc = ".".join(
            str(part) for part in first.get("loc", ())
            if part not in ("body", "query", "path", "header")
        )
        return f"{loc}: {message}" if loc else message
    return message


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the handlers that keep every error body in one shape."""

    @app.exception_handler(MarketplaceError)
    async def marketplace_error_handler(request: Request, exc: MarketplaceError):
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(first_validation_message(exc)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(INTERNAL_ERROR_MESSAGE),
        )
