"""
Typed errors raised by the auth layer and the handlers that render them.

The challenge engine never raises for a rejected code: expiry, mismatch and
blocking come back as outcome values and AuthService turns them into the
errors below. Every rendered error has the body

    {"error": <message>, "code": <error_code>, "field"?: ..., "details"?: ...}

MongoDB faults (PyMongoError) render as 503 so clients retry later.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        body: dict = {"error": self.message, "code": self.error_code}
        for key in ("field", "details"):
            value = getattr(self, key)
            if value is not None:
                body[key] = value
        return body

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class ValidationError(AppError):
    """Malformed input, a weak password, or a code that cannot be redeemed."""

    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    """The subject is blocked, or has hit the issuance limit."""

    status_code = 429
    error_code = "rate_limit_exceeded"


class DeliveryError(AppError):
    status_code = 502
    error_code = "delivery_failed"


class ServiceUnavailableError(AppError):
    status_code = 503
    error_code = "service_unavailable"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return exc.to_response()

    @app.exception_handler(PyMongoError)
    async def store_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
        log.error(
            "store_unavailable",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return ServiceUnavailableError("Storage is temporarily unavailable.").to_response()

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # sentry_sdk, when initialised, has already captured the exception
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error_type=type(exc).__name__,
        )
        return AppError("An internal server error occurred.").to_response()
