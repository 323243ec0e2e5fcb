"""
Global exception handlers for the FastAPI application.

Centralises error formatting so every error response follows a consistent
JSON structure::

    {
        "error": true,
        "message": "<human-readable description>"
    }

This module also defines domain-specific exceptions that the service layer
can raise without importing FastAPI's HTTPException, keeping the accrual
engine usable from the ``unitvest.sweep`` command as well as from HTTP.
"""

import logging
from typing import Any, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from unitvest.core.resilience import CircuitBreakerError

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Domain exceptions  (raised by service layer, caught by handlers below)
# ────────────────────────────────────────────────────────────────────────────


class AppException(Exception):
    """Base exception for all application-level errors."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status_code=404,
            message=f"{resource} with id '{identifier}' not found",
        )


class UnauthorizedException(AppException):
    """Caller could not be identified (401)."""

    def __init__(self, message: str = "Unknown or missing requester"):
        super().__init__(status_code=401, message=message)


class ForbiddenException(AppException):
    """Caller is identified but may not act on the resource (403)."""

    def __init__(self, message: str):
        super().__init__(status_code=403, message=message)


class ConflictException(AppException):
    """Request conflicts with the current state of the resource (409)."""

    def __init__(self, message: str):
        super().__init__(status_code=409, message=message)


class InvalidStateException(ConflictException):
    """Lifecycle transition is not legal from the record's current status."""


class ConcurrentUpdateError(ConflictException):
    """
    The record changed between read and write.

    Raised when a version-guarded UPDATE matches no row, or when the ledger
    already holds an accrual for the window being closed.
    """


class BusinessRuleViolation(AppException):
    """Business rule was violated (422)."""

    def __init__(self, message: str):
        super().__init__(status_code=422, message=message)


class TransientStoreError(AppException):
    """
    The persistence layer failed (connection loss, timeout, deadlock) (503).

    The enclosing transaction has been rolled back, so the whole operation
    is safe to retry.
    """

    def __init__(self, message: str = "Database temporarily unavailable"):
        super().__init__(status_code=503, message=message)


class PartialBatchFailure(Exception):
    """A sweep finished but some records could not be processed."""

    def __init__(self, failed: int, processed: int, errors: List[Any]):
        self.failed = failed
        self.processed = processed
        self.errors = errors
        super().__init__(
            f"Maturity sweep finished with {failed} failed record(s) "
            f"({processed} processed)"
        )


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI application instance."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        """Handle domain-specific exceptions raised by the service layer."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "message": exc.message},
        )

    @app.exception_handler(CircuitBreakerError)
    async def circuit_breaker_handler(
        request: Request, exc: CircuitBreakerError
    ) -> JSONResponse:
        """Database circuit is open: tell the client when to come back."""
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=503,
            headers={"Retry-After": str(int(exc.retry_after) + 1)},
            content={
                "error": True,
                "message": "Service temporarily unavailable (database circuit is open)",
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTP exceptions (e.g. 404 from path-not-found)."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "message": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """
        Handle Pydantic / FastAPI request-validation errors.

        Returns a 422 with a concise list of validation issues so the caller
        knows exactly which fields failed and why.
        """
        errors = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            errors.append({"field": loc, "message": err["msg"]})
        return JSONResponse(
            status_code=422,
            content={"error": True, "message": "Validation failed", "details": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unexpected exceptions."""
        logger.exception(
            "Unhandled exception on %s %s", request.method, request.url.path
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": True,
                "message": "Internal Server Error. Please contact support.",
            },
        )
