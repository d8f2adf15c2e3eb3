"""
Domain exceptions and the global exception handlers of the FastAPI application.

Every error response follows one JSON envelope::

    {
        "error": true,
        "message": "<human-readable description>",
        "details": [...]          # only when there is something to list
    }

Services raise the domain exceptions below without importing FastAPI, so the
lifecycle rules stay usable from scripts and tests.
"""

import logging
from typing import Any, Iterable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from spv_ledger.core.resilience import CircuitBreakerError

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
    """Referenced project / investor / subscription / allocation does not resolve (404)."""

    def __init__(self, resource: str, identifier: Any):
        if isinstance(identifier, (list, tuple, set, frozenset)):
            ids = ", ".join(sorted(str(i) for i in identifier))
            message = f"{resource} not found: {ids}"
        else:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(status_code=404, message=message)


class ConflictException(AppException):
    """Resource already exists / unique-constraint violation (409)."""

    def __init__(self, message: str):
        super().__init__(status_code=409, message=message)


class BusinessRuleViolation(AppException):
    """Business rule was violated (422)."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(status_code=422, message=message, details=details)


class InvalidTransition(BusinessRuleViolation):
    """An allocation was asked to move to a state its current state does not allow."""

    def __init__(self, allocation_id: Any, current: str, requested: str):
        self.allocation_id = allocation_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Allocation '{allocation_id}' cannot move from '{current}' to '{requested}'"
        )


class DistributionBlocked(BusinessRuleViolation):
    """At least one targeted allocation belongs to an investor without a wallet."""

    def __init__(self, allocation_ids: Iterable[Any]):
        ids = sorted(str(i) for i in allocation_ids)
        super().__init__(
            "Distribution blocked: investors of these allocations have no wallet address",
            details=ids,
        )


class ValidationFailed(AppException):
    """Input failed domain validation; ``details`` lists each problem (422)."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(status_code=422, message=message, details=details)


class StoreError(AppException):
    """The persistent store itself failed; carries the driver's error text (503)."""

    def __init__(self, message: str = "The data store is unavailable", details: Any = None):
        super().__init__(status_code=503, message=message, details=details)


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def _envelope(message: str, details: Any = None) -> dict:
    content: dict[str, Any] = {"error": True, "message": message}
    if details is not None:
        content["details"] = details
    return content


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI application instance."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle domain-specific exceptions raised by the service layer."""
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method,
                         request.url.path, exc.details)
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(exc.message, exc.details),
        )

    @app.exception_handler(CircuitBreakerError)
    async def circuit_breaker_handler(
        request: Request, exc: CircuitBreakerError
    ) -> JSONResponse:
        """Fast-fail while the store circuit is open."""
        return JSONResponse(
            status_code=503,
            content=_envelope(
                "Data store temporarily unavailable (circuit is open)",
                {"retry_after_seconds": round(exc.retry_after, 1)},
            ),
            headers={"Retry-After": str(max(int(exc.retry_after), 1))},
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(
        request: Request, exc: OperationalError
    ) -> JSONResponse:
        """Store-level failures that escaped the service layer."""
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc.orig)
        store_error = StoreError(details=str(exc.orig))
        return JSONResponse(
            status_code=store_error.status_code,
            content=_envelope(store_error.message, store_error.details),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTP exceptions (e.g. 404 from path-not-found)."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(exc.detail),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Return a 422 with one entry per failing field."""
        errors = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            errors.append({"field": loc, "message": err["msg"]})
        return JSONResponse(
            status_code=422,
            content=_envelope("Validation failed", errors),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected exceptions."""
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_envelope("Internal Server Error. Please contact support."),
        )
