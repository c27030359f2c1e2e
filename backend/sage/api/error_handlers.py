"""Error Handlers — global exception handlers for the Sage API.

Invariants:
    - SageError -> structured JSON with error code, message, severity
    - RateLimitExceededError -> 429 flat body + Retry-After + X-RateLimit headers
    - RequestValidationError -> 400 with field-level error details
    - Exception (catch-all) -> never leaks internal details
    - Domain and validation errors keep the X-RateLimit headers of their tier

Design Decisions:
    - Three-layer handler: domain (SageError), validation (Pydantic), catch-all (Exception)
"""

import logging
import math

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sage.api.rate_limit import rate_limit_headers
from sage.core.errors import ErrorSeverity, RateLimitExceededError, SageError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_rate_limit_handler(app)
    _register_sage_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_rate_limit_handler(app: FastAPI) -> None:

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededError):
        headers = {
            "Retry-After": str(math.ceil(exc.retry_after_ms / 1000)),
            **rate_limit_headers(exc.limit, 0),
        }
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=exc.to_response(),
            headers=headers,
        )


def _register_sage_error_handler(app: FastAPI) -> None:

    @app.exception_handler(SageError)
    async def sage_error_handler(request: Request, exc: SageError):
        """Handle all Sage domain/infrastructure errors."""
        logger.error(
            "SageError: %s", exc.message,
            extra={"error_code": exc.code},
        )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
            headers=_carried_headers(request),
        )


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
            headers=_carried_headers(request),
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all. Never leaks internal details."""
        logger.error(
            "Unhandled exception on %s: %s", request.url.path, exc,
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )


def _carried_headers(request: Request) -> dict | None:
    """Rate-limit headers set by the tier dependency, if it ran."""
    return getattr(request.state, "rate_limit_headers", None)


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": "validation",
            "severity": ErrorSeverity.ERROR.value,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }
