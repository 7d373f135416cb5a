"""
Error Handling

Exception taxonomy for the study engine plus the HTTP plumbing that turns
those exceptions into consistent JSON error responses.

Taxonomy:
    - NotFoundError: a goal, material or entry id is absent from the
      loaded snapshot
    - PersistenceError: committing ledger/material changes failed; the
      in-memory state has already been rolled back when this propagates

    Auto quotas without a resolvable deadline are NOT errors; the quota
    calculator falls back to the manual value.

Usage:
    from tally.middleware.error_handling import NotFoundError, setup_error_handling

    setup_error_handling(app, debug=settings.DEBUG)

    raise NotFoundError(f"Material {material_id} not found")

Exception flow:
    Request → ErrorHandlingMiddleware.dispatch()
                  └─ await call_next(request)   ← routes, services, ledger
                         └─ raise ServiceError  ← caught and serialized
"""

import functools
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================


class ServiceError(Exception):
    """
    Base exception for service errors.

    Carries an HTTP status code, an error code for categorization, and
    optional details for debugging.

    Example:
        raise ServiceError("Ledger is in an inconsistent state", status_code=500)
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class NotFoundError(ServiceError):
    """
    Resource not found error.

    Raised when a goal, material or ledger entry doesn't exist.
    """

    status_code = 404
    error_code = "not_found"


class PersistenceError(ServiceError):
    """
    Durable storage error.

    Raised when committing changes fails. Never retried internally.
    """

    status_code = 503
    error_code = "persistence_error"


# =============================================================================
# Error Handling Middleware
# =============================================================================


def _error_body(
    error_code: str,
    message: str,
    error_id: str,
    details: Optional[dict] = None,
) -> dict[str, Any]:
    return {
        "error": error_code,
        "message": message,
        "error_id": error_id,
        "details": details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    - Catches unhandled exceptions
    - Logs with correlation ID
    - Returns consistent error format
    - Hides internal details unless debug is on
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any errors."""
        error_id = str(uuid4())[:8]

        try:
            return await call_next(request)

        except HTTPException:
            raise

        except ServiceError as e:
            logger.error(
                f"[{error_id}] {e.error_code}: {e.message}",
                extra={
                    "error_id": error_id,
                    "error_code": e.error_code,
                    "path": request.url.path,
                    "method": request.method,
                    "details": e.details,
                },
            )
            return JSONResponse(
                status_code=e.status_code,
                content=_error_body(
                    e.error_code,
                    e.message,
                    error_id,
                    e.details if self.debug else None,
                ),
            )

        except Exception as e:
            logger.error(
                f"[{error_id}] Unhandled error: {type(e).__name__}: {e}",
                extra={
                    "error_id": error_id,
                    "path": request.url.path,
                    "method": request.method,
                    "traceback": traceback.format_exc(),
                },
            )
            details = None
            if self.debug:
                details = {
                    "exception": type(e).__name__,
                    "message": str(e),
                    "traceback": traceback.format_exc(),
                }
            return JSONResponse(
                status_code=500,
                content=_error_body(
                    "internal_server_error",
                    "An unexpected error occurred",
                    error_id,
                    details,
                ),
            )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Exception handler for ServiceErrors raised inside route handlers."""
    error_id = str(uuid4())[:8]
    logger.warning(f"[{error_id}] {exc.error_code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.error_code, exc.message, error_id, exc.details),
    )


# =============================================================================
# Setup Function
# =============================================================================


def setup_error_handling(app: FastAPI, debug: bool = False) -> None:
    """
    Configure error handling on the FastAPI app.

    Args:
        app: FastAPI application instance
        debug: Whether to include stack traces in responses
    """
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    logger.info(f"Error handling middleware enabled (debug={debug})")


# =============================================================================
# Route Decorator
# =============================================================================


def handle_endpoint_errors(operation: str) -> Callable:
    """
    Wrap a route handler so unexpected failures become HTTP 500s.

    ServiceErrors and HTTPExceptions pass through untouched so their own
    status codes reach the client.

    Args:
        operation: Human-readable name used in log messages.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except (HTTPException, ServiceError):
                raise
            except Exception as e:
                logger.exception(f"{operation} failed: {e}")
                raise HTTPException(status_code=500, detail=f"{operation} failed")

        return wrapper

    return decorator
