"""
Middleware Package

Provides FastAPI error handling and the service exception taxonomy.
"""

from tally.middleware.error_handling import (
    ErrorHandlingMiddleware,
    NotFoundError,
    PersistenceError,
    ServiceError,
    handle_endpoint_errors,
    setup_error_handling,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "NotFoundError",
    "PersistenceError",
    "ServiceError",
    "handle_endpoint_errors",
    "setup_error_handling",
]
