"""
Strict Base Models for API Request/Response Validation

Request bodies reject unknown fields so a client typo (``amout``) fails
loudly with 422 instead of being silently dropped. Responses are lenient
so ORM rows carrying extra columns can be converted directly.

Usage:
    class RecordProgressRequest(StrictRequest):
        amount: int

    class MaterialResponse(StrictResponse):
        id: str
        name: str

Architecture:
    API Request → StrictRequest (extra="forbid") → Route Handler
    Domain/DB object → StrictResponse (extra="ignore") → API Response
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """
    Base model for API request bodies with strict validation.

    Features:
        - extra="forbid": Unknown fields raise 422 Unprocessable Entity
        - validate_default=True: Validates default values
        - str_strip_whitespace=True: Trims whitespace from strings
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
        from_attributes=True,
    )


class StrictResponse(BaseModel):
    """
    Base model for API response bodies.

    Allows extra attributes on the source object and supports
    ``model_validate(orm_row)``.
    """

    model_config = ConfigDict(
        extra="ignore",
        validate_default=True,
        from_attributes=True,
    )


class APIModel(BaseModel):
    """
    Base model for objects used in both directions (domain snapshots that
    are loaded from the database, mutated in memory, and returned).
    """

    model_config = ConfigDict(
        extra="forbid",
        from_attributes=True,
    )


class ErrorDetail(StrictResponse):
    """
    Standardized error response detail.

    Matches the error format produced by the error_handling middleware.
    """

    error: str  # Error code (e.g., "not_found")
    message: str
    error_id: str  # Correlation ID for log lookup
    details: Optional[dict] = None
    timestamp: datetime


class SuccessResponse(StrictResponse):
    """Simple success response for operations without complex output."""

    success: bool = True
    message: str
