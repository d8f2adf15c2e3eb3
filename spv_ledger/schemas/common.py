"""
Common Pydantic schemas shared across endpoints.

The error models document the JSON error envelope in OpenAPI so clients can
see the failure contract, not only the happy path.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error envelope returned by every non-validation error handler."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Subscription with id '...' not found"],
    )
    details: Optional[Any] = Field(
        default=None, description="Offending ids or rows, when there is something to list"
    )


class ValidationErrorDetail(BaseModel):
    """Single field-level validation failure."""

    field: str = Field(
        ..., description="Path to the invalid field", examples=["body -> allocations -> 0"]
    )
    message: str = Field(
        ..., description="Explanation of the failure", examples=["Input should be greater than 0"]
    )


class ValidationErrorResponse(BaseModel):
    """Response body for 422 Unprocessable Entity (validation failure)."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(default="Validation failed", description="Summary message")
    details: List[ValidationErrorDetail] = Field(..., description="Per-field validation failures")
