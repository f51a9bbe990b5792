"""
Common / shared Pydantic schemas used across multiple endpoints.

Defines standardised error response models so that OpenAPI documentation
accurately reflects the error payloads returned by the API.
"""

from typing import List

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standard error envelope returned by all non-validation error handlers.

    Every error from the API follows this shape, making it predictable for
    client-side error handling.
    """

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Account with id '3f0c…' not found"],
    )


class ValidationErrorDetail(BaseModel):
    """Single field-level validation failure."""

    field: str = Field(
        ...,
        description="Dot-separated path to the invalid field",
        examples=["body -> amount_cents"],
    )
    message: str = Field(
        ...,
        description="Explanation of the validation failure",
        examples=["Input should be greater than 0"],
    )


class ValidationErrorResponse(BaseModel):
    """
    Response body for 422 Unprocessable Entity (validation failure).

    Includes a ``details`` array so clients can map errors to individual
    form fields.
    """

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(
        default="Validation failed",
        description="Summary message",
    )
    details: List[ValidationErrorDetail] = Field(..., description="Per-field validation failures")


class DeletedCount(BaseModel):
    deleted: int = Field(..., ge=0, examples=[3])


ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Resource not found"},
    422: {"model": ValidationErrorResponse, "description": "Validation or business-rule error"},
    503: {"model": ErrorResponse, "description": "Database unavailable (circuit open)"},
}
