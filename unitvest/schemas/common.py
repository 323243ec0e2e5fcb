"""
Error envelopes shared by every endpoint.

Declared on routes via ``responses=`` so OpenAPI documents the error
payloads alongside the happy path.
"""

from typing import List

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body returned by every non-validation error handler."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Investment with id '3fa85f64-5717-4562-b3fc-2c963f66afa6' not found"],
    )


class ValidationErrorDetail(BaseModel):
    field: str = Field(
        ...,
        description="Dot-separated path to the invalid field",
        examples=["body -> principal"],
    )
    message: str = Field(
        ...,
        description="Explanation of the validation failure",
        examples=["Input should be greater than 0"],
    )


class ValidationErrorResponse(BaseModel):
    """
    Response body for 422 Unprocessable Entity.

    Business-rule rejections (e.g. insufficient balance) use the same status
    with an empty ``details`` list.
    """

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(default="Validation failed", description="Summary message")
    details: List[ValidationErrorDetail] = Field(
        default_factory=list, description="Per-field validation failures"
    )
