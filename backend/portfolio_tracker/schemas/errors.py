# backend/portfolio_tracker/schemas/errors.py
"""Error response bodies returned by the global exception handlers in main.py."""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """
    Body of every 4xx/5xx response except request validation.

    `error` is the exception class name for domain errors (HoldingNotFoundError,
    InsufficientCashError, ...) or a generic HTTP name (UnauthorizedError).
    """

    error: str = Field(..., description="Error type, e.g. 'InsufficientSharesError'")
    message: str
    details: dict | None = Field(
        default=None,
        description="Structured context such as the offending field or resource id",
    )


class ValidationErrorDetail(BaseModel):
    """Body of 422 responses: one entry per invalid field."""

    error: str = "ValidationError"
    message: str = "Request validation failed"
    details: list[dict] = Field(..., description="[{field, message, type}, ...]")
