"""Standardized error payloads and the domain error taxonomy.

Every domain error is an ``HTTPException`` carrying the standard
``{"error": {"code", "message", "details"?}}`` payload, so services can raise
them directly and the application-level handler renders them unchanged.
None of them are retried internally.
"""
from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return a standardized error payload."""

    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return payload


class DomainError(HTTPException):
    """Base class for synchronous, caller-visible failures of a mutating call."""

    http_status: int = status.HTTP_400_BAD_REQUEST
    default_code: str = "DOMAIN_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        super().__init__(
            status_code=self.http_status,
            detail=error_response(self.code, message, details),
        )

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(DomainError):
    """Malformed or non-positive input; always caller-fixable."""

    http_status = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class Unauthenticated(DomainError):
    http_status = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHENTICATED"


class Unauthorized(DomainError):
    http_status = status.HTTP_403_FORBIDDEN
    default_code = "UNAUTHORIZED"


class NotFoundError(DomainError):
    http_status = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ConflictError(DomainError):
    """Overlapping budget periods, inactive budgets or lost concurrent updates."""

    http_status = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class BudgetExceededError(DomainError):
    http_status = status.HTTP_409_CONFLICT
    default_code = "BUDGET_EXCEEDED"


class InvalidReductionError(DomainError):
    http_status = status.HTTP_409_CONFLICT
    default_code = "INVALID_REDUCTION"


class DuplicateAllocationError(DomainError):
    http_status = status.HTTP_409_CONFLICT
    default_code = "DUPLICATE_ALLOCATION"


class InvalidTransitionError(DomainError):
    http_status = status.HTTP_409_CONFLICT
    default_code = "INVALID_TRANSITION"


__all__ = [
    "error_response",
    "DomainError",
    "ValidationError",
    "Unauthenticated",
    "Unauthorized",
    "NotFoundError",
    "ConflictError",
    "BudgetExceededError",
    "InvalidReductionError",
    "DuplicateAllocationError",
    "InvalidTransitionError",
]
