"""
Error types for Ritual.

This module defines the exceptions raised by the services and rendered by
the routing layer:
- RitualError: Base exception
- ValidationError: Missing or malformed input
- ConflictError: Duplicate uniqueness-index key
- AuthError: Bad credentials or bad bearer token
- NotFoundError: Entity does not exist
- ForbiddenError: Caller does not own the entity

Invariants:
    - All service errors inherit from RitualError
    - Every error carries the HTTP status the routing layer renders it with
    - Messages are safe to show to clients (no hashes, no tokens)
"""

from __future__ import annotations

from typing import Any


class RitualError(Exception):
    """Base exception for all Ritual service errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        status_code: HTTP status used when rendering the error
        details: Additional error context
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "RITUAL_ERROR"
        self.details = details or {}


class ValidationError(RitualError):
    """Request validation failed.

    Raised when:
    - Required field is missing
    - Field value has the wrong shape (bad color, bad frequency, bad date)
    """

    status_code = 400

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR", details={"field": field_name})
        self.field_name = field_name


class ConflictError(RitualError):
    """A uniqueness index already holds the requested key."""

    status_code = 400

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message, code="CONFLICT", details={"key": key})
        self.key = key


class AuthError(RitualError):
    """Authentication failed.

    Login failures are rendered as 404 with a uniform message so that a
    missing account and a wrong password look the same. Token failures use 401.
    """

    status_code = 401

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, code="AUTH_ERROR")
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(RitualError):
    """Resource not found."""

    status_code = 404

    def __init__(self, message: str, resource_type: str, resource_id: str) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ForbiddenError(RitualError):
    """Caller does not own the resource."""

    status_code = 403

    def __init__(self, message: str, actor: str, resource_id: str) -> None:
        super().__init__(
            message,
            code="FORBIDDEN",
            details={"actor": actor, "resource_id": resource_id},
        )
        self.actor = actor
        self.resource_id = resource_id
