# src/rbi_core/domain/exceptions/registry.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""
Registry domain exceptions.

Purpose:
    Error taxonomy for resident/household mutations and reads.

Layer:
    domain

Notes:
    - ``ValidationError`` and ``AuthorizationError`` are expected outcomes.
      The mutation coordinator converts them into a rejected result instead
      of letting them escape.
    - ``ConsistencyError`` is never auto-corrected; it is surfaced on the
      operator channel with the full before/after diff.
    - ``StorageError`` is raised by adapters when the persistence layer
      fails. Its message is generic so callers may retry safely.
"""

from __future__ import annotations

from typing import Any

from rbi_core.domain.exceptions.base import DomainError


class ValidationError(DomainError):
    """Raised when input shape, field values or code chains are invalid.

    ``details`` maps field names to human-readable problems.
    """

    code = "VALIDATION_ERROR"

    @classmethod
    def for_field(cls, field: str, problem: str) -> ValidationError:
        """Build an error describing a single offending field."""
        return cls(f"Invalid value for '{field}': {problem}", details={field: problem})


class ResourceNotFoundError(ValidationError):
    """Raised when a referenced resident or household does not exist."""

    code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} not found",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class AuthorizationError(DomainError):
    """Raised when the access policy denies an action.

    Only the deny reason is exposed; resource internals are never included.
    """

    code = "AUTHORIZATION_DENIED"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Access denied: {reason}", details={"reason": reason})
        self.reason = reason


class ConsistencyError(DomainError):
    """Raised when a stored derived value differs from a fresh recomputation."""

    code = "CONSISTENCY_ERROR"

    def __init__(
        self,
        *,
        resource_type: str,
        resource_id: str,
        diff: dict[str, dict[str, Any]],
    ) -> None:
        super().__init__(
            f"Derived fields drifted for {resource_type} {resource_id}",
            details={"resource_type": resource_type, "resource_id": resource_id, "diff": diff},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.diff = diff


class StorageError(DomainError):
    """Raised when a transaction or persistence operation fails."""

    code = "STORAGE_ERROR"

    def __init__(
        self,
        message: str = "Storage operation failed; the request may be retried.",
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)


class ConcurrentModificationError(StorageError):
    """Raised when an optimistic version check fails on upsert."""

    code = "CONCURRENT_MODIFICATION"
