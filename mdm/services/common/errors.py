"""
Service-layer exceptions.

Every failure surfaces synchronously as one of these typed errors. The
presentation layer maps `code` to its own messages; `message` and
`details` are machine-usable context, not user-facing copy.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Error kinds exposed to callers."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ALREADY_PENDING = "ALREADY_PENDING"
    ALREADY_RESOLVED = "ALREADY_RESOLVED"
    CYCLE_DETECTED = "CYCLE_DETECTED"
    REFERENTIAL_INTEGRITY = "REFERENTIAL_INTEGRITY"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"


class GovernanceError(Exception):
    """Base exception for all governance-core errors."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(GovernanceError):
    """Raised when a requested record does not exist."""

    code = ErrorCode.NOT_FOUND

    def __init__(
        self,
        resource_type: str,
        identifier: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        message = f"{resource_type} with identifier '{identifier}' not found"
        super().__init__(message, details)
        self.resource_type = resource_type
        self.identifier = identifier


class ForbiddenError(GovernanceError):
    """Raised when a principal lacks permission for an action."""

    code = ErrorCode.FORBIDDEN

    def __init__(
        self,
        message: str = "Authorization failed",
        required_permission: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.required_permission = required_permission


class ValidationError(GovernanceError):
    """Raised when input or business validation fails."""

    code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field


class AlreadyPendingError(GovernanceError):
    """Raised when a record already has an open approval request."""

    code = ErrorCode.ALREADY_PENDING

    def __init__(self, entity_type: str, entity_id: str, request_id: str) -> None:
        super().__init__(
            f"{entity_type} '{entity_id}' already has pending request '{request_id}'",
            details={"entity_type": entity_type, "entity_id": entity_id, "request_id": request_id},
        )
        self.request_id = request_id


class AlreadyResolvedError(GovernanceError):
    """Raised when deciding on a request that is no longer pending."""

    code = ErrorCode.ALREADY_RESOLVED

    def __init__(self, request_id: str, status: str) -> None:
        super().__init__(
            f"Approval request '{request_id}' is already {status}",
            details={"request_id": request_id, "status": status},
        )
        self.status = status


class CycleDetectedError(GovernanceError):
    """Raised when a hierarchy would contain (or already contains) a cycle."""

    code = ErrorCode.CYCLE_DETECTED


class ReferentialIntegrityError(GovernanceError):
    """Raised when a referenced record is missing, of the wrong type, or still referenced."""

    code = ErrorCode.REFERENTIAL_INTEGRITY

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field


class PersistenceError(GovernanceError):
    """Raised when the persistence provider fails to load or save a collection."""

    code = ErrorCode.PERSISTENCE_ERROR
