"""
Domain error hierarchy.

Every error carries a machine-readable kind and a human-readable reason.
They subclass HTTPException so services can raise them directly and the
API surfaces them as:

    {"detail": {"error": "<kind>", "message": "<reason>"}}
"""

from typing import Any, Optional

from fastapi import HTTPException, status


class DomainError(HTTPException):
    kind: str = "DomainError"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        detail: dict[str, Any] = {"error": self.kind, "message": message}
        if context:
            detail["context"] = context
        super().__init__(status_code=self.__class__.status_code, detail=detail)

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class ValidationError(DomainError):
    """Bad date range, capacity exceeded, illegal transition. Raised before any mutation."""

    kind = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidAmount(ValidationError):
    kind = "InvalidAmount"


class BookingConflict(DomainError):
    """Requested range overlaps a pending or confirmed booking."""

    kind = "BookingConflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, conflicting_references: Optional[list[str]] = None, **context: Any):
        self.conflicting_references = conflicting_references or []
        if self.conflicting_references:
            context["conflicting_references"] = self.conflicting_references
        super().__init__(message, **context)


class NotFound(DomainError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class BookingNotFound(NotFound):
    kind = "BookingNotFound"


class NotAuthorized(DomainError):
    kind = "NotAuthorized"
    status_code = status.HTTP_403_FORBIDDEN


class NotOwner(NotAuthorized):
    kind = "NotOwner"


class OperationTimeout(DomainError):
    kind = "Timeout"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class BackendUnavailable(DomainError):
    kind = "BackendUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
