# parcel_router/app/errors.py
"""
Error taxonomy shared by the rule engine, the importer and the HTTP layer.

Every error carries an explicit ``kind`` so callers can switch on it instead
of catching by subclass.
"""

import enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INTEGRITY_CONFLICT = "INTEGRITY_CONFLICT"
    STORAGE_FAILURE = "STORAGE_FAILURE"
    CANCELLED = "IMPORT_CANCELLED"


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class ParcelRouterError(Exception):
    """Base exception for the parcel router."""

    def __init__(self, kind: ErrorKind, message: str, details: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(code=self.kind.value, message=self.message, details=self.details)


class ValidationError(ParcelRouterError):
    """Malformed manifest or entity invariant violation."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorKind.VALIDATION, message, details)


class NotFoundError(ParcelRouterError):
    """Referenced parcel, department or container does not exist."""

    def __init__(self, entity: str, key: Any, details: Optional[Dict[str, Any]] = None):
        details = {"entity": entity, "key": str(key), **(details or {})}
        super().__init__(ErrorKind.NOT_FOUND, f"{entity} {key} not found", details)


class IntegrityConflictError(ParcelRouterError):
    """A stored container disagrees with a re-submitted manifest."""

    def __init__(self, business_id: str, field: str, existing: Any, new: Any,
                 position: Optional[int] = None):
        label = field.replace("_", " ")
        if position is not None:
            label = f"parcel {position} {label}"
        message = (f"Container {business_id} already exists with different data: "
                   f"{label} mismatch (existing={existing}, new={new})")
        details = {"container_id": business_id, "field": field,
                   "existing": str(existing), "new": str(new)}
        if position is not None:
            details["position"] = position
        self.field = field
        self.position = position
        super().__init__(ErrorKind.INTEGRITY_CONFLICT, message, details)


class StorageFailureError(ParcelRouterError):
    """A store operation failed; the original exception is chained as __cause__."""

    def __init__(self, message: str = "Storage operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorKind.STORAGE_FAILURE, message, details)


class ImportCancelledError(ParcelRouterError):
    """The caller cancelled an in-flight import at a storage boundary."""

    def __init__(self, business_id: str):
        super().__init__(ErrorKind.CANCELLED, f"Import of container {business_id} was cancelled",
                         {"container_id": business_id})
