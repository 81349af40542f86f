"""
Shared error handling for the Library System.
"""

from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from .logging import get_request_id


class ErrorKind(str, Enum):
    """Failure categories surfaced by workflows."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    STORE = "store"


ERROR_CODES = {
    ErrorKind.VALIDATION: "VALIDATION_ERROR",
    ErrorKind.NOT_FOUND: "NOT_FOUND",
    ErrorKind.STORE: "STORE_ERROR",
}

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORE: 500,
}


class ErrorResponse(BaseModel):
    """Failure envelope; same outer shape as a successful response."""

    success: bool = False
    data: None = None
    message: str
    code: str
    request_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_kind(cls, kind: ErrorKind, message: str, details: Optional[Dict[str, Any]] = None) -> "ErrorResponse":
        return cls(
            message=message,
            code=ERROR_CODES[kind],
            request_id=get_request_id(),
            details=details or {}
        )


class LibraryException(Exception):
    """Base exception for Library System services."""

    kind: ErrorKind = ErrorKind.STORE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def code(self) -> str:
        return ERROR_CODES[self.kind]

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse.for_kind(self.kind, self.message, self.details)


class ValidationError(LibraryException):
    """Invalid identifiers or missing payloads, raised before any I/O."""

    kind = ErrorKind.VALIDATION


class NotFoundError(LibraryException):
    """Entity absent from the store."""

    kind = ErrorKind.NOT_FOUND


class StoreError(LibraryException):
    """Underlying persistence failure; the driver message is passed through."""

    kind = ErrorKind.STORE
