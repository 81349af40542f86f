"""
Tagged workflow results.

Every workflow operation returns either ``Ok(data)`` or ``Err(kind, message)``.
Callers branch on ``result.success`` (or ``isinstance``) and never need a
try/except around a workflow call.
"""

from dataclasses import dataclass
from typing import ClassVar, Generic, TypeVar, Union

from shared.errors import ErrorKind, LibraryException


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a payload."""
    data: T
    message: str = ""

    success: ClassVar[bool] = True


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying its category and a readable message."""
    kind: ErrorKind
    message: str

    success: ClassVar[bool] = False
    data: ClassVar[None] = None

    @classmethod
    def from_exception(cls, exc: LibraryException) -> "Err":
        return cls(kind=exc.kind, message=exc.message)

    @classmethod
    def validation(cls, message: str) -> "Err":
        return cls(kind=ErrorKind.VALIDATION, message=message)

    @classmethod
    def not_found(cls, message: str) -> "Err":
        return cls(kind=ErrorKind.NOT_FOUND, message=message)

    @classmethod
    def store(cls, message: str) -> "Err":
        return cls(kind=ErrorKind.STORE, message=message)


ServiceResult = Union[Ok[T], Err]
