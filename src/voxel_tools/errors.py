"""
Error Taxonomy and Results

Fallible stages (argument checks, dispatch, reads, filtering, writes,
allocation) return a Result instead of raising. The Result carries either
the stage's value or a ToolError naming what failed, so callers can stop
at the first failure and report which stage it came from.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar


T = TypeVar("T")


class ErrorKind(Enum):
    """Failure categories, one per originating stage."""
    MISSING_ARGUMENT = "MissingArgument"
    INVALID_ARGUMENT = "InvalidArgument"
    UNSUPPORTED_CONFIGURATION = "UnsupportedConfiguration"
    READ_INPUT = "ReadInput"
    READ_MASK = "ReadMask"
    FILTER_PRECONDITION = "FilterPrecondition"
    FILTER_EXECUTION = "FilterExecution"
    WRITE_OUTPUT = "WriteOutput"
    ALLOCATION_FAILURE = "AllocationFailure"


@dataclass(frozen=True)
class ToolError:
    """A failure with its category and a human readable message."""
    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a fallible stage.

    Exactly one of value/error is meaningful: ``ok`` tells which.
    """
    value: Optional[T] = None
    error: Optional[ToolError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Result":
        return cls(error=ToolError(kind, message))

    def with_kind(self, kind: ErrorKind) -> "Result":
        """Re-label a failure (e.g. a read failure that belongs to the mask)."""
        if self.ok:
            return self
        return Result(error=ToolError(kind, self.error.message))
