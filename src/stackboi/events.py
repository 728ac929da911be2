"""Event types for generator-based operations.

Long-running operations are written as generators that yield progress and finish
by yielding exactly one CompletionEvent carrying the operation's result. The
caller decides how to render progress (CLI lines, TUI screens, nothing in tests).
"""

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

T = TypeVar("T")

ProgressStyle = Literal["info", "success", "warning", "error"]


@dataclass(frozen=True)
class ProgressEvent:
    """A human-readable progress message."""

    message: str
    style: ProgressStyle = "info"


@dataclass(frozen=True)
class CompletionEvent(Generic[T]):
    """Final event of an operation, wrapping its result."""

    result: T
