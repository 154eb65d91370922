"""
Tagged result of a single upstream attempt.

The classification step turns every attempt into either Success or Failure.
Both the retry loop and the circuit breaker consume the outcome without
re-inspecting exception types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar, Union

if TYPE_CHECKING:
    from sportsfetch.errors.base import UpstreamError

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful attempt carrying its value."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Failed attempt.

    Attributes:
        error: Classified upstream error
        retryable: Whether another attempt may succeed
        retry_after: Server-suggested delay in seconds, if any
    """

    error: UpstreamError
    retryable: bool
    retry_after: float | None = None

    @property
    def ok(self) -> bool:
        return False


OperationOutcome = Union[Success[T], Failure]
