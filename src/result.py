"""Two-variant outcome type returned by every backend command.

``Ok`` carries a success value, ``Err`` carries a typed error. Nothing here
raises: ``Err`` is the only failure channel.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")
R = TypeVar("R")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True

    @property
    def is_err(self) -> bool:
        return False

    def fold(self, on_error: Callable[[E], R], on_success: Callable[[T], R]) -> R:
        return on_success(self.value)

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        return Ok(fn(self.value))

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome."""

    error: E

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def is_err(self) -> bool:
        return True

    def fold(self, on_error: Callable[[E], R], on_success: Callable[[T], R]) -> R:
        return on_error(self.error)

    def map(self, fn: Callable[[T], U]) -> Err[E]:
        return self

    def unwrap_or(self, default: T) -> T:
        return default


Result = Union[Ok[T], Err[E]]


def handle_result(
    result: Result[T, E],
    on_error: Callable[[E], None],
    on_success: Callable[[T], None],
) -> None:
    """Run exactly one of the handlers for ``result``."""
    result.fold(on_error, on_success)
