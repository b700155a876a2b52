"""Backoff interval generation."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from retrykit.errors import InvalidBackoffStrategy

INTERVALS_LENGTH = 10

Number = int | float


class BackoffStrategy(str, Enum):
    CONSTANT = "constant"
    LINEAR = "linear"
    FIBONACCI = "fibonacci"


def parse_strategy(value: BackoffStrategy | str) -> BackoffStrategy:
    if isinstance(value, BackoffStrategy):
        return value
    normalized = str(value).strip().lower()
    try:
        return BackoffStrategy(normalized)
    except ValueError:
        accepted = ", ".join(item.value for item in BackoffStrategy)
        raise InvalidBackoffStrategy(
            f"Invalid backoff strategy: {value}",
            hint=f"Use one of: {accepted}.",
        ) from None


def _validate_start(strategy: BackoffStrategy, start: object) -> Number:
    if isinstance(start, bool) or not isinstance(start, (int, float)) or not math.isfinite(start):
        raise InvalidBackoffStrategy(
            f"Invalid backoff start: {start!r}",
            hint="Use a finite number of seconds.",
        )
    if start < 0:
        raise InvalidBackoffStrategy(
            f"Invalid backoff start: {start}",
            hint="Backoff start cannot be negative.",
        )
    if strategy is BackoffStrategy.FIBONACCI and start == 0:
        raise InvalidBackoffStrategy(
            "Invalid backoff start: 0",
            hint="The fibonacci strategy needs a start greater than zero.",
        )
    return start


def _constant(start: Number) -> list[Number]:
    return [start] * INTERVALS_LENGTH


def _linear(start: Number) -> list[Number]:
    return [start * (index + 1) for index in range(INTERVALS_LENGTH)]


def _fibonacci(start: Number) -> list[Number]:
    intervals = [start, start + 2]
    while len(intervals) < INTERVALS_LENGTH:
        intervals.append(intervals[-1] + intervals[-2])
    return intervals


_GENERATORS = {
    BackoffStrategy.CONSTANT: _constant,
    BackoffStrategy.LINEAR: _linear,
    BackoffStrategy.FIBONACCI: _fibonacci,
}


def generate(strategy: BackoffStrategy | str, start: Number) -> tuple[Number, ...]:
    """Return the ten delays, in seconds, for ``strategy`` seeded at ``start``.

    Index 0 is the wait after the first failed attempt, index 1 after the
    second one, and so on.
    """
    resolved = parse_strategy(strategy)
    return tuple(_GENERATORS[resolved](_validate_start(resolved, start)))


def delay_for(intervals: Sequence[Number], attempt: int) -> Number:
    """Pick the delay for a 0-indexed retry; clamps to the last entry."""
    if not intervals:
        raise ValueError("intervals must not be empty")
    return intervals[min(attempt, len(intervals) - 1)]


@dataclass(frozen=True)
class Backoff:
    strategy: BackoffStrategy
    start: Number

    def __post_init__(self) -> None:
        strategy = parse_strategy(self.strategy)
        object.__setattr__(self, "strategy", strategy)
        object.__setattr__(self, "start", _validate_start(strategy, self.start))

    @property
    def intervals(self) -> tuple[Number, ...]:
        return generate(self.strategy, self.start)
