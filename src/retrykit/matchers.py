"""Failure-kind matchers and classification of raised errors."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class FailureMatcher:
    """Named predicate over a raised error.

    Use it when the exception class alone does not say whether a failure is
    transient, e.g. an HTTP error carrying a status code.
    """

    name: str
    predicate: Callable[[BaseException], bool]

    def matches(self, error: BaseException) -> bool:
        return bool(self.predicate(error))

    def __str__(self) -> str:
        return self.name


Matcher = Union[type[Exception], FailureMatcher]


def is_matcher(candidate: object) -> bool:
    if isinstance(candidate, FailureMatcher):
        return True
    return (
        isinstance(candidate, type)
        and issubclass(candidate, Exception)
        and candidate is not Exception
    )


def normalize_matchers(value: object) -> tuple[Matcher, ...]:
    """Wrap a single matcher and validate every element.

    Raises ``ValueError`` for an empty set or anything that is not an
    exception class or a :class:`FailureMatcher`.
    """
    if is_matcher(value):
        return (value,)  # type: ignore[return-value]
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise ValueError(f"Unsupported retriable value: {value!r}")
    matchers = tuple(value)
    if not matchers:
        raise ValueError("At least one retriable failure kind is required")
    invalid = [item for item in matchers if not is_matcher(item)]
    if invalid:
        raise ValueError(f"Unsupported retriable failure kinds: {invalid!r}")
    return matchers


def matches_any(error: BaseException, matchers: Iterable[Matcher]) -> bool:
    for matcher in matchers:
        if isinstance(matcher, FailureMatcher):
            if matcher.matches(error):
                return True
        elif isinstance(error, matcher):
            return True
    return False


def describe(matcher: Matcher) -> str:
    if isinstance(matcher, FailureMatcher):
        return str(matcher)
    return f"{matcher.__module__}.{matcher.__qualname__}"
