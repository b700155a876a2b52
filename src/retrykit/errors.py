"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    POLICY_ERROR = 5


@dataclass
class RetryKitError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


@dataclass
class InvalidPolicy(RetryKitError, ValueError):
    """A policy field violates its invariant."""

    code: ExitCode = ExitCode.POLICY_ERROR


@dataclass
class InvalidOverrideKey(InvalidPolicy):
    """A per-invocation override names a key outside the policy keys."""


@dataclass
class InvalidBackoffStrategy(InvalidPolicy):
    """An unrecognized backoff strategy tag or start value."""


class RemoteServerError(Exception):
    """The remote side answered with a server-side failure."""


class RetriableRemoteError(Exception):
    """The remote side asked the caller to try again later."""


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
