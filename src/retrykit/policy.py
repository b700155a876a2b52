"""Retry policy model, process-wide default and layered merging."""

from __future__ import annotations

import inspect
import logging as py_logging
import math
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from retrykit.backoff import INTERVALS_LENGTH, Backoff, BackoffStrategy
from retrykit.errors import (
    InvalidBackoffStrategy,
    InvalidOverrideKey,
    InvalidPolicy,
    RemoteServerError,
    RetriableRemoteError,
)
from retrykit.matchers import normalize_matchers

logger = py_logging.getLogger(__name__)

POLICY_KEYS: tuple[str, ...] = (
    "retries",
    "retriable",
    "retry_proc",
    "retry_condition_proc",
    "time_to_sleep",
    "backoff_intervals",
)
DEFAULT_RETRIES = 3
DEFAULT_TIME_TO_SLEEP = 0
DEFAULT_BACKOFF_START = 3
DEFAULT_SETUP_START = 1
DEFAULT_RETRIABLE: tuple[type[BaseException], ...] = (
    RemoteServerError,
    RetriableRemoteError,
    ConnectionResetError,
    OSError,
)


def _noop() -> None:
    return None


def _never() -> bool:
    return False


def _default_intervals() -> tuple[float, ...]:
    return Backoff(BackoffStrategy.CONSTANT, DEFAULT_BACKOFF_START).intervals


def _hook_arity(hook: Callable[..., Any]) -> int | None:
    """Return 0 for a bare hook, 1 for a hook taking the error, else None."""
    try:
        signature = inspect.signature(hook)
    except (TypeError, ValueError):
        # Some builtins expose no signature; trust callable() there.
        return 0
    for arity, arguments in ((0, ()), (1, (None,))):
        try:
            signature.bind(*arguments)
        except TypeError:
            continue
        return arity
    return None


def invoke_hook(hook: Callable[..., Any], error: BaseException) -> Any:
    if _hook_arity(hook) == 1:
        return hook(error)
    return hook()


def _intervals_from_setup(setup: object) -> tuple[float, ...]:
    if isinstance(setup, Backoff):
        return setup.intervals
    if not isinstance(setup, Mapping):
        raise InvalidBackoffStrategy(
            f"Invalid backoff setup: {setup!r}",
            hint='Use {"type": "<strategy>", "start": <seconds>}.',
        )
    unknown = sorted(set(setup) - {"type", "start"})
    if unknown:
        raise InvalidBackoffStrategy(
            f"Unknown backoff setup keys: {', '.join(map(str, unknown))}",
            hint="Only 'type' and 'start' are supported.",
        )
    if "type" not in setup:
        raise InvalidBackoffStrategy("Backoff setup requires a 'type'.")
    return Backoff(setup["type"], setup.get("start", DEFAULT_SETUP_START)).intervals


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "policy"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


class RetryPolicy(BaseModel):
    """Immutable set of retry parameters for one retry loop.

    ``backoff_setup`` (a :class:`Backoff` or ``{"type": ..., "start": ...}``)
    may be passed instead of ``backoff_intervals`` and wins over it.
    Invalid input raises :class:`InvalidPolicy`.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    retries: int = Field(default=DEFAULT_RETRIES, ge=1, strict=True)
    retriable: tuple[Any, ...] = DEFAULT_RETRIABLE
    retry_proc: Callable[..., Any] = _noop
    retry_condition_proc: Callable[..., Any] = _never
    time_to_sleep: float = Field(default=DEFAULT_TIME_TO_SLEEP, ge=0, allow_inf_nan=False)
    backoff_intervals: tuple[float, ...] | None = Field(default_factory=_default_intervals)

    def __init__(self, **data: Any) -> None:
        if "backoff_setup" in data:
            data["backoff_intervals"] = _intervals_from_setup(data.pop("backoff_setup"))
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise InvalidPolicy(
                f"Invalid retry policy ({_describe_validation_error(exc)})",
                hint="Check the retry policy fields.",
            ) from exc

    @field_validator("retries", mode="before")
    @classmethod
    def _validate_retries(cls, value: object) -> object:
        if isinstance(value, bool):
            raise ValueError("retries must be an integer")
        return value

    @field_validator("retriable", mode="before")
    @classmethod
    def _validate_retriable(cls, value: object) -> tuple[Any, ...]:
        return normalize_matchers(value)

    @field_validator("retry_proc", "retry_condition_proc")
    @classmethod
    def _validate_hook(cls, value: Callable[..., Any]) -> Callable[..., Any]:
        if _hook_arity(value) is None:
            raise ValueError("hook must accept no arguments or only the raised error")
        return value

    @field_validator("backoff_intervals")
    @classmethod
    def _validate_intervals(cls, value: tuple[float, ...] | None) -> tuple[float, ...] | None:
        if value is None:
            return value
        if len(value) != INTERVALS_LENGTH:
            raise ValueError(f"backoff_intervals must hold exactly {INTERVALS_LENGTH} delays")
        if any(item < 0 or not math.isfinite(item) for item in value):
            raise ValueError("backoff_intervals must be finite and non-negative")
        return value

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in POLICY_KEYS}

    def merged(self, overrides: Mapping[str, Any] | None = None) -> RetryPolicy:
        """Return a new policy with ``overrides`` laid over this one."""
        if not overrides:
            return self
        unknown = sorted(str(key) for key in overrides if key not in POLICY_KEYS)
        if unknown:
            raise InvalidOverrideKey(
                f"Unknown retry override keys: {', '.join(unknown)}",
                hint=f"Use any of: {', '.join(POLICY_KEYS)}.",
            )
        return RetryPolicy(**{**self.to_dict(), **dict(overrides)})


_default_policy = RetryPolicy()


def default_policy() -> RetryPolicy:
    return _default_policy


def configure(**fields: Any) -> RetryPolicy:
    """Replace the process-wide default with a new policy.

    Fields not given keep their current default value. Call this before any
    retry loop starts; running loops keep the policy they resolved.
    """
    global _default_policy
    _default_policy = RetryPolicy(**{**_default_policy.to_dict(), **fields})
    logger.debug("Default retry policy reconfigured fields=%s", sorted(fields))
    return _default_policy


def reset_default_policy() -> RetryPolicy:
    global _default_policy
    _default_policy = RetryPolicy()
    return _default_policy


def resolve_policy(
    *layers: Mapping[str, Any] | None,
    base: RetryPolicy | None = None,
) -> RetryPolicy:
    """Merge override layers, left to right, over ``base`` or the default."""
    policy = base if base is not None else default_policy()
    for layer in layers:
        policy = policy.merged(layer)
    return policy
