"""Retry executor for operations that may fail transiently."""

from __future__ import annotations

import functools
import logging as py_logging
import time
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from retrykit.backoff import Backoff, BackoffStrategy, Number, delay_for
from retrykit.matchers import Matcher, matches_any
from retrykit.policy import RetryPolicy, invoke_hook, resolve_policy

T = TypeVar("T")

logger = py_logging.getLogger(__name__)


def _pause_for(policy: RetryPolicy, attempt: int) -> float:
    # A positive static delay wins; the schedule covers time_to_sleep == 0.
    if policy.time_to_sleep > 0 or not policy.backoff_intervals:
        return policy.time_to_sleep
    return delay_for(policy.backoff_intervals, attempt)


def run_with_retry(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy | None = None,
    overrides: Mapping[str, Any] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``operation`` until it succeeds or the retry budget runs out.

    ``policy`` defaults to the process-wide default; ``overrides`` apply to
    this call only. The operation runs at most ``retries + 1`` times. The
    error that ends the loop is re-raised unchanged.
    """
    resolved = resolve_policy(overrides, base=policy)
    attempt = 0

    while True:
        try:
            return operation()
        except Exception as exc:
            if not matches_any(exc, resolved.retriable):
                logger.debug("Non-retriable failure on attempt %s: %r", attempt + 1, exc)
                raise
            if attempt >= resolved.retries:
                logger.error(
                    "Retry budget exhausted after %s attempts: %r",
                    resolved.max_attempts,
                    exc,
                )
                raise
            invoke_hook(resolved.retry_proc, exc)
            condition = invoke_hook(resolved.retry_condition_proc, exc)
            logger.debug("Retry condition hook returned %r (not used to gate retry)", condition)
            pause = _pause_for(resolved, attempt)
            logger.warning(
                "Retriable failure attempt=%s/%s error=%r; retrying in %ss",
                attempt + 1,
                resolved.max_attempts,
                exc,
                pause,
            )
            sleep(pause)
            attempt += 1


class Retrier:
    """Call-site retry policy holder.

    Declared fields sit between the process-wide default and per-call
    overrides. Each declaration is validated immediately.
    """

    def __init__(
        self,
        *,
        sleep: Callable[[float], None] = time.sleep,
        **declared: Any,
    ) -> None:
        self._sleep = sleep
        self._declared: dict[str, Any] = {}
        self._declare(**declared)

    def _declare(self, **fields: Any) -> Retrier:
        if "backoff_setup" in fields:
            setup = fields.pop("backoff_setup")
            fields["backoff_intervals"] = RetryPolicy(backoff_setup=setup).backoff_intervals
        candidate = {**self._declared, **fields}
        resolve_policy(candidate)
        self._declared = candidate
        return self

    @property
    def declared(self) -> dict[str, Any]:
        return dict(self._declared)

    @property
    def retriable_configuration(self) -> RetryPolicy:
        return resolve_policy(self._declared)

    def number_of_retries(self, retries: int) -> Retrier:
        return self._declare(retries=retries)

    def retriable_errors(self, *matchers: Matcher) -> Retrier:
        return self._declare(retriable=matchers[0] if len(matchers) == 1 else matchers)

    def on_retry(self, hook: Callable[..., Any]) -> Retrier:
        """Run ``hook`` before each retry; a one-parameter hook gets the error."""
        return self._declare(retry_proc=hook)

    def retriable_condition(self, hook: Callable[..., Any]) -> Retrier:
        return self._declare(retry_condition_proc=hook)

    def sleep_before_retry(self, seconds: float) -> Retrier:
        return self._declare(time_to_sleep=seconds)

    def backoff_strategy(self, *, type: BackoffStrategy | str, start: Number) -> Retrier:
        return self._declare(backoff_intervals=Backoff(type, start).intervals)

    def call(self, operation: Callable[[], T], **overrides: Any) -> T:
        policy = resolve_policy(self._declared, overrides)
        return run_with_retry(operation, policy=policy, sleep=self._sleep)

    def wrap(self, func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return self.call(lambda: func(*args, **kwargs))

        return wrapper
