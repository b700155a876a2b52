"""Command line inspection of backoff schedules and resolved policies."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from .backoff import BackoffStrategy, generate
from .config import load_policy
from .errors import ExitCode, RetryKitError, user_facing_error
from .logging import configure_logging, parse_module_level
from .matchers import describe
from .policy import RetryPolicy

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")
_VALID_STRATEGIES = tuple(item.value for item in BackoffStrategy)


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def _module_level_type(value: str) -> tuple[str, str]:
    try:
        return parse_module_level(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"--module-level: {exc}") from exc


def _start_type(value: str) -> float | int:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--start must be a number") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="retrykit")
    parser.add_argument("--log-level", type=_log_level_type, default="WARN")
    parser.add_argument("--log-file", type=Path, default=None)
    parser.add_argument(
        "--module-level",
        type=_module_level_type,
        action="append",
        default=[],
        metavar="MODULE=LEVEL",
        help="Override the level of one retrykit module logger, e.g. retry=DEBUG",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    intervals = commands.add_parser("intervals", help="Print the ten backoff delays")
    intervals.add_argument("--strategy", choices=_VALID_STRATEGIES, default="constant")
    intervals.add_argument("--start", type=_start_type, default=3)

    policy = commands.add_parser("policy", help="Print the policy loaded from config")
    policy.add_argument("--config", type=Path, default=None)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def _hook_name(hook: object) -> str:
    return getattr(hook, "__qualname__", None) or repr(hook)


def format_policy(policy: RetryPolicy) -> list[str]:
    intervals = policy.backoff_intervals
    return [
        f"retries = {policy.retries}",
        f"retriable = {', '.join(describe(item) for item in policy.retriable)}",
        f"retry_proc = {_hook_name(policy.retry_proc)}",
        f"retry_condition_proc = {_hook_name(policy.retry_condition_proc)}",
        f"time_to_sleep = {policy.time_to_sleep}",
        f"backoff_intervals = {', '.join(str(item) for item in intervals) if intervals else 'none'}",
    ]


def run_command(namespace: argparse.Namespace, out: TextIO) -> int:
    if namespace.command == "intervals":
        lines = [str(item) for item in generate(namespace.strategy, namespace.start)]
    else:
        lines = format_policy(load_policy(namespace.config))
    out.write("\n".join(lines) + "\n")
    return int(ExitCode.SUCCESS)


def main(argv: Sequence[str] | None = None, *, out: TextIO | None = None) -> int:
    logger = configure_logging(level="WARN")
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    logger = configure_logging(
        level=namespace.log_level,
        log_file=namespace.log_file,
        module_levels=dict(namespace.module_level),
    )

    try:
        logger.debug("Running command %s", namespace.command)
        return run_command(namespace, out or sys.stdout)
    except RetryKitError as exc:
        logger.error(
            "Handled RetryKitError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        if namespace.log_file is not None:
            hint = f"Inspect logs: {namespace.log_file}"
        else:
            hint = "Re-run with --log-file PATH to keep a debug log"
        print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
