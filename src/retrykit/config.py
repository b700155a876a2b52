"""TOML policy loading with environment overrides."""

from __future__ import annotations

import importlib
import logging as py_logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from retrykit.errors import ExitCode, InvalidPolicy
from retrykit.policy import RetryPolicy

logger = py_logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/retrykit/config.toml").expanduser()
RETRIES_ENV = "RETRYKIT_RETRIES"
TIME_TO_SLEEP_ENV = "RETRYKIT_TIME_TO_SLEEP"

_FILE_KEYS = {"retries", "retriable", "time_to_sleep", "backoff", "backoff_intervals"}


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _config_error(message: str, *, hint: str = "") -> InvalidPolicy:
    return InvalidPolicy(message, code=ExitCode.CONFIG_ERROR, hint=hint)


def import_failure_kind(dotted: str) -> type[Exception]:
    """Resolve ``"package.module.ClassName"`` to an exception class."""
    module_name, _, attribute = dotted.strip().rpartition(".")
    if not module_name:
        module_name, attribute = "builtins", dotted.strip()
    try:
        module = importlib.import_module(module_name)
        resolved = getattr(module, attribute)
    except (ImportError, AttributeError) as exc:
        raise _config_error(
            f"Cannot import retriable failure kind: {dotted}",
            hint="Use a dotted path such as builtins.ConnectionResetError.",
        ) from exc
    if not isinstance(resolved, type) or not issubclass(resolved, Exception):
        raise _config_error(f"Not an exception class: {dotted}")
    return resolved


def _read_table(resolved: Path) -> dict[str, Any]:
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        raise _config_error(
            f"Cannot read retry config {resolved}",
            hint="Fix the TOML syntax or remove the file.",
        ) from exc
    table = raw.get("retry", {})
    if not isinstance(table, dict):
        raise _config_error(f"Expected a [retry] table in {resolved}")
    return table


def _fields_from_table(table: Mapping[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(table) - _FILE_KEYS)
    if unknown:
        raise _config_error(
            f"Unknown retry config keys: {', '.join(unknown)}",
            hint=f"Use any of: {', '.join(sorted(_FILE_KEYS))}.",
        )
    fields: dict[str, Any] = {}
    for key in ("retries", "time_to_sleep", "backoff_intervals"):
        if key in table:
            fields[key] = table[key]
    if "retriable" in table:
        names = table["retriable"]
        if isinstance(names, str):
            names = [names]
        if not isinstance(names, list) or not all(isinstance(name, str) for name in names):
            raise _config_error("retriable must be a list of dotted exception names")
        fields["retriable"] = tuple(import_failure_kind(name) for name in names)
    if "backoff" in table:
        fields["backoff_setup"] = table["backoff"]
    return fields


def _env_number(name: str, convert: type[int] | type[float]) -> int | float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return convert(raw)
    except ValueError as exc:
        raise _config_error(f"Invalid {name} value: {raw}") from exc


def load_policy(path: str | Path | None = None) -> RetryPolicy:
    """Build a policy from the ``[retry]`` table of a TOML file.

    A missing file yields the built-in defaults. ``RETRYKIT_RETRIES`` and
    ``RETRYKIT_TIME_TO_SLEEP`` win over file values.
    """
    resolved = get_config_path(path)
    fields: dict[str, Any] = {}
    if resolved.exists():
        fields = _fields_from_table(_read_table(resolved))
    else:
        logger.debug("Retry config not found at %s; using defaults", resolved)

    env_retries = _env_number(RETRIES_ENV, int)
    if env_retries is not None:
        fields["retries"] = env_retries
    env_sleep = _env_number(TIME_TO_SLEEP_ENV, float)
    if env_sleep is not None:
        fields["time_to_sleep"] = env_sleep

    try:
        return RetryPolicy(**fields)
    except InvalidPolicy as exc:
        raise _config_error(f"{exc.message} in {resolved}", hint=exc.hint) from exc
