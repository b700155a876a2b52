"""Logging setup for the ``retrykit`` logger tree.

Library modules only log through ``getLogger(__name__)``. Applications that
want retry output call :func:`configure_logging` once; it attaches handlers to
the ``retrykit`` logger and can raise or lower single modules, e.g. show every
retry decision from ``retrykit.retry`` while keeping policy resolution quiet.
"""

from __future__ import annotations

import logging as py_logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import TextIO

LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "WARNING": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
LOGGER_NAME = "retrykit"
MODULE_LOGGERS = ("config", "policy", "retry")
_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def resolve_level(name: str) -> int:
    try:
        return LOG_LEVELS[name.strip().upper()]
    except KeyError as exc:
        raise ValueError(f"Unknown log level: {name}") from exc


def parse_module_level(value: str) -> tuple[str, str]:
    """Split ``retry=DEBUG`` into a module name and an upper-cased level."""
    module, separator, level = value.partition("=")
    module = module.strip().lower()
    if not separator or module not in MODULE_LOGGERS:
        raise ValueError(f"Expected <module>=<level> with module in: {', '.join(MODULE_LOGGERS)}")
    resolve_level(level)
    return module, level.strip().upper()


def _module_overrides(module_levels: Mapping[str, str] | None) -> dict[str, int]:
    overrides = {}
    for module, level in (module_levels or {}).items():
        name, upper = parse_module_level(f"{module}={level}")
        overrides[name] = LOG_LEVELS[upper]
    return overrides


def configure_logging(
    level: str = "WARN",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
    module_levels: Mapping[str, str] | None = None,
) -> py_logging.Logger:
    """Attach handlers to the ``retrykit`` logger and set per-module levels.

    An unknown ``level`` falls back to INFO. ``module_levels`` maps names from
    :data:`MODULE_LOGGERS` to levels; modules left out follow ``level``.
    Reconfiguring replaces earlier handlers and module levels.
    """
    overrides = _module_overrides(module_levels)
    logger = py_logging.getLogger(LOGGER_NAME)
    logger.setLevel(LOG_LEVELS.get(level.strip().upper(), py_logging.INFO))
    for existing in logger.handlers:
        existing.close()
    logger.handlers.clear()

    for module in MODULE_LOGGERS:
        py_logging.getLogger(f"{LOGGER_NAME}.{module}").setLevel(overrides.get(module, py_logging.NOTSET))

    formatter = py_logging.Formatter(_FORMAT)
    handler = py_logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if log_file:
        log_path = Path(log_file).expanduser().resolve()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = py_logging.FileHandler(log_path, encoding="utf-8")
        except OSError:
            logger.warning("Cannot open log file %s; logging to stream only", log_path)
        else:
            file_handler.setLevel(py_logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    logger.propagate = False
    return logger

