"""
GuardSpine — Hook Log Output

Rendering for the `guardspine` logger namespace. Hook modules log through
logging.getLogger("guardspine.<module>"); this module only decides what a
line looks like and which level passes.

Levels use the hook vocabulary (debug, info, warn, error) in both the config
and the rendered line, so a GUARDSPINE_LOG_LEVEL value can be grepped for
directly in the output.

Line shapes:
    {"ts":"...","level":"warn","component":"hooks","msg":"...","service":"guardspine-hooks@0.1.0"}
    [guardspine:warn] hooks: ...

Usage:
    from guardspine.logging import configure_logging

    configure_logging(level="warn")
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from guardspine.errors import serialize_error

ROOT_LOGGER = "guardspine"
SERVICE_NAME = "guardspine-hooks"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# stdlib level → hook vocabulary
_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}

# Marks handlers installed by configure_logging
_HANDLER_ATTR = "_guardspine_handler"


def to_logging_level(level: str) -> int:
    return LEVELS.get((level or "").lower(), logging.INFO)


def level_name(levelno: int) -> str:
    return _LEVEL_NAMES.get(levelno, logging.getLevelName(levelno).lower())


def _component(record: logging.LogRecord) -> str:
    prefix = ROOT_LOGGER + "."
    return record.name[len(prefix):] if record.name.startswith(prefix) else record.name


class HookLogFormatter(logging.Formatter):
    """
    One compact JSON object per record.

    Fields passed as extra={"structured": {...}} land under "fields"; an
    attached exception lands under "error" as {type, message}.
    """

    def __init__(self, service: str = SERVICE_NAME, version: str | None = None):
        super().__init__()
        version = version or os.environ.get("GUARDSPINE_VERSION", "0.1.0")
        self.service = f"{service}@{version}"

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": level_name(record.levelno),
            "component": _component(record),
            "msg": record.getMessage(),
            "service": self.service,
        }
        structured = getattr(record, "structured", None)
        if isinstance(structured, dict) and structured:
            entry["fields"] = structured
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            entry["error"] = {"type": type(exc).__name__, "message": serialize_error(exc)}
        return json.dumps(entry, separators=(",", ":"), default=str)


class PlainHookFormatter(logging.Formatter):
    """`[guardspine:<level>] <component>: <message>` for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        line = f"[{ROOT_LOGGER}:{level_name(record.levelno)}] {_component(record)}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "info",
    stream: Any = None,
    json_format: bool = True,
) -> logging.Logger:
    """
    Install the guardspine handler and apply a config log level.

    Replaces a handler from an earlier call; handlers installed by the host
    are left alone.

    Args:
        level: debug, info, warn, error
        stream: Output stream (default: sys.stderr)
        json_format: HookLogFormatter when True, PlainHookFormatter otherwise
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(HookLogFormatter() if json_format else PlainHookFormatter())
    setattr(handler, _HANDLER_ATTR, True)
    logger.addHandler(handler)
    logger.setLevel(to_logging_level(level))
    logger.propagate = False
    return logger


def set_level(level: str) -> None:
    """Apply a config log level without touching handlers."""
    logging.getLogger(ROOT_LOGGER).setLevel(to_logging_level(level))
