"""
GuardSpine — Exception Hierarchy

GuardSpineBlocked is the only error allowed to escape a hook entry point.
Every other failure is caught at its call site, normalized through
serialize_error() for the log line, and turned into a no-op continuation.
"""

from __future__ import annotations

import json
from typing import Any

BLOCKED_PREFIX = "GuardSpine BLOCKED"


class GuardSpineError(Exception):
    """Base exception for all GuardSpine hook errors."""

    def __init__(self, message: str = "", **kwargs):
        self.detail = kwargs
        super().__init__(message)


class GuardSpineBlocked(GuardSpineError):
    """Policy block: enforce mode and risk at or above the threshold."""

    def __init__(self, message: str = "", **kwargs):
        if not message.startswith(BLOCKED_PREFIX):
            message = f"{BLOCKED_PREFIX}: {message}" if message else BLOCKED_PREFIX
        super().__init__(message, **kwargs)


class GuardSpineTransportError(GuardSpineError):
    """Timeout or transport failure talking to the backend or a callback."""

    def __init__(self, message: str = "", code: str | None = None, **kwargs):
        self.code = code
        super().__init__(message, **kwargs)


def is_blocking_error(err: BaseException) -> bool:
    return isinstance(err, GuardSpineBlocked) or str(err).startswith(BLOCKED_PREFIX)


def serialize_error(err: Any) -> str:
    """
    Normalize any failure into a single log-friendly string.

    Order: human message, machine error code, structured dump, str().
    Used for log output only, never for control flow.
    """
    if isinstance(err, BaseException):
        message = str(err)
        if message:
            return message
        code = getattr(err, "code", None)
        if code:
            return str(code)
        return type(err).__name__

    if isinstance(err, dict):
        if err.get("message"):
            return str(err["message"])
        if err.get("code"):
            return str(err["code"])
        try:
            return json.dumps(err, default=str)
        except (TypeError, ValueError):
            return "[Unserializable object]"

    if err is not None and not isinstance(err, (str, int, float, bool)):
        code = getattr(err, "code", None)
        if code:
            return str(code)

    return str(err)
