"""Classification of inference transport failures.

Transport failures never propagate out of a chunk; the class is used to
tell a caller why a chunk fell back (unreachable service vs. timeout vs.
rejected request) in diagnostics.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from circuitbreaker import CircuitBreakerError


class ErrorClass(Enum):
    TRANSIENT = "transient"  # 429, connection refused/reset
    SERVER = "server"  # 5xx from the service
    TIMEOUT = "timeout"  # per-attempt deadline exceeded
    CLIENT = "client"  # 4xx, bad model name, auth
    CIRCUIT_OPEN = "circuit_open"  # breaker short-circuited the call
    UNKNOWN = "unknown"


def classify_error(error: BaseException) -> ErrorClass:
    """Classify a transport exception.

    Structured attributes (``status_code``) win over message matching.
    """
    if isinstance(error, CircuitBreakerError):
        return ErrorClass.CIRCUIT_OPEN

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        if status_code == 429:
            return ErrorClass.TRANSIENT
        if 400 <= status_code < 500:
            return ErrorClass.CLIENT
        if 500 <= status_code < 600:
            return ErrorClass.SERVER

    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.TIMEOUT
    if isinstance(error, ConnectionError):
        return ErrorClass.TRANSIENT

    msg = str(error).lower()
    if "timeout" in msg or "timed out" in msg:
        return ErrorClass.TIMEOUT
    if "429" in msg or "rate limit" in msg:
        return ErrorClass.TRANSIENT
    if any(code in msg for code in ("500", "502", "503", "504")):
        return ErrorClass.SERVER
    if "econnrefused" in msg or "connection" in msg:
        return ErrorClass.TRANSIENT
    if any(code in msg for code in ("400", "401", "403", "404")):
        return ErrorClass.CLIENT
    return ErrorClass.UNKNOWN


def describe_failure(error: BaseException) -> str:
    """Short ``class: message`` text for diagnostics."""
    text = str(error) or type(error).__name__
    return f"{classify_error(error).value}: {text}"
