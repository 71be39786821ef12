"""Shared event types and the diagnostic sink contract.

Progress and diagnostics flow out of the pipeline only through values
passed in by the caller; nothing here holds global state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from codeatlas.constants import STAGE_LABELS, StageProgress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageEvent:
    """Typed event emitted during pipeline progress."""

    name: str
    status: StageProgress
    message: str = ""
    duration_ms: float = 0.0
    # Progress fields (present during chunk dispatch)
    completed: int | None = None
    total: int | None = None
    percent: float | None = None

    @property
    def label(self) -> str:
        """User-friendly display label from STAGE_LABELS."""
        return STAGE_LABELS[self.name]


type ProgressCallback = Callable[[StageEvent], None]


class DiagnosticSink(Protocol):
    """Where user-facing progress and failure messages go."""

    def info(self, message: str) -> None: ...
    def error(self, message: str) -> None: ...


class GuardedSink:
    """DiagnosticSink wrapper that never lets a faulty sink raise.

    Diagnostics are best-effort: a sink failure is logged and the
    analysis carries on. ``log_chunk`` is forwarded only when the wrapped
    sink has one.
    """

    def __init__(self, inner: DiagnosticSink | None) -> None:
        self._inner = inner

    def info(self, message: str) -> None:
        if self._inner is not None:
            self._call("info", self._inner.info, message)

    def error(self, message: str) -> None:
        if self._inner is not None:
            self._call("error", self._inner.error, message)

    def log_chunk(
        self,
        chunk_index: int,
        total: int,
        tier: int,
        protocol: str | None,
        duration_ms: float,
    ) -> None:
        log_chunk = getattr(self._inner, "log_chunk", None)
        if callable(log_chunk):
            self._call(
                "log_chunk",
                log_chunk,
                chunk_index,
                total,
                tier,
                protocol,
                duration_ms,
            )

    @staticmethod
    def _call(method: str, fn: Callable[..., object], *args: object) -> None:
        try:
            fn(*args)
        except Exception:
            logger.warning("event=sink_failed method=%s", method, exc_info=True)


def emit_progress(on_progress: ProgressCallback | None, event: StageEvent) -> None:
    """Deliver ``event`` to the caller's callback, logging any failure."""
    if on_progress is None:
        return
    try:
        on_progress(event)
    except Exception:
        logger.warning(
            "event=progress_callback_failed stage=%s status=%s",
            event.name,
            event.status,
            exc_info=True,
        )
