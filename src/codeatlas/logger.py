"""Structured JSON diagnostic sink for analysis runs."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from codeatlas.constants import ERROR_TRUNCATION_CHARS
from codeatlas.logging_config import LOG_DATEFMT, LOG_FORMAT

__all__ = ["AnalysisLogger", "LOG_FORMAT", "LOG_DATEFMT"]


class AnalysisLogger:
    """JSON-lines sink satisfying ``DiagnosticSink``.

    Records go to the ``codeatlas.analysis`` logger; when ``log_dir`` is
    given they are also written to ``analysis.log`` there.
    """

    def __init__(
        self,
        log_dir: Path | None = None,
        level: str = "INFO",
        run_id: str | None = None,
    ) -> None:
        self._run_id = run_id
        self._logger = logging.getLogger("codeatlas.analysis")
        self._logger.setLevel(getattr(logging, level.upper()))

        if log_dir is not None:
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = (log_dir / "analysis.log").resolve()
            already = any(
                isinstance(h, logging.FileHandler)
                and Path(h.baseFilename) == log_file
                for h in self._logger.handlers
            )
            if not already:
                handler = logging.FileHandler(log_file)
                handler.setFormatter(logging.Formatter("%(message)s"))
                self._logger.addHandler(handler)

    def _record(self, kind: str, message: str, **fields: Any) -> str:
        payload: dict[str, Any] = {
            "type": kind,
            "timestamp": datetime.now(UTC).isoformat(),
            "message": message,
        }
        if self._run_id is not None:
            payload["run_id"] = self._run_id
        payload.update(fields)
        return json.dumps(payload)

    def info(self, message: str) -> None:
        self._logger.info(self._record("info", message))

    def error(self, message: str) -> None:
        self._logger.error(
            self._record("error", message[:ERROR_TRUNCATION_CHARS])
        )

    def log_chunk(
        self,
        chunk_index: int,
        total: int,
        tier: int,
        protocol: str | None,
        duration_ms: float,
    ) -> None:
        self._logger.info(
            self._record(
                "chunk",
                f"chunk {chunk_index}/{total} decoded at tier {tier}",
                chunk=chunk_index,
                total=total,
                tier=tier,
                protocol=protocol,
                duration_ms=duration_ms,
            )
        )
