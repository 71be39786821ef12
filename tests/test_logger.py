"""Tests for the JSON-lines AnalysisLogger sink."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from codeatlas.constants import ERROR_TRUNCATION_CHARS
from codeatlas.logger import AnalysisLogger

_LOGGER = "codeatlas.analysis"


@pytest.fixture(autouse=True)
def _drop_file_handlers() -> Iterator[None]:
    yield
    lg = logging.getLogger(_LOGGER)
    for handler in list(lg.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            lg.removeHandler(handler)


def _records(caplog: pytest.LogCaptureFixture) -> list[dict[str, object]]:
    return [
        json.loads(r.getMessage()) for r in caplog.records if r.name == _LOGGER
    ]


def test_info_record_is_json(caplog: pytest.LogCaptureFixture) -> None:
    sink = AnalysisLogger(run_id="run-1")
    with caplog.at_level(logging.INFO, logger=_LOGGER):
        sink.info("Selected 5 of 30 files for analysis")
    [record] = _records(caplog)
    assert record["type"] == "info"
    assert record["message"] == "Selected 5 of 30 files for analysis"
    assert record["run_id"] == "run-1"
    assert "timestamp" in record


def test_error_is_truncated(caplog: pytest.LogCaptureFixture) -> None:
    sink = AnalysisLogger()
    with caplog.at_level(logging.INFO, logger=_LOGGER):
        sink.error("x" * (ERROR_TRUNCATION_CHARS + 50))
    [record] = _records(caplog)
    assert record["type"] == "error"
    assert len(str(record["message"])) == ERROR_TRUNCATION_CHARS
    assert "run_id" not in record


def test_log_chunk_fields(caplog: pytest.LogCaptureFixture) -> None:
    sink = AnalysisLogger()
    with caplog.at_level(logging.INFO, logger=_LOGGER):
        sink.log_chunk(2, 3, 1, "chat", 12.5)
    [record] = _records(caplog)
    assert record["type"] == "chunk"
    assert record["chunk"] == 2
    assert record["tier"] == 1
    assert record["protocol"] == "chat"
    assert record["duration_ms"] == 12.5


def test_file_handler_writes_lines(tmp_path: Path) -> None:
    sink = AnalysisLogger(tmp_path / "logs")
    sink.info("first")
    sink.error("second")
    for handler in logging.getLogger(_LOGGER).handlers:
        handler.flush()
    lines = (tmp_path / "logs" / "analysis.log").read_text().splitlines()
    assert [json.loads(line)["message"] for line in lines] == ["first", "second"]


def test_file_handler_not_duplicated(tmp_path: Path) -> None:
    AnalysisLogger(tmp_path)
    AnalysisLogger(tmp_path)
    handlers = [
        h
        for h in logging.getLogger(_LOGGER).handlers
        if isinstance(h, logging.FileHandler)
    ]
    assert len(handlers) == 1
