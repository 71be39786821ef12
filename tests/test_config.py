"""Tests for Settings validators and the selection budget."""

from __future__ import annotations

import inspect

import pytest
from pydantic import ValidationError

from codeatlas.analysis.merge import merge_fragments
from codeatlas.config import Settings
from codeatlas.constants import IMPORT_SCAN_CHARS


class TestDefaults:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for var in ("CHUNK_SIZE", "LITELLM_MODEL", "LLM_API_BASE"):
            monkeypatch.delenv(var, raising=False)
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.chunk_size == 5
        assert s.min_selected_files == 5
        assert s.max_selected_files == 10
        assert s.selection_ratio == pytest.approx(0.10)
        assert s.import_scan_chars == 10_000
        assert s.litellm_model.startswith("ollama/")

    def test_import_scan_default_matches_merge(self) -> None:
        merge_default = (
            inspect.signature(merge_fragments)
            .parameters["import_scan_chars"]
            .default
        )
        assert Settings.model_fields["import_scan_chars"].default == IMPORT_SCAN_CHARS
        assert merge_default == IMPORT_SCAN_CHARS

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "8")
        monkeypatch.setenv("LITELLM_MODEL", "openai/gpt-4o-mini")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.chunk_size == 8
        assert s.litellm_model == "openai/gpt-4o-mini"


class TestValidation:
    @pytest.mark.parametrize(
        "field", ["chunk_size", "min_selected_files", "max_selected_files"]
    )
    def test_counts_must_be_positive(self, field: str) -> None:
        with pytest.raises(ValidationError, match="at least 1"):
            Settings(**{field: 0})

    @pytest.mark.parametrize("ratio", [0.0, -0.1, 1.5])
    def test_ratio_range(self, ratio: float) -> None:
        with pytest.raises(ValidationError, match="selection_ratio"):
            Settings(selection_ratio=ratio)

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError, match="positive"):
            Settings(llm_chunk_timeout_seconds=0)

    def test_min_above_max_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must not exceed"):
            Settings(min_selected_files=12, max_selected_files=10)


class TestSelectionBudget:
    @pytest.mark.parametrize(
        ("corpus_size", "expected"),
        [
            (0, 5),
            (12, 5),
            (60, 6),
            (99, 9),
            (500, 10),
        ],
    )
    def test_budget_clamped(self, corpus_size: int, expected: int) -> None:
        s = Settings(
            min_selected_files=5, max_selected_files=10, selection_ratio=0.1
        )
        assert s.selection_budget(corpus_size) == expected


class TestApiBase:
    def test_empty_api_base_is_none(self) -> None:
        assert Settings(llm_api_base="").api_base is None

    def test_api_base_passthrough(self) -> None:
        s = Settings(llm_api_base="http://inference:11434")
        assert s.api_base == "http://inference:11434"
