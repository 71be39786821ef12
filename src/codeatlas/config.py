"""Environment-based configuration and application constants."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Self

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from codeatlas.constants import IMPORT_SCAN_CHARS

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Reads from .env file and environment variables."""

    # Inference service (routed through litellm)
    litellm_model: str = "ollama/qwen2.5-coder:3b"
    llm_api_base: str = "http://localhost:11434"
    llm_chunk_timeout_seconds: float = 60
    llm_temperature: float = 0.0
    llm_max_output_tokens: int = 2000

    # Chunking
    chunk_size: int = 5

    # File selection budget: k = min(max, max(min, floor(n * ratio)))
    min_selected_files: int = 5
    max_selected_files: int = 10
    selection_ratio: float = 0.10

    # Merge
    import_scan_chars: int = IMPORT_SCAN_CHARS

    # Logging
    log_level: str = "INFO"
    log_dir: Path | None = None

    @field_validator(
        "chunk_size", "min_selected_files", "max_selected_files"
    )
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("selection_ratio")
    @classmethod
    def _ratio_in_range(cls, v: float) -> float:
        if not 0 < v <= 1:
            raise ValueError("selection_ratio must be in (0, 1]")
        return v

    @field_validator("llm_chunk_timeout_seconds")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("llm_chunk_timeout_seconds must be positive")
        return v

    @model_validator(mode="after")
    def _check_selection_bounds(self) -> Self:
        if self.min_selected_files > self.max_selected_files:
            raise ValueError(
                "min_selected_files must not exceed max_selected_files"
            )
        return self

    def selection_budget(self, corpus_size: int) -> int:
        """Number of files sent to the inference service for a corpus."""
        scaled = int(corpus_size * self.selection_ratio)
        return min(
            self.max_selected_files,
            max(self.min_selected_files, scaled),
        )

    @property
    def api_base(self) -> str | None:
        """litellm ``api_base`` argument; None selects the provider default."""
        return self.llm_api_base or None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "",
        "extra": "ignore",
    }


# File extension → language name mapping
EXTENSION_MAP: dict[str, str] = {
    # Python
    ".py": "python",
    ".pyi": "python",
    # JavaScript
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    # TypeScript
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    # JVM
    ".java": "java",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".scala": "scala",
    # Systems
    ".go": "go",
    ".rs": "rust",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".cs": "c_sharp",
    # Scripting
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".lua": "lua",
    ".sh": "bash",
    ".dart": "dart",
    # Web
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".vue": "vue",
    ".svelte": "svelte",
    # Data / config
    ".json": "json",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".md": "markdown",
    ".sql": "sql",
}

# Extensions stripped when matching import specifiers to corpus paths
SOURCE_EXTENSIONS: tuple[str, ...] = (
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".mjs",
    ".cjs",
    ".py",
)
