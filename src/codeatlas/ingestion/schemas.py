"""Pydantic models for the input side of an analysis run."""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from codeatlas.ingestion.language import detect_language


class FileUnit(BaseModel):
    """One source file excerpt supplied by the caller. Read-only."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str = ""
    size_bytes: int = 0
    language: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_derived(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        values = dict(data)  # pyright: ignore[reportUnknownArgumentType]
        content = str(values.get("content") or "")
        if not values.get("size_bytes"):
            values["size_bytes"] = len(content.encode("utf-8"))
        if not values.get("language"):
            values["language"] = detect_language(str(values.get("path", "")))
        return values


class ChunkRequest(BaseModel):
    """An ordered batch of files sent to the inference service together.

    ``index`` is 1-based so log lines read "chunk 2/3".
    """

    model_config = ConfigDict(frozen=True)

    index: int
    total: int
    files: tuple[FileUnit, ...] = Field(default_factory=tuple)
    corpus_size: int = 0
    test_suite: bool = False

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]
