"""Input models: source files and chunk batches."""

from codeatlas.ingestion.language import detect_language
from codeatlas.ingestion.schemas import ChunkRequest, FileUnit

__all__ = ["ChunkRequest", "FileUnit", "detect_language"]
