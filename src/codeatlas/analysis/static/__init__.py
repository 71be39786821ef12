"""Static analysis — import resolution and file importance scoring."""

from codeatlas.analysis.static.imports import (
    ImportResolver,
    build_import_graph,
    extract_import_specifiers,
)
from codeatlas.analysis.static.schemas import ImportEdge, ImportGraph
from codeatlas.analysis.static.scorer import score_files, select_important_files

__all__ = [
    "ImportEdge",
    "ImportGraph",
    "ImportResolver",
    "build_import_graph",
    "extract_import_specifiers",
    "score_files",
    "select_important_files",
]
