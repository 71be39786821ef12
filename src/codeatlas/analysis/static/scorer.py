"""Rank files by heuristic importance when a corpus exceeds the budget.

Scores combine path roles (entry point, core directory, config,
service, test) with import centrality from the whole corpus. The
selection is a pure function of its inputs.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from codeatlas.analysis.static.imports import build_import_graph
from codeatlas.analysis.static.schemas import ImportGraph
from codeatlas.constants import (
    SCORE_CONFIG_FILE,
    SCORE_CORE_DIRECTORY,
    SCORE_ENTRY_POINT,
    SCORE_PER_IMPORT,
    SCORE_PER_IMPORTER,
    SCORE_SERVICE_FILE,
    SCORE_SOURCE_ROOT,
    SCORE_TEST_PENALTY,
)
from codeatlas.ingestion.schemas import FileUnit

logger = logging.getLogger(__name__)

_CODE_EXT = r"(?:ts|tsx|js|jsx|mjs|cjs|py)"

_ENTRY_POINT_RE = re.compile(
    rf"^(?:src/)?(?:index|main|app|server|entry)\.{_CODE_EXT}$", re.IGNORECASE
)
_PACKAGE_MANIFEST_RE = re.compile(r"package\.json$", re.IGNORECASE)

# Matched against "/" + lower-cased path so root-level dirs count too
_CORE_PATTERNS = (
    re.compile(r"/services?/"),
    re.compile(r"/core/"),
    re.compile(r"/utils?/"),
    re.compile(r"/models?/"),
    re.compile(r"/lib/"),
    re.compile(rf"service\.{_CODE_EXT}$"),
    re.compile(rf"util\.{_CODE_EXT}$"),
)

_CONFIG_PATTERNS = (
    re.compile(rf"config\.{_CODE_EXT}$", re.IGNORECASE),
    re.compile(r"package\.json$", re.IGNORECASE),
    re.compile(r"tsconfig\.json$", re.IGNORECASE),
    re.compile(r"(?:^|/)(?:pyproject\.toml|setup\.cfg)$", re.IGNORECASE),
)

_SERVICE_PATTERNS = (
    re.compile(rf"service\.{_CODE_EXT}$"),
    re.compile(r"/services?/"),
)

_TEST_PATTERNS = (
    re.compile(rf"(?:test|spec)\.{_CODE_EXT}$"),
    re.compile(r"/test"),
    re.compile(r"/spec"),
)


@dataclass(frozen=True)
class FileScore:
    """Importance score for one corpus file."""

    path: str
    score: int
    entry_point: bool


def _rooted(path: str) -> str:
    return "/" + path.lower().lstrip("/")


def is_entry_point(path: str) -> bool:
    file_name = path.rsplit("/", 1)[-1]
    if _ENTRY_POINT_RE.search(file_name) or _ENTRY_POINT_RE.search(path.lower()):
        return True
    return bool(_PACKAGE_MANIFEST_RE.search(path))


def is_core_file(path: str) -> bool:
    rooted = _rooted(path)
    return any(p.search(rooted) for p in _CORE_PATTERNS)


def is_config_file(path: str) -> bool:
    return any(p.search(path) for p in _CONFIG_PATTERNS)


def is_service_file(path: str) -> bool:
    rooted = _rooted(path)
    return any(p.search(rooted) for p in _SERVICE_PATTERNS)


def is_test_file(path: str) -> bool:
    rooted = _rooted(path)
    return any(p.search(rooted) for p in _TEST_PATTERNS)


def is_source_rooted(path: str) -> bool:
    rooted = _rooted(path)
    return "/src/" in rooted or "/lib/" in rooted


def score_file(path: str, graph: ImportGraph) -> FileScore:
    entry = is_entry_point(path)
    score = 0
    if entry:
        score += SCORE_ENTRY_POINT
    if is_core_file(path):
        score += SCORE_CORE_DIRECTORY
    score += graph.in_degree(path) * SCORE_PER_IMPORTER
    score += graph.out_degree(path) * SCORE_PER_IMPORT
    if is_config_file(path):
        score += SCORE_CONFIG_FILE
    if is_service_file(path):
        score += SCORE_SERVICE_FILE
    if is_test_file(path):
        score += SCORE_TEST_PENALTY
    if is_source_rooted(path):
        score += SCORE_SOURCE_ROOT
    return FileScore(path=path, score=score, entry_point=entry)


def score_files(
    files: Sequence[FileUnit],
    graph: ImportGraph | None = None,
) -> list[FileScore]:
    """Score every file, in input order."""
    if graph is None:
        graph = build_import_graph(files)
    return [score_file(f.path, graph) for f in files]


def select_important_files(
    files: Sequence[FileUnit],
    max_files: int,
) -> list[FileUnit]:
    """Return at most ``max_files`` files, highest score first.

    Corpora within budget come back unchanged. Otherwise entry points
    that missed the cut replace the lowest-scoring non-entry files so
    the total stays at ``max_files``. Equal scores keep input order.
    """
    if len(files) <= max_files:
        return list(files)
    if max_files <= 0:
        return []

    scores = score_files(files)
    ranked = sorted(range(len(files)), key=lambda i: -scores[i].score)
    rank_of = {idx: pos for pos, idx in enumerate(ranked)}

    selected = ranked[:max_files]
    for idx in ranked[max_files:]:
        if not scores[idx].entry_point:
            continue
        evictable = [j for j in selected if not scores[j].entry_point]
        if not evictable:
            break
        victim = max(evictable, key=lambda j: rank_of[j])
        selected.remove(victim)
        selected.append(idx)
        logger.debug(
            "event=entry_point_forced path=%s evicted=%s",
            files[idx].path,
            files[victim].path,
        )

    selected.sort(key=lambda j: rank_of[j])
    logger.debug(
        "event=files_selected selected=%d total=%d",
        len(selected),
        len(files),
    )
    return [files[j] for j in selected]
