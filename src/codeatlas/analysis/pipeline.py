"""End-to-end architecture extraction: select, dispatch, merge."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from codeatlas.analysis.llm._llm_call import LiteLLMTransport
from codeatlas.analysis.llm.dispatcher import (
    ChunkDispatcher,
    InferenceTransport,
    build_chunks,
)
from codeatlas.analysis.llm.schemas import ArchitectureGraph
from codeatlas.analysis.merge import merge_fragments
from codeatlas.analysis.static.scorer import select_important_files
from codeatlas.config import Settings
from codeatlas.constants import StageProgress
from codeatlas.ingestion.schemas import FileUnit
from codeatlas.logger import AnalysisLogger
from codeatlas.services.events import (
    DiagnosticSink,
    GuardedSink,
    ProgressCallback,
    StageEvent,
    emit_progress,
)

logger = logging.getLogger(__name__)


def _dedupe(files: Sequence[FileUnit]) -> list[FileUnit]:
    """First FileUnit per path, in input order."""
    seen: dict[str, FileUnit] = {}
    for f in files:
        seen.setdefault(f.path, f)
    return list(seen.values())


def _stage_done(
    on_progress: ProgressCallback | None,
    name: str,
    message: str,
    start: float,
) -> None:
    duration_ms = (time.monotonic() - start) * 1000
    logger.debug("event=stage_done stage=%s duration_ms=%.0f", name, duration_ms)
    emit_progress(
        on_progress,
        StageEvent(
            name=name,
            status=StageProgress.DONE,
            message=message,
            duration_ms=duration_ms,
        ),
    )


async def analyze_architecture(
    files: Sequence[FileUnit],
    settings: Settings | None = None,
    *,
    transport: InferenceTransport | None = None,
    sink: DiagnosticSink | None = None,
    on_progress: ProgressCallback | None = None,
) -> ArchitectureGraph:
    """Build an ArchitectureGraph for ``files``.

    Large corpora are down-selected to the most important files before
    inference; every input path still appears as exactly one module in
    the result. Transport and decoding failures degrade the graph (see
    ``ArchitectureGraph.recovery_tiers``) instead of raising.
    """
    if settings is None:
        settings = Settings()
    # Diagnostics and progress are best-effort; callback failures are logged
    guarded = GuardedSink(
        sink
        if sink is not None
        else AnalysisLogger(settings.log_dir, settings.log_level)
    )
    if transport is None:
        transport = LiteLLMTransport(settings)

    corpus = _dedupe(files)
    if len(corpus) != len(files):
        logger.info(
            "event=duplicate_paths_dropped dropped=%d",
            len(files) - len(corpus),
        )

    # Stage 1: file selection
    start = time.monotonic()
    budget = settings.selection_budget(len(corpus))
    selected = select_important_files(corpus, budget)
    message = f"Selected {len(selected)} of {len(corpus)} files for analysis"
    guarded.info(message)
    _stage_done(on_progress, "selection", message, start)

    # Stage 2: chunked inference
    start = time.monotonic()
    chunks = build_chunks(
        selected, settings.chunk_size, corpus_size=len(corpus)
    )
    if chunks and chunks[0].test_suite:
        guarded.info("Detected test suite; using test-suite analysis prompt")
    dispatcher = ChunkDispatcher(
        transport, settings, sink=guarded, on_progress=on_progress
    )
    fragments = await dispatcher.dispatch(chunks)
    minimal = sum(1 for f in fragments if f.is_minimal)
    if minimal:
        guarded.error(
            f"{minimal} of {len(fragments)} chunks fell back to "
            "path heuristics"
        )
    _stage_done(
        on_progress,
        "dispatch",
        f"Analyzed {len(chunks)} chunks",
        start,
    )

    # Stage 3: merge
    start = time.monotonic()
    graph = merge_fragments(
        fragments,
        corpus,
        import_scan_chars=settings.import_scan_chars,
        sink=guarded,
    )
    _stage_done(
        on_progress,
        "merge",
        f"Merged {len(graph.modules)} modules",
        start,
    )
    return graph
