"""Merge per-chunk fragments into one ArchitectureGraph.

Everything is keyed (module path, ``(from, to)`` pair, lower-cased layer
name) so the result does not depend on chunk completion order. Pattern
tie-breaks and summary order follow chunk index.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from codeatlas.analysis.llm.normalizer import heuristic_module
from codeatlas.analysis.llm.schemas import (
    ArchitectureGraph,
    LayerGroup,
    ModuleRecord,
    PatternClassification,
    RecoveryFragment,
    RelationshipRecord,
)
from codeatlas.analysis.static.imports import ImportResolver, is_relative
from codeatlas.constants import (
    IMPORT_SCAN_CHARS,
    Confidence,
    PatternName,
    RelationshipType,
    Strength,
)
from codeatlas.ingestion.schemas import FileUnit
from codeatlas.services.events import DiagnosticSink

logger = logging.getLogger(__name__)

type Canonicalizer = Callable[[str], str | None]


class CorpusPaths:
    """Maps paths reported by the inference service onto known paths.

    The service abbreviates paths, drops extensions and sometimes names
    a module instead of its file. Lookup tries the exact path, then the
    import resolver's relative (exact or suffix) match, then its
    basename match. Unmappable paths return None.
    """

    def __init__(self, paths: Iterable[str]) -> None:
        ordered = list(dict.fromkeys(paths))
        self._paths = set(ordered)
        self._resolver = ImportResolver(ordered)
        self._cache: dict[str, str | None] = {}

    @classmethod
    def for_files(cls, files: Sequence[FileUnit]) -> CorpusPaths:
        return cls(f.path for f in files)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def canonical(self, path: str) -> str | None:
        if path in self._paths:
            return path
        if path not in self._cache:
            self._cache[path] = self._lookup(path)
        return self._cache[path]

    def _lookup(self, path: str) -> str | None:
        candidate = path.strip().lstrip("/")
        if not candidate:
            return None
        if candidate in self._paths:
            return candidate
        relative = candidate if is_relative(candidate) else f"./{candidate}"
        return self._resolver.resolve(relative, "") or self._resolver.resolve(
            candidate, ""
        )

    def scoped(self, fragment: RecoveryFragment) -> Canonicalizer:
        """Canonicalizer that prefers the files of ``fragment``'s chunk.

        An exact corpus path always wins. A fuzzy match is looked up in
        the fragment's own chunk first and across the corpus only when
        nothing in the chunk fits.
        """
        local = CorpusPaths(p for p in fragment.chunk_paths if p in self._paths)

        def canonical(path: str) -> str | None:
            if path in self._paths:
                return path
            return local.canonical(path) or self.canonical(path)

        return canonical


def select_pattern(
    fragments: Sequence[RecoveryFragment],
) -> PatternClassification:
    """Highest-confidence pattern, preferring anything over Unknown.

    ``fragments`` must already be in chunk-index order; on equal
    confidence the earlier chunk wins.
    """
    candidates = [f.pattern for f in fragments if f.pattern is not None]
    known = [p for p in candidates if not p.is_unknown]
    pool = known or candidates
    if not pool:
        return PatternClassification(
            name=PatternName.UNKNOWN,
            confidence=Confidence.NONE,
            description="Could not determine pattern",
        )
    best = pool[0]
    for pattern in pool[1:]:
        if pattern.confidence > best.confidence:
            best = pattern
    return best


def _merge_modules(
    fragments: Sequence[RecoveryFragment],
    corpus: Sequence[FileUnit],
    paths: CorpusPaths,
) -> list[ModuleRecord]:
    # Records from the chunk that held the file beat mentions elsewhere
    owned: dict[str, ModuleRecord] = {}
    borrowed: dict[str, ModuleRecord] = {}
    dropped = 0
    for fragment in fragments:
        canonical = paths.scoped(fragment)
        own = set(fragment.chunk_paths)
        for module in fragment.modules:
            path = canonical(module.path)
            if path is None:
                dropped += 1
                continue
            target = owned if path in own else borrowed
            if path in target:
                continue
            if path != module.path:
                module = module.model_copy(update={"path": path})
            target[path] = module

    backfilled = 0
    modules: list[ModuleRecord] = []
    emitted: set[str] = set()
    for file in corpus:
        if file.path in emitted:
            continue
        emitted.add(file.path)
        record = owned.get(file.path) or borrowed.get(file.path)
        if record is None:
            record = heuristic_module(file)
            backfilled += 1
        modules.append(record)

    logger.debug(
        "event=modules_merged analyzed=%d backfilled=%d dropped=%d",
        len(modules) - backfilled,
        backfilled,
        dropped,
    )
    return modules


def _merge_relationships(
    fragments: Sequence[RecoveryFragment],
    corpus: Sequence[FileUnit],
    paths: CorpusPaths,
    import_scan_chars: int,
) -> list[RelationshipRecord]:
    edges: dict[tuple[str, str], RelationshipRecord] = {}
    for fragment in fragments:
        canonical = paths.scoped(fragment)
        for rel in fragment.relationships:
            src = canonical(rel.from_path)
            dst = canonical(rel.to_path)
            if src is None or dst is None or src == dst:
                continue
            if (src, dst) in edges:
                continue
            if (src, dst) != rel.key:
                rel = rel.model_copy(update={"from_path": src, "to_path": dst})
            edges[(src, dst)] = rel
    reported = len(edges)

    resolver = ImportResolver.for_files(corpus)
    for file in corpus:
        for target in resolver.resolve_all(
            file.content[:import_scan_chars], file.path
        ):
            edges.setdefault(
                (file.path, target),
                RelationshipRecord(
                    from_path=file.path,
                    to_path=target,
                    type=RelationshipType.IMPORTS,
                    strength=Strength.MEDIUM,
                    description=f"Imports from {target}",
                ),
            )

    logger.debug(
        "event=relationships_merged reported=%d resolved=%d",
        reported,
        len(edges) - reported,
    )
    return list(edges.values())


def _merge_layers(
    fragments: Sequence[RecoveryFragment],
    modules: Sequence[ModuleRecord],
    paths: CorpusPaths,
) -> list[LayerGroup]:
    names: dict[str, str] = {}
    members: dict[str, list[str]] = {}

    def _add(name: str, path: str) -> None:
        key = name.strip().lower()
        names.setdefault(key, name.strip())
        group = members.setdefault(key, [])
        if path not in group:
            group.append(path)

    for fragment in fragments:
        canonical = paths.scoped(fragment)
        for layer in fragment.layers:
            if not layer.name.strip():
                continue
            for raw in layer.modules:
                path = canonical(raw)
                if path is not None:
                    _add(layer.name, path)

    grouped = {p for group in members.values() for p in group}
    for module in modules:
        if module.path not in grouped:
            _add(module.layer.value.capitalize(), module.path)

    return [
        LayerGroup(name=names[key], modules=group)
        for key, group in members.items()
        if group
    ]


def _union(lists: Iterable[list[str]]) -> list[str]:
    seen: dict[str, None] = {}
    for items in lists:
        for item in items:
            seen.setdefault(item, None)
    return list(seen)


def merge_fragments(
    fragments: Sequence[RecoveryFragment],
    corpus: Sequence[FileUnit],
    *,
    import_scan_chars: int = IMPORT_SCAN_CHARS,
    sink: DiagnosticSink | None = None,
) -> ArchitectureGraph:
    """Combine chunk fragments, resolver edges and backfill into one graph.

    ``corpus`` is the full input, not just the files that were sent for
    inference. Every corpus path ends up as exactly one module.
    """
    ordered = sorted(fragments, key=lambda f: f.chunk_index)
    paths = CorpusPaths.for_files(corpus)

    modules = _merge_modules(ordered, corpus, paths)
    relationships = _merge_relationships(
        ordered, corpus, paths, import_scan_chars
    )
    layers = _merge_layers(ordered, modules, paths)
    pattern = select_pattern(ordered)

    summaries = [f.summary.strip() for f in ordered if f.summary.strip()]
    summary = (
        " ".join(summaries)
        if summaries
        else f"Analyzed {len(corpus)} files across {len(ordered)} chunks"
    )

    graph = ArchitectureGraph(
        modules=modules,
        relationships=relationships,
        pattern=pattern,
        layers=layers,
        summary=summary,
        entry_points=_union(f.entry_points for f in ordered),
        core_components=_union(f.core_components for f in ordered),
        recovery_tiers=[f.tier for f in ordered],
    )

    if sink is not None:
        sink.info(
            f"Merged {len(ordered)} chunk results: {len(modules)} modules, "
            f"{len(relationships)} relationships, pattern {pattern.name} "
            f"({pattern.confidence:.2f})"
        )
    logger.info(
        "event=merge_complete chunks=%d modules=%d relationships=%d "
        "layers=%d pattern=%s degraded=%s",
        len(ordered),
        len(modules),
        len(relationships),
        len(layers),
        pattern.name,
        graph.degraded,
    )
    return graph
