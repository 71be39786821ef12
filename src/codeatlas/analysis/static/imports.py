"""Extract import specifiers from source text and resolve them to corpus files."""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable, Sequence

from codeatlas.analysis.static.schemas import ImportEdge, ImportGraph
from codeatlas.config import SOURCE_EXTENSIONS
from codeatlas.ingestion.schemas import FileUnit

# ES import: import X from 'Y', import { X } from 'Y', import * as X from 'Y',
# and side-effect imports: import 'Y'
_ES_IMPORT_RE = re.compile(
    r"""import\s+"""
    r"""(?:(?:\{[^}]*\}|\*\s+as\s+\w+|\w+)"""
    r"""(?:\s*,\s*(?:\{[^}]*\}|\*\s+as\s+\w+|\w+))*\s+from\s+)?"""
    r"""['"]([^'"]+)['"]"""
)

# CommonJS: require('Y')
_REQUIRE_RE = re.compile(r"""require\s*\(\s*['"]([^'"]+)['"]\s*\)""")

_EXTENSION_RE = re.compile(
    "(?:" + "|".join(re.escape(e) for e in SOURCE_EXTENSIONS) + ")$"
)


def extract_import_specifiers(content: str) -> list[str]:
    """Return import-like string literals in order of appearance.

    Module-style imports are listed before ``require()`` calls; duplicates
    are kept so callers can count occurrences if they need to.
    """
    specifiers = [m.group(1) for m in _ES_IMPORT_RE.finditer(content)]
    specifiers.extend(m.group(1) for m in _REQUIRE_RE.finditer(content))
    return specifiers


def strip_source_extension(path: str) -> str:
    return _EXTENSION_RE.sub("", path)


def is_relative(specifier: str) -> bool:
    return specifier.startswith("./") or specifier.startswith("../") or (
        specifier in (".", "..")
    )


def resolve_relative(specifier: str, from_dir: str) -> str:
    """Join ``specifier`` onto ``from_dir`` collapsing ``.``/``..`` segments.

    ``..`` above the corpus root is clamped at the root.
    """
    parts = [p for p in from_dir.split("/") if p]
    for segment in specifier.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts:
                parts.pop()
            continue
        parts.append(segment)
    return "/".join(parts)


class ImportResolver:
    """Resolves import specifiers against a fixed set of corpus paths.

    Never invents paths: ``resolve`` returns a path from the corpus or None.
    """

    def __init__(self, paths: Iterable[str]) -> None:
        self._paths: list[str] = list(dict.fromkeys(paths))
        self._stripped: list[tuple[str, str]] = [
            (strip_source_extension(p), p) for p in self._paths
        ]
        # basename without extension → first corpus path with that name
        self._by_stem: dict[str, str] = {}
        for stripped, path in self._stripped:
            stem = stripped.rsplit("/", 1)[-1]
            self._by_stem.setdefault(stem, path)

    @classmethod
    def for_files(cls, files: Sequence[FileUnit]) -> ImportResolver:
        return cls(f.path for f in files)

    def resolve(self, specifier: str, from_path: str) -> str | None:
        """Map one specifier written in ``from_path`` to a corpus path."""
        cleaned = strip_source_extension(specifier.strip())
        if not cleaned:
            return None

        if is_relative(cleaned):
            from_dir = posixpath.dirname(from_path)
            target = resolve_relative(cleaned, from_dir)
            if not target:
                return None
            for stripped, path in self._stripped:
                if stripped == target:
                    return path
            suffix = "/" + target
            for stripped, path in self._stripped:
                if stripped.endswith(suffix):
                    return path
            return None

        name = cleaned.rstrip("/").rsplit("/", 1)[-1]
        if not name:
            return None
        return self._by_stem.get(name)

    def resolve_all(self, content: str, from_path: str) -> list[str]:
        """Distinct corpus paths imported by a file, excluding itself."""
        resolved: list[str] = []
        for spec in extract_import_specifiers(content):
            target = self.resolve(spec, from_path)
            if target is None or target == from_path:
                continue
            if target not in resolved:
                resolved.append(target)
        return resolved


def build_import_graph(
    files: Sequence[FileUnit],
    scan_chars: int | None = None,
) -> ImportGraph:
    """Resolve every file's imports against the whole corpus."""
    resolver = ImportResolver.for_files(files)
    graph = ImportGraph(paths=[f.path for f in files])
    for file in files:
        content = file.content if scan_chars is None else file.content[:scan_chars]
        specifiers = list(dict.fromkeys(extract_import_specifiers(content)))
        graph.specifiers[file.path] = specifiers
        for spec in specifiers:
            target = resolver.resolve(spec, file.path)
            if target is None or target == file.path:
                continue
            graph.add(
                ImportEdge(
                    source_file=file.path,
                    target_file=target,
                    specifier=spec,
                )
            )
    return graph
