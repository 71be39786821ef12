"""Fill in and canonicalize decoded inference output with path heuristics.

The inference service omits fields, invents enum values and renames
keys. Functions here turn whatever survived decoding into typed records
and infer what is missing from paths and module-type signals.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from enum import StrEnum
from typing import Any, cast

from codeatlas.analysis.llm.schemas import (
    LayerGroup,
    ModuleRecord,
    PatternClassification,
    RecoveryFragment,
    RelationshipRecord,
)
from codeatlas.constants import (
    DESCRIPTION_MAX_CHARS,
    DESCRIPTION_SCAN_LINES,
    MICROSERVICES_EDGE_RATIO,
    MICROSERVICES_MIN_MODULES,
    STRUCTURED_MIN_MODULES,
    Confidence,
    LayerName,
    ModuleType,
    PatternName,
    RecoveryTier,
    RelationshipType,
    RequestProtocol,
    Strength,
)
from codeatlas.ingestion.schemas import FileUnit

_COMMENT_RE = re.compile(r"(?:\/\/|#|<!--)\s*(.+?)(?:\n|$)")

_PATTERN_IN_TEXT_RE = re.compile(
    r"(MVC|Layered|Microservices|Event-Driven|Client-Server|Monolithic"
    r"|Modular|Component-Based)",
    re.IGNORECASE,
)

# Alternate spellings of relationship endpoints, in priority order
_FROM_KEYS = ("from", "parentModule", "source", "parent")
_TO_KEYS = ("to", "childModule", "target", "child")

# Layer-name keywords → path/name keywords of the modules they hold
_LAYER_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("data", ("data", "model", "db", "database")),
    ("cache", ("cache",)),
    ("monitoring", ("monitor",)),
    ("communication", ("communication",)),
    ("service", ("service",)),
    ("presentation", ("view", "component")),
)


# ---------------------------------------------------------------------------
# Path heuristics
# ---------------------------------------------------------------------------


def infer_module_type(path: str) -> ModuleType:
    """Module type from ordered substring checks on the path."""
    lower = path.lower()
    if "test" in lower:
        return ModuleType.TEST
    if "controller" in lower:
        return ModuleType.CONTROLLER
    if "service" in lower:
        return ModuleType.SERVICE
    if "model" in lower:
        return ModuleType.MODEL
    if "view" in lower or "component" in lower:
        return ModuleType.VIEW
    if "util" in lower:
        return ModuleType.UTILITY
    if "config" in lower:
        return ModuleType.CONFIG
    return ModuleType.OTHER


def infer_layer(path: str) -> LayerName:
    """Layer from ordered substring checks on the path."""
    lower = path.lower()
    if any(k in lower for k in ("view", "component", "page", "ui")):
        return LayerName.PRESENTATION
    if any(k in lower for k in ("service", "business", "logic")):
        return LayerName.BUSINESS
    if any(k in lower for k in ("model", "data", "db", "database")):
        return LayerName.DATA
    if any(k in lower for k in ("config", "infra")):
        return LayerName.INFRASTRUCTURE
    return LayerName.OTHER


def infer_description(content: str) -> str:
    """First line comment near the top of the file, if any."""
    head = "\n".join(content.split("\n")[:DESCRIPTION_SCAN_LINES])
    match = _COMMENT_RE.search(head)
    if match is None:
        return ""
    return match.group(1).strip()[:DESCRIPTION_MAX_CHARS]


def module_name_from_path(path: str) -> str:
    """Basename without its last extension."""
    base = path.rstrip("/").rsplit("/", 1)[-1]
    stem = re.sub(r"\.[^/.]+$", "", base)
    return stem or base or path


def heuristic_module(file: FileUnit) -> ModuleRecord:
    """A module record built from nothing but the file's path and content."""
    return ModuleRecord(
        name=module_name_from_path(file.path),
        path=file.path,
        type=infer_module_type(file.path),
        layer=infer_layer(file.path),
        description=infer_description(file.content),
    )


# ---------------------------------------------------------------------------
# Pattern classification
# ---------------------------------------------------------------------------


def classify_pattern(
    modules: Sequence[ModuleRecord],
    relationships: Sequence[RelationshipRecord],
) -> PatternClassification:
    """Infer a pattern from aggregate module-type signals.

    Rules are checked in a fixed order and the first match wins.
    """
    has_controllers = has_views = has_models = has_services = False
    has_components = has_routes = has_web_entry = False
    has_react = has_next = False
    layers: set[LayerName] = set()

    for m in modules:
        path = m.path.lower()
        name = m.name.lower()
        if m.type == ModuleType.CONTROLLER or "controller" in path or "controller" in name:
            has_controllers = True
        if (
            m.type == ModuleType.VIEW
            or "view" in path
            or "view" in name
            or "component" in path
        ):
            has_views = True
        if m.type == ModuleType.MODEL or "model" in path or "model" in name:
            has_models = True
        if m.type == ModuleType.SERVICE or "service" in path or "service" in name:
            has_services = True
        if m.type == ModuleType.COMPONENT or "component" in path:
            has_components = True
        if "route" in path or "api/" in path:
            has_routes = True
        if m.layer != LayerName.OTHER:
            layers.add(m.layer)
        if "flask" in path or "app.py" in path or "main.py" in path:
            has_web_entry = True
        if "react" in path or ".jsx" in path or ".tsx" in path:
            has_react = True
        if "next" in path or "pages" in path or "app/" in path:
            has_next = True

    if has_controllers and has_views and has_models:
        return PatternClassification(
            name=PatternName.MVC,
            confidence=Confidence.MVC,
            description=(
                "Detected Model-View-Controller pattern with clear "
                "separation of concerns"
            ),
        )
    if len(layers) >= 2 or (has_services and has_models and has_views):
        return PatternClassification(
            name=PatternName.LAYERED,
            confidence=Confidence.LAYERED,
            description=(
                "Detected layered architecture with separation of "
                "concerns across multiple layers"
            ),
        )
    if has_next or (has_react and has_components):
        return PatternClassification(
            name=PatternName.LAYERED,
            confidence=Confidence.COMPONENT_BASED,
            description=(
                "Detected component-based architecture typical of "
                "React/Next.js applications"
            ),
        )
    if has_web_entry and has_routes:
        return PatternClassification(
            name=PatternName.LAYERED,
            confidence=Confidence.WEB_APP,
            description=(
                "Detected web application entry point with routed "
                "handlers in a layered structure"
            ),
        )
    if (
        has_services
        and len(modules) > MICROSERVICES_MIN_MODULES
        and len(relationships) > len(modules) * MICROSERVICES_EDGE_RATIO
    ):
        return PatternClassification(
            name=PatternName.MICROSERVICES,
            confidence=Confidence.MICROSERVICES,
            description=(
                "Detected potential microservices architecture with "
                "multiple service modules"
            ),
        )
    if len(modules) > STRUCTURED_MIN_MODULES and (
        has_services or has_models or has_views
    ):
        return PatternClassification(
            name=PatternName.LAYERED,
            confidence=Confidence.STRUCTURED_FALLBACK,
            description=(
                "Detected layered architecture based on module types "
                "and structure"
            ),
        )
    return PatternClassification(
        name=PatternName.UNKNOWN,
        confidence=Confidence.INSUFFICIENT_SIGNAL,
        description=(
            "Could not confidently determine architectural pattern "
            "from available information"
        ),
    )


def _canonical_pattern_name(raw: str) -> PatternName:
    for member in PatternName:
        if raw.strip().lower() == member.value.lower():
            return member
    lowered = raw.lower()
    if "mvc" in lowered or "model-view-controller" in lowered:
        return PatternName.MVC
    if "layered" in lowered or "tier" in lowered:
        return PatternName.LAYERED
    if "microservice" in lowered:
        return PatternName.MICROSERVICES
    if "monolithic" in lowered:
        return PatternName.MONOLITHIC
    if "event" in lowered:
        return PatternName.EVENT_DRIVEN
    if "client-server" in lowered or "client server" in lowered:
        return PatternName.CLIENT_SERVER
    if "modular" in lowered or "component" in lowered:
        return PatternName.LAYERED
    return PatternName.UNKNOWN


def coerce_confidence(raw: Any) -> float | None:
    """Numeric confidence in [0, 1]; percentages are scaled down."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        try:
            raw = float(raw.strip().rstrip("%"))
        except ValueError:
            return None
    if not isinstance(raw, (int, float)):
        return None
    value = float(raw)
    if value != value:  # NaN
        return None
    if 1.0 < value <= 100.0:
        value /= 100.0
    return min(1.0, max(0.0, value))


def normalize_pattern(raw: Any) -> PatternClassification | None:
    """Canonicalize a pattern given as an object or a bare string.

    Returns None when nothing usable was given, so the caller can fall
    back to ``classify_pattern``.
    """
    if isinstance(raw, str):
        if not raw.strip():
            return None
        match = _PATTERN_IN_TEXT_RE.search(raw)
        if match is None:
            return PatternClassification(
                name=PatternName.UNKNOWN,
                confidence=Confidence.UNMATCHED_STRING,
                description=raw,
            )
        return PatternClassification(
            name=_canonical_pattern_name(match.group(1)),
            confidence=Confidence.NAMED_STRING,
            description=raw,
        )

    if not isinstance(raw, dict):
        return None
    entry = cast(dict[str, Any], raw)
    raw_name = entry.get("name")
    name = (
        _canonical_pattern_name(raw_name)
        if isinstance(raw_name, str)
        else PatternName.UNKNOWN
    )
    confidence = coerce_confidence(entry.get("confidence"))
    if not confidence:
        confidence = (
            Confidence.NAMED_DEFAULT
            if name != PatternName.UNKNOWN
            else Confidence.INSUFFICIENT_SIGNAL
        )
    description = entry.get("description")
    return PatternClassification(
        name=name,
        confidence=confidence,
        description=(
            str(description)
            if description
            else f"Architecture pattern: {name.value}"
        ),
    )


# ---------------------------------------------------------------------------
# Entry normalization
# ---------------------------------------------------------------------------


def _coerce_enum[E: StrEnum](enum_cls: type[E], raw: Any) -> E | None:
    if not isinstance(raw, str):
        return None
    lowered = raw.strip().lower()
    for member in enum_cls:
        if member.value.lower() == lowered:
            return member
    return None


def string_list(raw: Any) -> list[str]:
    """Distinct non-empty strings from a list, in order."""
    if not isinstance(raw, list):
        return []
    items: list[str] = []
    for item in cast(list[Any], raw):
        if isinstance(item, str) and item.strip() and item.strip() not in items:
            items.append(item.strip())
    return items


def _first_text(entry: dict[str, Any], keys: Sequence[str]) -> str:
    for key in keys:
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def normalize_modules(
    raw: Any, files: Sequence[FileUnit]
) -> list[ModuleRecord]:
    """Module records from a decoded ``modules`` array.

    Bare strings are paths. Objects without a path borrow one from the
    chunk's files by name containment. Entries with no usable path are
    dropped; the first record for a path wins.
    """
    if not isinstance(raw, list):
        return []
    modules: dict[str, ModuleRecord] = {}
    for item in cast(list[Any], raw):
        if isinstance(item, str):
            path = item.strip()
            if path and path not in modules:
                modules[path] = ModuleRecord(
                    name=module_name_from_path(path),
                    path=path,
                    type=infer_module_type(path),
                    layer=infer_layer(path),
                )
            continue
        if not isinstance(item, dict):
            continue
        entry = cast(dict[str, Any], item)
        name = _first_text(entry, ("name",))
        path = _first_text(entry, ("path", "file", "filePath"))
        if not path and name:
            path = next((f.path for f in files if name in f.path), name)
        if not path or path in modules:
            continue
        description = entry.get("description")
        modules[path] = ModuleRecord(
            name=name or module_name_from_path(path),
            path=path,
            type=_coerce_enum(ModuleType, entry.get("type"))
            or infer_module_type(path),
            layer=_coerce_enum(LayerName, entry.get("layer"))
            or infer_layer(path),
            description=str(description) if description else "",
            exports=string_list(entry.get("exports")),
            imports=string_list(entry.get("imports")),
        )
    return list(modules.values())


def normalize_relationships(raw: Any) -> list[RelationshipRecord]:
    """Canonical ``{from, to}`` edges; unusable entries are dropped.

    A ``childModules`` array fans out into one edge per child.
    """
    if not isinstance(raw, list):
        return []
    edges: dict[tuple[str, str], RelationshipRecord] = {}

    def _add(record: RelationshipRecord) -> None:
        edges.setdefault(record.key, record)

    for item in cast(list[Any], raw):
        if not isinstance(item, dict):
            continue
        entry = cast(dict[str, Any], item)
        src = _first_text(entry, _FROM_KEYS)
        strength = _coerce_enum(Strength, entry.get("strength")) or Strength.MEDIUM
        description = entry.get("description")
        text = str(description) if description else ""

        children = entry.get("childModules")
        if isinstance(children, list):
            if not src:
                continue
            rel_type = (
                _coerce_enum(RelationshipType, entry.get("type"))
                or RelationshipType.USES
            )
            for child in string_list(children):
                _add(
                    RelationshipRecord(
                        from_path=src,
                        to_path=child,
                        type=rel_type,
                        strength=strength,
                        description=text,
                    )
                )
            continue

        dst = _first_text(entry, _TO_KEYS)
        if not src or not dst:
            continue
        _add(
            RelationshipRecord(
                from_path=src,
                to_path=dst,
                type=_coerce_enum(RelationshipType, entry.get("type"))
                or RelationshipType.DEPENDS,
                strength=strength,
                description=text,
            )
        )
    return list(edges.values())


def group_by_layers(modules: Sequence[ModuleRecord]) -> list[LayerGroup]:
    """One group per module layer, named like ``Presentation``."""
    groups: dict[str, list[str]] = {}
    for m in modules:
        groups.setdefault(m.layer.value, [])
        if m.path not in groups[m.layer.value]:
            groups[m.layer.value].append(m.path)
    return [
        LayerGroup(name=name.capitalize(), modules=paths)
        for name, paths in groups.items()
    ]


def _keyword_groups(modules: Sequence[ModuleRecord]) -> dict[str, list[str]]:
    groups: dict[str, list[str]] = {}
    for m in modules:
        path = m.path.lower()
        name = m.name.lower()
        for key, words in _LAYER_KEYWORDS:
            if any(w in path or w in name for w in words):
                groups.setdefault(key, []).append(m.path)
    return groups


def normalize_layers(
    raw: Any, modules: Sequence[ModuleRecord]
) -> list[LayerGroup]:
    """Layer groups from a decoded ``layers`` array.

    Missing or empty input is rebuilt from module layers. Groups that
    came without module lists are filled by matching the group name
    against module layers, then against path keyword groups.
    """
    if not isinstance(raw, list) or not raw:
        return group_by_layers(modules)

    entries: list[tuple[str, list[str]]] = []
    for item in cast(list[Any], raw):
        if isinstance(item, str) and item.strip():
            entries.append((item.strip(), []))
        elif isinstance(item, dict):
            entry = cast(dict[str, Any], item)
            name = _first_text(entry, ("name",)) or "Unknown"
            entries.append((name, string_list(entry.get("modules"))))
    if not entries:
        return group_by_layers(modules)

    if all(paths for _, paths in entries):
        return [LayerGroup(name=name, modules=paths) for name, paths in entries]

    by_layer: dict[str, list[str]] = {}
    for m in modules:
        by_layer.setdefault(m.layer.value, []).append(m.path)
    by_keyword = _keyword_groups(modules)

    groups: list[LayerGroup] = []
    for name, paths in entries:
        lowered = name.lower()
        matched: list[str] = by_layer.get(lowered, [])
        if not matched:
            matched = next(
                (
                    mods
                    for key, mods in by_keyword.items()
                    if key in lowered or lowered in key
                ),
                [],
            )
        if not matched:
            matched = next(
                (
                    mods
                    for key, mods in by_layer.items()
                    if key in lowered or lowered in key
                ),
                [],
            )
        groups.append(LayerGroup(name=name, modules=list(matched or paths)))
    return groups


def normalize_fragment(
    data: dict[str, Any],
    files: Sequence[FileUnit],
    tier: RecoveryTier,
    *,
    chunk_index: int = 0,
    protocol: RequestProtocol | None = None,
) -> RecoveryFragment:
    """Typed fragment from a decoded response object.

    Below FIELD_EXTRACTION a missing pattern is inferred from the
    modules; at FIELD_EXTRACTION it defaults to Unknown.
    """
    modules = normalize_modules(data.get("modules"), files)
    if not modules:
        modules = [heuristic_module(f) for f in files]
    relationships = normalize_relationships(data.get("relationships"))

    pattern = normalize_pattern(data.get("pattern"))
    if pattern is None:
        if tier < RecoveryTier.FIELD_EXTRACTION:
            pattern = classify_pattern(modules, relationships)
        else:
            pattern = PatternClassification(
                name=PatternName.UNKNOWN,
                confidence=Confidence.PARTIAL_RECOVERY,
                description="Partial recovery",
            )

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = (
            f"Chunk analysis: {len(modules)} modules, "
            f"{len(relationships)} relationships"
        )

    return RecoveryFragment(
        tier=tier,
        chunk_index=chunk_index,
        protocol=protocol,
        chunk_paths=[f.path for f in files],
        modules=modules,
        relationships=relationships,
        pattern=pattern,
        layers=normalize_layers(data.get("layers"), modules),
        summary=summary.strip(),
        entry_points=string_list(data.get("entryPoints")),
        core_components=string_list(data.get("coreComponents")),
    )


def minimal_fragment(
    files: Sequence[FileUnit],
    *,
    chunk_index: int = 0,
    protocol: RequestProtocol | None = None,
) -> RecoveryFragment:
    """Path-heuristic fragment used when nothing could be decoded."""
    return RecoveryFragment(
        tier=RecoveryTier.MINIMAL,
        chunk_index=chunk_index,
        protocol=protocol,
        chunk_paths=[f.path for f in files],
        modules=[heuristic_module(f) for f in files],
        relationships=[],
        pattern=PatternClassification(
            name=PatternName.UNKNOWN,
            confidence=Confidence.NONE,
            description="Chunk analysis failed",
        ),
        layers=[],
        summary=f"Fallback analysis for {len(files)} files",
    )
