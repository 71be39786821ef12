"""Shared constants — single source of truth for cross-module values.

All enum vocabularies of the architecture graph and the magic numbers
that appear in 2+ files belong here. StrEnum members are str-compatible,
so JSON produced from the graph carries plain strings.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum

# ── String Enums ─────────────────────────────────────────


class ModuleType(StrEnum):
    """Architectural role of a single module (file)."""

    COMPONENT = "component"
    SERVICE = "service"
    UTILITY = "utility"
    MODEL = "model"
    CONTROLLER = "controller"
    VIEW = "view"
    CONFIG = "config"
    TEST = "test"
    OTHER = "other"


class LayerName(StrEnum):
    """Logical layer a module belongs to."""

    PRESENTATION = "presentation"
    BUSINESS = "business"
    DATA = "data"
    INFRASTRUCTURE = "infrastructure"
    OTHER = "other"


class RelationshipType(StrEnum):
    """Edge types in the architecture graph."""

    IMPORTS = "imports"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    USES = "uses"
    CALLS = "calls"
    DEPENDS = "depends"
    AGGREGATES = "aggregates"
    COMPOSES = "composes"


class Strength(StrEnum):
    """Coupling strength of a relationship."""

    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"


class PatternName(StrEnum):
    """Recognised architectural patterns."""

    MVC = "MVC"
    LAYERED = "Layered"
    MICROSERVICES = "Microservices"
    EVENT_DRIVEN = "Event-Driven"
    CLIENT_SERVER = "Client-Server"
    MONOLITHIC = "Monolithic"
    UNKNOWN = "Unknown"


class RequestProtocol(StrEnum):
    """The two request forms the inference service accepts."""

    CHAT = "chat"
    COMPLETION = "completion"


class StageProgress(StrEnum):
    """Progress status for pipeline stage events."""

    RUNNING = "running"
    DONE = "done"


class RecoveryTier(IntEnum):
    """How much of the decoder ladder a fragment needed.

    Lower is more trustworthy. MINIMAL fragments carry no information
    from the inference service at all.
    """

    CLEAN = 0
    REPAIRED = 1
    FIELD_EXTRACTION = 2
    MINIMAL = 3


# ── Confidence ───────────────────────────────────────────


class Confidence:
    """Named pattern confidences — single source of truth."""

    MVC = 0.85
    LAYERED = 0.75
    COMPONENT_BASED = 0.70
    WEB_APP = 0.70
    MICROSERVICES = 0.60
    STRUCTURED_FALLBACK = 0.60
    INSUFFICIENT_SIGNAL = 0.30
    NAMED_STRING = 0.80  # pattern given as a bare string that matched
    UNMATCHED_STRING = 0.50
    NAMED_DEFAULT = 0.70  # pattern object without confidence
    PARTIAL_RECOVERY = 0.30
    NONE = 0.0


# ── Circuit Breaker Configuration ────────────────────────

CB_LLM_FAILURE_THRESHOLD = 5
CB_LLM_RECOVERY_TIMEOUT = 30

# ── Inference Requests ───────────────────────────────────

LLM_STOP_SEQUENCES = ["```", "```json"]
LLM_TOP_P = 0.9

# ── Prompt Excerpts ──────────────────────────────────────

EXCERPT_LEAD_FILES = 2  # first N files of a chunk get the longer excerpt
EXCERPT_LEAD_CHARS = 1000
EXCERPT_CHARS = 500
TRUNCATION_MARKER = "\n... (truncated)"

# ── Importance Scoring ───────────────────────────────────

SCORE_ENTRY_POINT = 100
SCORE_CORE_DIRECTORY = 80
SCORE_CONFIG_FILE = 50
SCORE_SERVICE_FILE = 30
SCORE_SOURCE_ROOT = 10
SCORE_TEST_PENALTY = -20
SCORE_PER_IMPORTER = 5  # inbound degree
SCORE_PER_IMPORT = 3  # outbound degree

# ── Heuristics ───────────────────────────────────────────

DESCRIPTION_SCAN_LINES = 10
DESCRIPTION_MAX_CHARS = 100
MICROSERVICES_MIN_MODULES = 5
MICROSERVICES_EDGE_RATIO = 0.5
STRUCTURED_MIN_MODULES = 3

# ── Decoding and Merge ───────────────────────────────────

FIELD_EXTRACTION_MAX_ATTEMPTS = 3  # occurrences tried per field at tier 2
IMPORT_SCAN_CHARS = 10_000  # prefix of each file scanned for imports

# ── Misc ─────────────────────────────────────────────────

ERROR_TRUNCATION_CHARS = 200
RESPONSE_PREVIEW_CHARS = 200
SHORT_RESPONSE_CHARS = 100

# ── Stage Labels (user-facing) ─────────────────────────

STAGE_LABELS: dict[str, str] = {
    "selection": "Selecting important files",
    "dispatch": "Inferring architecture",
    "merge": "Merging chunk results",
}
