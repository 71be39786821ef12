"""codeatlas — fault-tolerant architecture extraction from source files."""

from codeatlas.analysis.llm.dispatcher import InferenceTransport
from codeatlas.analysis.llm.schemas import (
    ArchitectureGraph,
    LayerGroup,
    ModuleRecord,
    PatternClassification,
    RelationshipRecord,
)
from codeatlas.analysis.pipeline import analyze_architecture
from codeatlas.config import Settings
from codeatlas.constants import RecoveryTier
from codeatlas.ingestion.schemas import FileUnit
from codeatlas.services.events import DiagnosticSink, StageEvent

__all__ = [
    "ArchitectureGraph",
    "DiagnosticSink",
    "FileUnit",
    "InferenceTransport",
    "LayerGroup",
    "ModuleRecord",
    "PatternClassification",
    "RecoveryTier",
    "RelationshipRecord",
    "Settings",
    "StageEvent",
    "analyze_architecture",
]
