"""Pydantic models for decoded inference output and the merged graph."""

from pydantic import BaseModel, ConfigDict, Field

from codeatlas.constants import (
    LayerName,
    ModuleType,
    PatternName,
    RecoveryTier,
    RelationshipType,
    RequestProtocol,
    Strength,
)


class ModuleRecord(BaseModel):
    """One module (file) of the architecture. ``path`` is its identity."""

    name: str
    path: str
    type: ModuleType = ModuleType.OTHER
    layer: LayerName = LayerName.OTHER
    description: str = ""
    exports: list[str] = Field(default_factory=lambda: list[str]())
    imports: list[str] = Field(default_factory=lambda: list[str]())


class RelationshipRecord(BaseModel):
    """A directed edge. ``(from_path, to_path)`` is its identity.

    Serialized with the wire names ``from``/``to``.
    """

    model_config = ConfigDict(populate_by_name=True)

    from_path: str = Field(alias="from")
    to_path: str = Field(alias="to")
    type: RelationshipType = RelationshipType.DEPENDS
    strength: Strength = Strength.MEDIUM
    description: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.from_path, self.to_path)


class PatternClassification(BaseModel):
    """The architectural pattern inferred for a codebase."""

    name: PatternName = PatternName.UNKNOWN
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    description: str = ""

    @property
    def is_unknown(self) -> bool:
        return self.name == PatternName.UNKNOWN


class LayerGroup(BaseModel):
    """Named group of module paths; paths are unique within a group."""

    name: str
    modules: list[str] = Field(default_factory=lambda: list[str]())


class RawResponse(BaseModel):
    """Text returned by the inference service for one chunk."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    protocol: RequestProtocol | None = None


class RecoveryFragment(BaseModel):
    """Decoder output for one chunk, tagged with the tier that produced it.

    MINIMAL fragments carry only path heuristics; consumers should check
    ``tier`` rather than assume fields came from the service.
    """

    tier: RecoveryTier
    chunk_index: int = 0
    protocol: RequestProtocol | None = None
    # Paths of the files sent in this chunk
    chunk_paths: list[str] = Field(default_factory=lambda: list[str]())
    modules: list[ModuleRecord] = Field(
        default_factory=lambda: list[ModuleRecord]()
    )
    relationships: list[RelationshipRecord] = Field(
        default_factory=lambda: list[RelationshipRecord]()
    )
    pattern: PatternClassification | None = None
    layers: list[LayerGroup] = Field(default_factory=lambda: list[LayerGroup]())
    summary: str = ""
    entry_points: list[str] = Field(default_factory=lambda: list[str]())
    core_components: list[str] = Field(default_factory=lambda: list[str]())

    @property
    def is_minimal(self) -> bool:
        return self.tier == RecoveryTier.MINIMAL


class ArchitectureGraph(BaseModel):
    """Final merged architecture for one analysis run. Immutable."""

    model_config = ConfigDict(frozen=True)

    modules: list[ModuleRecord] = Field(
        default_factory=lambda: list[ModuleRecord]()
    )
    relationships: list[RelationshipRecord] = Field(
        default_factory=lambda: list[RelationshipRecord]()
    )
    pattern: PatternClassification = Field(
        default_factory=PatternClassification
    )
    layers: list[LayerGroup] = Field(default_factory=lambda: list[LayerGroup]())
    summary: str = ""
    entry_points: list[str] = Field(default_factory=lambda: list[str]())
    core_components: list[str] = Field(default_factory=lambda: list[str]())
    # One entry per chunk, in chunk-index order
    recovery_tiers: list[RecoveryTier] = Field(
        default_factory=lambda: list[RecoveryTier]()
    )

    @property
    def degraded(self) -> bool:
        """True when any chunk needed more than a clean parse."""
        return any(t > RecoveryTier.CLEAN for t in self.recovery_tiers)

    def module(self, path: str) -> ModuleRecord | None:
        for m in self.modules:
            if m.path == path:
                return m
        return None
