"""Tests for path heuristics, pattern classification and entry cleanup."""

from __future__ import annotations

import pytest

from codeatlas.analysis.llm.normalizer import (
    classify_pattern,
    coerce_confidence,
    heuristic_module,
    infer_description,
    infer_layer,
    infer_module_type,
    minimal_fragment,
    module_name_from_path,
    normalize_fragment,
    normalize_layers,
    normalize_modules,
    normalize_pattern,
    normalize_relationships,
)
from codeatlas.analysis.llm.schemas import ModuleRecord, RelationshipRecord
from codeatlas.constants import (
    Confidence,
    LayerName,
    ModuleType,
    PatternName,
    RecoveryTier,
    RelationshipType,
    Strength,
)
from codeatlas.ingestion.schemas import FileUnit


def _module(path: str, **kwargs: object) -> ModuleRecord:
    return ModuleRecord(
        name=module_name_from_path(path),
        path=path,
        type=kwargs.get("type", infer_module_type(path)),  # type: ignore[arg-type]
        layer=kwargs.get("layer", infer_layer(path)),  # type: ignore[arg-type]
    )


class TestPathHeuristics:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("src/controllers/test_helper.ts", ModuleType.TEST),
            ("src/userController.ts", ModuleType.CONTROLLER),
            ("src/services/modelService.ts", ModuleType.SERVICE),
            ("src/models/user.ts", ModuleType.MODEL),
            ("src/components/Button.tsx", ModuleType.VIEW),
            ("src/views/home.ts", ModuleType.VIEW),
            ("src/utils/format.ts", ModuleType.UTILITY),
            ("webpack.config.js", ModuleType.CONFIG),
            ("src/index.ts", ModuleType.OTHER),
        ],
    )
    def test_infer_module_type_order(self, path: str, expected: ModuleType) -> None:
        assert infer_module_type(path) == expected

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("src/pages/Home.tsx", LayerName.PRESENTATION),
            ("src/ui/modal.ts", LayerName.PRESENTATION),
            ("src/businessRules.ts", LayerName.BUSINESS),
            ("src/db/pool.ts", LayerName.DATA),
            ("infra/deploy.ts", LayerName.INFRASTRUCTURE),
            ("src/index.ts", LayerName.OTHER),
        ],
    )
    def test_infer_layer(self, path: str, expected: LayerName) -> None:
        assert infer_layer(path) == expected

    def test_infer_description_from_comment(self) -> None:
        content = "\n\n// Entry point for the API server\nconst x = 1;\n"
        assert infer_description(content) == "Entry point for the API server"

    def test_infer_description_hash_comment_truncated(self) -> None:
        content = "# " + "x" * 150 + "\n"
        assert infer_description(content) == "x" * 100

    def test_infer_description_ignores_late_comments(self) -> None:
        content = "line\n" * 12 + "// too late\n"
        assert infer_description(content) == ""

    def test_module_name_from_path(self) -> None:
        assert module_name_from_path("src/app/user.service.ts") == "user.service"
        assert module_name_from_path("Makefile") == "Makefile"

    def test_heuristic_module(self) -> None:
        module = heuristic_module(
            FileUnit(path="src/services/mail.ts", content="// Sends mail\n")
        )
        assert module.name == "mail"
        assert module.type == ModuleType.SERVICE
        assert module.layer == LayerName.BUSINESS
        assert module.description == "Sends mail"


class TestClassifyPattern:
    def test_mvc(self) -> None:
        modules = [
            _module("src/controllers/a.ts"),
            _module("src/views/a.ts"),
            _module("src/models/a.ts"),
        ]
        pattern = classify_pattern(modules, [])
        assert pattern.name == PatternName.MVC
        assert pattern.confidence == Confidence.MVC

    def test_layered_from_layer_diversity(self) -> None:
        modules = [_module("src/services/a.ts"), _module("src/db/b.ts")]
        pattern = classify_pattern(modules, [])
        assert pattern.name == PatternName.LAYERED
        assert pattern.confidence == Confidence.LAYERED

    def test_component_based(self) -> None:
        modules = [
            _module("pages/index.tsx", layer=LayerName.OTHER),
            _module("lib/fetcher.ts", layer=LayerName.OTHER),
        ]
        pattern = classify_pattern(modules, [])
        assert pattern.name == PatternName.LAYERED
        assert pattern.confidence == Confidence.COMPONENT_BASED
        assert "component-based" in pattern.description

    def test_microservices(self) -> None:
        modules = [
            _module(f"svc{i}/service.go", layer=LayerName.OTHER)
            for i in range(6)
        ]
        relationships = [
            RelationshipRecord(from_path=f"svc{i}/service.go", to_path="x")
            for i in range(4)
        ]
        pattern = classify_pattern(modules, relationships)
        assert pattern.name == PatternName.MICROSERVICES
        assert pattern.confidence == Confidence.MICROSERVICES

    def test_rule_order_mvc_beats_layered(self) -> None:
        # Also satisfies the layered rule; MVC is checked first
        modules = [
            _module("src/controllers/a.ts"),
            _module("src/views/a.ts"),
            _module("src/models/a.ts"),
            _module("src/services/a.ts"),
        ]
        assert classify_pattern(modules, []).name == PatternName.MVC

    def test_insufficient_signal(self) -> None:
        pattern = classify_pattern([_module("src/index.ts")], [])
        assert pattern.name == PatternName.UNKNOWN
        assert pattern.confidence == Confidence.INSUFFICIENT_SIGNAL


class TestNormalizePattern:
    def test_string_with_known_name(self) -> None:
        pattern = normalize_pattern("This is a classic MVC application")
        assert pattern is not None
        assert pattern.name == PatternName.MVC
        assert pattern.confidence == Confidence.NAMED_STRING

    def test_string_without_known_name(self) -> None:
        pattern = normalize_pattern("Hexagonal")
        assert pattern is not None
        assert pattern.name == PatternName.UNKNOWN
        assert pattern.confidence == Confidence.UNMATCHED_STRING
        assert pattern.description == "Hexagonal"

    def test_object_name_is_canonicalized(self) -> None:
        pattern = normalize_pattern({"name": "3-tier", "confidence": "80%"})
        assert pattern is not None
        assert pattern.name == PatternName.LAYERED
        assert pattern.confidence == pytest.approx(0.8)
        assert pattern.description == "Architecture pattern: Layered"

    def test_object_missing_confidence_defaults(self) -> None:
        named = normalize_pattern({"name": "event driven"})
        unknown = normalize_pattern({"name": "???"})
        assert named is not None and unknown is not None
        assert named.name == PatternName.EVENT_DRIVEN
        assert named.confidence == Confidence.NAMED_DEFAULT
        assert unknown.confidence == Confidence.INSUFFICIENT_SIGNAL

    def test_unusable_returns_none(self) -> None:
        assert normalize_pattern(None) is None
        assert normalize_pattern(["MVC"]) is None
        assert normalize_pattern("   ") is None

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (0.5, 0.5),
            (85, 0.85),
            ("0.25", 0.25),
            (-3, 0.0),
            (1000, 1.0),
            ("high", None),
            (True, None),
            (float("nan"), None),
        ],
    )
    def test_coerce_confidence(self, raw: object, expected: float | None) -> None:
        assert coerce_confidence(raw) == (
            pytest.approx(expected) if expected is not None else None
        )


class TestNormalizeModules:
    def test_string_entries_are_paths(self) -> None:
        modules = normalize_modules(["src/models/user.ts"], [])
        assert modules[0].name == "user"
        assert modules[0].type == ModuleType.MODEL

    def test_path_borrowed_from_files_by_name(self) -> None:
        files = [FileUnit(path="src/auth/login.ts")]
        modules = normalize_modules([{"name": "login"}], files)
        assert modules[0].path == "src/auth/login.ts"

    def test_alternate_path_keys_and_bad_enums(self) -> None:
        modules = normalize_modules(
            [
                {
                    "filePath": "src/services/pay.ts",
                    "type": "manager",
                    "layer": "Business",
                }
            ],
            [],
        )
        assert modules[0].path == "src/services/pay.ts"
        assert modules[0].type == ModuleType.SERVICE
        assert modules[0].layer == LayerName.BUSINESS

    def test_first_entry_for_a_path_wins(self) -> None:
        modules = normalize_modules(
            [
                {"path": "a.ts", "description": "first"},
                {"path": "a.ts", "description": "second"},
            ],
            [],
        )
        assert len(modules) == 1
        assert modules[0].description == "first"

    def test_unusable_entries_dropped(self) -> None:
        assert normalize_modules([{"type": "service"}, 3, None], []) == []
        assert normalize_modules("nope", []) == []


class TestNormalizeRelationships:
    def test_alternate_endpoint_names(self) -> None:
        edges = normalize_relationships(
            [
                {"source": "a.ts", "target": "b.ts"},
                {"parent": "b.ts", "child": "c.ts", "strength": "weak"},
            ]
        )
        assert [e.key for e in edges] == [("a.ts", "b.ts"), ("b.ts", "c.ts")]
        assert edges[0].type == RelationshipType.DEPENDS
        assert edges[1].strength == Strength.WEAK

    def test_child_modules_fan_out(self) -> None:
        edges = normalize_relationships(
            [{"parentModule": "app.ts", "childModules": ["a.ts", "b.ts"]}]
        )
        assert [e.key for e in edges] == [("app.ts", "a.ts"), ("app.ts", "b.ts")]
        assert all(e.type == RelationshipType.USES for e in edges)

    def test_missing_endpoint_dropped_and_duplicates_removed(self) -> None:
        edges = normalize_relationships(
            [
                {"from": "a.ts"},
                {"from": "a.ts", "to": "b.ts", "description": "first"},
                {"from": "a.ts", "to": "b.ts", "description": "second"},
                "garbage",
            ]
        )
        assert len(edges) == 1
        assert edges[0].description == "first"


class TestNormalizeLayers:
    def test_missing_layers_grouped_from_modules(self) -> None:
        modules = [_module("src/views/a.ts"), _module("src/db/b.ts")]
        layers = normalize_layers(None, modules)
        assert [(g.name, g.modules) for g in layers] == [
            ("Presentation", ["src/views/a.ts"]),
            ("Data", ["src/db/b.ts"]),
        ]

    def test_names_only_matched_to_modules(self) -> None:
        modules = [
            _module("src/views/a.ts"),
            _module("src/cache/store.ts", layer=LayerName.OTHER),
        ]
        layers = normalize_layers(["presentation", {"name": "Cache Layer"}], modules)
        assert layers[0].modules == ["src/views/a.ts"]
        assert layers[1].modules == ["src/cache/store.ts"]


class TestFragments:
    def test_normalize_fragment_classifies_missing_pattern(self) -> None:
        files = [FileUnit(path="src/services/a.ts"), FileUnit(path="src/db/b.ts")]
        fragment = normalize_fragment(
            {"modules": []}, files, RecoveryTier.CLEAN, chunk_index=2
        )
        assert [m.path for m in fragment.modules] == [f.path for f in files]
        assert fragment.pattern is not None
        assert fragment.pattern.name == PatternName.LAYERED
        assert fragment.chunk_index == 2
        assert fragment.summary == "Chunk analysis: 2 modules, 0 relationships"

    def test_minimal_fragment(self) -> None:
        files = [FileUnit(path="a.ts"), FileUnit(path="b.ts")]
        fragment = minimal_fragment(files, chunk_index=3)
        assert fragment.is_minimal
        assert fragment.layers == []
        assert fragment.summary == "Fallback analysis for 2 files"
        assert fragment.pattern is not None
        assert fragment.pattern.description == "Chunk analysis failed"
