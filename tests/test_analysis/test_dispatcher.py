"""Tests for chunking and concurrent two-protocol dispatch."""

from __future__ import annotations

import pytest

from codeatlas.analysis.llm.dispatcher import (
    ChunkDispatcher,
    build_chunks,
    is_test_suite,
)
from codeatlas.analysis.llm.schemas import RecoveryFragment
from codeatlas.config import Settings
from codeatlas.constants import RecoveryTier, RequestProtocol, StageProgress
from codeatlas.fakes import FakeTransport, RecordingSink
from codeatlas.ingestion.schemas import FileUnit
from codeatlas.services.events import StageEvent

CHAT = RequestProtocol.CHAT
COMPLETION = RequestProtocol.COMPLETION


def _files(n: int, prefix: str = "src/m") -> list[FileUnit]:
    return [FileUnit(path=f"{prefix}{i}.ts") for i in range(n)]


class TestBuildChunks:
    def test_fixed_size_ordered_batches(self) -> None:
        chunks = build_chunks(_files(7), 3, corpus_size=20)
        assert [len(c.files) for c in chunks] == [3, 3, 1]
        assert [c.index for c in chunks] == [1, 2, 3]
        assert all(c.total == 3 for c in chunks)
        assert all(c.corpus_size == 20 for c in chunks)
        assert chunks[2].paths == ["src/m6.ts"]

    def test_empty_input(self) -> None:
        assert build_chunks([], 5) == []

    def test_invalid_chunk_size(self) -> None:
        with pytest.raises(ValueError, match="chunk_size"):
            build_chunks(_files(2), 0)

    def test_test_suite_flag(self) -> None:
        files = [
            FileUnit(path="cypress/e2e/login.cy.js"),
            FileUnit(path="cypress/support/commands.js"),
            FileUnit(path="cypress.config.js"),
        ]
        assert is_test_suite(files)
        assert all(c.test_suite for c in build_chunks(files, 2))

    def test_half_tests_is_not_a_test_suite(self) -> None:
        files = [FileUnit(path="src/a.test.ts"), FileUnit(path="src/a.ts")]
        assert not is_test_suite(files)
        assert not is_test_suite([])


class _BrokenSink(RecordingSink):
    """Sink whose per-chunk record fails after decoding."""

    def log_chunk(self, *args: object, **kwargs: object) -> None:
        raise RuntimeError("disk full")


class TestChunkDispatcher:
    async def test_all_chunks_decoded_in_index_order(
        self, settings: Settings, sink: RecordingSink
    ) -> None:
        # Chunk 1 finishes last; results still come back by index
        transport = FakeTransport(delays={1: 0.05})
        dispatcher = ChunkDispatcher(transport, settings, sink=sink)
        fragments = await dispatcher.dispatch(build_chunks(_files(9), 4))
        assert [f.chunk_index for f in fragments] == [1, 2, 3]
        assert all(f.tier == RecoveryTier.CLEAN for f in fragments)
        assert transport.protocols_for(2) == [CHAT]
        assert sorted(c["chunk"] for c in sink.chunks) == [1, 2, 3]

    async def test_transport_failure_falls_back_to_completion(
        self, settings: Settings, sink: RecordingSink
    ) -> None:
        transport = FakeTransport({(1, CHAT): ConnectionError("refused")})
        dispatcher = ChunkDispatcher(transport, settings, sink=sink)
        [fragment] = await dispatcher.dispatch(build_chunks(_files(2), 4))
        assert transport.protocols_for(1) == [CHAT, COMPLETION]
        assert fragment.tier == RecoveryTier.CLEAN
        assert fragment.protocol == COMPLETION
        assert any("transient: refused" in e for e in sink.errors)

    async def test_malformed_content_does_not_trigger_fallback(
        self, settings: Settings
    ) -> None:
        transport = FakeTransport({1: "Sorry, no JSON today."})
        dispatcher = ChunkDispatcher(transport, settings)
        [fragment] = await dispatcher.dispatch(build_chunks(_files(2), 4))
        assert transport.protocols_for(1) == [CHAT]
        assert fragment.tier == RecoveryTier.MINIMAL
        assert fragment.protocol == CHAT

    async def test_both_protocols_failing_yields_minimal_fragment(
        self, settings: Settings, sink: RecordingSink
    ) -> None:
        transport = FakeTransport(
            {
                (2, CHAT): TimeoutError(),
                (2, COMPLETION): ConnectionError("refused"),
            }
        )
        dispatcher = ChunkDispatcher(transport, settings, sink=sink)
        fragments = await dispatcher.dispatch(build_chunks(_files(6), 3))
        assert [f.tier for f in fragments] == [
            RecoveryTier.CLEAN,
            RecoveryTier.MINIMAL,
        ]
        assert [m.path for m in fragments[1].modules] == [
            "src/m3.ts",
            "src/m4.ts",
            "src/m5.ts",
        ]
        assert len(sink.errors) == 2

    async def test_timeout_affects_only_that_chunk(
        self, settings: Settings, sink: RecordingSink
    ) -> None:
        transport = FakeTransport(delays={2: 5.0})
        dispatcher = ChunkDispatcher(transport, settings, sink=sink)
        fragments = await dispatcher.dispatch(build_chunks(_files(12), 4))
        assert [f.tier for f in fragments] == [
            RecoveryTier.CLEAN,
            RecoveryTier.MINIMAL,
            RecoveryTier.CLEAN,
        ]
        assert transport.protocols_for(2) == [CHAT, COMPLETION]
        assert any("timeout" in e for e in sink.errors)

    async def test_escaped_task_failure_becomes_minimal(
        self, settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def explode(*args: object, **kwargs: object) -> RecoveryFragment:
            raise RuntimeError("decoder crashed")

        monkeypatch.setattr(
            "codeatlas.analysis.llm.dispatcher.decode_response", explode
        )
        sink = RecordingSink()
        dispatcher = ChunkDispatcher(FakeTransport(), settings, sink=sink)
        [fragment] = await dispatcher.dispatch(build_chunks(_files(2), 4))
        assert fragment.tier == RecoveryTier.MINIMAL
        assert any("decoder crashed" in e for e in sink.errors)

    async def test_broken_sink_keeps_decoded_fragment(
        self, settings: Settings
    ) -> None:
        dispatcher = ChunkDispatcher(
            FakeTransport(), settings, sink=_BrokenSink()
        )
        [fragment] = await dispatcher.dispatch(build_chunks(_files(2), 4))
        assert fragment.tier == RecoveryTier.CLEAN
        assert len(fragment.modules) == 2

    async def test_broken_progress_callback_is_ignored(
        self, settings: Settings
    ) -> None:
        def on_progress(event: StageEvent) -> None:
            raise RuntimeError("display closed")

        dispatcher = ChunkDispatcher(
            FakeTransport(), settings, on_progress=on_progress
        )
        fragments = await dispatcher.dispatch(build_chunks(_files(8), 4))
        assert [f.tier for f in fragments] == [RecoveryTier.CLEAN] * 2

    async def test_progress_events(self, settings: Settings) -> None:
        events: list[StageEvent] = []
        dispatcher = ChunkDispatcher(
            FakeTransport(), settings, on_progress=events.append
        )
        await dispatcher.dispatch(build_chunks(_files(8), 4))
        assert [e.completed for e in events] == [1, 2]
        assert all(e.status == StageProgress.RUNNING for e in events)
        assert events[-1].percent == 100.0
        assert events[-1].label == "Inferring architecture"

    async def test_custom_protocol_order(self, settings: Settings) -> None:
        transport = FakeTransport()
        dispatcher = ChunkDispatcher(
            transport, settings, protocols=(COMPLETION,)
        )
        [fragment] = await dispatcher.dispatch(build_chunks(_files(1), 4))
        assert transport.protocols_for(1) == [COMPLETION]
        assert isinstance(fragment, RecoveryFragment)

    def test_requires_a_protocol(self, settings: Settings) -> None:
        with pytest.raises(ValueError, match="protocol"):
            ChunkDispatcher(FakeTransport(), settings, protocols=())

    async def test_no_chunks(self, settings: Settings) -> None:
        dispatcher = ChunkDispatcher(FakeTransport(), settings)
        assert await dispatcher.dispatch([]) == []
