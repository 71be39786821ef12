"""Chunked concurrent dispatch of files to the inference service.

Each chunk is tried once per request protocol, in order, with its own
timeout. Whatever happens, every chunk comes back as a RecoveryFragment
paired with its chunk index.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Protocol

from codeatlas.analysis.llm.decoder import decode_response
from codeatlas.analysis.llm.normalizer import minimal_fragment
from codeatlas.analysis.llm.schemas import RawResponse, RecoveryFragment
from codeatlas.config import Settings
from codeatlas.constants import (
    SHORT_RESPONSE_CHARS,
    RequestProtocol,
    StageProgress,
)
from codeatlas.ingestion.schemas import ChunkRequest, FileUnit
from codeatlas.resilience.errors import describe_failure
from codeatlas.services.events import (
    DiagnosticSink,
    GuardedSink,
    ProgressCallback,
    StageEvent,
    emit_progress,
)

logger = logging.getLogger(__name__)

DEFAULT_PROTOCOLS: tuple[RequestProtocol, ...] = (
    RequestProtocol.CHAT,
    RequestProtocol.COMPLETION,
)

_TEST_MARKERS = ("test", "spec", ".cy.", "cypress")


class InferenceTransport(Protocol):
    """Sends one chunk to the inference service in the given protocol.

    Implementations raise on transport failure (unreachable service,
    HTTP error, open circuit). Malformed content is returned as-is.
    """

    async def request(
        self, protocol: RequestProtocol, chunk: ChunkRequest
    ) -> RawResponse: ...


def is_test_suite(files: Sequence[FileUnit]) -> bool:
    """True when more than half of the paths look like test files."""
    if not files:
        return False
    hits = sum(
        1 for f in files if any(m in f.path.lower() for m in _TEST_MARKERS)
    )
    return hits > len(files) / 2


def build_chunks(
    files: Sequence[FileUnit],
    chunk_size: int,
    *,
    corpus_size: int | None = None,
) -> list[ChunkRequest]:
    """Split ``files`` into ordered batches of at most ``chunk_size``."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    batches = [
        tuple(files[i : i + chunk_size])
        for i in range(0, len(files), chunk_size)
    ]
    test_suite = is_test_suite(files)
    size = corpus_size if corpus_size is not None else len(files)
    return [
        ChunkRequest(
            index=n,
            total=len(batches),
            files=batch,
            corpus_size=size,
            test_suite=test_suite,
        )
        for n, batch in enumerate(batches, start=1)
    ]


class ChunkDispatcher:
    """Fan chunks out to a transport and decode what comes back.

    ``protocols`` is the attempt order; the first attempt that returns
    without a transport failure is decoded, regardless of content.
    """

    def __init__(
        self,
        transport: InferenceTransport,
        settings: Settings | None = None,
        *,
        sink: DiagnosticSink | None = None,
        on_progress: ProgressCallback | None = None,
        protocols: Sequence[RequestProtocol] = DEFAULT_PROTOCOLS,
    ) -> None:
        if not protocols:
            raise ValueError("at least one request protocol is required")
        self._transport = transport
        self._settings = settings or Settings()
        self._sink = GuardedSink(sink)
        self._on_progress = on_progress
        self._protocols = tuple(protocols)

    async def dispatch(
        self, chunks: Sequence[ChunkRequest]
    ) -> list[RecoveryFragment]:
        """Run all chunks concurrently; fragments come back in index order."""
        if not chunks:
            return []
        completed = 0
        total = len(chunks)

        async def run(chunk: ChunkRequest) -> RecoveryFragment:
            nonlocal completed
            fragment = await self.dispatch_chunk(chunk)
            completed += 1
            self._emit_progress(completed, total)
            return fragment

        results = await asyncio.gather(
            *(run(c) for c in chunks), return_exceptions=True
        )

        fragments: list[RecoveryFragment] = []
        for chunk, result in zip(chunks, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(
                    "event=chunk_task_failed chunk=%d error=%s",
                    chunk.index,
                    type(result).__name__,
                )
                self._error(
                    f"Chunk {chunk.index}/{chunk.total} failed: "
                    f"{describe_failure(result)}"
                )
                fragments.append(
                    minimal_fragment(chunk.files, chunk_index=chunk.index)
                )
            else:
                fragments.append(result)
        fragments.sort(key=lambda f: f.chunk_index)
        return fragments

    async def dispatch_chunk(self, chunk: ChunkRequest) -> RecoveryFragment:
        """Attempt each protocol once, then decode the first response."""
        start = time.monotonic()
        self._info(
            f"Analyzing chunk {chunk.index}/{chunk.total} "
            f"({len(chunk.files)} files)"
        )
        raw = await self._request_with_fallback(chunk)
        if raw.text and len(raw.text) < SHORT_RESPONSE_CHARS:
            logger.info(
                "event=short_response chunk=%d chars=%d",
                chunk.index,
                len(raw.text),
            )
        fragment = decode_response(raw, chunk.files, chunk_index=chunk.index)
        duration_ms = (time.monotonic() - start) * 1000

        logger.debug(
            "event=chunk_decoded chunk=%d tier=%d protocol=%s "
            "modules=%d relationships=%d duration_ms=%.0f",
            chunk.index,
            fragment.tier,
            fragment.protocol,
            len(fragment.modules),
            len(fragment.relationships),
            duration_ms,
        )
        self._sink.log_chunk(
            chunk.index,
            chunk.total,
            int(fragment.tier),
            fragment.protocol,
            duration_ms,
        )
        return fragment

    async def _request_with_fallback(self, chunk: ChunkRequest) -> RawResponse:
        timeout = self._settings.llm_chunk_timeout_seconds
        for protocol in self._protocols:
            try:
                return await asyncio.wait_for(
                    self._transport.request(protocol, chunk),
                    timeout=timeout,
                )
            except Exception as exc:
                logger.warning(
                    "event=chunk_request_failed chunk=%d protocol=%s error=%s",
                    chunk.index,
                    protocol,
                    type(exc).__name__,
                )
                self._error(
                    f"Chunk {chunk.index}/{chunk.total} {protocol} request "
                    f"failed: {describe_failure(exc)}"
                )
        # Nothing came back; decoding empty text yields the minimal fragment
        return RawResponse(text="")

    def _emit_progress(self, completed: int, total: int) -> None:
        if total == 0:
            return
        emit_progress(
            self._on_progress,
            StageEvent(
                name="dispatch",
                status=StageProgress.RUNNING,
                message=f"Analyzed {completed}/{total} chunks",
                completed=completed,
                total=total,
                percent=round((completed / total) * 100, 1),
            ),
        )

    def _info(self, message: str) -> None:
        self._sink.info(message)

    def _error(self, message: str) -> None:
        self._sink.error(message)
