"""In-process fakes for the inference transport and diagnostic sink.

No network, no logging handlers: scripted replies and recorded calls
for unit tests and offline runs.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping
from typing import Any

from codeatlas.analysis.llm.normalizer import (
    infer_layer,
    infer_module_type,
    module_name_from_path,
)
from codeatlas.analysis.llm.schemas import RawResponse
from codeatlas.constants import RequestProtocol
from codeatlas.ingestion.schemas import ChunkRequest

type ReplyFactory = Callable[[ChunkRequest], str]
type ScriptedReply = str | BaseException | ReplyFactory
type ReplyKey = int | tuple[int, RequestProtocol]


def echo_response(chunk: ChunkRequest, **overrides: Any) -> str:
    """A well-formed response describing every file of ``chunk``.

    Top-level fields can be replaced through ``overrides``.
    """
    document: dict[str, Any] = {
        "modules": [
            {
                "name": module_name_from_path(f.path),
                "path": f.path,
                "type": infer_module_type(f.path).value,
                "layer": infer_layer(f.path).value,
                "description": f"Module at {f.path}",
            }
            for f in chunk.files
        ],
        "relationships": [],
        "pattern": {
            "name": "Layered",
            "confidence": 0.6,
            "description": "Layered structure",
        },
        "layers": [],
        "summary": f"Chunk {chunk.index} summary.",
    }
    document.update(overrides)
    return json.dumps(document)


class FakeTransport:
    """Scripted ``InferenceTransport``.

    Replies are looked up by ``(chunk_index, protocol)``, then by
    ``chunk_index``, then ``default``. A reply may be response text, an
    exception to raise, or a callable building text from the chunk.
    ``delays`` (same keys) sleep before replying, which lets tests drive
    per-attempt timeouts.
    """

    def __init__(
        self,
        replies: Mapping[ReplyKey, ScriptedReply] | None = None,
        *,
        default: ScriptedReply = echo_response,
        delays: Mapping[ReplyKey, float] | None = None,
    ) -> None:
        self._replies: dict[ReplyKey, ScriptedReply] = dict(replies or {})
        self._default = default
        self._delays: dict[ReplyKey, float] = dict(delays or {})
        self.calls: list[tuple[int, RequestProtocol]] = []

    def _lookup[T](
        self,
        table: Mapping[ReplyKey, T],
        chunk: ChunkRequest,
        protocol: RequestProtocol,
    ) -> T | None:
        if (chunk.index, protocol) in table:
            return table[(chunk.index, protocol)]
        return table.get(chunk.index)

    async def request(
        self, protocol: RequestProtocol, chunk: ChunkRequest
    ) -> RawResponse:
        self.calls.append((chunk.index, protocol))
        delay = self._lookup(self._delays, chunk, protocol)
        if delay:
            await asyncio.sleep(delay)
        reply = self._lookup(self._replies, chunk, protocol)
        if reply is None:
            reply = self._default
        if isinstance(reply, BaseException):
            raise reply
        text = reply if isinstance(reply, str) else reply(chunk)
        return RawResponse(text=text, protocol=protocol)

    def protocols_for(self, chunk_index: int) -> list[RequestProtocol]:
        """Protocols attempted for one chunk, in call order."""
        return [p for idx, p in self.calls if idx == chunk_index]


class RecordingSink:
    """``DiagnosticSink`` that keeps every message in memory."""

    def __init__(self) -> None:
        self.infos: list[str] = []
        self.errors: list[str] = []
        self.chunks: list[dict[str, Any]] = []

    def info(self, message: str) -> None:
        self.infos.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def log_chunk(
        self,
        chunk_index: int,
        total: int,
        tier: int,
        protocol: str | None,
        duration_ms: float,
    ) -> None:
        self.chunks.append(
            {
                "chunk": chunk_index,
                "total": total,
                "tier": tier,
                "protocol": protocol,
                "duration_ms": duration_ms,
            }
        )
