"""Inference side: transport, dispatch, decoding and normalization."""

from codeatlas.analysis.llm._llm_call import LiteLLMTransport, LLMCallResult
from codeatlas.analysis.llm.decoder import decode_response
from codeatlas.analysis.llm.dispatcher import (
    ChunkDispatcher,
    InferenceTransport,
    build_chunks,
)
from codeatlas.analysis.llm.schemas import (
    ArchitectureGraph,
    LayerGroup,
    ModuleRecord,
    PatternClassification,
    RawResponse,
    RecoveryFragment,
    RelationshipRecord,
)

__all__ = [
    "ArchitectureGraph",
    "ChunkDispatcher",
    "InferenceTransport",
    "LLMCallResult",
    "LayerGroup",
    "LiteLLMTransport",
    "ModuleRecord",
    "PatternClassification",
    "RawResponse",
    "RecoveryFragment",
    "RelationshipRecord",
    "build_chunks",
    "decode_response",
]
