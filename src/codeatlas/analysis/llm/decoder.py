"""Turn one untrusted inference response into a RecoveryFragment.

Decoding walks a ladder of decreasing trust and stops at the first
rung that yields something:

0. CLEAN            — strip fences/prose, parse as-is
1. REPAIRED         — balanced-brace extraction plus JSON repair
2. FIELD_EXTRACTION — locate each known field, parse it in isolation
3. MINIMAL          — one path-heuristic module per file, nothing else

``decode_response`` never raises.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

from codeatlas.analysis.llm.normalizer import minimal_fragment, normalize_fragment
from codeatlas.analysis.llm.repair import (
    extract_balanced_object,
    find_balanced_end,
    loads_lenient,
    loads_object,
    read_string_literal,
    repair_json,
    split_array_items,
    strip_code_fences,
    trim_to_braces,
)
from codeatlas.analysis.llm.schemas import RawResponse, RecoveryFragment
from codeatlas.constants import (
    FIELD_EXTRACTION_MAX_ATTEMPTS,
    RESPONSE_PREVIEW_CHARS,
    RecoveryTier,
)
from codeatlas.ingestion.schemas import FileUnit

logger = logging.getLogger(__name__)

# Fields of the response document, in extraction order
RESPONSE_FIELDS: tuple[str, ...] = (
    "modules",
    "relationships",
    "pattern",
    "layers",
    "summary",
    "entryPoints",
    "coreComponents",
)

_ARRAY_FIELDS = frozenset(
    {"modules", "relationships", "layers", "entryPoints", "coreComponents"}
)

_FIELD_RES: dict[str, re.Pattern[str]] = {
    name: re.compile(rf"""["']?\b{name}\b["']?\s*:\s*""")
    for name in RESPONSE_FIELDS
}


def parse_clean(text: str) -> dict[str, Any] | None:
    """Tier 0: strict parse after removing fences and surrounding prose."""
    return loads_object(trim_to_braces(strip_code_fences(text)))


def parse_repaired(text: str) -> dict[str, Any] | None:
    """Tier 1: balanced-object extraction, then repair, then parse.

    If repairing the extracted span fails, the whole tail from the first
    ``{`` is repaired first and the balanced object re-extracted, which
    recovers spans whose brace balance was skewed by unescaped quotes.
    """
    stripped = strip_code_fences(text)
    extracted = extract_balanced_object(stripped)
    if extracted is None:
        return None
    span, _complete = extracted
    data = loads_object(repair_json(span), strict=False)
    if data is not None:
        return data

    start = stripped.find("{")
    repaired = repair_json(stripped[start:])
    end = find_balanced_end(repaired, 0)
    if end is None:
        return None
    return loads_object(repaired[: end + 1], strict=False)


def _value_starts(text: str, field: str) -> list[int]:
    """Indices where values of the first few ``field:`` occurrences start.

    Every attempt may scan to the end of the text, so the number of
    occurrences tried is capped to keep tier 2 linear in the input.
    """
    starts: list[int] = []
    for m in _FIELD_RES[field].finditer(text):
        if m.end() >= len(text):
            break
        starts.append(m.end())
        if len(starts) == FIELD_EXTRACTION_MAX_ATTEMPTS:
            break
    return starts


def _extract_array(text: str, start: int) -> list[Any] | None:
    end = find_balanced_end(text, start)
    if end is not None:
        try:
            value = loads_lenient(text[start : end + 1])
        except ValueError:
            value = None
        if isinstance(value, list):
            return value  # pyright: ignore[reportUnknownVariableType]
    # Truncated or broken: keep every element that parses on its own
    items, _complete = split_array_items(text, start)
    salvaged: list[Any] = []
    for item in items:
        try:
            salvaged.append(loads_lenient(item))
        except ValueError:
            continue
    return salvaged or None


def _extract_object(text: str, start: int) -> dict[str, Any] | None:
    end = find_balanced_end(text, start)
    if end is None:
        return None
    try:
        value = loads_lenient(text[start : end + 1])
    except ValueError:
        return None
    return value if isinstance(value, dict) else None  # pyright: ignore[reportUnknownVariableType]


def extract_fields(text: str) -> dict[str, Any]:
    """Tier 2: pull each known field out of the text independently.

    Returns only the fields whose value parsed; empty if none did.
    """
    body = strip_code_fences(text)
    fields: dict[str, Any] = {}
    for name in RESPONSE_FIELDS:
        for start in _value_starts(body, name):
            value = _extract_value(body, start, name)
            if value:
                fields[name] = value
                break
    return fields


def _extract_value(text: str, start: int, field: str) -> Any:
    opener = text[start]
    if opener == "[" and field in _ARRAY_FIELDS:
        return _extract_array(text, start)
    if opener == "{":
        return _extract_object(text, start)
    if opener == '"':
        return read_string_literal(text, start)
    return None


def decode_response(
    raw: RawResponse | str,
    files: Sequence[FileUnit],
    *,
    chunk_index: int = 0,
) -> RecoveryFragment:
    """Best-effort fragment for one chunk's response text."""
    response = raw if isinstance(raw, RawResponse) else RawResponse(text=raw)
    try:
        return _decode(response, files, chunk_index)
    except Exception:
        logger.warning(
            "event=decode_unexpected_error chunk=%d response_len=%d",
            chunk_index,
            len(response.text),
            exc_info=True,
        )
        return minimal_fragment(
            files, chunk_index=chunk_index, protocol=response.protocol
        )


def _decode(
    response: RawResponse,
    files: Sequence[FileUnit],
    chunk_index: int,
) -> RecoveryFragment:
    text = response.text
    protocol = response.protocol

    if not text.strip():
        logger.info("event=decode_empty_response chunk=%d", chunk_index)
        return minimal_fragment(files, chunk_index=chunk_index, protocol=protocol)

    ladder = (
        (RecoveryTier.CLEAN, parse_clean),
        (RecoveryTier.REPAIRED, parse_repaired),
        (RecoveryTier.FIELD_EXTRACTION, extract_fields),
    )
    for tier, step in ladder:
        data = step(text)
        # A cleanly parsed empty object is still a clean parse
        if data or (data is not None and tier == RecoveryTier.CLEAN):
            logger.debug(
                "event=decode_ok chunk=%d tier=%d fields=%s",
                chunk_index,
                tier,
                ",".join(sorted(data)),
            )
            return normalize_fragment(
                data,
                files,
                tier,
                chunk_index=chunk_index,
                protocol=protocol,
            )

    logger.info(
        "event=decode_fallback chunk=%d response_len=%d preview=%s",
        chunk_index,
        len(text),
        json.dumps(text[:RESPONSE_PREVIEW_CHARS]),
    )
    return minimal_fragment(files, chunk_index=chunk_index, protocol=protocol)
