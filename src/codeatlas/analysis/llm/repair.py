"""Character-level scanning and repair of almost-JSON text.

Everything here is a single left-to-right pass over the input driven by
an explicit ``ScanState`` machine, so worst-case cost stays linear on
adversarial text. Nothing in this module raises on malformed input.
"""

from __future__ import annotations

import json
import re
from enum import Enum, auto
from typing import Any

_FENCE_OPEN_RE = re.compile(r"^\s*```[\w-]*[ \t]*\n?", re.MULTILINE)
_FENCE_CLOSE_RE = re.compile(r"\n?[ \t]*```[ \t]*$", re.MULTILINE)

# Next significant character after a real closing quote
_STRING_TERMINATORS = frozenset(":,}]")

_OPENERS = "{["
_CLOSERS = "}]"

_PY_LITERALS = {"True": "true", "False": "false", "None": "null"}


class ScanState(Enum):
    NORMAL = auto()
    IN_STRING = auto()
    ESCAPED = auto()


def _advance(state: ScanState, ch: str) -> ScanState:
    """Plain JSON string tracking: quotes toggle, backslash escapes one char."""
    if state is ScanState.ESCAPED:
        return ScanState.IN_STRING
    if state is ScanState.IN_STRING:
        if ch == "\\":
            return ScanState.ESCAPED
        if ch == '"':
            return ScanState.NORMAL
        return state
    if ch == '"':
        return ScanState.IN_STRING
    return state


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence marker lines, keep their contents."""
    text = _FENCE_OPEN_RE.sub("", text)
    return _FENCE_CLOSE_RE.sub("", text).strip()


def trim_to_braces(text: str) -> str:
    """Drop prose before the first ``{`` and after the last ``}``."""
    first = text.find("{")
    last = text.rfind("}")
    if first == -1:
        return text.strip()
    if last < first:
        return text[first:].strip()
    return text[first : last + 1]


def find_balanced_end(text: str, start: int) -> int | None:
    """Index of the bracket closing the one at ``text[start]``.

    Brackets inside string literals are ignored. Returns None when the
    text ends first (truncated output).
    """
    depth = 0
    state = ScanState.NORMAL
    for i in range(start, len(text)):
        ch = text[i]
        if state is not ScanState.NORMAL:
            state = _advance(state, ch)
            continue
        if ch == '"':
            state = ScanState.IN_STRING
        elif ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                return i
    return None


def extract_balanced_object(text: str) -> tuple[str, bool] | None:
    """Span from the first ``{`` to its matching ``}``.

    Returns ``(span, complete)``; an unbalanced tail is returned whole
    with ``complete=False``. None if there is no ``{`` at all.
    """
    start = text.find("{")
    if start == -1:
        return None
    end = find_balanced_end(text, start)
    if end is None:
        return text[start:], False
    return text[start : end + 1], True


def split_array_items(text: str, start: int) -> tuple[list[str], bool]:
    """Top-level element texts of the array opening at ``text[start]``.

    Returns ``(items, complete)``. When the array is truncated the
    unfinished trailing element is discarded.
    """
    items: list[str] = []
    depth = 0
    state = ScanState.NORMAL
    item_start = start + 1
    for i in range(start, len(text)):
        ch = text[i]
        if state is not ScanState.NORMAL:
            state = _advance(state, ch)
            continue
        if ch == '"':
            state = ScanState.IN_STRING
        elif ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                _append_item(items, text[item_start:i])
                return items, True
        elif ch == "," and depth == 1:
            _append_item(items, text[item_start:i])
            item_start = i + 1
    return items, False


def _append_item(items: list[str], raw: str) -> None:
    item = raw.strip()
    if item:
        items.append(item)


def read_string_literal(text: str, start: int) -> str | None:
    """Decode the JSON string literal opening at ``text[start]``."""
    state = ScanState.IN_STRING
    for i in range(start + 1, len(text)):
        state = _advance(state, text[i])
        if state is ScanState.NORMAL:
            literal = text[start : i + 1]
            try:
                value = json.loads(literal, strict=False)
            except json.JSONDecodeError:
                return literal[1:-1].replace('\\"', '"')
            return value if isinstance(value, str) else None
    return None


def _next_significant(text: str, i: int) -> int:
    """Index of the next non-whitespace, non-comment char (or len)."""
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
        elif text.startswith("//", i):
            nl = text.find("\n", i)
            i = n if nl == -1 else nl
        elif text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = n if close == -1 else close + 2
        else:
            return i
    return n


def _closes_string(text: str, i: int) -> bool:
    """Whether a quote whose successor is ``text[i]`` ends its string."""
    n = len(text)
    while i < n and text[i].isspace():
        i += 1
    return i >= n or text[i] in _STRING_TERMINATORS


def repair_json(text: str) -> str:
    """Rewrite near-JSON into something ``json.loads`` can accept.

    One pass applies, outside string literals: comment removal, dropping
    commas before ``}``/``]``, quoting bare object keys and mapping
    Python literals. Inside strings: a quote is only a terminator if the
    next significant char is ``:``, ``,``, ``}``, ``]`` or end of text,
    otherwise it is escaped; raw control characters are escaped. A
    string still open at end of text is closed.
    """
    out: list[str] = []
    state = ScanState.NORMAL
    last_sig = ""
    n = len(text)
    i = 0
    while i < n:
        ch = text[i]

        if state is ScanState.ESCAPED:
            out.append(ch)
            state = ScanState.IN_STRING
            i += 1
            continue

        if state is ScanState.IN_STRING:
            if ch == "\\":
                out.append(ch)
                state = ScanState.ESCAPED
            elif ch == '"':
                if _closes_string(text, i + 1):
                    out.append(ch)
                    state = ScanState.NORMAL
                    last_sig = '"'
                else:
                    out.append('\\"')
            elif ch == "\n":
                out.append("\\n")
            elif ch == "\r":
                out.append("\\r")
            elif ch == "\t":
                out.append("\\t")
            else:
                out.append(ch)
            i += 1
            continue

        if ch == '"':
            out.append(ch)
            state = ScanState.IN_STRING
            i += 1
            continue

        if text.startswith("//", i):
            nl = text.find("\n", i)
            i = n if nl == -1 else nl
            continue

        if text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = n if close == -1 else close + 2
            continue

        if ch == ",":
            nxt = _next_significant(text, i + 1)
            if nxt < n and text[nxt] in _CLOSERS:
                i += 1
                continue
            out.append(ch)
            last_sig = ch
            i += 1
            continue

        if ch.isalpha() or ch in "_$":
            j = i
            while j < n and (text[j].isalnum() or text[j] in "_$"):
                j += 1
            word = text[i:j]
            after = _next_significant(text, j)
            if after < n and text[after] == ":" and last_sig in ("{", ","):
                out.append(f'"{word}"')
                last_sig = '"'
            else:
                out.append(_PY_LITERALS.get(word, word))
                last_sig = word[-1]
            i = j
            continue

        out.append(ch)
        if not ch.isspace():
            last_sig = ch
        i += 1

    if state is ScanState.ESCAPED:
        out.append("\\")
    if state is not ScanState.NORMAL:
        out.append('"')
    return "".join(out)


def loads_object(text: str, *, strict: bool = True) -> dict[str, Any] | None:
    """Parse ``text`` as a JSON object; None on any failure or non-object."""
    try:
        value = json.loads(text, strict=strict)
    except (json.JSONDecodeError, RecursionError):
        return None
    return value if isinstance(value, dict) else None  # pyright: ignore[reportUnknownVariableType]


def loads_lenient(text: str) -> Any:
    """Parse a JSON value, retrying once after ``repair_json``.

    Raises ``ValueError`` if neither attempt parses.
    """
    try:
        return json.loads(text, strict=False)
    except (json.JSONDecodeError, RecursionError):
        pass
    try:
        return json.loads(repair_json(text), strict=False)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise ValueError("unparseable JSON value") from exc
