"""
Best-effort parsing of the JSON the model returns.

The model is asked for a JSON object, optionally inside a fenced code block.
Long answers are sometimes cut off at ``max_tokens``, so a failed strict parse
gets one repair pass aimed at *truncation* damage:

  1. remove trailing commas before ``]`` / ``}`` (outside string literals)
  2. if the text ends inside a string literal, close it at its opening quote
  3. strip a trailing incomplete key/value pair (dangling comma, colon, key,
     partial literal or number)
  4. append the missing closers, innermost first

Known limitation: damage in the middle of the payload is not detected. The
repair then yields either a parse failure or structurally wrong data.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from cra_assistant.logging import log
from cra_assistant.schemas.errors import ErrorCode, make_error
from cra_assistant.schemas.result import Err, Ok, Result

EXCERPT_LIMIT = 1000

_JSON_FENCE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL)
_ANY_FENCE = re.compile(r"```\s*(.*?)\s*```", re.DOTALL)
_OPEN_FENCE = re.compile(r"```(?:json)?\s*(.*)$", re.DOTALL)

_CLOSER_AHEAD = re.compile(r"\s*[}\]]")
_PARTIAL_WORD = re.compile(r"[A-Za-z]+$")
_LITERALS = frozenset({"true", "false", "null"})
_CLOSERS = {"{": "}", "[": "]"}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_json_payload(raw: str) -> str:
    """Return the part of *raw* that should hold the JSON document."""
    for pattern in (_JSON_FENCE, _ANY_FENCE):
        match = pattern.search(raw)
        if match:
            return match.group(1)

    # A truncated answer loses its closing fence
    match = _OPEN_FENCE.search(raw)
    if match:
        return match.group(1).strip()

    start = raw.find("{")
    if start == -1:
        return raw.strip()

    end = raw.rfind("}")
    if end > start:
        span = raw[start:end + 1]
        try:
            json.loads(span)
            return span
        except json.JSONDecodeError:
            pass
    # The last "}" may close a nested object of a truncated payload
    return raw[start:].strip()


def repair_json(text: str) -> str:
    """Return *text* with truncation damage patched. Valid JSON is returned as-is."""
    try:
        json.loads(text)
        return text
    except json.JSONDecodeError:
        pass

    fixed = _drop_trailing_commas(text)

    state = _scan(fixed)
    if state.in_string:
        fixed = fixed[:state.string_start + 1] + '"'

    fixed = _strip_incomplete_tail(fixed)

    closers = "".join(_CLOSERS[opener] for opener in reversed(_scan(fixed).stack))
    return fixed + closers


def parse_json_response(raw: str, *, language: str = "en-US") -> Result[dict[str, Any]]:
    """Parse the model's answer into a dict, repairing it once if needed."""
    payload = extract_json_payload(raw)

    try:
        return Ok(_load_object(payload))
    except (json.JSONDecodeError, TypeError) as exc:
        log.warning("repair.initial_parse_failed", error=str(exc), chars=len(payload))

    repaired = repair_json(payload)
    try:
        data = _load_object(repaired)
    except (json.JSONDecodeError, TypeError) as exc:
        if isinstance(exc, json.JSONDecodeError):
            log.error(
                "repair.parse_failed",
                error=str(exc),
                around=payload[max(0, exc.pos - 200):exc.pos + 200],
            )
        return Err(make_error(
            ErrorCode.PARSE_FAILED,
            str(exc),
            context={"response": raw[:EXCERPT_LIMIT]},
            language=language,
        ))

    log.info("repair.recovered", added_chars=len(repaired) - len(payload), keys=list(data))
    return Ok(data)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------

@dataclass
class _ScanState:
    stack: list[str]
    in_string: bool
    string_start: int  # opening quote of the open string, else of the last closed one


def _scan(text: str) -> _ScanState:
    """Track open containers and string state, ignoring brackets inside strings."""
    stack: list[str] = []
    in_string = False
    escaped = False
    string_start = -1

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
            string_start = i
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in "}]" and stack and _CLOSERS[stack[-1]] == ch:
            stack.pop()

    return _ScanState(stack=stack, in_string=in_string, string_start=string_start)


def _drop_trailing_commas(text: str) -> str:
    """Remove commas directly before ``]`` or ``}``; string contents are left alone."""
    out: list[str] = []
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "," and _CLOSER_AHEAD.match(text, i + 1):
            continue
        out.append(ch)

    return "".join(out)


def _strip_incomplete_tail(text: str) -> str:
    while True:
        text = text.rstrip()
        if not text:
            return text

        last = text[-1]
        if last in ",:-+.":
            text = text[:-1]
            continue

        word = _PARTIAL_WORD.search(text)
        if word and word.group() not in _LITERALS:
            # half-written literal ("tru", "nul") or exponent marker ("1e")
            text = text[:word.start()]
            continue

        if last == '"':
            state = _scan(text)
            if state.stack and state.stack[-1] == "{" and _is_key(text, state.string_start):
                text = text[:state.string_start]
                continue

        return text


def _is_key(text: str, string_start: int) -> bool:
    """A string directly after ``{`` or ``,`` inside an object is a key."""
    before = text[:string_start].rstrip()
    return bool(before) and before[-1] in "{,"


def _load_object(text: str) -> dict[str, Any]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise TypeError(f"expected a JSON object, got {type(data).__name__}")
    return data
