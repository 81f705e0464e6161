"""Tolerant JSON parsing of model output.

Models wrap JSON in markdown fences, add prose around it, leave trailing
commas or stop mid-array when they hit a token limit. Parsing happens in two
explicit stages:

1. strict: the whole reply is valid JSON
2. repair: bounded heuristics (fence extraction, brace slicing, trailing
   comma removal, closing a truncated structure)

The result says which stage produced the value and whether content may have
been lost, so callers can treat partial output differently from clean output.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
TRAILING_COMMA_PATTERN = re.compile(r",\s*([}\]])")


class ParseStatus(str, Enum):
    """Outcome of a tolerant parse."""

    SUCCESS = "success"  # value recovered without altering its content
    PARTIAL = "partial"  # value recovered, but some content may be missing
    FAILURE = "failure"


@dataclass
class ParseResult:
    """Typed result of parsing a model reply."""

    status: ParseStatus
    value: Any = None
    stage: Optional[str] = None
    repairs: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != ParseStatus.FAILURE

    @classmethod
    def failure(cls, error: str) -> "ParseResult":
        return cls(status=ParseStatus.FAILURE, error=error)


def strict_parse(text: str) -> ParseResult:
    """Stage 1: parse the reply as-is."""
    if text is None or not text.strip():
        return ParseResult.failure("empty response")
    try:
        return ParseResult(status=ParseStatus.SUCCESS, value=json.loads(text), stage="strict")
    except json.JSONDecodeError as e:
        return ParseResult.failure(f"strict parse failed: {e}")


def extract_fenced_block(text: str) -> Optional[str]:
    """Return the body of the first markdown code fence, if any."""
    match = FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return None


def slice_json_object(text: str, opener: str = "{", closer: str = "}") -> Optional[str]:
    """Slice from the first opener to the last closer."""
    start = text.find(opener)
    end = text.rfind(closer)
    if start >= 0 and end > start:
        return text[start:end + 1]
    return None


def close_truncated_json(text: str) -> Optional[str]:
    """Cut a truncated document back to its last complete value and close it.

    Only complete array elements, complete object values and closed
    containers count as safe cut points, so the repaired document never
    contains a half-written string.

    Returns:
        Repaired text, or None when no safe cut point exists
    """
    stack: List[str] = []
    in_string = False
    escape = False
    after_colon = False
    string_is_value = False
    safe: Optional[Tuple[int, List[str]]] = None
    started = False

    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
                if stack and (stack[-1] == "[" or string_is_value):
                    safe = (i + 1, list(stack))
            continue

        if ch == '"':
            if not started:
                continue
            in_string = True
            string_is_value = after_colon
            after_colon = False
        elif ch in "{[":
            started = True
            stack.append(ch)
            after_colon = False
        elif ch in "}]":
            if not stack:
                break
            stack.pop()
            after_colon = False
            if not stack:
                return text[:i + 1]
            safe = (i + 1, list(stack))
        elif ch == ":":
            after_colon = True
        elif ch == ",":
            after_colon = False

    if safe is None:
        return None

    end, open_stack = safe
    closers = "".join("}" if c == "{" else "]" for c in reversed(open_stack))
    return text[:end] + closers


def repair_parse(text: str) -> ParseResult:
    """Stage 2: bounded repairs, cheapest first."""
    if text is None or not text.strip():
        return ParseResult.failure("empty response")

    repairs: List[str] = []
    candidate = text.strip()

    fenced = extract_fenced_block(candidate)
    if fenced is not None:
        candidate = fenced
        repairs.append("fence")

    sliced = slice_json_object(candidate)
    if sliced is None and candidate.lstrip().startswith("["):
        sliced = slice_json_object(candidate, "[", "]")
    if sliced is not None and sliced != candidate:
        candidate = sliced
        repairs.append("slice")

    try:
        value = json.loads(candidate)
        return ParseResult(status=ParseStatus.SUCCESS, value=value, stage="repair", repairs=repairs)
    except json.JSONDecodeError:
        pass

    without_commas = TRAILING_COMMA_PATTERN.sub(r"\1", candidate)
    if without_commas != candidate:
        try:
            value = json.loads(without_commas)
            return ParseResult(
                status=ParseStatus.SUCCESS,
                value=value,
                stage="repair",
                repairs=repairs + ["trailing_comma"],
            )
        except json.JSONDecodeError:
            pass

    # Truncated output: start again from the first brace of the unsliced text
    start = text.find("{")
    if fenced is not None:
        start_text = fenced
        start = fenced.find("{")
    else:
        start_text = text
    if start >= 0:
        closed = close_truncated_json(start_text[start:])
        if closed is not None:
            closed = TRAILING_COMMA_PATTERN.sub(r"\1", closed)
            try:
                value = json.loads(closed)
                return ParseResult(
                    status=ParseStatus.PARTIAL,
                    value=value,
                    stage="repair",
                    repairs=repairs + ["truncation"],
                )
            except json.JSONDecodeError as e:
                return ParseResult.failure(f"repair failed: {e}")

    return ParseResult.failure("no JSON object found in response")


def parse_json_response(text: str) -> ParseResult:
    """Parse a model reply, strict first, then with repairs."""
    result = strict_parse(text)
    if result.ok:
        return result
    return repair_parse(text)
