"""
Structured response parser.

Model responses arrive as free text: JSON wrapped in markdown fences, prefixed
with commentary, or followed by stray text. Decoding is two steps:
  1. strip markdown code fences
  2. locate the outermost balanced {...} or [...] block and json.loads it
Every outcome is a ParseResult; nothing here raises.
"""

import json
import logging
import re
from typing import Tuple

from mindgraph.schemas.graph import ParseResult

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

_DELIMITERS = {"object": ("{", "}"), "array": ("[", "]")}


def strip_code_fences(raw_text: str) -> str:
    """Return the body of the first fenced block, or the trimmed text."""
    cleaned = (raw_text or "").strip()
    fence_match = _FENCE_RE.search(cleaned)
    if fence_match:
        return fence_match.group(1).strip()
    # Unterminated or single-backtick wrappers
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json|JSON)?", "", cleaned).strip()
    cleaned = cleaned.strip("`").strip()
    return cleaned


def find_balanced_block(text: str, opening: str, closing: str) -> Tuple[int, int]:
    """
    Span of the first balanced opening..closing block, string-literal aware.
    Returns (-1, -1) when no balanced block exists.
    """
    cursor = 0
    while True:
        start = text.find(opening, cursor)
        if start == -1:
            return -1, -1
        depth = 0
        in_string = False
        escaped = False
        for j in range(start, len(text)):
            ch = text[j]
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
            elif ch == opening:
                depth += 1
            elif ch == closing:
                depth -= 1
                if depth == 0:
                    return start, j + 1
        cursor = start + 1


def parse_structured_response(raw_text: str, expect: str = "object") -> ParseResult:
    """
    Decode a JSON object (``expect="object"``) or array (``expect="array"``)
    out of a model response.
    """
    if expect not in _DELIMITERS:
        raise ValueError(f"expect must be 'object' or 'array', got '{expect}'")

    if not raw_text or not raw_text.strip():
        return ParseResult(ok=False, error="Empty AI response received")

    cleaned = strip_code_fences(raw_text)
    opening, closing = _DELIMITERS[expect]
    start, end = find_balanced_block(cleaned, opening, closing)
    if start == -1:
        return ParseResult(ok=False, error=f"No balanced {opening}{closing} block in response")

    try:
        value = json.loads(cleaned[start:end])
    except (json.JSONDecodeError, RecursionError) as e:
        logger.error(f"JSON parse failed. Raw (first 200 chars): {raw_text[:200]}")
        return ParseResult(ok=False, error=f"AI returned invalid JSON: {e}")

    return ParseResult(ok=True, value=value)
