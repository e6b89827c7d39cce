"""Tolerant JSON extraction from generative-service responses."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from statement_ingest.logging_setup import get_logger

logger = get_logger("json_tools")

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def strip_code_fences(text: str) -> str:
    """Remove Markdown code-fence markers (```json ... ```) and trim."""
    return _FENCE_RE.sub("", text).strip()


def extract_json(text: Optional[str]) -> Any:
    """Try to extract the first valid JSON object or array from *text*.

    Strategy:
    1. Strip code fences and attempt ``json.loads`` on the rest (fast path).
    2. Slide through the text looking for ``{`` or ``[`` and attempt
       brace-balanced extraction.
    3. Return ``None`` if nothing works.
    """
    if not text or not text.strip():
        return None

    stripped = strip_code_fences(text)

    try:
        return json.loads(stripped)
    except (json.JSONDecodeError, ValueError):
        pass

    for i, ch in enumerate(stripped):
        if ch == "{":
            result = _extract_balanced(stripped, i, "{", "}")
            if result is not None:
                return result
        elif ch == "[":
            result = _extract_balanced(stripped, i, "[", "]")
            if result is not None:
                return result

    logger.debug("extract_json: no JSON found in %r", stripped[:120])
    return None


def _extract_balanced(text: str, start: int, open_ch: str, close_ch: str) -> Any:
    """Extract a brace-balanced substring starting at *start* and parse it."""
    depth = 0
    in_string = False
    escape = False

    for i in range(start, len(text)):
        ch = text[i]

        if escape:
            escape = False
            continue

        if ch == "\\":
            if in_string:
                escape = True
            continue

        if ch == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                candidate = text[start : i + 1]
                try:
                    return json.loads(candidate)
                except (json.JSONDecodeError, ValueError):
                    return None

    return None
