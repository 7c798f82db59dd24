"""
Structured-data extraction from free-form model responses.

A response may be bare JSON, JSON inside a markdown fence, or JSON
surrounded by prose. Candidates are tried in that order.
"""

import json
import logging
import re
from typing import Any, Iterator, Optional

from .errors import JSONExtractionError

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)

OPENERS = {"{": "}", "[": "]"}


def _matches_type(value: Any, expected_type: Optional[str]) -> bool:
    if expected_type == "object":
        return isinstance(value, dict)
    if expected_type == "array":
        return isinstance(value, list)
    return isinstance(value, (dict, list))


def _try_parse(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def iter_balanced_spans(text: str) -> Iterator[str]:
    """Yield every bracket-balanced ``{...}``/``[...]`` span, skipping brackets inside strings."""
    for start, char in enumerate(text):
        if char not in OPENERS:
            continue

        stack = [OPENERS[char]]
        in_string = False
        escaped = False
        for position in range(start + 1, len(text)):
            current = text[position]
            if in_string:
                if escaped:
                    escaped = False
                elif current == "\\":
                    escaped = True
                elif current == '"':
                    in_string = False
                continue

            if current == '"':
                in_string = True
            elif current in OPENERS:
                stack.append(OPENERS[current])
            elif current in ("}", "]"):
                if current != stack[-1]:
                    break
                stack.pop()
                if not stack:
                    yield text[start:position + 1]
                    break


def extract_json(response_text: str, expected_type: Optional[str] = None) -> Any:
    """Return the first JSON value of ``expected_type`` ("object", "array" or any) found in the text.

    Raises:
        JSONExtractionError: if no candidate parses to the expected type.
    """
    if not response_text or not response_text.strip():
        raise JSONExtractionError("Empty response text")

    text = response_text.strip()

    direct = _try_parse(text)
    if direct is not None and _matches_type(direct, expected_type):
        return direct

    for block in FENCE_PATTERN.findall(text):
        parsed = _try_parse(block.strip())
        if parsed is not None and _matches_type(parsed, expected_type):
            logger.debug("Parsed JSON from fenced block")
            return parsed

    for span in iter_balanced_spans(text):
        parsed = _try_parse(span)
        if parsed is not None and _matches_type(parsed, expected_type):
            logger.debug("Parsed JSON embedded in prose")
            return parsed

    raise JSONExtractionError(
        f"No parseable JSON {expected_type or 'value'} found in response",
        response_preview=text[:500],
    )
