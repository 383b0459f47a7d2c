"""
Tolerant parsing of JSON embedded in free-form generation output.

Decision table applied by ``parse_generated_json``:

    strict json.loads succeeds                 -> Parsed(value)
    first bracket-delimited substring parses   -> Parsed(value)
    nothing parses                             -> Malformed(reason)

``parse_generated_list`` folds the result into a list of dicts; Malformed and
non-list payloads become an empty list, which callers treat as "try the next
fallback tier".
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Union

logger = logging.getLogger(__name__)

_BRACKETED = re.compile(r"\[[\s\S]*\]|\{[\s\S]*\}")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(frozen=True)
class Parsed:
    value: Any


@dataclass(frozen=True)
class Malformed:
    reason: str


ParseResult = Union[Parsed, Malformed]


def parse_generated_json(text: Any) -> ParseResult:
    if not isinstance(text, str) or not text.strip():
        return Malformed("empty response")

    cleaned = _CODE_FENCE.sub("", text.strip())
    try:
        return Parsed(json.loads(cleaned))
    except ValueError as e:
        strict_error = str(e)

    match = _BRACKETED.search(cleaned)
    if match:
        try:
            return Parsed(json.loads(match.group(0)))
        except ValueError as e:
            return Malformed(f"embedded JSON invalid: {e}")

    return Malformed(f"no JSON found: {strict_error}")


def parse_generated_list(text: Any) -> List[Dict[str, Any]]:
    """Parse a JSON array of objects, returning [] on any malformed output"""
    result = parse_generated_json(text)
    if isinstance(result, Malformed):
        logger.warning(f"Discarding malformed generation output: {result.reason}")
        return []

    value = result.value
    if isinstance(value, dict):
        # some responses wrap the array, e.g. {"cities": [...]}
        lists = [v for v in value.values() if isinstance(v, list)]
        value = lists[0] if len(lists) == 1 else []
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]
