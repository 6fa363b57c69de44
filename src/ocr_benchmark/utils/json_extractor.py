"""
Robust JSON extraction utility
"""

import json
import re
from typing import Callable, List, NamedTuple, Optional, Tuple

from ocr_benchmark.errors import ResponseParseError

STRICT_BOUNDS = "strict_bounds"
BALANCED_BRACES = "balanced_braces"
PATTERN = "pattern"


class ParsedJson(NamedTuple):
    value: Optional[dict]
    strategy: Optional[str]


def _strip_reasoning(text: str) -> str:
    # Reasoning models wrap their chain of thought in <think> tags, often with braces inside.
    return re.sub(r"<think>.*?</think>", "", text, flags=re.IGNORECASE | re.DOTALL).strip()


def _loads_object(candidate: Optional[str]) -> Optional[dict]:
    if not candidate:
        return None
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _strict_bounds(text: str) -> Optional[dict]:
    """First opening brace to last closing brace."""
    start = text.find('{')
    end = text.rfind('}')
    if start < 0 or end < start:
        return None
    return _loads_object(text[start:end + 1])


def _balanced_braces(text: str) -> Optional[dict]:
    """Extract a complete JSON object by matching braces from the first one."""
    start = text.find('{')
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i, char in enumerate(text[start:], start):
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return _loads_object(text[start:i + 1])

    return None


def _remove_trailing_commas(candidate: str) -> str:
    candidate = re.sub(r',\s*}', '}', candidate)
    return re.sub(r',\s*]', ']', candidate)


def _pattern_match(text: str) -> Optional[dict]:
    """Loose patterns: fenced code blocks, a flat object, a line that opens an object."""
    candidates: List[str] = []

    for block in re.findall(r'```(?:json)?\s*(\{.*?\})\s*```', text, re.DOTALL | re.IGNORECASE):
        candidates.append(block)

    flat = re.search(r'\{[^{}]*\}', text)
    if flat:
        candidates.append(flat.group(0))

    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith('{') and '}' in stripped:
            candidates.append(stripped[:stripped.rfind('}') + 1])
            break

    for candidate in candidates:
        parsed = _loads_object(candidate) or _loads_object(_remove_trailing_commas(candidate))
        if parsed is not None:
            return parsed

    return None


STRATEGIES: Tuple[Tuple[str, Callable[[str], Optional[dict]]], ...] = (
    (STRICT_BOUNDS, _strict_bounds),
    (BALANCED_BRACES, _balanced_braces),
    (PATTERN, _pattern_match),
)


def extract_json(response: Optional[str]) -> ParsedJson:
    """
    Locate a JSON object in a model response that may contain markdown or prose.

    Strategies run in order (strict bounds, balanced-brace scan, loose
    patterns) and the first that yields an object wins.

    Returns:
        ParsedJson(value, strategy); both are None when nothing parses.
    """
    if not response or not response.strip():
        return ParsedJson(None, None)

    cleaned = _strip_reasoning(response)

    for name, strategy in STRATEGIES:
        parsed = strategy(cleaned)
        if parsed is not None:
            return ParsedJson(parsed, name)

    return ParsedJson(None, None)


def robust_json_extraction(response: Optional[str], provider: Optional[str] = None) -> ParsedJson:
    """Like :func:`extract_json`, but raises ResponseParseError when nothing parses."""
    parsed = extract_json(response)
    if parsed.value is None:
        preview = (response or "")[:200]
        raise ResponseParseError(
            f"Could not extract valid JSON. Response preview: {preview}...",
            response=response or "",
            provider=provider,
        )
    return parsed
