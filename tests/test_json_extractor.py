import pytest

from ocr_benchmark.errors import PermanentProviderError, ResponseParseError
from ocr_benchmark.utils.json_extractor import (
    BALANCED_BRACES,
    PATTERN,
    STRICT_BOUNDS,
    ParsedJson,
    extract_json,
    robust_json_extraction,
)


def test_plain_json() -> None:
    assert extract_json('{"total": 48.43}') == ParsedJson({"total": 48.43}, STRICT_BOUNDS)


def test_json_wrapped_in_prose() -> None:
    response = 'Here is the extracted data:\n{"merchant": {"name": "Nick"}}\nLet me know if you need more.'

    parsed = extract_json(response)

    assert parsed.value == {"merchant": {"name": "Nick"}}
    assert parsed.strategy == STRICT_BOUNDS


def test_markdown_fence() -> None:
    parsed = extract_json('```json\n{"a": [1, 2]}\n```')

    assert parsed.value == {"a": [1, 2]}


def test_first_object_when_several_are_returned() -> None:
    parsed = extract_json('{"a": 1} and then {"b": 2}')

    assert parsed == ParsedJson({"a": 1}, BALANCED_BRACES)


def test_braces_inside_strings() -> None:
    parsed = extract_json('Result: {"a": "}", "b": "{"} trailing }')

    assert parsed == ParsedJson({"a": "}", "b": "{"}, BALANCED_BRACES)


def test_trailing_commas_in_fenced_block() -> None:
    parsed = extract_json('Sure:\n```json\n{"a": 1, "b": [1, 2,],}\n```')

    assert parsed == ParsedJson({"a": 1, "b": [1, 2]}, PATTERN)


def test_reasoning_block_is_ignored() -> None:
    parsed = extract_json('<think>the schema wants {total}</think>{"total": 1}')

    assert parsed == ParsedJson({"total": 1}, STRICT_BOUNDS)


@pytest.mark.parametrize("response", [None, "", "   ", "no json here", "[1, 2, 3]", "{not: json}"])
def test_nothing_to_extract(response) -> None:
    assert extract_json(response) == ParsedJson(None, None)


def test_robust_extraction_raises_parse_error() -> None:
    with pytest.raises(ResponseParseError) as excinfo:
        robust_json_extraction("I could not read the receipt.", provider="llava")

    assert isinstance(excinfo.value, PermanentProviderError)
    assert excinfo.value.retryable is False
    assert excinfo.value.provider == "llava"
    assert excinfo.value.response == "I could not read the receipt."
    assert "Could not extract valid JSON" in str(excinfo.value)


def test_robust_extraction_returns_strategy() -> None:
    assert robust_json_extraction('{"ok": true}').strategy == STRICT_BOUNDS
