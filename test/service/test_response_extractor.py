"""
Tests for JSON extraction from model completions.
"""

import pytest

from fitai_gateway.service.response_extractor import (
    HEURISTIC_CONFIDENCE,
    ResponseExtractor,
)


@pytest.fixture
def extractor() -> ResponseExtractor:
    return ResponseExtractor()


def test_extracts_object_followed_by_prose(extractor: ResponseExtractor) -> None:
    result = extractor.extract('{"a":1} trailing text', "calculateMacros")

    assert result.matched is True
    assert result.payload == {"a": 1}
    assert result.heuristic is False


def test_extracts_object_inside_code_fence(extractor: ResponseExtractor) -> None:
    raw = 'Here is your plan:\n```json\n{"title": "Plan", "days": [1, 2]}\n```\nEnjoy!'

    result = extractor.extract(raw, "generateRoutine")

    assert result.matched is True
    assert result.payload == {"title": "Plan", "days": [1, 2]}


def test_tolerates_trailing_commas(extractor: ResponseExtractor) -> None:
    raw = '{"name": "Arroz", "macros": [1, 2, 3,], "calories": 130,}'

    result = extractor.extract(raw, "calculateMacros")

    assert result.matched is True
    assert result.payload == {"name": "Arroz", "macros": [1, 2, 3], "calories": 130}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('{"reason": "ok, ]", "n": 1}', {"reason": "ok, ]", "n": 1}),
        ('{"note": "a, }", "tags": ["x", "y"]}', {"note": "a, }", "tags": ["x", "y"]}),
    ],
)
def test_valid_json_strings_are_kept_verbatim(
    extractor: ResponseExtractor, raw: str, expected: dict
) -> None:
    result = extractor.extract(raw, "calculateMacros")

    assert result.matched is True
    assert result.payload == expected


def test_no_braces_is_unmatched(extractor: ResponseExtractor) -> None:
    result = extractor.extract("no braces here", "calculateMacros")

    assert result.matched is False
    assert result.payload is None


def test_invalid_json_is_unmatched(extractor: ResponseExtractor) -> None:
    result = extractor.extract("{calories: about 200}", "generateDiet")

    assert result.matched is False


def test_non_object_json_is_unmatched(extractor: ResponseExtractor) -> None:
    result = extractor.extract("[1, 2, 3]", "generateDiet")

    assert result.matched is False


def test_verification_falls_back_to_positive_keyword(
    extractor: ResponseExtractor,
) -> None:
    """The proof verification action gets a low-confidence heuristic verdict."""
    result = extractor.extract("... the image looks verified ...", "verifyProof")

    assert result.matched is True
    assert result.heuristic is True
    assert result.payload is not None
    assert result.payload["verified"] is True
    assert result.payload["confidence"] == HEURISTIC_CONFIDENCE


def test_verification_falls_back_to_negative_verdict(
    extractor: ResponseExtractor,
) -> None:
    result = extractor.extract("I cannot tell what this is.", "verifyProof")

    assert result.matched is True
    assert result.payload is not None
    assert result.payload["verified"] is False
    assert result.payload["confidence"] == 0.0


def test_verification_prefers_real_json(extractor: ResponseExtractor) -> None:
    raw = '{"verified": false, "confidence": 0.9, "reason": "blurry"}'

    result = extractor.extract(raw, "verifyProof")

    assert result.heuristic is False
    assert result.payload == {"verified": False, "confidence": 0.9, "reason": "blurry"}


def test_fallback_is_limited_to_allow_list() -> None:
    """Actions outside the allow-list never inherit the heuristic."""
    extractor = ResponseExtractor(fallback_actions=[])

    result = extractor.extract("verified: true", "verifyProof")

    assert result.matched is False
