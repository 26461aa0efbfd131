"""Recovery of JSON objects from free-form model completions."""

import json
import logging
import re
from typing import Any, Dict, FrozenSet, Iterable, Optional

from fitai_gateway.models import ActionKind, ExtractionResult

logger = logging.getLogger(__name__)

HEURISTIC_CONFIDENCE = 0.5

_CODE_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CODE_FENCE_CLOSE = re.compile(r"\s*```$")
_TRAILING_COMMA = re.compile(r",\s*([\]}])")
_POSITIVE_VERDICT = re.compile(r"\b(?:true|verified)\b")


class ResponseExtractor:
    """
    Extract a JSON object from a raw completion.

    The primary strategy takes everything from the first `{` to the last `}`
    and parses it. Only actions listed in `fallback_actions` may fall back to a
    keyword heuristic when that fails; every other action gets an unmatched
    result.
    """

    def __init__(self, fallback_actions: Optional[Iterable[str]] = None):
        """
        Initialize the extractor.

        Args:
            fallback_actions: Actions allowed to use the verification heuristic,
                defaults to the proof verification action only
        """
        self.fallback_actions: FrozenSet[str] = frozenset(
            fallback_actions
            if fallback_actions is not None
            else [ActionKind.VERIFY_PROOF.value]
        )

    def extract(self, raw_text: str, action: str) -> ExtractionResult:
        """
        Recover a JSON object from `raw_text`.

        Args:
            raw_text: The completion returned by the model
            action: The action the completion was requested for

        Returns:
            The extraction result. Heuristic results are flagged as such.
        """
        payload = self._scan_braces(raw_text)
        if payload is not None:
            return ExtractionResult(matched=True, payload=payload)

        if action in self.fallback_actions:
            logger.info("Falling back to keyword verdict for %s", action)
            return ExtractionResult(
                matched=True, payload=self._keyword_verdict(raw_text), heuristic=True
            )

        logger.warning(
            "No JSON object found in completion for %s: %.200s", action, raw_text
        )
        return ExtractionResult(matched=False)

    def _scan_braces(self, raw_text: str) -> Optional[Dict[str, Any]]:
        text = _CODE_FENCE_OPEN.sub("", raw_text.strip())
        text = _CODE_FENCE_CLOSE.sub("", text)

        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end < start:
            return None

        candidate = text[start : end + 1]
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            # trailing commas are only stripped once the span has failed as is
            try:
                parsed = json.loads(_TRAILING_COMMA.sub(r"\1", candidate))
            except json.JSONDecodeError as e:
                logger.debug("Candidate JSON failed to parse: %s", str(e))
                return None

        return parsed if isinstance(parsed, dict) else None

    def _keyword_verdict(self, raw_text: str) -> Dict[str, Any]:
        if _POSITIVE_VERDICT.search(raw_text.lower()):
            return {
                "verified": True,
                "confidence": HEURISTIC_CONFIDENCE,
                "reason": "Basic analysis",
            }
        return {
            "verified": False,
            "confidence": 0.0,
            "reason": "Basic analysis",
        }

    def __str__(self) -> str:
        return f"ResponseExtractor(fallback_actions={sorted(self.fallback_actions)})"
