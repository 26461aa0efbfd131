"""Data types shared by the gateway components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ActionKind(str, Enum):
    """AI actions exposed through the gateway."""

    GENERATE_ROUTINE = "generateRoutine"
    GENERATE_DIET = "generateDiet"
    CALCULATE_MACROS = "calculateMacros"
    ANALYZE_PROGRESS = "analyzeProgress"
    VERIFY_PROOF = "verifyProof"
    ANALYZE_ROUTINE_FROM_IMAGE = "analyzeRoutineFromImage"
    MEAL_RECIPE = "meal_recipe"


@dataclass(frozen=True)
class Caller:
    user_id: str


@dataclass
class GatewayRequest:
    """Body of an inbound gateway call."""

    action: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class RateLimitPolicy:
    window_ms: int
    max_requests: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: Optional[int] = None


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    reason: Optional[str] = None
    limit: Optional[int] = None
    current: Optional[int] = None
    is_premium: Optional[bool] = None


@dataclass
class QuotaRecord:
    """
    Persistent quota state of one user.

    `usage` maps a counter name (e.g. "routinesGenerated") to its per-month
    counts keyed by "YYYY-M".
    """

    is_premium: bool = False
    usage: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def count(self, counter: str, month_key: str) -> int:
        return self.usage.get(counter, {}).get(month_key, 0)


@dataclass
class PreparedRequest:
    """
    Provider-ready request built by an action handler.

    Attributes:
        action: The action this request was prepared for
        system_prompt: Persona instruction sent with the system role
        user_prompt: The instruction sent with the user role
        image: Optional image reference (data URL or https URL)
        provider: Name of the configured model client to use
        context: Values computed while preparing, reused when post-processing
    """

    action: str
    system_prompt: str
    user_prompt: str
    image: Optional[str] = None
    provider: str = "default"
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtractionResult:
    matched: bool
    payload: Optional[Dict[str, Any]] = None
    heuristic: bool = False
