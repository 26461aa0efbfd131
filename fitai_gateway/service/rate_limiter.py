"""Process-local sliding-window rate limiter keyed by (user, action)."""

import logging
import math
import time
from collections import deque
from threading import Lock
from typing import Any, Callable, Deque, Dict, Mapping, Optional, Tuple

from dacite import from_dict

from fitai_gateway.models import ActionKind, RateLimitDecision, RateLimitPolicy

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMITS: Dict[str, RateLimitPolicy] = {
    ActionKind.GENERATE_ROUTINE.value: RateLimitPolicy(window_ms=60000, max_requests=3),
    ActionKind.GENERATE_DIET.value: RateLimitPolicy(window_ms=60000, max_requests=3),
    ActionKind.CALCULATE_MACROS.value: RateLimitPolicy(window_ms=60000, max_requests=20),
    ActionKind.ANALYZE_PROGRESS.value: RateLimitPolicy(window_ms=60000, max_requests=5),
    ActionKind.VERIFY_PROOF.value: RateLimitPolicy(window_ms=60000, max_requests=5),
    ActionKind.ANALYZE_ROUTINE_FROM_IMAGE.value: RateLimitPolicy(
        window_ms=60000, max_requests=10
    ),
    ActionKind.MEAL_RECIPE.value: RateLimitPolicy(window_ms=60000, max_requests=20),
}

FALLBACK_RATE_LIMIT = RateLimitPolicy(window_ms=60000, max_requests=5)


def _now_ms() -> int:
    return int(time.time() * 1000)


class SlidingWindowRateLimiter:
    """
    Sliding-window limiter for short request bursts.

    Every (user, action) key owns a list of request timestamps in epoch
    milliseconds. Entries older than the window are dropped lazily, on the next
    check for the same key, so memory is bounded by the number of active keys.

    State lives in this process only. Several gateway instances each keep an
    independent window.
    """

    def __init__(
        self,
        policies: Optional[Mapping[str, RateLimitPolicy]] = None,
        default_policy: Optional[RateLimitPolicy] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize the rate limiter.

        Args:
            policies: Per-action policies, defaults to `DEFAULT_RATE_LIMITS`
            default_policy: Policy for actions without an explicit one
            clock: Returns the current time in epoch milliseconds
        """
        self.policies: Dict[str, RateLimitPolicy] = dict(
            DEFAULT_RATE_LIMITS if policies is None else policies
        )
        self.default_policy = default_policy or FALLBACK_RATE_LIMIT
        self._clock = clock or _now_ms
        self._lock = Lock()
        self._history: Dict[Tuple[str, str], Deque[int]] = {}

    @classmethod
    def from_config(
        cls,
        policies: Optional[Mapping[str, Mapping[str, Any]]] = None,
        default_policy: Optional[Mapping[str, Any]] = None,
    ) -> "SlidingWindowRateLimiter":
        """Build a limiter from plain configuration mappings."""
        merged = dict(DEFAULT_RATE_LIMITS)
        for action, raw in (policies or {}).items():
            merged[action] = from_dict(data_class=RateLimitPolicy, data=dict(raw))
        fallback = (
            from_dict(data_class=RateLimitPolicy, data=dict(default_policy))
            if default_policy
            else None
        )
        return cls(policies=merged, default_policy=fallback)

    def policy_for(self, action: str) -> RateLimitPolicy:
        return self.policies.get(action, self.default_policy)

    def check(self, user_id: str, action: str) -> RateLimitDecision:
        """
        Check whether a request may proceed and record it when it does.

        Args:
            user_id: Identifier of the authenticated caller
            action: The action being requested

        Returns:
            An allowed decision, or a denied one carrying the number of whole
            seconds after which the oldest recorded request leaves the window.
        """
        policy = self.policy_for(action)
        key = (user_id, action)

        with self._lock:
            now = self._clock()
            history = self._history.setdefault(key, deque())

            window_start = now - policy.window_ms
            while history and history[0] <= window_start:
                history.popleft()

            if len(history) >= policy.max_requests:
                retry_after = math.ceil((history[0] + policy.window_ms - now) / 1000)
                logger.debug(
                    "Rate limit hit for %s on %s (%d in %d ms)",
                    user_id,
                    action,
                    len(history),
                    policy.window_ms,
                )
                return RateLimitDecision(
                    allowed=False, retry_after_seconds=max(0, retry_after)
                )

            history.append(now)
            return RateLimitDecision(allowed=True)

    def __str__(self) -> str:
        return (
            f"SlidingWindowRateLimiter(policies={len(self.policies)}, "
            f"default={self.default_policy})"
        )
