"""Monthly freemium quota bookkeeping."""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping, Optional

from fitai_gateway.models import ActionKind, QuotaDecision
from fitai_gateway.service.quota_ledger.base import QuotaStore

logger = logging.getLogger(__name__)

PREMIUM_LIMIT_REACHED = "PREMIUM_LIMIT_REACHED"

DEFAULT_FREE_TIER_LIMITS: Dict[str, int] = {
    ActionKind.GENERATE_ROUTINE.value: 3,
}

USAGE_COUNTERS: Dict[str, str] = {
    ActionKind.GENERATE_ROUTINE.value: "routinesGenerated",
}


def month_key(now: datetime) -> str:
    """Return the quota bucket of `now` in "YYYY-M" form (month not zero-padded)."""
    return f"{now.year}-{now.month}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuotaLedger:
    """
    Per-user, per-calendar-month counters for quota-gated actions.

    Only actions with a free-tier limit are gated. Months are bucketed in UTC.
    """

    def __init__(
        self,
        store: QuotaStore,
        free_tier_limits: Optional[Mapping[str, int]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the quota ledger.

        Args:
            store: Persistent quota store
            free_tier_limits: Monthly cap per gated action for free accounts
            clock: Returns the current time, timezone aware
        """
        self.store = store
        self.free_tier_limits: Dict[str, int] = dict(
            DEFAULT_FREE_TIER_LIMITS if free_tier_limits is None else free_tier_limits
        )
        self._clock = clock or _utc_now

    def is_gated(self, action: str) -> bool:
        return action in self.free_tier_limits

    def current_month_key(self) -> str:
        return month_key(self._clock().astimezone(timezone.utc))

    async def check_quota(self, user_id: str, action: str) -> QuotaDecision:
        """
        Check whether a user may run a gated action this month.

        Args:
            user_id: Unique user identifier
            action: The requested action

        Returns:
            The decision. Users without a record are allowed.
        """
        if not self.is_gated(action):
            return QuotaDecision(allowed=True)

        record = await self.store.get_record(user_id)
        if record is None:
            logger.debug("No quota record for user %s, allowing %s", user_id, action)
            return QuotaDecision(allowed=True)

        if record.is_premium:
            return QuotaDecision(allowed=True, is_premium=True)

        limit = self.free_tier_limits[action]
        current = record.count(USAGE_COUNTERS.get(action, action), self.current_month_key())

        if current >= limit:
            logger.info(
                "User %s reached free tier limit for %s (%d/%d)",
                user_id,
                action,
                current,
                limit,
            )
            return QuotaDecision(
                allowed=False,
                reason=PREMIUM_LIMIT_REACHED,
                limit=limit,
                current=current,
                is_premium=False,
            )

        return QuotaDecision(allowed=True, limit=limit, current=current, is_premium=False)

    async def increment_usage(self, user_id: str, action: str) -> None:
        """
        Record one successful use of a gated action in the current month.

        Failures are logged and swallowed: the caller already has a result.

        Args:
            user_id: Unique user identifier
            action: The action that succeeded
        """
        if not self.is_gated(action):
            return

        try:
            await self.store.increment(
                user_id, USAGE_COUNTERS.get(action, action), self.current_month_key()
            )
        except Exception as e:
            logger.error(
                "Error incrementing usage for user %s, action %s: %s",
                user_id,
                action,
                str(e),
            )

    def __str__(self) -> str:
        return f"QuotaLedger(store={self.store}, free_tier_limits={self.free_tier_limits})"
