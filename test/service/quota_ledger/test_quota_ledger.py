"""
Tests for the monthly quota ledger.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from fitai_gateway.models import QuotaRecord
from fitai_gateway.service.quota_ledger.base import QuotaStore
from fitai_gateway.service.quota_ledger.ledger import (
    PREMIUM_LIMIT_REACHED,
    QuotaLedger,
    month_key,
)
from fitai_gateway.service.quota_ledger.memory_quota_store import InMemoryQuotaStore

NOW = datetime(2024, 5, 14, 12, 0, tzinfo=timezone.utc)


class FailingStore(QuotaStore):
    """Store whose writes always fail."""

    def __init__(self) -> None:
        self.record = QuotaRecord()

    async def get_record(self, user_id: str) -> Optional[QuotaRecord]:
        return self.record

    async def increment(
        self, user_id: str, counter: str, month_key: str, amount: int = 1
    ) -> None:
        raise ConnectionError("store unavailable")

    async def set_premium(self, user_id: str, is_premium: bool) -> None:
        raise ConnectionError("store unavailable")


@pytest.fixture
def store() -> InMemoryQuotaStore:
    return InMemoryQuotaStore()


@pytest.fixture
def ledger(store: InMemoryQuotaStore) -> QuotaLedger:
    return QuotaLedger(store=store, clock=lambda: NOW)


def test_month_key_is_not_zero_padded() -> None:
    assert month_key(datetime(2024, 5, 1)) == "2024-5"
    assert month_key(datetime(2024, 12, 31)) == "2024-12"


def test_month_key_is_normalized_to_utc(store: InMemoryQuotaStore) -> None:
    """A late evening west of UTC already counts for the next month."""
    local = datetime(2024, 5, 31, 23, 30, tzinfo=timezone(timedelta(hours=-3)))
    ledger = QuotaLedger(store=store, clock=lambda: local)

    assert ledger.current_month_key() == "2024-6"


async def test_ungated_action_is_always_allowed(ledger: QuotaLedger) -> None:
    decision = await ledger.check_quota("user-1", "calculateMacros")

    assert decision.allowed is True


async def test_missing_record_is_allowed(ledger: QuotaLedger) -> None:
    """Users without a persisted record are not blocked."""
    decision = await ledger.check_quota("new-user", "generateRoutine")

    assert decision.allowed is True
    assert decision.current is None


async def test_free_user_gets_exactly_limit_calls(
    ledger: QuotaLedger, store: InMemoryQuotaStore
) -> None:
    """Three allowed calls per month, the fourth is denied."""
    # Arrange
    await store.set_premium("user-1", False)

    # Act
    allowed = []
    for _ in range(3):
        decision = await ledger.check_quota("user-1", "generateRoutine")
        allowed.append(decision.allowed)
        await ledger.increment_usage("user-1", "generateRoutine")
    denied = await ledger.check_quota("user-1", "generateRoutine")

    # Assert
    assert allowed == [True, True, True]
    assert denied.allowed is False
    assert denied.reason == PREMIUM_LIMIT_REACHED
    assert denied.limit == 3
    assert denied.current == 3


async def test_usage_from_previous_month_does_not_count(
    ledger: QuotaLedger, store: InMemoryQuotaStore
) -> None:
    await store.increment("user-1", "routinesGenerated", "2024-4", amount=3)

    decision = await ledger.check_quota("user-1", "generateRoutine")

    assert decision.allowed is True
    assert decision.current == 0


async def test_premium_user_is_always_allowed(
    ledger: QuotaLedger, store: InMemoryQuotaStore
) -> None:
    await store.set_premium("user-1", True)
    await store.increment("user-1", "routinesGenerated", "2024-5", amount=50)

    decision = await ledger.check_quota("user-1", "generateRoutine")

    assert decision.allowed is True
    assert decision.is_premium is True


async def test_increment_writes_current_month_bucket(
    ledger: QuotaLedger, store: InMemoryQuotaStore
) -> None:
    await store.set_premium("user-1", False)

    await ledger.increment_usage("user-1", "generateRoutine")

    record = await store.get_record("user-1")
    assert record is not None
    assert record.usage == {"routinesGenerated": {"2024-5": 1}}
    assert record.is_premium is False


async def test_increment_ignores_ungated_actions(
    ledger: QuotaLedger, store: InMemoryQuotaStore
) -> None:
    await ledger.increment_usage("user-1", "generateDiet")

    assert await store.get_record("user-1") is None


async def test_increment_failure_is_swallowed() -> None:
    """A failed write never fails the caller."""
    ledger = QuotaLedger(store=FailingStore(), clock=lambda: NOW)

    await ledger.increment_usage("user-1", "generateRoutine")


async def test_custom_free_tier_limit(store: InMemoryQuotaStore) -> None:
    ledger = QuotaLedger(
        store=store, free_tier_limits={"generateRoutine": 1}, clock=lambda: NOW
    )
    await store.increment("user-1", "routinesGenerated", "2024-5")

    decision = await ledger.check_quota("user-1", "generateRoutine")

    assert decision.allowed is False
    assert decision.limit == 1
