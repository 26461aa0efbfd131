"""In-process quota store, for development and tests."""

import copy
from threading import Lock
from typing import Dict, Optional

from fitai_gateway.models import QuotaRecord
from fitai_gateway.service.quota_ledger.base import QuotaStore


class InMemoryQuotaStore(QuotaStore):
    """
    Quota store implementation that keeps records in a dictionary.

    Records vanish with the process. Used when no persistent backend is
    configured.
    """

    def __init__(self) -> None:
        self._records: Dict[str, QuotaRecord] = {}
        self._lock = Lock()

    async def get_record(self, user_id: str) -> Optional[QuotaRecord]:
        with self._lock:
            record = self._records.get(user_id)
            return copy.deepcopy(record) if record is not None else None

    async def increment(
        self, user_id: str, counter: str, month_key: str, amount: int = 1
    ) -> None:
        with self._lock:
            record = self._records.setdefault(user_id, QuotaRecord())
            months = record.usage.setdefault(counter, {})
            months[month_key] = months.get(month_key, 0) + amount

    async def set_premium(self, user_id: str, is_premium: bool) -> None:
        with self._lock:
            self._records.setdefault(user_id, QuotaRecord()).is_premium = is_premium

    def __str__(self) -> str:
        return f"InMemoryQuotaStore(records={len(self._records)})"
