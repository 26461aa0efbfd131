"""Redis-based quota store."""

import logging
from typing import Dict, Optional

import redis.asyncio as redis

from fitai_gateway.models import QuotaRecord
from fitai_gateway.service.quota_ledger.base import QuotaStore

logger = logging.getLogger(__name__)

PREMIUM_FIELD = "isPremium"
USAGE_PREFIX = "usage."


class RedisQuotaStore(QuotaStore):
    """
    Quota store keeping one Redis hash per user.

    Hash layout for key `user:{user_id}`:
    - `isPremium`: "1" or "0"
    - `usage.{counter}.{month}`: integer count, e.g. `usage.routinesGenerated.2024-5`

    Hash fields are independent, so writing one never clobbers the others, and
    counters are incremented with HINCRBY.
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "user:"):
        """
        Initialize the quota store.

        Args:
            redis_client: Async Redis client instance
            key_prefix: Prefix of the per-user hash keys
        """
        self.redis_client: redis.Redis = redis_client
        self.key_prefix = key_prefix

    def _key(self, user_id: str) -> str:
        return f"{self.key_prefix}{user_id}"

    async def get_record(self, user_id: str) -> Optional[QuotaRecord]:
        raw: Dict = await self.redis_client.hgetall(self._key(user_id))  # type: ignore
        if not raw:
            return None

        record = QuotaRecord()
        for field, value in raw.items():
            field = field.decode() if isinstance(field, bytes) else str(field)
            value = value.decode() if isinstance(value, bytes) else str(value)

            if field == PREMIUM_FIELD:
                record.is_premium = value.lower() in ("1", "true")
            elif field.startswith(USAGE_PREFIX):
                counter, _, month_key = field[len(USAGE_PREFIX) :].partition(".")
                if not month_key:
                    continue
                try:
                    record.usage.setdefault(counter, {})[month_key] = int(value)
                except ValueError:
                    logger.warning(
                        "Ignoring non-numeric usage field %s for user %s", field, user_id
                    )
        return record

    async def increment(
        self, user_id: str, counter: str, month_key: str, amount: int = 1
    ) -> None:
        await self.redis_client.hincrby(  # type: ignore
            self._key(user_id), f"{USAGE_PREFIX}{counter}.{month_key}", amount
        )

    async def set_premium(self, user_id: str, is_premium: bool) -> None:
        await self.redis_client.hset(  # type: ignore
            self._key(user_id), PREMIUM_FIELD, "1" if is_premium else "0"
        )

    def __str__(self) -> str:
        return f"RedisQuotaStore(key_prefix='{self.key_prefix}')"
