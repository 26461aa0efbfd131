"""Base class for quota store implementations."""

from abc import ABC, abstractmethod
from typing import Optional

from fitai_gateway.models import QuotaRecord


class QuotaStore(ABC):
    """
    Abstract base class for the persistent quota storage collaborator.

    A store keeps one record per user. Writes merge into the record and never
    replace unrelated fields.
    """

    @abstractmethod
    async def get_record(self, user_id: str) -> Optional[QuotaRecord]:
        """
        Fetch the quota record of a user.

        Args:
            user_id: Unique user identifier

        Returns:
            The record, or None when the user has no record at all
        """

    @abstractmethod
    async def increment(
        self, user_id: str, counter: str, month_key: str, amount: int = 1
    ) -> None:
        """
        Atomically add `amount` to a monthly usage counter.

        The add happens at the storage layer, so concurrent increments for the
        same user are never lost. Creates the record if it does not exist.

        Args:
            user_id: Unique user identifier
            counter: Usage counter name (e.g. "routinesGenerated")
            month_key: Month bucket in "YYYY-M" form
            amount: Value to add
        """

    @abstractmethod
    async def set_premium(self, user_id: str, is_premium: bool) -> None:
        """
        Set the premium flag of a user, creating the record if needed.

        Args:
            user_id: Unique user identifier
            is_premium: New premium state
        """
