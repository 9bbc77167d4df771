"""Base class for quota store implementations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class UsageRecord:
    """Requests admitted for one user in one billing period."""

    user_id: str
    period: str
    count: int
    tier: str


class QuotaStore(ABC):
    """
    Abstract base class for quota store implementations.

    A quota store keeps one counter per (user, period) and only offers
    single-key primitives: a plain read, an insert that refuses to overwrite,
    and a compare-and-swap on the counter. Callers build their admission
    logic on top of these and retry when a conditional write fails.

    Implementations raise StoreUnavailable for any failure other than the
    conditional-write conflicts documented below.
    """

    @abstractmethod
    async def get(self, user_id: str, period: str) -> Optional[UsageRecord]:
        """
        Read the usage record for a user and period.

        Args:
            user_id: Unique user identifier
            period: Billing period key ("YYYY-MM")

        Returns:
            The stored record, or None if there is none yet
        """

    @abstractmethod
    async def create_if_absent(
        self, user_id: str, period: str, initial_count: int, tier: str
    ) -> UsageRecord:
        """
        Create the usage record for a user and period.

        Args:
            user_id: Unique user identifier
            period: Billing period key ("YYYY-MM")
            initial_count: Counter value of the new record
            tier: Tier to record

        Returns:
            The created record

        Raises:
            RecordAlreadyExists: If a record exists already
        """

    @abstractmethod
    async def conditional_update(
        self,
        user_id: str,
        period: str,
        expected_count: int,
        new_count: int,
        tier: str,
    ) -> UsageRecord:
        """
        Replace the counter only if it still holds the expected value.

        Args:
            user_id: Unique user identifier
            period: Billing period key ("YYYY-MM")
            expected_count: Counter value the caller read
            new_count: Counter value to write
            tier: Tier to record

        Returns:
            The updated record

        Raises:
            ConcurrentModification: If the stored counter differs from
                expected_count, or the record has disappeared
        """

    async def close(self) -> None:
        """Release any resources held by the store."""
