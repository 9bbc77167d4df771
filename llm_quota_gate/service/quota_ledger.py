"""Admission control and usage accounting per user and billing period."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Mapping, Optional

from llm_quota_gate.errors import (
    ConcurrentModification,
    RecordAlreadyExists,
    StoreUnavailable,
)
from llm_quota_gate.service.quota_store.base import QuotaStore
from llm_quota_gate.utils.period import period_key

logger = logging.getLogger(__name__)

DEFAULT_TIER_LIMITS: Mapping[str, int] = {
    "free": 50,
    "basic": 500,
    "pro": 2000,
    "enterprise": 10000,
}


@dataclass(frozen=True)
class AdmissionResult:
    """Outcome of an admission attempt."""

    allowed: bool
    new_count: int
    period: str
    limit: int


@dataclass(frozen=True)
class UsageSnapshot:
    """Read-only view of a user's usage in a period."""

    period: str
    count: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)


class TierLimits:
    """
    Static tier to monthly limit table.

    The table is checked when it is built so that a misconfigured limit stops
    the service at start-up instead of silently admitting requests.
    """

    def __init__(
        self,
        limits: Optional[Mapping[str, int]] = None,
        default_tier: str = "free",
    ):
        """
        Initialize the tier table.

        Args:
            limits: Mapping of tier name to monthly request limit
            default_tier: Tier whose limit applies to unknown tier names

        Raises:
            ValueError: If a limit is not a positive integer or the default
                tier is not part of the table
        """
        limits = dict(limits if limits is not None else DEFAULT_TIER_LIMITS)
        for tier, limit in limits.items():
            if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
                raise ValueError(
                    f"Quota limit for tier '{tier}' must be a positive integer, got {limit!r}"
                )
        if default_tier not in limits:
            raise ValueError(f"Default tier '{default_tier}' has no quota limit")
        self.limits = limits
        self.default_tier = default_tier

    def resolve(self, tier: str) -> int:
        """Return the monthly limit of a tier, falling back to the default tier."""
        limit = self.limits.get(tier)
        if limit is None:
            logger.warning(
                "Unknown tier '%s', applying limit of tier '%s'", tier, self.default_tier
            )
            return self.limits[self.default_tier]
        return limit

    def __str__(self) -> str:
        return f"TierLimits(limits={self.limits}, default_tier='{self.default_tier}')"


class QuotaLedger:
    """
    Decides whether a request is admitted and charges it to the user's counter.

    The ledger holds no lock: it reads the counter, decides, and writes back
    with one of the store's conditional primitives. When another request has
    written in between, the conditional write fails and the whole decision is
    taken again from a fresh read, up to `max_attempts` times.
    """

    def __init__(
        self,
        store: QuotaStore,
        max_attempts: int = 3,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the ledger.

        Args:
            store: Backing quota store
            max_attempts: Read/decide/write rounds before giving up on contention
            clock: Returns the current time, defaults to the system UTC clock
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self.clock = clock

    def current_period(self) -> str:
        return period_key(self.clock() if self.clock else None)

    async def admit(self, user_id: str, tier: str, limit: int) -> AdmissionResult:
        """
        Admit a request for a user if the current period's quota allows it.

        An admitted request increments the counter by exactly one; a denied
        request leaves the store untouched. With a limit of 0 no record is
        created.

        Args:
            user_id: Unique user identifier
            tier: Tier granted by the license validator, recorded on write
            limit: Monthly request limit of that tier

        Returns:
            The admission decision and the counter value after it

        Raises:
            ValueError: On an empty user id or a negative limit
            StoreUnavailable: If the store fails or stays contended
        """
        if not user_id:
            raise ValueError("user_id must not be empty")
        if limit < 0:
            raise ValueError(f"limit must not be negative, got {limit}")

        period = self.current_period()

        for attempt in range(1, self.max_attempts + 1):
            record = await self.store.get(user_id, period)
            count = record.count if record is not None else 0

            if count >= limit:
                logger.debug(
                    "Denied user %s in %s: %d/%d", user_id, period, count, limit
                )
                return AdmissionResult(False, count, period, limit)

            try:
                if record is None:
                    await self.store.create_if_absent(user_id, period, 1, tier)
                else:
                    await self.store.conditional_update(
                        user_id, period, count, count + 1, tier
                    )
            except (ConcurrentModification, RecordAlreadyExists) as e:
                logger.debug(
                    "Contention on user %s in %s (attempt %d/%d): %s",
                    user_id,
                    period,
                    attempt,
                    self.max_attempts,
                    str(e),
                )
                continue

            return AdmissionResult(True, count + 1, period, limit)

        logger.warning(
            "Giving up on user %s in %s after %d contended attempts",
            user_id,
            period,
            self.max_attempts,
        )
        raise StoreUnavailable(
            f"usage record for {user_id}/{period} stayed contended"
        )

    async def usage(self, user_id: str, limit: int) -> UsageSnapshot:
        """Return the user's usage in the current period without changing it."""
        period = self.current_period()
        record = await self.store.get(user_id, period)
        return UsageSnapshot(period, record.count if record else 0, limit)

    def __str__(self) -> str:
        return f"QuotaLedger(store={self.store}, max_attempts={self.max_attempts})"
