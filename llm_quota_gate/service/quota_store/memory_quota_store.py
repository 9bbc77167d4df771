"""In-process quota store."""

import asyncio
from typing import Dict, Optional, Tuple

from llm_quota_gate.errors import ConcurrentModification, RecordAlreadyExists
from llm_quota_gate.service.quota_store.base import QuotaStore, UsageRecord


class MemoryQuotaStore(QuotaStore):
    """
    Quota store keeping its records in a dictionary.

    Each primitive runs under a lock so it is atomic with respect to the other
    coroutines of the process, which is what a real backend guarantees per
    key. Counters are lost on restart and are not shared between workers, so
    this store only suits a single worker or tests.
    """

    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], UsageRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str, period: str) -> Optional[UsageRecord]:
        async with self._lock:
            return self._records.get((user_id, period))

    async def create_if_absent(
        self, user_id: str, period: str, initial_count: int, tier: str
    ) -> UsageRecord:
        async with self._lock:
            key = (user_id, period)
            if key in self._records:
                raise RecordAlreadyExists(f"usage record exists: {user_id}/{period}")
            record = UsageRecord(user_id, period, initial_count, tier)
            self._records[key] = record
            return record

    async def conditional_update(
        self,
        user_id: str,
        period: str,
        expected_count: int,
        new_count: int,
        tier: str,
    ) -> UsageRecord:
        async with self._lock:
            key = (user_id, period)
            current = self._records.get(key)
            if current is None or current.count != expected_count:
                raise ConcurrentModification(
                    f"usage record changed: {user_id}/{period}, expected {expected_count}"
                )
            record = UsageRecord(user_id, period, new_count, tier)
            self._records[key] = record
            return record

    def __str__(self) -> str:
        return f"MemoryQuotaStore(records={len(self._records)})"
