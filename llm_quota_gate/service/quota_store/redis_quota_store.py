"""Redis-based quota store using Lua scripts for conditional writes."""

import logging
from pathlib import Path
from time import time
from typing import Any, Dict, Optional

import redis.asyncio as redis

from llm_quota_gate.errors import (
    ConcurrentModification,
    RecordAlreadyExists,
    StoreUnavailable,
)
from llm_quota_gate.service.quota_store.base import QuotaStore, UsageRecord

logger = logging.getLogger(__name__)


def _decode(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class RedisQuotaStore(QuotaStore):
    """
    Quota store keeping one Redis hash per user and billing period.

    Creation and compare-and-swap are executed as Lua scripts, which Redis
    runs atomically, so independent workers sharing the same Redis never
    overwrite each other's increments.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = "usage",
    ):
        """
        Initialize the quota store.

        Args:
            redis_client: Async Redis client instance
            key_prefix: Prefix of the usage record keys
        """
        self.redis_client: redis.Redis = redis_client
        self.key_prefix = key_prefix
        self._lua_scripts: Dict[str, str] = {}

    def _load_lua_script(self, name: str) -> str:
        """Load one of the bundled Lua scripts."""
        if name in self._lua_scripts:
            return self._lua_scripts[name]

        script_path = Path(__file__).parent / "resources" / f"{name}.lua"
        with open(script_path, "r") as f:
            self._lua_scripts[name] = f.read()

        return self._lua_scripts[name]

    def _key(self, user_id: str, period: str) -> str:
        return f"{self.key_prefix}:{user_id}:{period}"

    async def _eval(self, name: str, key: str, *args: str) -> int:
        script_content = self._load_lua_script(name)
        try:
            result = await self.redis_client.eval(script_content, 1, key, *args)  # type: ignore
        except redis.RedisError as e:
            logger.error("Redis script %s failed for %s: %s", name, key, str(e))
            raise StoreUnavailable(f"quota store script {name} failed") from e
        return int(result)

    async def get(self, user_id: str, period: str) -> Optional[UsageRecord]:
        key = self._key(user_id, period)
        try:
            raw = await self.redis_client.hgetall(key)  # type: ignore
        except redis.RedisError as e:
            logger.error("Redis read failed for %s: %s", key, str(e))
            raise StoreUnavailable("quota store read failed") from e

        if not raw:
            return None

        fields = {_decode(k): _decode(v) for k, v in raw.items()}
        try:
            return UsageRecord(
                user_id=user_id,
                period=period,
                count=int(fields["count"]),
                tier=fields.get("tier", ""),
            )
        except (KeyError, ValueError) as e:
            logger.error("Malformed usage record at %s: %s", key, fields)
            raise StoreUnavailable("malformed usage record") from e

    async def create_if_absent(
        self, user_id: str, period: str, initial_count: int, tier: str
    ) -> UsageRecord:
        key = self._key(user_id, period)
        created = await self._eval(
            "createIfAbsent", key, str(initial_count), tier, str(int(time()))
        )
        if not created:
            raise RecordAlreadyExists(f"usage record exists: {key}")
        return UsageRecord(user_id, period, initial_count, tier)

    async def conditional_update(
        self,
        user_id: str,
        period: str,
        expected_count: int,
        new_count: int,
        tier: str,
    ) -> UsageRecord:
        key = self._key(user_id, period)
        updated = await self._eval(
            "conditionalUpdate",
            key,
            str(expected_count),
            str(new_count),
            tier,
            str(int(time())),
        )
        if not updated:
            raise ConcurrentModification(
                f"usage record changed: {key}, expected {expected_count}"
            )
        return UsageRecord(user_id, period, new_count, tier)

    async def close(self) -> None:
        await self.redis_client.aclose()

    def __str__(self) -> str:
        return f"RedisQuotaStore(key_prefix='{self.key_prefix}')"
