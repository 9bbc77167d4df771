import logging

from cachetools import TTLCache

from llm_quota_gate.service.secret_provider.base import SecretProvider

logger = logging.getLogger(__name__)


class CachingSecretProvider(SecretProvider):
    """
    Keep secrets returned by another provider for a limited time.

    The cache lives as long as the provider instance, which the container
    holds for the lifetime of the process. An entry is refetched once it is
    older than `ttl` seconds, so a rotated key is picked up within that delay.
    """

    def __init__(self, provider: SecretProvider, ttl: int = 300, maxsize: int = 32):
        self.provider = provider
        self.ttl = ttl
        self._cache: TTLCache[str, str] = TTLCache(maxsize=maxsize, ttl=ttl)

    async def get_secret(self, name: str) -> str:
        cached = self._cache.get(name)
        if cached is not None:
            return cached
        value = await self.provider.get_secret(name)
        logger.debug("Fetched secret '%s', caching for %ds", name, self.ttl)
        self._cache[name] = value
        return value

    def invalidate(self) -> None:
        self._cache.clear()

    async def close(self) -> None:
        await self.provider.close()

    def __str__(self) -> str:
        return f"CachingSecretProvider(provider={self.provider}, ttl={self.ttl})"
