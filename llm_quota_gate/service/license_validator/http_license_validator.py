"""
License validator asking the issuing authority over HTTP, using httpx.
"""

import hashlib
import logging
from typing import Any, Dict, Optional

import httpx
from cachetools import TTLCache
from httpx import Limits, Timeout

from llm_quota_gate.errors import LicenseValidationUnavailable
from llm_quota_gate.service.license_validator.base import (
    INVALID_LICENSE,
    LicenseValidation,
    LicenseValidator,
    tier_from_sku,
)

logger = logging.getLogger(__name__)

REJECTED_STATUS_CODES = frozenset({400, 401, 403, 404})


def _cache_key(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class HttpLicenseValidator(LicenseValidator):
    """
    License validator backed by the license authority's validation endpoint.

    The endpoint receives `{"token": ..., "clientId": ...}` and answers with
    `{"isValid": bool, "tier": str, "quotaLimit": int}`; an answer carrying a
    `skuId` instead of a tier is mapped through the SKU table. Definitive
    answers are cached for `cache_ttl` seconds per token.
    """

    def __init__(
        self,
        url: str,
        client_id: Optional[str] = None,
        timeout: int = 10,
        cache_ttl: int = 300,
        max_connections: int = 100,
        max_keepalive_connections: int = 20,
    ):
        """
        Initialize the validator with connection pooling.

        Args:
            url: URL of the license validation endpoint
            client_id: Client identifier registered with the authority
            timeout: Request timeout in seconds
            cache_ttl: Seconds a validation answer stays cached, 0 disables caching
            max_connections: Maximum number of connections in the pool
            max_keepalive_connections: Maximum number of idle connections to keep in the pool
        """
        self.url = url
        self.client_id = client_id
        limits = Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
        )
        self.client = httpx.AsyncClient(
            timeout=Timeout(timeout),
            limits=limits,
            headers={"Content-Type": "application/json"},
        )
        self._cache: Optional[TTLCache[str, LicenseValidation]] = (
            TTLCache(maxsize=10000, ttl=cache_ttl) if cache_ttl > 0 else None
        )

    async def close(self) -> None:
        """Close the httpx client explicitly."""
        await self.client.aclose()

    def _parse(self, data: Dict[str, Any]) -> LicenseValidation:
        if not data.get("isValid"):
            return INVALID_LICENSE
        tier = data.get("tier") or tier_from_sku(data.get("skuId"))
        quota_limit = data.get("quotaLimit")
        return LicenseValidation(
            is_valid=True,
            tier=str(tier),
            quota_limit=quota_limit if isinstance(quota_limit, int) else None,
        )

    async def __call__(self, token: str) -> LicenseValidation:
        key = _cache_key(token)
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for license validation")
                return cached

        try:
            response = await self.client.post(
                self.url, json={"token": token, "clientId": self.client_id}
            )
        except httpx.RequestError as e:
            logger.error("License authority unreachable at %s: %s", self.url, str(e))
            raise LicenseValidationUnavailable("license authority unreachable") from e

        if response.status_code in REJECTED_STATUS_CODES:
            logger.info("License authority rejected token (%d)", response.status_code)
            result = INVALID_LICENSE
        elif response.is_success:
            try:
                result = self._parse(response.json())
            except ValueError as e:
                raise LicenseValidationUnavailable(
                    f"Invalid JSON response from license authority: {response.text}"
                ) from e
        else:
            logger.error(
                "License authority answered %d: %s", response.status_code, response.text
            )
            raise LicenseValidationUnavailable(
                f"license authority answered {response.status_code}"
            )

        if self._cache is not None:
            self._cache[key] = result
        return result

    def __str__(self) -> str:
        return f"HttpLicenseValidator(url='{self.url}', client_id={self.client_id})"
