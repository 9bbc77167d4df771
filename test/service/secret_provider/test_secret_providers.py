"""
Tests for the secret providers.
"""

from typing import Any, List
from unittest.mock import AsyncMock

import httpx
import pytest

from llm_quota_gate.errors import SecretUnavailable
from llm_quota_gate.service.secret_provider.base import SecretProvider
from llm_quota_gate.service.secret_provider.caching_secret_provider import (
    CachingSecretProvider,
)
from llm_quota_gate.service.secret_provider.static_secret_provider import (
    StaticSecretProvider,
)
from llm_quota_gate.service.secret_provider.vault_secret_provider import (
    VaultSecretProvider,
)


def make_vault(handler: Any) -> VaultSecretProvider:
    provider = VaultSecretProvider(url="https://vault.example.com/", token="vault-token")
    provider.client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        headers={"X-Vault-Token": "vault-token"},
    )
    return provider


async def test_static_provider_returns_secret() -> None:
    provider = StaticSecretProvider({"AnthropicKey": "sk-test"})

    assert await provider.get_secret("AnthropicKey") == "sk-test"


@pytest.mark.parametrize("secrets", [{}, {"AnthropicKey": None}, {"AnthropicKey": ""}])
async def test_static_provider_missing_secret(secrets: dict) -> None:
    with pytest.raises(SecretUnavailable):
        await StaticSecretProvider(secrets).get_secret("AnthropicKey")


async def test_caching_provider_fetches_once() -> None:
    # Arrange
    inner = AsyncMock(spec=SecretProvider)
    inner.get_secret.return_value = "sk-test"
    provider = CachingSecretProvider(inner, ttl=60)

    # Act
    first = await provider.get_secret("AnthropicKey")
    second = await provider.get_secret("AnthropicKey")

    # Assert
    assert first == second == "sk-test"
    inner.get_secret.assert_awaited_once_with("AnthropicKey")


async def test_caching_provider_refetches_after_invalidation() -> None:
    inner = AsyncMock(spec=SecretProvider)
    inner.get_secret.side_effect = ["sk-old", "sk-new"]
    provider = CachingSecretProvider(inner, ttl=60)

    assert await provider.get_secret("AnthropicKey") == "sk-old"
    provider.invalidate()
    assert await provider.get_secret("AnthropicKey") == "sk-new"


async def test_caching_provider_does_not_cache_failures() -> None:
    inner = AsyncMock(spec=SecretProvider)
    inner.get_secret.side_effect = [SecretUnavailable("down"), "sk-test"]
    provider = CachingSecretProvider(inner, ttl=60)

    with pytest.raises(SecretUnavailable):
        await provider.get_secret("AnthropicKey")
    assert await provider.get_secret("AnthropicKey") == "sk-test"


async def test_vault_provider_reads_kv2_secret() -> None:
    # Arrange
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"data": {"data": {"value": "sk-vault"}}})

    provider = make_vault(handler)

    # Act
    value = await provider.get_secret("AnthropicKey")

    # Assert
    assert value == "sk-vault"
    assert str(requests[0].url) == "https://vault.example.com/v1/secret/data/AnthropicKey"
    assert requests[0].headers["X-Vault-Token"] == "vault-token"


async def test_vault_provider_not_found() -> None:
    provider = make_vault(lambda request: httpx.Response(404, json={"errors": []}))

    with pytest.raises(SecretUnavailable):
        await provider.get_secret("AnthropicKey")


async def test_vault_provider_unexpected_payload() -> None:
    provider = make_vault(lambda request: httpx.Response(200, json={"data": {}}))

    with pytest.raises(SecretUnavailable):
        await provider.get_secret("AnthropicKey")
