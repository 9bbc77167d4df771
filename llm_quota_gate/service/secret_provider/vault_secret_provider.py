"""
Secret provider reading a HashiCorp Vault KV v2 engine using httpx.
"""

import logging
from typing import Optional

import httpx
from httpx import Timeout

from llm_quota_gate.errors import SecretUnavailable
from llm_quota_gate.service.secret_provider.base import SecretProvider

logger = logging.getLogger(__name__)


class VaultSecretProvider(SecretProvider):
    """
    Read secrets from a Vault KV v2 mount.

    A secret named `AnthropicKey` is read from `<url>/v1/<mount>/data/AnthropicKey`
    and its `value` field is returned.
    """

    def __init__(
        self,
        url: str,
        token: str,
        mount: str = "secret",
        field: str = "value",
        timeout: int = 10,
        namespace: Optional[str] = None,
    ):
        """
        Initialize the provider.

        Args:
            url: Base URL of the Vault server
            token: Vault token with read access to the mount
            mount: Mount path of the KV v2 engine
            field: Field of the secret data holding the value
            timeout: Request timeout in seconds
            namespace: Optional Vault namespace
        """
        self.url = url.rstrip("/")
        self.mount = mount.strip("/")
        self.field = field
        headers = {"X-Vault-Token": token}
        if namespace:
            headers["X-Vault-Namespace"] = namespace
        self.client = httpx.AsyncClient(timeout=Timeout(timeout), headers=headers)

    async def close(self) -> None:
        """Close the httpx client explicitly."""
        await self.client.aclose()

    async def get_secret(self, name: str) -> str:
        url = f"{self.url}/v1/{self.mount}/data/{name}"
        try:
            response = await self.client.get(url)
            response.raise_for_status()
            value = response.json()["data"]["data"][self.field]
        except httpx.HTTPStatusError as e:
            logger.error(
                "Vault answered %d for secret '%s'", e.response.status_code, name
            )
            raise SecretUnavailable(f"secret '{name}' could not be read") from e
        except httpx.RequestError as e:
            logger.error("Vault unreachable at %s: %s", self.url, str(e))
            raise SecretUnavailable("vault unreachable") from e
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Unexpected Vault payload for secret '%s'", name)
            raise SecretUnavailable(f"secret '{name}' has no '{self.field}' field") from e

        if not value:
            raise SecretUnavailable(f"secret '{name}' is empty")
        return str(value)

    def __str__(self) -> str:
        return f"VaultSecretProvider(url='{self.url}', mount='{self.mount}')"
