from typing import Mapping

from llm_quota_gate.errors import SecretUnavailable
from llm_quota_gate.service.secret_provider.base import SecretProvider


class StaticSecretProvider(SecretProvider):
    """
    Serve secrets given at construction time, typically from the environment.
    """

    def __init__(self, secrets: Mapping[str, str | None]):
        """Initialize the provider with a mapping of secret names to values."""
        self.secrets = dict(secrets)

    async def get_secret(self, name: str) -> str:
        value = self.secrets.get(name)
        if not value:
            raise SecretUnavailable(f"secret '{name}' is not configured")
        return value

    def __str__(self) -> str:
        return f"StaticSecretProvider(names={sorted(self.secrets)})"
