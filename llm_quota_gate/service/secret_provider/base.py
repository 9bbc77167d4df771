from abc import ABC, abstractmethod


class SecretProvider(ABC):
    """
    Abstract base class for secret providers.

    A secret provider looks up a named secret, such as the upstream API key.
    """

    @abstractmethod
    async def get_secret(self, name: str) -> str:
        """
        Return the value of a named secret.

        Raises:
            SecretUnavailable: If the secret cannot be retrieved or is empty
        """

    async def close(self) -> None:
        """Release any resources held by the provider."""
