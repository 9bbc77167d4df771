"""
Forwarder relaying completion requests to the upstream API using httpx.
"""

import logging
from dataclasses import dataclass

import httpx
from httpx import Limits, Timeout

from llm_quota_gate.errors import UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpstreamResponse:
    """Successful upstream answer, relayed to the caller unchanged."""

    status_code: int
    content: bytes
    media_type: str


class CompletionForwarder:
    """
    Forward completion request bodies to the upstream API with connection pooling.

    The body is sent as received, with the shared credential added as the
    `x-api-key` header.
    """

    def __init__(
        self,
        url: str,
        api_version: str = "2023-06-01",
        timeout: int = 120,
        max_connections: int = 100,
        max_keepalive_connections: int = 20,
    ):
        """
        Initialize the forwarder.

        Args:
            url: URL of the upstream completion endpoint
            api_version: Value of the `anthropic-version` header
            timeout: Request timeout in seconds
            max_connections: Maximum number of connections in the pool
            max_keepalive_connections: Maximum number of idle connections to keep in the pool
        """
        self.url = url
        self.api_version = api_version
        limits = Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
        )
        self.client = httpx.AsyncClient(
            timeout=Timeout(timeout),
            limits=limits,
            headers={
                "Content-Type": "application/json",
                "anthropic-version": api_version,
            },
        )

    async def close(self) -> None:
        """Close the httpx client explicitly."""
        await self.client.aclose()

    async def forward(self, body: bytes, credential: str) -> UpstreamResponse:
        """
        Send a completion request upstream.

        Args:
            body: Raw JSON request body received from the caller
            credential: Upstream API key

        Returns:
            The upstream status, body and content type

        Raises:
            UpstreamFailure: If the upstream API is unreachable or answers
                with a non-2xx status
        """
        try:
            response = await self.client.post(
                self.url, content=body, headers={"x-api-key": credential}
            )
        except httpx.RequestError as e:
            logger.error("Upstream request to %s failed: %s", self.url, str(e))
            raise UpstreamFailure("upstream unreachable") from e

        if not response.is_success:
            logger.error(
                "Upstream answered %d: %s", response.status_code, response.text
            )
            raise UpstreamFailure(
                f"upstream answered {response.status_code}",
                status_code=response.status_code,
            )

        return UpstreamResponse(
            status_code=response.status_code,
            content=response.content,
            media_type=response.headers.get("content-type", "application/json"),
        )

    def __str__(self) -> str:
        return f"CompletionForwarder(url='{self.url}', api_version='{self.api_version}')"
