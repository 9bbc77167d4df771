"""
Tests for the upstream completion forwarder.
"""

import json
from typing import List

import httpx
import pytest

from llm_quota_gate.errors import UpstreamFailure
from llm_quota_gate.service.completion_forwarder import CompletionForwarder

UPSTREAM_URL = "https://api.example.com/v1/messages"

BODY = json.dumps(
    {
        "model": "claude-3-opus-20240229",
        "messages": [{"role": "user", "content": "Hello"}],
        "max_tokens": 1024,
    }
).encode()


def make_forwarder(handler) -> CompletionForwarder:  # type: ignore
    forwarder = CompletionForwarder(url=UPSTREAM_URL)
    forwarder.client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        headers={"anthropic-version": forwarder.api_version},
    )
    return forwarder


async def test_forward_relays_body_and_response() -> None:
    """Test that the body is sent unchanged and the answer comes back verbatim."""
    # Arrange
    requests: List[httpx.Request] = []
    upstream_body = b'{"content": [{"type": "text", "text": "Hi"}]}'

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200, content=upstream_body, headers={"content-type": "application/json"}
        )

    forwarder = make_forwarder(handler)

    # Act
    response = await forwarder.forward(BODY, "sk-test")

    # Assert
    assert response.status_code == 200
    assert response.content == upstream_body
    assert response.media_type == "application/json"
    assert requests[0].content == BODY
    assert requests[0].headers["x-api-key"] == "sk-test"
    assert requests[0].headers["anthropic-version"] == "2023-06-01"


async def test_forward_error_status_is_upstream_failure() -> None:
    forwarder = make_forwarder(lambda request: httpx.Response(529, json={"error": "overloaded"}))

    with pytest.raises(UpstreamFailure) as exc_info:
        await forwarder.forward(BODY, "sk-test")
    assert exc_info.value.status_code == 529


async def test_forward_connection_error_is_upstream_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(UpstreamFailure) as exc_info:
        await make_forwarder(handler).forward(BODY, "sk-test")
    assert exc_info.value.status_code is None
