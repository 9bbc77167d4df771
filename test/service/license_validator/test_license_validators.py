"""
Tests for the license validator variants.
"""

import json
import time
from typing import Any, Dict, List

import httpx
import jwt
import pytest

from llm_quota_gate.errors import LicenseValidationUnavailable
from llm_quota_gate.service.license_validator.base import tier_from_sku
from llm_quota_gate.service.license_validator.http_license_validator import (
    HttpLicenseValidator,
)
from llm_quota_gate.service.license_validator.jwt_license_validator import (
    JwtLicenseValidator,
)
from llm_quota_gate.service.license_validator.static_license_validator import (
    StaticLicenseValidator,
)

JWT_SECRET = "test-secret-that-is-long-enough-for-hs256"
LICENSE_URL = "https://licenses.example.com/validate"


def make_http_validator(
    handler: Any, cache_ttl: int = 300
) -> HttpLicenseValidator:
    validator = HttpLicenseValidator(url=LICENSE_URL, client_id="client-1", cache_ttl=cache_ttl)
    validator.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return validator


async def test_static_validator_grants_configured_tier() -> None:
    validator = StaticLicenseValidator(tier="pro")

    result = await validator("anything")

    assert result.is_valid is True
    assert result.tier == "pro"


async def test_static_validator_rejects_empty_token() -> None:
    assert (await StaticLicenseValidator()("")).is_valid is False


def test_tier_from_sku() -> None:
    assert tier_from_sku("SmartTerminal.Pro") == "pro"
    assert tier_from_sku("SmartTerminal.Enterprise") == "enterprise"
    assert tier_from_sku("SmartTerminal.Trial") == "free"
    assert tier_from_sku(None) == "free"


async def test_jwt_validator_reads_tier_claim() -> None:
    # Arrange
    token = jwt.encode(
        {"sub": "u1", "tier": "enterprise", "quota_limit": 10000, "exp": int(time.time()) + 60},
        JWT_SECRET,
        algorithm="HS256",
    )

    # Act
    result = await JwtLicenseValidator(jwt_secret=JWT_SECRET)(token)

    # Assert
    assert result.is_valid is True
    assert result.tier == "enterprise"
    assert result.quota_limit == 10000


async def test_jwt_validator_maps_sku_claim() -> None:
    token = jwt.encode({"sub": "u1", "sku": "SmartTerminal.Basic"}, JWT_SECRET, algorithm="HS256")

    result = await JwtLicenseValidator(jwt_secret=JWT_SECRET)(token)

    assert result.tier == "basic"


async def test_jwt_validator_rejects_expired_token() -> None:
    token = jwt.encode(
        {"sub": "u1", "tier": "pro", "exp": int(time.time()) - 60}, JWT_SECRET, algorithm="HS256"
    )

    assert (await JwtLicenseValidator(jwt_secret=JWT_SECRET)(token)).is_valid is False


async def test_jwt_validator_rejects_foreign_signature() -> None:
    token = jwt.encode({"sub": "u1", "tier": "pro"}, JWT_SECRET + "-other", algorithm="HS256")

    assert (await JwtLicenseValidator(jwt_secret=JWT_SECRET)(token)).is_valid is False


async def test_http_validator_valid_license() -> None:
    """Test that the authority's answer is parsed and the request is well-formed."""
    # Arrange
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"isValid": True, "tier": "pro", "quotaLimit": 2000})

    validator = make_http_validator(handler)

    # Act
    result = await validator("token-1")

    # Assert
    assert result.is_valid is True
    assert result.tier == "pro"
    assert result.quota_limit == 2000
    assert str(requests[0].url) == LICENSE_URL
    body: Dict[str, Any] = json.loads(requests[0].content)
    assert body == {"token": "token-1", "clientId": "client-1"}


async def test_http_validator_maps_sku() -> None:
    validator = make_http_validator(
        lambda request: httpx.Response(200, json={"isValid": True, "skuId": "SmartTerminal.Pro"})
    )

    assert (await validator("token-1")).tier == "pro"


async def test_http_validator_invalid_answer() -> None:
    validator = make_http_validator(
        lambda request: httpx.Response(200, json={"isValid": False})
    )

    assert (await validator("token-1")).is_valid is False


async def test_http_validator_rejected_status() -> None:
    validator = make_http_validator(lambda request: httpx.Response(401))

    assert (await validator("token-1")).is_valid is False


async def test_http_validator_server_error_is_unavailable() -> None:
    validator = make_http_validator(lambda request: httpx.Response(503, text="maintenance"))

    with pytest.raises(LicenseValidationUnavailable):
        await validator("token-1")


async def test_http_validator_connection_error_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(LicenseValidationUnavailable):
        await make_http_validator(handler)("token-1")


async def test_http_validator_caches_answers() -> None:
    # Arrange
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(200, json={"isValid": True, "tier": "basic"})

    validator = make_http_validator(handler)

    # Act
    await validator("token-1")
    await validator("token-1")
    await validator("token-2")

    # Assert
    assert calls["count"] == 2


async def test_http_validator_without_cache() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(200, json={"isValid": True, "tier": "basic"})

    validator = make_http_validator(handler, cache_ttl=0)
    await validator("token-1")
    await validator("token-1")

    assert calls["count"] == 2
