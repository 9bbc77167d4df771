from typing import Any, Callable, Dict, Literal, Optional

import redis.asyncio as redis
from dependency_injector import containers, providers

from llm_quota_gate.service.completion_forwarder import CompletionForwarder
from llm_quota_gate.service.license_validator.http_license_validator import (
    HttpLicenseValidator,
)
from llm_quota_gate.service.license_validator.jwt_license_validator import (
    JwtLicenseValidator,
)
from llm_quota_gate.service.license_validator.static_license_validator import (
    StaticLicenseValidator,
)
from llm_quota_gate.service.quota_ledger import QuotaLedger, TierLimits
from llm_quota_gate.service.quota_store.memory_quota_store import MemoryQuotaStore
from llm_quota_gate.service.quota_store.redis_quota_store import RedisQuotaStore
from llm_quota_gate.service.secret_provider.caching_secret_provider import (
    CachingSecretProvider,
)
from llm_quota_gate.service.secret_provider.static_secret_provider import (
    StaticSecretProvider,
)
from llm_quota_gate.service.secret_provider.vault_secret_provider import (
    VaultSecretProvider,
)
from llm_quota_gate.strategy.extractor.header import HeaderExtractor


def _or(default: Any) -> Callable[[Any], Any]:
    """Replace a missing configuration value with a default."""
    return lambda value: default if value is None or value == "" else value


def _int_or(default: int) -> Callable[[Any], int]:
    return lambda value: default if value is None or value == "" else int(value)


def _single_secret(name: str, value: Optional[str]) -> Dict[str, Optional[str]]:
    return {name: value}


class AppConfiguration(providers.Configuration):
    def quota_store_backend(self) -> Literal["memory", "redis"]:
        """Storage backend of the usage counters."""
        return "redis" if self.quota_store.backend() == "redis" else "memory"

    def license_validator_kind(self) -> Literal["static", "http", "jwt"]:
        """License validator variant, the static one unless configured otherwise."""
        kind = self.license.validator()
        if kind == "http" and self.license.url() is not None:
            return "http"
        if kind == "jwt" and self.license.jwt_secret() is not None:
            return "jwt"
        if kind not in (None, "", "static"):
            raise ValueError(f"License validator '{kind}' is not configured")
        return "static"

    def secret_provider_kind(self) -> Literal["static", "vault"]:
        """Where the upstream credential is read from."""
        if (
            self.secrets.provider() == "vault"
            and self.vault.url() is not None
            and self.vault.token() is not None
        ):
            return "vault"
        return "static"

    def is_secret_cache_enabled(self) -> Literal["true", "false"]:
        """Check if fetched secrets are kept for a while."""
        ttl = self.secrets.cache_ttl()
        return "true" if ttl is not None and int(ttl) > 0 else "false"


class Container(containers.DeclarativeContainer):
    """Dependency Injection Container for the LLM Quota Gate."""

    config = AppConfiguration()

    tier_limits: providers.Singleton = providers.Singleton(
        TierLimits,
        limits=config.tiers,
        default_tier=config.default_tier.as_(_or("free")),
    )

    redis_client: providers.Singleton = providers.Singleton(
        redis.Redis.from_url,
        config.redis.url.as_(_or("redis://localhost:6379/0")),
    )

    quota_store: providers.Selector = providers.Selector(
        config.quota_store_backend,
        memory=providers.Singleton(MemoryQuotaStore),
        redis=providers.Singleton(
            RedisQuotaStore,
            redis_client=redis_client,
            key_prefix=config.redis.key_prefix.as_(_or("usage")),
        ),
    )

    quota_ledger: providers.Singleton = providers.Singleton(
        QuotaLedger,
        store=quota_store,
        max_attempts=config.quota.max_attempts.as_(_int_or(3)),
    )

    license_validator: providers.Selector = providers.Selector(
        config.license_validator_kind,
        static=providers.Singleton(
            StaticLicenseValidator,
            tier=config.license.static_tier.as_(_or("basic")),
        ),
        http=providers.Singleton(
            HttpLicenseValidator,
            url=config.license.url,
            client_id=config.license.client_id,
            timeout=config.license.timeout.as_(_int_or(10)),
            cache_ttl=config.license.cache_ttl.as_(_int_or(300)),
        ),
        jwt=providers.Singleton(
            JwtLicenseValidator,
            jwt_secret=config.license.jwt_secret,
            audience=config.license.jwt_audience.as_(_or(None)),
        ),
    )

    secret_backend: providers.Selector = providers.Selector(
        config.secret_provider_kind,
        static=providers.Singleton(
            StaticSecretProvider,
            secrets=providers.Callable(
                _single_secret,
                config.secrets.name.as_(_or("AnthropicKey")),
                config.secrets.static_value,
            ),
        ),
        vault=providers.Singleton(
            VaultSecretProvider,
            url=config.vault.url,
            token=config.vault.token,
            mount=config.vault.mount.as_(_or("secret")),
        ),
    )

    secret_provider: providers.Selector = providers.Selector(
        config.is_secret_cache_enabled,
        true=providers.Singleton(
            CachingSecretProvider,
            provider=secret_backend,
            ttl=config.secrets.cache_ttl.as_(_int_or(300)),
        ),
        false=secret_backend,
    )

    completion_forwarder: providers.Singleton = providers.Singleton(
        CompletionForwarder,
        url=config.upstream.url.as_(_or("https://api.anthropic.com/v1/messages")),
        api_version=config.upstream.api_version.as_(_or("2023-06-01")),
        timeout=config.upstream.timeout.as_(_int_or(120)),
    )

    extractors: providers.Aggregate = providers.Aggregate(
        {
            "license-token": providers.Singleton(
                HeaderExtractor,
                header_name=config.headers.license_token.as_(_or("x-store-token")),
            ),
            "user-id": providers.Singleton(
                HeaderExtractor,
                header_name=config.headers.user_id.as_(_or("x-user-id")),
            ),
        }
    )
