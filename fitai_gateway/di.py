from typing import Literal

import redis.asyncio as redis
from dependency_injector import containers, providers

from fitai_gateway.gateway import AIGateway
from fitai_gateway.service.model_client import ModelClient
from fitai_gateway.service.quota_ledger.ledger import QuotaLedger
from fitai_gateway.service.quota_ledger.memory_quota_store import InMemoryQuotaStore
from fitai_gateway.service.quota_ledger.redis_quota_store import RedisQuotaStore
from fitai_gateway.service.rate_limiter import SlidingWindowRateLimiter
from fitai_gateway.service.response_extractor import ResponseExtractor
from fitai_gateway.strategy.action.router import ActionRouter
from fitai_gateway.strategy.identity.base import NullIdentityVerifier
from fitai_gateway.strategy.identity.bearer_token import BearerTokenExtractor
from fitai_gateway.strategy.identity.jwt_verifier import JwtIdentityVerifier


class AppConfiguration(providers.Configuration):
    def identity_mode(self) -> Literal["certs", "secret", "none"]:
        """Pick the identity verifier from the configured key material."""
        if self.auth.certs_url():
            return "certs"
        if self.auth.jwt_secret():
            return "secret"
        return "none"

    def quota_backend(self) -> Literal["memory", "redis"]:
        """Return the configured quota store backend."""
        return "redis" if self.quota.backend() == "redis" else "memory"


class Container(containers.DeclarativeContainer):
    """Dependency Injection Container for the FitAI gateway."""

    config = AppConfiguration()

    bearer_token_extractor: providers.Singleton = providers.Singleton(
        BearerTokenExtractor
    )

    identity_verifier: providers.Selector = providers.Selector(
        config.identity_mode,
        certs=providers.Singleton(
            JwtIdentityVerifier,
            certs_url=config.auth.certs_url,
            audience=config.auth.audience,
            issuer=config.auth.issuer,
            certs_ttl=config.auth.certs_ttl.as_(lambda x: int(x) if x else 3600),
        ),
        secret=providers.Singleton(
            JwtIdentityVerifier,
            secret=config.auth.jwt_secret,
            audience=config.auth.audience,
            issuer=config.auth.issuer,
        ),
        none=providers.Singleton(NullIdentityVerifier),
    )

    redis_client: providers.Singleton = providers.Singleton(
        redis.Redis.from_url,
        config.quota.redis_url,
        decode_responses=True,
    )

    quota_store: providers.Selector = providers.Selector(
        config.quota_backend,
        memory=providers.Singleton(InMemoryQuotaStore),
        redis=providers.Singleton(RedisQuotaStore, redis_client=redis_client),
    )

    quota_ledger: providers.Singleton = providers.Singleton(
        QuotaLedger,
        store=quota_store,
        free_tier_limits=config.quota.free_tier_limits,
    )

    rate_limiter: providers.Singleton = providers.Singleton(
        SlidingWindowRateLimiter.from_config,
        policies=config.rate_limits,
        default_policy=config.default_rate_limit,
    )

    action_router: providers.Singleton = providers.Singleton(ActionRouter)

    response_extractor: providers.Singleton = providers.Singleton(ResponseExtractor)

    default_model_client: providers.Singleton = providers.Singleton(
        ModelClient,
        base_url=config.providers.default.base_url,
        api_key=config.providers.default.api_key,
        model=config.providers.default.model,
        temperature=config.providers.default.temperature,
        timeout=config.providers.default.timeout,
        max_tokens=config.providers.default.max_tokens,
        headers=config.providers.default.headers,
    )

    vision_model_client: providers.Singleton = providers.Singleton(
        ModelClient,
        base_url=config.providers.vision.base_url,
        api_key=config.providers.vision.api_key,
        model=config.providers.vision.model,
        temperature=config.providers.vision.temperature,
        timeout=config.providers.vision.timeout,
        max_tokens=config.providers.vision.max_tokens,
        headers=config.providers.vision.headers,
    )

    model_clients: providers.Dict = providers.Dict(
        default=default_model_client,
        vision=vision_model_client,
    )

    gateway: providers.Singleton = providers.Singleton(
        AIGateway,
        identity_verifier=identity_verifier,
        rate_limiter=rate_limiter,
        quota_ledger=quota_ledger,
        router=action_router,
        model_clients=model_clients,
        response_extractor=response_extractor,
    )
