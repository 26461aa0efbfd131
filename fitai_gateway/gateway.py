"""Orchestration of a single AI gateway request."""

import logging
from typing import Any, Dict, Mapping, Optional

from dacite import DaciteError, from_dict

from fitai_gateway.errors import (
    ExtractionError,
    InvalidRequestError,
    ProviderError,
    QuotaError,
    RateLimitError,
)
from fitai_gateway.models import Caller, GatewayRequest
from fitai_gateway.service.model_client import ModelClient
from fitai_gateway.service.quota_ledger.ledger import QuotaLedger
from fitai_gateway.service.rate_limiter import SlidingWindowRateLimiter
from fitai_gateway.service.response_extractor import ResponseExtractor
from fitai_gateway.strategy.action.router import ActionRouter
from fitai_gateway.strategy.identity.base import IdentityVerifier

logger = logging.getLogger(__name__)


def parse_request(body: Any) -> GatewayRequest:
    """Convert a decoded JSON body into a `GatewayRequest`."""
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    try:
        return from_dict(data_class=GatewayRequest, data=body)
    except DaciteError as e:
        logger.debug("Malformed gateway request: %s", str(e))
        raise InvalidRequestError("Malformed request body") from e


class AIGateway:
    """
    Run one request through the gateway pipeline.

    Stages, in order: authenticate, rate check, quota check, dispatch, model
    call, extraction. Each stage can end the request with a `GatewayError`.
    Quota usage is only recorded once a result has been extracted.
    """

    def __init__(
        self,
        identity_verifier: IdentityVerifier,
        rate_limiter: SlidingWindowRateLimiter,
        quota_ledger: QuotaLedger,
        router: ActionRouter,
        model_clients: Mapping[str, ModelClient],
        response_extractor: ResponseExtractor,
    ):
        self.identity_verifier = identity_verifier
        self.rate_limiter = rate_limiter
        self.quota_ledger = quota_ledger
        self.router = router
        self.model_clients = dict(model_clients)
        self.response_extractor = response_extractor

    async def handle(self, credential: Optional[str], body: Any) -> Dict[str, Any]:
        """
        Process a gateway call.

        Args:
            credential: Bearer token of the caller, None when absent
            body: Decoded JSON body, expected as `{action, data}`

        Returns:
            The action-specific result object

        Raises:
            GatewayError: Any of its subclasses, mapped to an HTTP response by
                the caller
        """
        caller = Caller(user_id=await self.identity_verifier(credential))

        request = parse_request(body)
        if not request.action:
            raise InvalidRequestError("Action is required")
        action = request.action

        # 1 burst protection
        rate = self.rate_limiter.check(caller.user_id, action)
        if not rate.allowed:
            logger.info("Rate limited %s on %s", caller.user_id, action)
            raise RateLimitError(retry_after=rate.retry_after_seconds or 0)

        # 2 monthly freemium quota
        quota = await self.quota_ledger.check_quota(caller.user_id, action)
        if not quota.allowed:
            raise QuotaError(
                code=quota.reason or "", limit=quota.limit, current=quota.current
            )

        # 3 prompt building
        prepared = self.router.dispatch(action, request.data)

        # 4 model call
        client = self.model_clients.get(prepared.provider)
        if client is None:
            logger.error("No model client configured for provider %s", prepared.provider)
            raise ProviderError("The AI service is not configured.")
        raw_text = await client.complete(
            prepared.system_prompt, prepared.user_prompt, prepared.image
        )

        # 5 extraction
        extraction = self.response_extractor.extract(raw_text, action)
        if not extraction.matched or extraction.payload is None:
            raise ExtractionError(action)
        result = self.router.handler_for(action).postprocess(
            extraction.payload, prepared
        )

        # 6 usage is only recorded for fully successful calls
        await self.quota_ledger.increment_usage(caller.user_id, action)

        logger.debug("Completed %s for %s", action, caller.user_id)
        return result

    def __str__(self) -> str:
        return (
            f"AIGateway(identity_verifier={self.identity_verifier}, "
            f"providers={sorted(self.model_clients)})"
        )
