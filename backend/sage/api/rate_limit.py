"""Rate Limit Dependency — per-route admission control and X-RateLimit headers.

Invariants:
    - Every guarded response carries X-RateLimit-Limit and X-RateLimit-Remaining
    - A denied request never reaches the route body: RateLimitExceededError -> 429
    - Client key: authenticated user id, else first X-Forwarded-For hop, else peer IP

Design Decisions:
    - Factory returning a dependency per tier: routers declare tiers explicitly
      (general on the router, chat/auth on individual routes)
    - Headers also stored on request.state so StreamingResponse routes can copy them
      (dependency-set response headers do not reach a returned Response object)
"""

import logging

from fastapi import Depends, Request, Response

from sage.config import Settings, get_settings
from sage.core.domain_types import RateLimitTier
from sage.core.errors import ErrorContext, RateLimitExceededError
from sage.core.rate_limit import RateLimitDecision, RateLimitStore, get_client_key

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


def get_rate_limit_store(request: Request) -> RateLimitStore:
    return request.app.state.rate_limit_store


def client_key_for(request: Request) -> str:
    return get_client_key(
        request.headers.get(USER_ID_HEADER),
        request.headers.get("X-Forwarded-For"),
        request.client.host if request.client else None,
    )


def rate_limit_headers(limit: int, remaining: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(remaining),
    }


def rate_limit(tier: RateLimitTier):
    """Build a dependency enforcing `tier` for the route it guards."""

    async def dependency(
        request: Request,
        response: Response,
        store: RateLimitStore = Depends(get_rate_limit_store),
        settings: Settings = Depends(get_settings),
    ) -> RateLimitDecision:
        config = settings.rate_limit_config(tier)
        key = client_key_for(request)
        decision = store.check_rate_limit(key, tier.value, config)
        if not decision.allowed:
            logger.warning("Rate limit exceeded", extra={"client_key": key, "tier": tier.value})
            raise RateLimitExceededError(
                tier.value, config.max_requests, decision.retry_after_ms,
                ErrorContext(debug_info={"client_key": key}),
            )
        headers = rate_limit_headers(config.max_requests, decision.remaining)
        response.headers.update(headers)
        request.state.rate_limit_headers = headers
        return decision

    dependency.__name__ = f"rate_limit_{tier.value}"
    return dependency
