"""Rate limiting dependency for FastAPI routes.

This module wires a distributed Throttle into the HTTP layer. FastAPI is
an optional dependency: install `callgate[http]`.

Design goals:
- Minimal coupling: routes depend on a dependency function only.
- Shared budget: every worker using the same lock backend counts against
  one rolling window per requester.
- Safe defaults: configured from settings, can be disabled entirely.

Rate limiting strategy:
- Rolling-window limit per API key.
- If the API key is missing, fall back to the client IP.
"""

from __future__ import annotations

import logging
from typing import Annotated, Awaitable, Callable

from fastapi import Header, HTTPException, Request, status

from callgate.adapters.lock.base import AbstractDistributedLock
from callgate.core.config import settings
from callgate.core.logging import hash_key
from callgate.schemas.throttle import ThrottleConfiguration
from callgate.services.throttle import Throttle

logger = logging.getLogger(__name__)


def default_rate_limit_config() -> ThrottleConfiguration:
    """Build the throttle configuration from settings."""

    return ThrottleConfiguration(
        executions=settings.gate.rate_limit_executions,
        interval_ms=settings.gate.rate_limit_interval_ms,
    )


def _build_rate_limit_key(request: Request, x_api_key: str | None) -> str:
    """Build the throttle key for the current request.

    Args:
        request: FastAPI request.
        x_api_key: API key value from the X-API-Key header.

    Returns:
        str: Namespaced throttle key.
    """

    if x_api_key:
        return f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def build_rate_limit_dependency(
    lock: AbstractDistributedLock,
    config: ThrottleConfiguration | None = None,
    *,
    namespace: str = "http",
) -> Callable[..., Awaitable[None]]:
    """Create a FastAPI dependency enforcing a rolling-window rate limit.

    Args:
        lock: Lock backend shared by every worker.
        config: Limit to enforce; defaults to settings.gate.rate_limit_*.
        namespace: Prefix separating these throttle keys from other users of the lock.

    Returns:
        Async dependency raising HTTP 429 when the requester is over budget.

    Raises:
        InvalidConfigurationError: If the configuration is invalid.
    """

    cfg = config or default_rate_limit_config()
    cfg.validate()

    async def enforce_rate_limit(
        request: Request,
        x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    ) -> None:
        if not settings.gate.rate_limit_enabled:
            return

        key = _build_rate_limit_key(request, x_api_key)
        throttle = Throttle(lock, cfg, f"{namespace}:{key}")
        key_type = "api_key" if x_api_key else "ip"

        if await throttle.acquire():
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_type": key_type,
                "key_hash": hash_key(key),
                "limit": cfg.executions,
                "window_ms": cfg.interval_ms,
            },
        )

        headers: dict[str, str] = {}
        if settings.gate.rate_limit_include_headers:
            headers["X-RateLimit-Limit"] = str(cfg.executions)
            headers["X-RateLimit-Window-ms"] = str(cfg.interval_ms)

        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Try again later.",
            headers=headers or None,
        )

    return enforce_rate_limit
