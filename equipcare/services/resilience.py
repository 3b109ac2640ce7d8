from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from redis.asyncio import Redis

from equipcare.core.config import get_settings
from equipcare.services.telemetry import increment_counter


logger = logging.getLogger(__name__)

# Errors worth another attempt when no integration-specific predicate is given.
TRANSIENT_ERRORS = (TimeoutError, ConnectionError, OSError)

# One client per event loop; arq workers, the API and pytest each run their own loop.
_clients_by_loop: dict[int, Redis] = {}


async def get_coordination_redis() -> Redis | None:
    """Redis client used for cross-process run-locks, or None when unconfigured."""
    redis_url = get_settings().redis_url
    if not redis_url:
        return None
    try:
        loop_id = id(asyncio.get_running_loop())
    except RuntimeError:
        return None
    client = _clients_by_loop.get(loop_id)
    if client is not None:
        return client
    try:
        client = Redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
    except ValueError as exc:
        logger.warning("coordination redis url rejected: %s", exc)
        return None
    _clients_by_loop.clear()
    _clients_by_loop[loop_id] = client
    return client


@dataclass(frozen=True)
class RetryPolicy:
    timeout_ms: int
    max_attempts: int
    backoff_ms: int

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        settings = get_settings()
        return cls(
            timeout_ms=settings.ext_call_timeout_ms,
            max_attempts=settings.ext_retry_max_attempts,
            backoff_ms=settings.ext_retry_backoff_ms,
        )

    def delay_s(self, attempt: int) -> float:
        # Exponential in the attempt number, jittered so parallel senders spread out.
        return (self.backoff_ms / 1000.0) * (2 ** (attempt - 1)) * random.uniform(0.5, 1.5)


def is_transient(exc: Exception) -> bool:
    if isinstance(exc, TRANSIENT_ERRORS):
        return True
    status = getattr(exc, "status_code", None)
    return isinstance(status, int) and status >= 500


async def retry_async(
    func: Callable[[], Awaitable[Any]],
    *,
    integration: str,
    policy: RetryPolicy | None = None,
    retryable: Callable[[Exception], bool] = is_transient,
) -> Any:
    """Await ``func`` under a per-attempt timeout, retrying transient failures.

    The last error is re-raised unchanged once attempts run out or the error is
    not retryable; callers decide how to report it.
    """
    policy = policy or RetryPolicy.from_settings()
    attempts = max(policy.max_attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(func(), timeout=policy.timeout_ms / 1000.0)
        except Exception as exc:  # noqa: BLE001 - re-raised below unless retryable
            if attempt >= attempts or not retryable(exc):
                raise
            increment_counter(f"{integration}_retries_total")
            logger.info("retrying %s after attempt=%s error=%s", integration, attempt, exc.__class__.__name__)
            await asyncio.sleep(policy.delay_s(attempt))
