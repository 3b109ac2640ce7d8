from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any
from uuid import uuid4

from equipcare.core.config import get_settings
from equipcare.services.resilience import get_coordination_redis


logger = logging.getLogger(__name__)

RUN_LOCK_PREFIX = "equipcare:run-lock:"

# In-process owners keyed by lock name, used when Redis is not configured.
_local_owners: dict[str, str] = {}


@dataclass(slots=True)
class RunLock:
    key: str
    token: str
    redis: Any | None
    local: bool


async def acquire_run_lock(name: str, *, ttl_s: int | None = None) -> RunLock | None:
    """Take the single-run lock for ``name`` or return None if another run holds it.

    Redis ``SET NX EX`` coordinates across processes; the TTL bounds how long a
    crashed holder can block later runs. Without Redis the lock is process-local.
    """
    key = f"{RUN_LOCK_PREFIX}{name}"
    token = uuid4().hex
    ttl = max(5, int(ttl_s if ttl_s is not None else get_settings().reminder_lock_ttl_s))
    redis = await get_coordination_redis()
    if redis is not None:
        acquired = await redis.set(key, token, nx=True, ex=ttl)
        if not acquired:
            logger.info("run lock busy key=%s", key)
            return None
        return RunLock(key=key, token=token, redis=redis, local=False)

    # Check-and-set without an await in between is atomic on the event loop.
    if key in _local_owners:
        logger.info("run lock busy key=%s", key)
        return None
    _local_owners[key] = token
    return RunLock(key=key, token=token, redis=None, local=True)


async def release_run_lock(lock: RunLock) -> None:
    # Release only if still the owner so an expired lock never clobbers a newer holder.
    if lock.local:
        if _local_owners.get(lock.key) == lock.token:
            _local_owners.pop(lock.key, None)
        return
    if lock.redis is None:
        return
    current = await lock.redis.get(lock.key)
    value = current.decode("utf-8") if isinstance(current, (bytes, bytearray)) else str(current or "")
    if value == lock.token:
        await lock.redis.delete(lock.key)
