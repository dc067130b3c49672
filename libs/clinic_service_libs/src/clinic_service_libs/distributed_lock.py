"""
Redis-backed distributed lock for periodic jobs.

Only one instance across all running copies of a service executes the guarded
block at a time. The lock has two hold times:

- ``max_hold``: the key expiry set on acquisition. A crashed or stuck holder
  loses the lock after this long. Its in-flight work is not cancelled.
- ``min_hold``: on release before this much time has passed, the key expiry is
  shortened to the remainder instead of deleting the key, so a second instance
  cannot start the same job right after a fast run.

Release is token-checked: an instance never deletes or shortens a lock that
expired and was taken by someone else in the meantime.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from clinic_service_libs.logging_utils import create_service_logger
from clinic_service_libs.protocols import DistributedLockProtocol, RedisClientProtocol

logger = create_service_logger("distributed-lock")

RELEASE_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

SHORTEN_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('PEXPIRE', KEYS[1], ARGV[2])
end
return 0
"""


@dataclass(frozen=True)
class LockLease:
    """Proof of ownership for an acquired lock."""

    name: str
    key: str
    token: str
    acquired_at: float
    min_hold_seconds: float
    max_hold_seconds: float


class RedisDistributedLock(DistributedLockProtocol):
    def __init__(
        self,
        redis_client: RedisClientProtocol,
        *,
        key_prefix: str = "clinic:lock:",
        owner: str | None = None,
    ) -> None:
        self.redis_client = redis_client
        self.key_prefix = key_prefix
        self.owner = owner or uuid.uuid4().hex
        self._release_sha: str | None = None
        self._shorten_sha: str | None = None

    def _key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    async def try_acquire(
        self,
        name: str,
        *,
        min_hold_seconds: float,
        max_hold_seconds: float,
    ) -> LockLease | None:
        """
        Attempt to take the lock without waiting.

        Returns:
            The lease when acquired, None when another holder has it
        """
        if min_hold_seconds > max_hold_seconds:
            raise ValueError("min_hold_seconds must not exceed max_hold_seconds")

        key = self._key(name)
        token = f"{self.owner}:{uuid.uuid4().hex}"
        acquired = await self.redis_client.set_if_not_exists(
            key,
            token,
            ttl_milliseconds=int(max_hold_seconds * 1000),
        )
        if not acquired:
            logger.debug(f"Lock '{name}' is held by another instance")
            return None

        logger.debug(f"Lock '{name}' acquired", token=token)
        return LockLease(
            name=name,
            key=key,
            token=token,
            acquired_at=time.monotonic(),
            min_hold_seconds=min_hold_seconds,
            max_hold_seconds=max_hold_seconds,
        )

    async def release(self, lease: LockLease) -> None:
        """Release the lock, honouring the minimum hold time."""
        elapsed = time.monotonic() - lease.acquired_at
        remaining_ms = int((lease.min_hold_seconds - elapsed) * 1000)

        if remaining_ms > 0:
            if self._shorten_sha is None:
                self._shorten_sha = await self.redis_client.register_script(SHORTEN_SCRIPT)
            result = await self.redis_client.execute_script(
                self._shorten_sha, [lease.key], [lease.token, remaining_ms]
            )
        else:
            if self._release_sha is None:
                self._release_sha = await self.redis_client.register_script(RELEASE_SCRIPT)
            result = await self.redis_client.execute_script(
                self._release_sha, [lease.key], [lease.token]
            )

        if not result:
            logger.warning(
                f"Lock '{lease.name}' was no longer owned on release; "
                f"it expired after {lease.max_hold_seconds}s",
                elapsed_seconds=round(elapsed, 3),
            )

    @asynccontextmanager
    async def hold(
        self,
        name: str,
        *,
        min_hold_seconds: float,
        max_hold_seconds: float,
    ) -> AsyncIterator[LockLease | None]:
        lease = await self.try_acquire(
            name, min_hold_seconds=min_hold_seconds, max_hold_seconds=max_hold_seconds
        )
        if lease is None:
            yield None
            return

        try:
            yield lease
        finally:
            try:
                await self.release(lease)
            except Exception as e:
                # Key expires after max_hold regardless.
                logger.error(f"Failed to release lock '{name}': {e}", exc_info=True)
