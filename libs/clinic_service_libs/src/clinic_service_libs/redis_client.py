"""
Redis client wrapper for clinic services.

Covers the operations behind :class:`RedisDistributedLock`: atomic SET NX with
a millisecond expiry, plus Lua scripts for token-checked release. Lifecycle
follows KafkaBus: ``start()`` pings, ``stop()`` closes the pool.
"""

from __future__ import annotations

import os
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import NoScriptError

from clinic_service_libs.logging_utils import create_service_logger
from clinic_service_libs.protocols import RedisClientProtocol

logger = create_service_logger("redis-client")

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379")


class RedisClient(RedisClientProtocol):
    def __init__(self, *, client_id: str, redis_url: str = REDIS_URL):
        self.redis_url = redis_url
        self.client_id = client_id
        self.client = aioredis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        self._started = False
        # sha -> body, so scripts can be reloaded after a Redis restart
        self._scripts: dict[str, str] = {}

    async def start(self) -> None:
        if self._started:
            return
        try:
            await self.client.ping()
        except RedisConnectionError as e:
            logger.error(f"Redis client '{self.client_id}' failed to connect: {e}")
            raise
        self._started = True
        logger.info(f"Redis client '{self.client_id}' connected to {self.redis_url}")

    async def stop(self) -> None:
        if not self._started:
            return
        try:
            await self.client.aclose()
            logger.info(f"Redis client '{self.client_id}' disconnected")
        except Exception as e:
            logger.error(f"Error stopping Redis client '{self.client_id}': {e}", exc_info=True)
        finally:
            self._started = False

    async def _ensure_started(self) -> None:
        if not self._started:
            logger.warning(f"Redis client '{self.client_id}' not started. Attempting to start.")
            await self.start()

    async def set_if_not_exists(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
        ttl_milliseconds: int | None = None,
    ) -> bool:
        """
        Atomic SET NX. ``ttl_milliseconds`` wins over ``ttl_seconds``.

        Returns:
            True if the key was set, False if it already existed
        """
        await self._ensure_started()
        if ttl_milliseconds is not None:
            result = await self.client.set(key, value, px=ttl_milliseconds, nx=True)
        else:
            result = await self.client.set(key, value, ex=ttl_seconds, nx=True)
        logger.debug(f"SET NX '{key}' by '{self.client_id}': {'set' if result else 'exists'}")
        return bool(result)

    async def register_script(self, script_body: str) -> str:
        """Load a Lua script and return its SHA1."""
        await self._ensure_started()
        sha = str(await self.client.script_load(script_body))
        self._scripts[sha] = script_body
        return sha

    async def execute_script(self, sha: str, keys: list[str], args: list[Any]) -> Any:
        """Run a loaded script, reloading it once if Redis lost its script cache."""
        await self._ensure_started()
        try:
            return await self.client.evalsha(sha, len(keys), *keys, *args)
        except NoScriptError:
            body = self._scripts.get(sha)
            if body is None:
                raise
            logger.warning(f"Script {sha} missing on Redis, reloading")
            await self.client.script_load(body)
            return await self.client.evalsha(sha, len(keys), *keys, *args)
