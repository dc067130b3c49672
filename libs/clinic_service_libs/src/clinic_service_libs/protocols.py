"""
Shared protocol definitions for clinic_service_libs.

These protocols define the contracts for the shared infrastructure components
so services can depend on them and tests can substitute fakes.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

__all__ = [
    "DistributedLockProtocol",
    "KafkaPublisherProtocol",
    "RedisClientProtocol",
]

Headers = list[tuple[str, bytes]]


class KafkaPublisherProtocol(Protocol):
    """Publisher that returns only after the broker acknowledged the record."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def publish(
        self,
        topic: str,
        value: dict[str, Any] | bytes,
        key: str | bytes | None = None,
        headers: Headers | None = None,
    ) -> None:
        """
        Publish one record and wait for the acknowledgement.

        Args:
            topic: Destination topic
            value: JSON-serializable dict, or raw bytes sent unchanged
            key: Partition key, str or raw bytes; records with the same key keep
                their order
            headers: Optional record headers

        Raises:
            Exception: Any producer or broker failure, unchanged
        """
        ...


class RedisClientProtocol(Protocol):
    """Subset of Redis operations used for locking."""

    async def set_if_not_exists(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
        ttl_milliseconds: int | None = None,
    ) -> bool:
        """
        Atomic SET NX with optional expiry.

        Returns:
            True if the key was set, False if it already existed
        """
        ...

    async def register_script(self, script_body: str) -> str: ...

    async def execute_script(self, sha: str, keys: list[str], args: list[Any]) -> Any: ...


class DistributedLockProtocol(Protocol):
    """Named lock shared by every running instance of a service."""

    def hold(
        self,
        name: str,
        *,
        min_hold_seconds: float,
        max_hold_seconds: float,
    ) -> AbstractAsyncContextManager[Any | None]:
        """
        Try to take the lock for the duration of the ``async with`` block.

        Yields the lease when acquired, or None when another instance holds it.
        The lock is kept for at least ``min_hold_seconds`` and expires on its own
        after ``max_hold_seconds``.
        """
        ...
