from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Tuple

import pytest
from aiokafka import ConsumerRecord


class FakeRedisClient:
    """In-memory Redis stand-in for lock tests with call capture and toggled failures."""

    def __init__(self) -> None:
        self.keys: Dict[str, str] = {}
        self.ttls_ms: Dict[str, int] = {}
        self.set_calls: List[Tuple[str, str, int | None]] = []
        self.script_calls: List[Tuple[str, List[str], List[Any]]] = []
        self._scripts: Dict[str, str] = {}

        self.should_fail_set = False
        self.should_fail_script = False

    async def set_if_not_exists(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
        ttl_milliseconds: int | None = None,
    ) -> bool:
        self.set_calls.append((key, value, ttl_milliseconds))
        if self.should_fail_set:
            raise RuntimeError("Fake Redis SET failure")
        if key in self.keys:
            return False
        self.keys[key] = value
        if ttl_milliseconds is not None:
            self.ttls_ms[key] = ttl_milliseconds
        return True

    def _delete(self, key: str) -> int:
        self.ttls_ms.pop(key, None)
        return 1 if self.keys.pop(key, None) is not None else 0

    async def register_script(self, script_body: str) -> str:
        sha = "sha-shorten" if "PEXPIRE" in script_body else "sha-release"
        self._scripts[sha] = script_body
        return sha

    async def execute_script(self, sha: str, keys: list[str], args: list[Any]) -> Any:
        self.script_calls.append((sha, keys, args))
        if self.should_fail_script:
            raise RuntimeError("Fake Redis EVALSHA failure")
        key, token = keys[0], args[0]
        if self.keys.get(key) != token:
            return 0
        if sha == "sha-shorten":
            self.ttls_ms[key] = int(args[1])
            return 1
        return self._delete(key)

    def expire(self, key: str) -> None:
        """Simulate the key's TTL running out."""
        self.keys.pop(key, None)
        self.ttls_ms.pop(key, None)


@pytest.fixture
def fake_redis() -> FakeRedisClient:
    return FakeRedisClient()


@pytest.fixture
def make_record() -> Callable[..., ConsumerRecord]:
    """Build aiokafka ConsumerRecords for handler tests."""

    def _make(
        value: Dict[str, Any] | bytes | None = None,
        *,
        topic: str = "appointment-events",
        partition: int = 0,
        offset: int = 0,
        key: bytes | None = b"appointment-1",
        headers: List[Tuple[str, bytes]] | None = None,
    ) -> ConsumerRecord:
        raw = value if isinstance(value, bytes) or value is None else json.dumps(value).encode()
        return ConsumerRecord(
            topic=topic,
            partition=partition,
            offset=offset,
            timestamp=0,
            timestamp_type=0,
            key=key,
            value=raw,
            checksum=None,
            serialized_key_size=len(key) if key else 0,
            serialized_value_size=len(raw) if raw else 0,
            headers=tuple(headers or ()),
        )

    return _make
