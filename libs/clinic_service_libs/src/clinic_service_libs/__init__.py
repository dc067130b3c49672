"""Shared infrastructure for clinic services."""

from .distributed_lock import LockLease, RedisDistributedLock
from .kafka_client import KafkaBus
from .kafka_error_handler import DeadLetterErrorHandler, NonRetryableRecordError
from .redis_client import RedisClient

__all__ = [
    "DeadLetterErrorHandler",
    "KafkaBus",
    "LockLease",
    "NonRetryableRecordError",
    "RedisClient",
    "RedisDistributedLock",
]
