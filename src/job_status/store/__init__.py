"""
Status stores.

- StatusStore: persistence interface (records, listing index, kill list, TTL)
- InMemoryStatusStore: single-process store for tests and local runs
- RedisStatusStore: shared store for multi-process workers
"""

from typing import Any

from .base import Mutator, StatusFilter, StatusStore
from .memory import InMemoryStatusStore
from .redis import RedisStatusStore


def store_from_config(config: Any) -> StatusStore:
    """Build the store described by a StoreConfig."""
    if config.backend == "redis":
        return RedisStatusStore.from_url(
            config.redis_url,
            key_prefix=config.key_prefix,
            expire_in=config.expire_in,
            max_update_retries=config.max_update_retries,
        )
    return InMemoryStatusStore(expire_in=config.expire_in)


__all__ = [
    "StatusStore",
    "StatusFilter",
    "Mutator",
    "InMemoryStatusStore",
    "RedisStatusStore",
    "store_from_config",
]
