"""
Redis status store.

Records are JSON strings under ``{prefix}:{uuid}`` with the store TTL
applied on every write. The listing index is a sorted set scored by
creation time and the kill list is a plain set:

    {prefix}:{uuid}       JSON record, EX expire_in
    {prefix}:_statuses    ZSET uuid -> created timestamp
    {prefix}:_kill        SET of uuids pending cancellation

Atomic updates use an optimistic transaction: WATCH the record key,
read it, apply the mutator, then MULTI/SET/EXEC. EXEC aborts if any
other client wrote the key in between and the whole read-modify-write
is retried, so concurrent updates of one record serialize.

Requires redis (async): pip install redis
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable

import redis.asyncio as redis
from redis.exceptions import WatchError

from ..errors import StoreContentionError, StoreError
from ..types import StatusRecord
from .base import Mutator, StatusStore


logger = logging.getLogger(__name__)


class RedisStatusStore(StatusStore):
    """Redis-backed status store shared by every worker process.

    Example:
        ```python
        client = redis.Redis.from_url("redis://localhost:6379/0", decode_responses=True)
        store = RedisStatusStore(client, expire_in=86400)

        uuid = store.generate_uuid()
        await store.create(uuid, {"name": "ExportJob", "options": {"id": 7}})
        await store.set(uuid, {"status": "working", "message": "exporting"})
        ```
    """

    def __init__(
        self,
        client: Any,  # redis.Redis
        key_prefix: str = "status",
        expire_in: int | None = None,
        max_update_retries: int = 50,
        clock: Callable[[], float] | None = None,
    ):
        super().__init__(expire_in=expire_in, clock=clock or time.time)
        self._client = client
        self._prefix = key_prefix
        self._max_update_retries = max_update_retries

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RedisStatusStore:
        client = redis.Redis.from_url(url, decode_responses=True)
        return cls(client, **kwargs)

    @property
    def client(self) -> Any:
        return self._client

    def _status_key(self, uuid: str) -> str:
        return f"{self._prefix}:{uuid}"

    @property
    def _set_key(self) -> str:
        return f"{self._prefix}:_statuses"

    @property
    def _kill_key(self) -> str:
        return f"{self._prefix}:_kill"

    @staticmethod
    def _decode(raw: Any) -> StatusRecord | None:
        if raw is None:
            return None
        try:
            return StatusRecord.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            raise StoreError(f"Corrupt status payload: {e}", cause=e) from e

    async def get(self, uuid: str) -> StatusRecord | None:
        return self._decode(await self._client.get(self._status_key(uuid)))

    async def get_many(self, uuids: Iterable[str]) -> list[StatusRecord]:
        uuids = list(uuids)
        if not uuids:
            return []
        raws = await self._client.mget([self._status_key(uuid) for uuid in uuids])
        return [record for record in map(self._decode, raws) if record is not None]

    async def _write(self, record: StatusRecord) -> None:
        await self._client.set(
            self._status_key(record.uuid),
            record.to_json(),
            ex=self.expire_in,
        )

    async def update(self, uuid: str, mutator: Mutator) -> StatusRecord | None:
        key = self._status_key(uuid)
        async with self._client.pipeline(transaction=True) as pipe:
            for attempt in range(1, self._max_update_retries + 1):
                try:
                    await pipe.watch(key)
                    current = self._decode(await pipe.get(key))
                    if current is None:
                        await pipe.unwatch()
                        return None
                    record = self._apply(current, mutator(current))
                    pipe.multi()
                    pipe.set(key, record.to_json(), ex=self.expire_in)
                    await pipe.execute()
                    return record
                except WatchError:
                    logger.debug("Concurrent write on %s, retrying update (attempt %d)", key, attempt)
                    continue
        raise StoreContentionError(uuid=uuid, attempts=self._max_update_retries)

    async def _delete(self, uuid: str) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(self._status_key(uuid))
            pipe.zrem(self._set_key, uuid)
            pipe.srem(self._kill_key, uuid)
            await pipe.execute()

    async def _index_add(self, uuid: str, score: float) -> None:
        await self._client.zadd(self._set_key, {uuid: score})

    async def _index_remove(self, *uuids: str) -> None:
        if uuids:
            await self._client.zrem(self._set_key, *uuids)

    async def _index_older_than(self, score: float) -> list[str]:
        return list(await self._client.zrangebyscore(self._set_key, "-inf", f"({score}"))

    async def status_ids(self, start: int | None = None, end: int | None = None) -> list[str]:
        if start is None and end is None:
            return list(await self._client.zrevrange(self._set_key, 0, -1))
        start = start or 0
        end = -1 if end is None else end
        return list(await self._client.zrevrange(self._set_key, start, end))

    async def count(self) -> int:
        return await self._client.zcard(self._set_key)

    async def kill(self, uuid: str) -> None:
        await self._client.sadd(self._kill_key, uuid)

    async def should_kill(self, uuid: str | None) -> bool:
        if uuid is None:
            return False
        return bool(await self._client.sismember(self._kill_key, uuid))

    async def clear_kill(self, uuid: str) -> None:
        await self._client.srem(self._kill_key, uuid)

    async def kill_ids(self) -> set[str]:
        return set(await self._client.smembers(self._kill_key))


__all__ = [
    "RedisStatusStore",
]
