"""
In-memory status store.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Iterable

from ..types import StatusRecord
from .base import Mutator, StatusStore


class InMemoryStatusStore(StatusStore):
    """In-memory status store implementation.

    Suitable for testing and single-process deployments. Records are kept
    serialized so callers never share mutable state with the store, and
    ``update`` is atomic via asyncio.Lock.
    """

    def __init__(
        self,
        expire_in: int | None = None,
        clock: Callable[[], float] | None = None,
    ):
        super().__init__(expire_in=expire_in, clock=clock or time.time)
        self._records: dict[str, tuple[str, float | None]] = {}  # uuid -> (payload, expires_at)
        self._index: dict[str, float] = {}  # uuid -> score
        self._kill: set[str] = set()
        self._lock = asyncio.Lock()

    def _load(self, uuid: str) -> StatusRecord | None:
        entry = self._records.get(uuid)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._records[uuid]
            return None
        return StatusRecord.from_json(payload)

    def _store(self, record: StatusRecord) -> None:
        expires_at = self._clock() + self.expire_in if self.expire_in else None
        self._records[record.uuid] = (record.to_json(), expires_at)

    async def get(self, uuid: str) -> StatusRecord | None:
        return self._load(uuid)

    async def get_many(self, uuids: Iterable[str]) -> list[StatusRecord]:
        records = []
        for uuid in uuids:
            record = self._load(uuid)
            if record is not None:
                records.append(record)
        return records

    async def _write(self, record: StatusRecord) -> None:
        self._store(record)

    async def update(self, uuid: str, mutator: Mutator) -> StatusRecord | None:
        async with self._lock:
            current = self._load(uuid)
            if current is None:
                return None
            record = self._apply(current, mutator(current))
            self._store(record)
            return record

    async def _delete(self, uuid: str) -> None:
        self._records.pop(uuid, None)
        self._index.pop(uuid, None)
        self._kill.discard(uuid)

    async def _index_add(self, uuid: str, score: float) -> None:
        self._index[uuid] = score

    async def _index_remove(self, *uuids: str) -> None:
        for uuid in uuids:
            self._index.pop(uuid, None)

    async def _index_older_than(self, score: float) -> list[str]:
        return [uuid for uuid, s in self._index.items() if s < score]

    async def status_ids(self, start: int | None = None, end: int | None = None) -> list[str]:
        # ties keep the most recently indexed uuid first
        items = reversed(list(self._index.items()))
        ordered = [uuid for uuid, _ in sorted(items, key=lambda item: item[1], reverse=True)]
        if start is None and end is None:
            return ordered
        start = start or 0
        if end is None or end < 0:
            return ordered[start:]
        return ordered[start:end + 1]

    async def count(self) -> int:
        return len(self._index)

    async def kill(self, uuid: str) -> None:
        self._kill.add(uuid)

    async def should_kill(self, uuid: str | None) -> bool:
        return uuid is not None and uuid in self._kill

    async def clear_kill(self, uuid: str) -> None:
        self._kill.discard(uuid)

    async def kill_ids(self) -> set[str]:
        return set(self._kill)


__all__ = [
    "InMemoryStatusStore",
]
