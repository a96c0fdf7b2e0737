"""
Status store interface.

StatusStore owns record persistence, the recency index used for
listing, the kill list, uuid generation and the TTL policy. Concrete
stores implement the storage primitives; merging, listing and bulk
clears are shared here.
"""

from __future__ import annotations

import logging
import time
import uuid as uuid_lib
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Callable, Iterable

from ..types import JobStatus, StatusPatch, StatusRecord, merge_patches


logger = logging.getLogger(__name__)

Mutator = Callable[[StatusRecord], StatusRecord]


@dataclass
class StatusFilter:
    """Filter and page criteria for listing records."""
    status: JobStatus | None = None
    name: str | None = None  # substring match
    page: int = 1
    per_page: int = 50

    def __post_init__(self):
        if self.status is not None and not isinstance(self.status, JobStatus):
            self.status = JobStatus(self.status)
        if self.page < 1:
            raise ValueError("page must be at least 1")
        if self.per_page < 1:
            raise ValueError("per_page must be at least 1")

    @property
    def is_filtered(self) -> bool:
        return self.status is not None or bool(self.name)

    @property
    def start(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def end(self) -> int:
        return self.start + self.per_page - 1

    def matches(self, record: StatusRecord) -> bool:
        """Check if a record matches this filter."""
        if self.status is not None and record.status is not self.status:
            return False
        if self.name and self.name not in (record.name or ""):
            return False
        return True


class StatusStore(ABC):
    """Abstract interface for status persistence.

    Implementations must tolerate concurrent use from many jobs. Only
    ``update`` has a cross-call atomicity requirement; every other write
    is a single-key overwrite.
    """

    def __init__(
        self,
        expire_in: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.expire_in = expire_in
        self._clock = clock

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def get(self, uuid: str) -> StatusRecord | None:
        """Get a record by uuid. Expired and unknown uuids both return None."""
        ...

    @abstractmethod
    async def get_many(self, uuids: Iterable[str]) -> list[StatusRecord]:
        """Get records in the given order, skipping missing ones."""
        ...

    @abstractmethod
    async def _write(self, record: StatusRecord) -> None:
        """Overwrite a record and restart its TTL."""
        ...

    @abstractmethod
    async def update(self, uuid: str, mutator: Mutator) -> StatusRecord | None:
        """Atomically read, transform and write back a record.

        ``mutator`` must be pure: it may run more than once when a
        concurrent writer wins the race. Returns the written record, or
        None if the uuid does not exist.
        """
        ...

    @abstractmethod
    async def _delete(self, uuid: str) -> None:
        """Delete a record together with its index and kill-list entries."""
        ...

    @abstractmethod
    async def _index_add(self, uuid: str, score: float) -> None:
        ...

    @abstractmethod
    async def _index_remove(self, *uuids: str) -> None:
        ...

    @abstractmethod
    async def _index_older_than(self, score: float) -> list[str]:
        ...

    @abstractmethod
    async def status_ids(self, start: int | None = None, end: int | None = None) -> list[str]:
        """Uuids from the listing index, most recent first.

        ``start`` and ``end`` are inclusive positions; omit both for all.
        """
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of uuids in the listing index."""
        ...

    # Kill list

    @abstractmethod
    async def kill(self, uuid: str) -> None:
        """Put a uuid on the kill list (idempotent)."""
        ...

    @abstractmethod
    async def should_kill(self, uuid: str | None) -> bool:
        ...

    @abstractmethod
    async def clear_kill(self, uuid: str) -> None:
        ...

    @abstractmethod
    async def kill_ids(self) -> set[str]:
        ...

    # ------------------------------------------------------------------
    # Shared operations
    # ------------------------------------------------------------------

    @staticmethod
    def generate_uuid() -> str:
        return uuid_lib.uuid4().hex

    def now(self) -> int:
        return int(self._clock())

    async def create(self, uuid: str, *patches: StatusPatch) -> StatusRecord:
        """Write a new queued record and add it to the listing index."""
        if self.expire_in:
            await self._prune_index()
        record = merge_patches(StatusRecord(uuid=uuid, time=self.now()), *patches)
        record = replace(record, status=JobStatus.QUEUED, time=self.now())
        await self._write(record)
        await self._index_add(uuid, self._clock())
        return record

    async def set(self, uuid: str, *patches: StatusPatch) -> StatusRecord:
        """Merge ``patches`` into the current record and write it.

        Last write wins between concurrent callers; use ``update`` when
        the new value depends on the current one.
        """
        current = await self.get(uuid) or StatusRecord(uuid=uuid, time=self.now())
        record = self._apply(current, merge_patches(current, *patches))
        await self._write(record)
        return record

    async def remove(self, uuid: str) -> None:
        await self._delete(uuid)

    async def list(self, filter: StatusFilter | None = None) -> list[StatusRecord]:
        """Page of records, most recent first."""
        filter = filter or StatusFilter()

        if not filter.is_filtered:
            ids = await self.status_ids(filter.start, filter.end)
            return await self._get_live(ids)

        records = await self._get_live(await self.status_ids())
        matching = [r for r in records if filter.matches(r)]
        return matching[filter.start:filter.end + 1]

    async def kill_all(self, start: int | None = None, end: int | None = None) -> list[str]:
        """Mark every killable record in the index range for kill."""
        killed = []
        for record in await self.get_many(await self.status_ids(start, end)):
            if record.killable:
                await self.kill(record.uuid)
                killed.append(record.uuid)
        return killed

    async def clear(self, start: int | None = None, end: int | None = None) -> int:
        """Remove every record in the index range. Returns how many."""
        ids = await self.status_ids(start, end)
        for uuid in ids:
            await self.remove(uuid)
        return len(ids)

    async def clear_completed(self) -> int:
        return await self._clear_status(JobStatus.COMPLETED)

    async def clear_failed(self) -> int:
        return await self._clear_status(JobStatus.FAILED)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply(self, current: StatusRecord, updated: StatusRecord) -> StatusRecord:
        """Stamp ``time`` and refuse status changes the state machine forbids."""
        if not current.can_transition_to(updated.status):
            logger.warning(
                "Ignoring status change %s -> %s for %s",
                current.status.value, updated.status.value, current.uuid,
            )
            updated = replace(updated, status=current.status)
        return replace(updated, uuid=current.uuid, time=self.now())

    async def _clear_status(self, status: JobStatus) -> int:
        cleared = 0
        for record in await self.get_many(await self.status_ids()):
            if record.status is status:
                await self.remove(record.uuid)
                cleared += 1
        return cleared

    async def _get_live(self, ids: list[str]) -> list[StatusRecord]:
        """Load ``ids`` and drop index entries whose records have expired."""
        records = await self.get_many(ids)
        found = {r.uuid for r in records}
        expired = [uuid for uuid in ids if uuid not in found]
        if expired:
            await self._index_remove(*expired)
        return records

    async def _prune_index(self) -> None:
        cutoff = self._clock() - self.expire_in
        candidates = await self._index_older_than(cutoff)
        if not candidates:
            return
        live = {r.uuid for r in await self.get_many(candidates)}
        stale = [uuid for uuid in candidates if uuid not in live]
        if stale:
            await self._index_remove(*stale)


__all__ = [
    "StatusStore",
    "StatusFilter",
    "Mutator",
]
