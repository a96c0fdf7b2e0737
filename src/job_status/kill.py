"""Kill switch for cooperative job cancellation.

A uuid is marked on the store's kill list by anyone (usually a
management UI); the running job only notices at its next progress
report. Marking a uuid that is not running has no effect until a job
with that uuid reports progress.
"""

from __future__ import annotations

from .errors import Cancelled
from .store import StatusStore


class KillSwitch:
    """Per-uuid cancellation flag backed by the store's kill list.

    Usage:
        switch = KillSwitch(store)

        # management side
        await switch.mark(uuid)

        # job side, at every progress report
        await switch.check(uuid)
    """

    def __init__(self, store: StatusStore):
        self._store = store

    async def mark(self, uuid: str) -> None:
        """Request cancellation (idempotent)."""
        await self._store.kill(uuid)

    async def is_marked(self, uuid: str | None) -> bool:
        return await self._store.should_kill(uuid)

    async def clear(self, uuid: str) -> None:
        await self._store.clear_kill(uuid)

    async def check(self, uuid: str) -> None:
        """Raise Cancelled if ``uuid`` is marked.

        This is the poll point progress reports go through.

        Raises:
            Cancelled: If cancellation was requested.
        """
        if await self.is_marked(uuid):
            raise Cancelled(uuid)


__all__ = ["KillSwitch"]
