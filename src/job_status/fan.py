"""
Parent/child fan-out and fan-in.

A parent declares its child count with ``init_parent`` before enqueuing
any child. Each finished child atomically increments the parent's
``num``; the one increment that makes ``num == total`` finalizes the
parent. Because the increment and the comparison happen inside a single
atomic store update, exactly one child sees the final count no matter
how many finish at once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Type

from .errors import CoordinationFailure, InvalidProgress, ParentNotInitialized
from .job import KilledHook, SuccessHook
from .kill import KillSwitch
from .logging import StructuredLogger, TransitionLog, get_logger
from .store import StatusStore
from .types import PARENT_UUID_KEY, JobStatus, StatusRecord, merge_patches

if TYPE_CHECKING:
    from .job import StatusedJob


FAN_OUT_KEY = "fan_out"
PARENT_ATTEMPT_KEY = "_parent_attempt"

Enqueue = Callable[[Any, dict], Awaitable["str | None"]]


class FanCoordinator:
    """Fan-out registration and race-free fan-in detection."""

    def __init__(
        self,
        store: StatusStore,
        kill_switch: KillSwitch,
        enqueue: Enqueue,
        logger: StructuredLogger | None = None,
    ):
        self._store = store
        self._kill_switch = kill_switch
        self._enqueue = enqueue
        self._logger = logger or get_logger()

    async def init_parent(self, parent_uuid: str, total: int) -> StatusRecord:
        """Fix the parent's child count and reset its counter.

        The count belongs to the parent's current attempt: a retried parent
        starts again from zero, while repeated calls within one attempt
        keep the count.

        Raises:
            InvalidProgress: If ``total`` is not positive, or a different
                total was already fixed for this attempt.
        """
        if not isinstance(total, int) or total <= 0:
            raise InvalidProgress(
                f"Called init_parent() with total={total}",
                total=total,
                uuid=parent_uuid,
            )

        current = await self._store.get(parent_uuid)
        attempt = current.retry_num if current is not None else 0
        if current is not None and current.get(FAN_OUT_KEY) == attempt:
            if current.total != total:
                raise InvalidProgress(
                    f"Parent total is already fixed at {current.total}",
                    total=total,
                    uuid=parent_uuid,
                )
            return current

        return await self._store.set(parent_uuid, {
            "status": JobStatus.WORKING,
            "num": 0,
            "total": total,
            "message": f"Queuing {total} subjobs",
            FAN_OUT_KEY: attempt,
        })

    async def enqueue_child(
        self,
        parent_uuid: str,
        job_cls: Type[StatusedJob],
        options: dict[str, Any],
    ) -> str | None:
        """Create and enqueue a child of ``parent_uuid``.

        Raises:
            ParentNotInitialized: If ``init_parent`` has not run for the
                parent's current attempt
        """
        parent = await self._store.get(parent_uuid)
        if parent is None or parent.get(FAN_OUT_KEY) != parent.retry_num:
            raise ParentNotInitialized(uuid=parent_uuid)
        return await self._enqueue(job_cls, {
            **options,
            PARENT_UUID_KEY: parent_uuid,
            PARENT_ATTEMPT_KEY: parent.retry_num,
        })

    async def report_child_done(
        self,
        parent_uuid: str,
        child_uuid: str,
        success: bool,
        job: StatusedJob,
    ) -> bool:
        """Count a finished child into its parent.

        Removes the child's record when ``success``. Children enqueued by an
        earlier attempt of the parent are not counted. Returns True if this
        call observed the last child and finalized the parent.

        Raises:
            CoordinationFailure: If the parent's success hook raised.
        """
        attempt = job.options.get(PARENT_ATTEMPT_KEY)
        advanced = False
        stale = False

        def increment(parent: StatusRecord) -> StatusRecord:
            nonlocal advanced, stale
            total = parent.total or 0
            num = parent.num or 0
            stale = attempt is not None and attempt != parent.get(FAN_OUT_KEY)
            advanced = num < total and not stale
            if not advanced:
                return parent
            num += 1
            if not parent.is_working:
                return merge_patches(parent, {"num": num})
            return merge_patches(parent, {"num": num, "message": f"Working {num}/{total}"})

        parent = await self._store.update(parent_uuid, increment)
        if success:
            await self._store.remove(child_uuid)

        if parent is None:
            self._logger.warning("Parent record missing for finished child", parent_uuid=parent_uuid)
            return False
        if stale:
            self._logger.info(
                "Child belongs to an earlier parent attempt, not counting it",
                parent_uuid=parent_uuid,
                child_uuid=child_uuid,
                attempt=attempt,
            )
            return False
        if not advanced or parent.num != parent.total:
            return False

        return await self._finalize(parent, job.for_parent(parent))

    async def _finalize(self, parent: StatusRecord, parent_job: StatusedJob) -> bool:
        if not parent.is_working:
            self._logger.warning(
                "Parent is not working, leaving it as is",
                parent_uuid=parent.uuid,
                status=parent.status.value,
            )
            return False

        if await self._kill_switch.is_marked(parent.uuid):
            record = await self._store.set(parent.uuid, {"status": JobStatus.KILLED})
            await self._kill_switch.clear(parent.uuid)
            self._log(parent, record)
            if isinstance(parent_job, KilledHook):
                await parent_job.on_killed()
            return True

        try:
            if isinstance(parent_job, SuccessHook):
                await parent_job.on_success()
        except Exception as e:
            record = await self._store.set(parent.uuid, {
                "status": JobStatus.FAILED,
                "message": f"on_success failed with {type(e).__name__}/{e}",
            })
            self._log(parent, record)
            raise CoordinationFailure(
                record.message,
                uuid=parent.uuid,
                parent_uuid=parent.uuid,
                cause=e,
            ) from e

        record = await self._store.set(parent.uuid, {
            "status": JobStatus.COMPLETED,
            "message": f"Finished in {parent.num} jobs",
        })
        self._log(parent, record)
        return True

    def _log(self, before: StatusRecord, after: StatusRecord) -> None:
        self._logger.log_transition(TransitionLog(
            uuid=after.uuid,
            status=after.status.value,
            previous_status=before.status.value,
            job=after.name,
            retry_num=after.retry_num,
            message=after.message,
        ))


__all__ = [
    "FanCoordinator",
    "FAN_OUT_KEY",
    "PARENT_ATTEMPT_KEY",
]
