"""
Job base class and optional hook interfaces.

A job type subclasses StatusedJob and implements ``perform``. Opting into
lifecycle hooks is explicit: also subclass SuccessHook, FailureHook or
KilledHook and implement the matching coroutine.

Example:
    ```python
    class ExportJob(StatusedJob, SuccessHook):
        async def perform(self) -> None:
            rows = self.options["rows"]
            for i in range(1, rows + 1):
                await self.at(i, rows, f"Exported {i} of {rows}")
            await self.completed("Done")

        async def on_success(self) -> None:
            ...
    ```
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from .config import JobTypeConfig
from .errors import InvalidProgress, ParentNotInitialized
from .types import PARENT_UUID_KEY, JobStatus, StatusPatch, StatusRecord

if TYPE_CHECKING:
    from .fan import FanCoordinator
    from .kill import KillSwitch
    from .logging import StructuredLogger
    from .store import StatusStore


@dataclass
class JobContext:
    """Collaborators a running job reports through."""
    store: StatusStore
    kill_switch: KillSwitch
    fan: FanCoordinator
    config: JobTypeConfig
    logger: StructuredLogger


# =============================================================================
# Hook interfaces
# =============================================================================


class SuccessHook(ABC):
    """Job types with a success hook."""

    @abstractmethod
    async def on_success(self) -> None:
        """Called after the job (or, for a parent, its last child) completed."""
        ...


class FailureHook(ABC):
    """Job types with a failure hook.

    Defining it means failures are handled inside the job: the error is
    not re-raised to the dispatcher.
    """

    @abstractmethod
    async def on_failure(self, error: BaseException | str) -> None:
        """Called with the raised error, or the status message when the body failed itself."""
        ...


class KilledHook(ABC):
    """Job types with a kill hook."""

    @abstractmethod
    async def on_killed(self) -> None:
        ...


# =============================================================================
# Job base
# =============================================================================


def as_patches(messages: tuple[Any, ...]) -> list[StatusPatch]:
    """Plain strings in a status call become message patches."""
    patches: list[StatusPatch] = []
    for message in messages:
        if message is None:
            continue
        if isinstance(message, str):
            patches.append({"message": message})
        else:
            patches.append(message)
    return patches


class StatusedJob(ABC):
    """Base class for job types whose status is tracked.

    Instances are built by the runtime with the uuid and options the
    dispatcher delivered. Progress calls (``tick``, ``at``) are the
    points where a pending kill is observed.
    """

    # Display and registry name; defaults to the class name
    job_name: ClassVar[str | None] = None

    def __init__(self, uuid: str, options: dict[str, Any] | None, context: JobContext):
        self.uuid = uuid
        self.options: dict[str, Any] = dict(options or {})
        self.parent_uuid: str | None = self.options.get(PARENT_UUID_KEY)
        self.context = context
        self._is_parent = False

    @classmethod
    def type_name(cls) -> str:
        return cls.job_name or cls.__name__

    @property
    def name(self) -> str:
        if self.options:
            return f"{self.type_name()}({self.options!r})"
        return self.type_name()

    @property
    def is_child(self) -> bool:
        return self.parent_uuid is not None

    @property
    def is_parent(self) -> bool:
        return self._is_parent

    @abstractmethod
    async def perform(self) -> None:
        """The job body."""
        ...

    async def perform_child(self) -> None:
        """Body run when this instance is a child. Defaults to ``perform``."""
        await self.perform()

    def for_parent(self, record: StatusRecord) -> StatusedJob:
        """Instance of this job type standing for the parent ``record``."""
        return type(self)(record.uuid, record.options, self.context)

    # ------------------------------------------------------------------
    # Status API
    # ------------------------------------------------------------------

    async def status(self) -> StatusRecord | None:
        return await self.context.store.get(self.uuid)

    async def set_status(self, *messages: Any) -> StatusRecord:
        """Merge strings or patches, in order, into this job's record."""
        return await self.context.store.set(self.uuid, *as_patches(messages))

    async def should_kill(self) -> bool:
        """Check the kill list without raising."""
        return await self.context.kill_switch.is_marked(self.uuid)

    async def parent_should_kill(self) -> bool:
        return await self.context.kill_switch.is_marked(self.parent_uuid)

    async def tick(self, *messages: Any) -> StatusRecord:
        """Report progress without counters.

        Raises:
            Cancelled: If this job is on the kill list.
        """
        await self.context.kill_switch.check(self.uuid)
        record = await self.set_status({"status": JobStatus.WORKING}, *messages)
        if self.context.logger.log_progress:
            self.context.logger.debug("progress", num=record.num, total=record.total)
        return record

    async def at(self, num: int, total: int, *messages: Any) -> StatusRecord:
        """Report ``num`` of ``total`` done.

        Raises:
            InvalidProgress: If ``total`` is not a positive number; the
                record is left untouched.
            Cancelled: If this job is on the kill list.
        """
        try:
            positive = float(total) > 0.0
        except (TypeError, ValueError):
            positive = False
        if not positive:
            raise InvalidProgress(
                f"Called at() with total={total} which is not a number",
                total=total,
                uuid=self.uuid,
            )
        return await self.tick({"num": num, "total": total}, *messages)

    async def completed(self, *messages: Any) -> StatusRecord:
        return await self.set_status(*messages, {"status": JobStatus.COMPLETED, "message": ""})

    async def failed(self, *messages: Any) -> StatusRecord:
        return await self.set_status({"status": JobStatus.FAILED}, *messages)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def init_parent(self, total: int) -> StatusRecord:
        """Declare how many children this job will enqueue.

        Must run before the first ``enqueue_child`` so no child can finish
        while the total is still unknown.
        """
        await self.context.kill_switch.check(self.uuid)
        record = await self.context.fan.init_parent(self.uuid, total)
        self._is_parent = True
        return record

    async def enqueue_child(self, options: dict[str, Any]) -> str | None:
        """Enqueue this job type as a child of this instance."""
        if not self._is_parent:
            raise ParentNotInitialized(uuid=self.uuid)
        return await self.context.fan.enqueue_child(self.uuid, type(self), options)


__all__ = [
    "JobContext",
    "StatusedJob",
    "SuccessHook",
    "FailureHook",
    "KilledHook",
    "as_patches",
]
