"""
Status runtime.

StatusRuntime wires the store, dispatcher, kill switch, fan coordinator,
retry policy and lifecycle engine together and exposes three surfaces:

- Enqueue API: ``create``, ``enqueue_to``, ``dequeue``, ``scheduled``
- Worker entry point: ``perform`` (what the dispatcher calls)
- Management API: ``get_status``, ``list_statuses``, ``kill``, clears

Example:
    ```python
    runtime = StatusRuntime.from_settings(Settings.from_env())
    runtime.register(ExportJob, JobTypeConfig(retry_failed=2))

    uuid = await runtime.create(ExportJob, {"rows": 100})
    await runtime.dispatcher.drain()

    record = await runtime.get_status(uuid)
    print(record.status, record.pct_complete)
    ```
"""

from __future__ import annotations

from typing import Any, Optional, Type

from .config import JobTypeConfig, Settings
from .dispatch import Dispatcher, InProcessDispatcher
from .fan import FanCoordinator
from .job import JobContext, StatusedJob
from .kill import KillSwitch
from .lifecycle import LifecycleEngine
from .logging import StructuredLogger, configure_logging, get_logger
from .registry import JobRef, JobRegistry, JobTypeInfo
from .retry import RetryPolicy
from .store import StatusFilter, StatusStore, store_from_config
from .types import PARENT_UUID_KEY, JobStatus, StatusRecord


class StatusRuntime:
    """Entry point for enqueuing, running and managing statused jobs."""

    def __init__(
        self,
        store: StatusStore,
        dispatcher: Dispatcher,
        registry: Optional[JobRegistry] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.registry = registry or JobRegistry()
        self.logger = logger or get_logger()

        self.kill_switch = KillSwitch(store)
        self.retry = RetryPolicy(store, dispatcher, logger=self.logger)
        self.fan = FanCoordinator(store, self.kill_switch, enqueue=self.create, logger=self.logger)
        self.engine = LifecycleEngine(
            store,
            self.kill_switch,
            self.fan,
            self.retry,
            logger=self.logger,
        )

        if isinstance(dispatcher, InProcessDispatcher):
            dispatcher.bind(self.perform)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        dispatcher: Optional[Dispatcher] = None,
    ) -> StatusRuntime:
        """Build a runtime from Settings, with an in-process dispatcher by default."""
        settings = settings or Settings.from_env()
        logger = configure_logging(
            level=settings.logging.level,
            json_output=settings.logging.format == "json",
            log_transitions=settings.logging.log_transitions,
            log_progress=settings.logging.log_progress,
        )
        return cls(
            store=store_from_config(settings.store),
            dispatcher=dispatcher or InProcessDispatcher(),
            registry=JobRegistry(defaults=settings.jobs),
            logger=logger,
        )

    def register(
        self,
        job_cls: Type[StatusedJob],
        config: Optional[JobTypeConfig] = None,
    ) -> JobTypeInfo:
        return self.registry.register(job_cls, config)

    # ------------------------------------------------------------------
    # Enqueue API
    # ------------------------------------------------------------------

    async def create(self, job: JobRef, options: Optional[dict[str, Any]] = None) -> str | None:
        """Enqueue a job on its type's queue.

        Returns:
            The job uuid, or None if the dispatcher rejected the job
        """
        info = self.registry.resolve(job)
        return await self.enqueue_to(info.config.queue, job, options)

    async def enqueue_to(
        self,
        queue: str,
        job: JobRef,
        options: Optional[dict[str, Any]] = None,
    ) -> str | None:
        """Enqueue a job on a specific queue.

        The record is written before the dispatcher sees the job, and
        removed again if the dispatcher rejects it.
        """
        info = self.registry.resolve(job)
        options = dict(options or {})
        name = info.config.name

        uuid = self.store.generate_uuid()
        await self.store.create(uuid, {
            "name": name,
            "options": options,
            "parent_uuid": options.get(PARENT_UUID_KEY),
        })

        if await self.dispatcher.enqueue(name, uuid, options, queue=queue):
            self.logger.debug("Enqueued job", uuid=uuid, job=name, queue=queue)
            return uuid

        await self.store.remove(uuid)
        self.logger.info("Enqueue rejected by dispatcher", uuid=uuid, job=name, queue=queue)
        return None

    async def dequeue(self, job: JobRef, uuid: str) -> int:
        """Cancel a queued job that has not started.

        The options are read back from the record since the dispatcher
        needs them to find its queue entry.
        """
        info = self.registry.resolve(job)
        record = await self.store.get(uuid)
        options = record.options if record is not None else {}
        return await self.dispatcher.dequeue(info.config.name, uuid, options)

    async def scheduled(
        self,
        queue: str,
        job_name: str,
        options: Optional[dict[str, Any]] = None,
    ) -> str | None:
        """Entry point for external schedulers that enqueue by name."""
        return await self.enqueue_to(queue, job_name, options)

    # ------------------------------------------------------------------
    # Worker entry point
    # ------------------------------------------------------------------

    async def perform(
        self,
        job_name: str,
        uuid: Optional[str] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> StatusedJob:
        """Run one delivered job. Called by the dispatcher's workers."""
        job = self.build_job(job_name, uuid or self.store.generate_uuid(), options)
        await self.engine.run(job)
        return job

    def build_job(
        self,
        job: JobRef,
        uuid: str,
        options: Optional[dict[str, Any]] = None,
    ) -> StatusedJob:
        """Instantiate a registered job type bound to this runtime."""
        info = self.registry.resolve(job)
        context = JobContext(
            store=self.store,
            kill_switch=self.kill_switch,
            fan=self.fan,
            config=info.config,
            logger=self.logger,
        )
        return info.job_cls(uuid, options or {}, context)

    # ------------------------------------------------------------------
    # Management API
    # ------------------------------------------------------------------

    async def get_status(self, uuid: str) -> StatusRecord | None:
        return await self.store.get(uuid)

    async def list_statuses(
        self,
        filter: Optional[StatusFilter] = None,
        *,
        status: JobStatus | str | None = None,
        name: str | None = None,
        page: int = 1,
        per_page: int = 50,
    ) -> list[StatusRecord]:
        """Page of records, most recent first, optionally filtered."""
        if filter is None:
            filter = StatusFilter(status=status, name=name, page=page, per_page=per_page)
        return await self.store.list(filter)

    async def count(self) -> int:
        return await self.store.count()

    async def kill(self, uuid: str) -> bool:
        """Request cancellation. No-op for unknown or finished jobs.

        Returns:
            True if the uuid was marked
        """
        record = await self.store.get(uuid)
        if record is None or not record.killable:
            return False
        await self.kill_switch.mark(uuid)
        self.logger.info("Kill requested", uuid=uuid)
        return True

    async def kill_all(self, start: int | None = None, end: int | None = None) -> list[str]:
        return await self.store.kill_all(start, end)

    async def clear(self, start: int | None = None, end: int | None = None) -> int:
        return await self.store.clear(start, end)

    async def clear_completed(self) -> int:
        return await self.store.clear_completed()

    async def clear_failed(self) -> int:
        return await self.store.clear_failed()


__all__ = ["StatusRuntime"]
