"""Bounded automatic re-enqueue of failed jobs."""

from __future__ import annotations

from .config import JobTypeConfig
from .dispatch import Dispatcher
from .job import StatusedJob
from .logging import StructuredLogger, TransitionLog, get_logger
from .store import StatusStore
from .types import JobStatus, StatusRecord


class RetryPolicy:
    """Re-enqueue a failed job instance while it has retries left.

    Top-level jobs and children have separate ceilings in their
    JobTypeConfig. A retry reuses the uuid and the original options and
    only re-runs the failing instance, so finished siblings keep their
    contribution to the parent's count.
    """

    def __init__(
        self,
        store: StatusStore,
        dispatcher: Dispatcher,
        logger: StructuredLogger | None = None,
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._logger = logger or get_logger()

    async def retry_if_can(
        self,
        job: StatusedJob,
        config: JobTypeConfig | None = None,
    ) -> bool:
        """Returns True if the job was re-enqueued.

        ``config`` defaults to the one the job was built with. When the
        dispatcher rejects the re-enqueue the record goes back to failed
        with its previous retry count.
        """
        if config is None:
            config = job.context.config
        record = await self._store.get(job.uuid)
        retry_num = record.retry_num if record is not None else 0
        limit = config.retry_limit(job.is_child)
        if retry_num >= limit:
            return False

        queued = await self._store.set(job.uuid, {
            "retry_num": retry_num + 1,
            "status": JobStatus.QUEUED,
        })
        self._log(job, config, JobStatus.FAILED, queued, f"retry {queued.retry_num}/{limit}")

        accepted = await self._dispatcher.enqueue(
            config.name or job.type_name(),
            job.uuid,
            job.options,
            queue=config.queue,
        )
        if not accepted:
            failed = await self._store.set(job.uuid, {
                "retry_num": retry_num,
                "status": JobStatus.FAILED,
            })
            self._log(job, config, JobStatus.QUEUED, failed, "retry rejected by dispatcher")
        return accepted

    def _log(
        self,
        job: StatusedJob,
        config: JobTypeConfig,
        previous: JobStatus,
        record: StatusRecord,
        message: str,
    ) -> None:
        self._logger.log_transition(TransitionLog(
            uuid=job.uuid,
            status=record.status.value,
            previous_status=previous.value,
            job=config.name,
            retry_num=record.retry_num,
            message=message,
        ))


__all__ = ["RetryPolicy"]
