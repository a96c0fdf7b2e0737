"""
Lifecycle engine.

Drives one job instance through ``queued -> working -> completed |
failed | killed`` around the job body, with the child-job variant that
reports into fan-in instead of finishing on its own.
"""

from __future__ import annotations

from .config import JobTypeConfig
from .errors import Cancelled, ExecutionFailure
from .fan import FanCoordinator
from .job import FailureHook, KilledHook, StatusedJob, SuccessHook
from .kill import KillSwitch
from .logging import StructuredLogger, TransitionLog, get_logger
from .retry import RetryPolicy
from .store import StatusStore
from .types import JobStatus, StatusRecord


FAILURE_MESSAGE = "The task failed because of an error: {error}"


class LifecycleEngine:
    """Runs job instances and records their outcome.

    The engine is responsible for:
    - The ``working`` transition and ``started_at`` stamp
    - Forcing ``completed`` when a body returns without finishing itself
    - Turning the cancellation signal into ``killed``
    - Recording failures and handing them to the retry policy
    - Reporting finished children into fan-in
    """

    def __init__(
        self,
        store: StatusStore,
        kill_switch: KillSwitch,
        fan: FanCoordinator,
        retry: RetryPolicy,
        logger: StructuredLogger | None = None,
    ):
        self._store = store
        self._kill_switch = kill_switch
        self._fan = fan
        self._retry = retry
        self._logger = logger or get_logger()

    async def run(self, job: StatusedJob) -> None:
        """Run ``job`` to the end of this attempt under its type's config.

        Raises:
            ExecutionFailure: If the body raised and the job type has no
                failure hook (children always re-raise).
            CoordinationFailure: If this child finalized its parent and the
                parent's success hook raised.
        """
        config = job.context.config
        with self._logger.job_context(
            uuid=job.uuid,
            parent_uuid=job.parent_uuid,
            job=config.name,
            queue=config.queue,
        ):
            if job.is_child:
                await self._run_child(job, config)
            else:
                await self._run(job, config)

    async def _run(self, job: StatusedJob, config: JobTypeConfig) -> None:
        await self._start(job)
        try:
            await job.perform()
        except Cancelled:
            await self._killed(job)
            if isinstance(job, KilledHook):
                await job.on_killed()
            return
        except Exception as e:
            await self._failed(job, e)
            handled = isinstance(job, FailureHook)
            if handled:
                await job.on_failure(e)
            await self._retry.retry_if_can(job, config)
            if not handled:
                raise ExecutionFailure(
                    str(e), uuid=job.uuid, job_name=config.name, cause=e,
                ) from e
            return

        record = await job.status()
        if record is not None and record.is_failed:
            if isinstance(job, FailureHook):
                await job.on_failure(record.message or "")
            await self._retry.retry_if_can(job, config)
            return
        if job.is_parent:
            # completion belongs to the last child
            return
        if record is not None and record.is_working:
            record = await job.completed()
            self._log(JobStatus.WORKING, record)
        if isinstance(job, SuccessHook):
            try:
                await job.on_success()
            except Exception as e:
                self._logger.log_error(e, message=f"on_success of {job.uuid} failed")
                raise ExecutionFailure(
                    f"on_success failed with {type(e).__name__}/{e}",
                    uuid=job.uuid, job_name=config.name, cause=e,
                ) from e

    async def _run_child(self, job: StatusedJob, config: JobTypeConfig) -> None:
        await self._start(job)
        try:
            if await job.parent_should_kill():
                self._logger.info("Parent marked for kill, skipping child body")
            else:
                await job.perform_child()
        except Cancelled:
            # killed while running: keep the record, still count it
            await self._killed(job)
            await self._fan.report_child_done(job.parent_uuid, job.uuid, False, job)
            return
        except Exception as e:
            await self._failed(job, e)
            await self._retry.retry_if_can(job, config)
            raise ExecutionFailure(
                str(e), uuid=job.uuid, job_name=config.name, cause=e,
            ) from e

        record = await job.status()
        if record is not None and record.is_working:
            record = await job.completed()
            self._log(JobStatus.WORKING, record)
        if record is not None and record.is_failed:
            await self._retry.retry_if_can(job, config)
            return
        await self._fan.report_child_done(job.parent_uuid, job.uuid, True, job)

    async def _start(self, job: StatusedJob) -> StatusRecord:
        previous = await job.status()
        record = await self._store.set(job.uuid, {
            "status": JobStatus.WORKING,
            "started_at": self._store.now(),
        })
        self._log(previous.status if previous else None, record)
        return record

    async def _killed(self, job: StatusedJob) -> StatusRecord:
        record = await self._store.set(job.uuid, {"status": JobStatus.KILLED})
        await self._kill_switch.clear(job.uuid)
        self._log(JobStatus.WORKING, record)
        return record

    async def _failed(self, job: StatusedJob, error: Exception) -> StatusRecord:
        record = await job.failed(FAILURE_MESSAGE.format(error=error))
        self._logger.log_error(error, message=f"Job {job.uuid} failed")
        self._log(JobStatus.WORKING, record)
        return record

    def _log(self, previous: JobStatus | None, record: StatusRecord) -> None:
        self._logger.log_transition(TransitionLog(
            uuid=record.uuid,
            status=record.status.value,
            previous_status=previous.value if previous else None,
            job=record.name,
            retry_num=record.retry_num,
            message=record.message,
        ))


__all__ = [
    "LifecycleEngine",
    "FAILURE_MESSAGE",
]
