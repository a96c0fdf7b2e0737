"""Job dispatcher interface and in-process implementation.

The dispatcher is the queue engine jobs travel through. This package
only needs to enqueue and dequeue opaque ``(job_name, uuid, options)``
descriptors; the dispatcher calls the worker entry point back when a
worker picks a job up.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from .config import DEFAULT_QUEUE


logger = logging.getLogger(__name__)

Handler = Callable[[str, str, dict], Awaitable[Any]]
EnqueueHook = Callable[[str, str, dict], bool]


class Dispatcher(ABC):
    """Abstract interface for the external queue engine."""

    @abstractmethod
    async def enqueue(
        self,
        job_name: str,
        uuid: str,
        options: dict[str, Any],
        queue: str | None = None,
    ) -> bool:
        """Submit a job. Returns False if the submission was rejected."""
        ...

    @abstractmethod
    async def dequeue(self, job_name: str, uuid: str, options: dict[str, Any]) -> int:
        """Cancel not-yet-started submissions. Returns how many were removed."""
        ...


@dataclass
class QueuedJob:
    """A pending job descriptor."""
    job_name: str
    uuid: str
    options: dict[str, Any]
    queue: str = DEFAULT_QUEUE


@dataclass
class FailedJob:
    """A job whose handler raised; the dispatcher's own failure record."""
    job: QueuedJob
    error: BaseException


class InProcessDispatcher(Dispatcher):
    """Local asyncio queue. No external dependencies needed.

    Jobs run when ``drain()`` is awaited or, after ``start()``, from a
    background worker loop. Errors raised by the handler are kept in
    ``failed`` the way an external queue would dead-letter them.
    """

    def __init__(
        self,
        handler: Optional[Handler] = None,
        before_enqueue: Optional[EnqueueHook] = None,
    ):
        self._handler = handler
        self._before_enqueue = before_enqueue
        self._pending: list[QueuedJob] = []
        self._wakeup = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.failed: list[FailedJob] = []
        self.processed = 0

    def bind(self, handler: Handler) -> None:
        """Set the entry point jobs are delivered to."""
        self._handler = handler

    @property
    def pending(self) -> list[QueuedJob]:
        return list(self._pending)

    async def enqueue(
        self,
        job_name: str,
        uuid: str,
        options: dict[str, Any],
        queue: str | None = None,
    ) -> bool:
        if self._before_enqueue is not None and not self._before_enqueue(job_name, uuid, options):
            logger.info("Enqueue of %s (%s) rejected by before_enqueue hook", job_name, uuid)
            return False
        self._pending.append(QueuedJob(job_name, uuid, dict(options), queue or DEFAULT_QUEUE))
        self._wakeup.set()
        return True

    async def dequeue(self, job_name: str, uuid: str, options: dict[str, Any]) -> int:
        before = len(self._pending)
        self._pending = [
            job for job in self._pending
            if not (job.job_name == job_name and job.uuid == uuid and job.options == options)
        ]
        return before - len(self._pending)

    async def drain(self, max_jobs: int | None = None, concurrent: bool = False) -> int:
        """Run pending jobs until the queue is empty.

        Jobs enqueued while draining (retries, children) are run too. With
        ``concurrent`` each round of pending jobs runs in parallel.

        Returns:
            Number of jobs processed
        """
        processed = 0
        while self._pending and (max_jobs is None or processed < max_jobs):
            if concurrent:
                batch, self._pending = self._pending, []
                if max_jobs is not None:
                    batch, rest = batch[:max_jobs - processed], batch[max_jobs - processed:]
                    self._pending = rest + self._pending
                await asyncio.gather(*(self._run(job) for job in batch))
                processed += len(batch)
            else:
                await self._run(self._pending.pop(0))
                processed += 1
        return processed

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._worker_loop())

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _worker_loop(self) -> None:
        """Process jobs one at a time from the queue."""
        while self._running:
            if not self._pending:
                self._wakeup.clear()
                await self._wakeup.wait()
                continue
            await self._run(self._pending.pop(0))

    async def _run(self, job: QueuedJob) -> None:
        if self._handler is None:
            raise RuntimeError("InProcessDispatcher has no handler bound")
        try:
            await self._handler(job.job_name, job.uuid, dict(job.options))
        except Exception as e:
            logger.warning("Job %s (%s) failed in worker: %s", job.job_name, job.uuid, e)
            self.failed.append(FailedJob(job=job, error=e))
        finally:
            self.processed += 1


__all__ = [
    "Dispatcher",
    "InProcessDispatcher",
    "QueuedJob",
    "FailedJob",
]
