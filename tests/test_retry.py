"""
Tests for automatic retries of failed jobs.
"""

import pytest

from job_status import InProcessDispatcher, JobStatus, JobTypeConfig, RetryPolicy, StatusRuntime
from tests._jobs_testkit import FailingJob, FanOutJob, HandledFailingJob


class TestRetryPolicy:
    """Tests for bounded re-enqueue."""

    @pytest.mark.asyncio
    async def test_failed_job_retried_up_to_limit(self, runtime):
        runtime.register(FailingJob, JobTypeConfig(retry_failed=3))
        uuid = await runtime.create(FailingJob, {"attempt": "x"})

        await runtime.dispatcher.drain()

        record = await runtime.get_status(uuid)
        assert record.status is JobStatus.FAILED
        assert record.retry_num == 3
        assert runtime.dispatcher.processed == 4
        assert len(runtime.dispatcher.failed) == 4

    @pytest.mark.asyncio
    async def test_no_retry_by_default(self, runtime):
        runtime.register(FailingJob)
        uuid = await runtime.create(FailingJob)

        await runtime.dispatcher.drain()

        assert runtime.dispatcher.processed == 1
        assert (await runtime.get_status(uuid)).retry_num == 0

    @pytest.mark.asyncio
    async def test_retry_reuses_uuid_and_options(self, runtime):
        runtime.register(FailingJob, JobTypeConfig(retry_failed=1, queue="exports"))
        uuid = await runtime.create(FailingJob, {"rows": 5})

        await runtime.dispatcher.drain(max_jobs=1)

        [retry] = runtime.dispatcher.pending
        assert (retry.job_name, retry.uuid, retry.options, retry.queue) == (
            "FailingJob", uuid, {"rows": 5}, "exports",
        )
        record = await runtime.get_status(uuid)
        assert record.status is JobStatus.QUEUED
        assert record.retry_num == 1

    @pytest.mark.asyncio
    async def test_handled_failures_are_retried_too(self, runtime):
        runtime.register(HandledFailingJob, JobTypeConfig(retry_failed=2))
        uuid = await runtime.create(HandledFailingJob)

        await runtime.dispatcher.drain()

        assert runtime.dispatcher.processed == 3
        assert runtime.dispatcher.failed == []
        assert (await runtime.get_status(uuid)).retry_num == 2

    @pytest.mark.asyncio
    async def test_child_uses_child_limit(self, runtime):
        runtime.register(FanOutJob, JobTypeConfig(retry_failed=5, retry_failed_child=0))
        uuid = await runtime.create(FanOutJob, {"_parent_uuid": "parent"})
        job = runtime.build_job(FanOutJob, uuid, {"_parent_uuid": "parent"})
        policy = RetryPolicy(runtime.store, runtime.dispatcher)

        assert job.is_child
        assert await policy.retry_if_can(job) is False

    @pytest.mark.asyncio
    async def test_explicit_config_overrides_job_config(self, runtime):
        runtime.register(FailingJob)
        uuid = await runtime.create(FailingJob)
        job = runtime.build_job(FailingJob, uuid)

        assert await runtime.retry.retry_if_can(job) is False
        assert await runtime.retry.retry_if_can(job, JobTypeConfig(name="FailingJob", retry_failed=1))
        assert (await runtime.get_status(uuid)).retry_num == 1

    @pytest.mark.asyncio
    async def test_rejected_retry_leaves_job_failed(self, store):
        enqueued: set[str] = set()

        def first_enqueue_only(name, uuid, options):
            if uuid in enqueued:
                return False
            enqueued.add(uuid)
            return True

        dispatcher = InProcessDispatcher(before_enqueue=first_enqueue_only)
        runtime = StatusRuntime(store, dispatcher)
        runtime.register(FailingJob, JobTypeConfig(retry_failed=1))
        uuid = await runtime.create(FailingJob)

        await dispatcher.drain()

        record = await store.get(uuid)
        assert record.status is JobStatus.FAILED
        assert record.retry_num == 0
        assert dispatcher.pending == []
        assert dispatcher.processed == 1

    @pytest.mark.asyncio
    async def test_retry_if_can_reports_dispatcher_rejection(self, store):
        dispatcher = InProcessDispatcher(before_enqueue=lambda name, uuid, options: False)
        runtime = StatusRuntime(store, dispatcher)
        runtime.register(FailingJob, JobTypeConfig(retry_failed=1))
        uuid = store.generate_uuid()
        await store.create(uuid, {"name": "FailingJob"})
        job = runtime.build_job(FailingJob, uuid)

        assert await runtime.retry.retry_if_can(job) is False
        record = await store.get(uuid)
        assert record.status is JobStatus.FAILED
        assert record.retry_num == 0
