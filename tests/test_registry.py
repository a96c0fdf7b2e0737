"""
Tests for the job type registry.
"""

import pytest

from job_status import JobRegistry, JobTypeConfig, UnknownJobType
from job_status.errors import DuplicateJobType
from tests._jobs_testkit import CountingJob, FailingJob


class RenamedJob(CountingJob):
    job_name = "reports.nightly"


class TestJobRegistry:
    """Tests for JobRegistry."""

    def test_register_and_resolve(self):
        registry = JobRegistry()
        info = registry.register(CountingJob)

        assert info.config.name == "CountingJob"
        assert registry.resolve("CountingJob") is info
        assert registry.resolve(CountingJob) is info

    def test_class_level_name(self):
        registry = JobRegistry()
        registry.register(RenamedJob)

        assert registry.resolve("reports.nightly").job_cls is RenamedJob

    def test_config_name_overrides_class_name(self):
        registry = JobRegistry()
        registry.register(CountingJob, JobTypeConfig(name="counting"))

        assert registry.resolve(CountingJob).config.name == "counting"
        assert "CountingJob" not in registry.names()

    def test_same_class_can_be_registered_again(self):
        registry = JobRegistry()
        registry.register(CountingJob)
        info = registry.register(CountingJob, JobTypeConfig(retry_failed=2))

        assert registry.resolve("CountingJob").config.retry_failed == 2
        assert registry.resolve("CountingJob") is info

    def test_duplicate_name_rejected(self):
        registry = JobRegistry()
        registry.register(CountingJob, JobTypeConfig(name="shared"))

        with pytest.raises(DuplicateJobType):
            registry.register(FailingJob, JobTypeConfig(name="shared"))

    def test_unknown_name(self):
        registry = JobRegistry()

        with pytest.raises(UnknownJobType) as exc_info:
            registry.resolve("Missing")
        assert exc_info.value.job_name == "Missing"
        assert "Missing" not in registry

    def test_defaults_used_without_config(self):
        registry = JobRegistry(defaults=JobTypeConfig(queue="bulk", retry_failed_child=3))
        info = registry.register(CountingJob)

        assert info.config.queue == "bulk"
        assert info.config.retry_failed_child == 3

    def test_unregister(self):
        registry = JobRegistry()
        registry.register(CountingJob)

        assert registry.unregister("CountingJob") is True
        assert registry.unregister("CountingJob") is False
        assert CountingJob not in registry

    def test_names_sorted(self):
        registry = JobRegistry()
        registry.register(FailingJob)
        registry.register(CountingJob)

        assert registry.names() == ["CountingJob", "FailingJob"]
