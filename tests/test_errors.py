"""
Tests for the error taxonomy.
"""

import pytest

from job_status.errors import (
    Cancelled,
    ConfigError,
    CoordinationFailure,
    DuplicateJobType,
    ErrorCode,
    ExecutionFailure,
    InvalidProgress,
    JobStatusError,
    ParentNotInitialized,
    RegistryError,
    StoreContentionError,
    StoreError,
    UnknownJobType,
)


class TestJobStatusError:
    """Tests for the base error."""

    def test_str_includes_code_and_uuid(self):
        error = JobStatusError("something broke", uuid="abc")
        assert str(error) == "[ERR_9000] something broke (uuid=abc)"

    def test_str_without_uuid(self):
        assert str(JobStatusError("plain")) == "[ERR_9000] plain"

    def test_code_override(self):
        error = JobStatusError("x", code=ErrorCode.STORE_ERROR)
        assert error.code is ErrorCode.STORE_ERROR

    def test_to_dict(self):
        cause = RuntimeError("boom")
        error = ExecutionFailure("job failed", uuid="abc", job_name="ExportJob", cause=cause)

        assert error.to_dict() == {
            "error_type": "ExecutionFailure",
            "code": "ERR_2000",
            "message": "job failed",
            "uuid": "abc",
            "cause": "boom",
        }


class TestErrorTypes:
    """Tests for specific error types."""

    @pytest.mark.parametrize("error,code", [
        (InvalidProgress(total=0), ErrorCode.INVALID_PROGRESS),
        (ExecutionFailure(), ErrorCode.EXECUTION_FAILURE),
        (CoordinationFailure(parent_uuid="p"), ErrorCode.COORDINATION_FAILURE),
        (ParentNotInitialized(), ErrorCode.PARENT_NOT_INITIALIZED),
        (UnknownJobType(job_name="X"), ErrorCode.UNKNOWN_JOB_TYPE),
        (DuplicateJobType("dup"), ErrorCode.DUPLICATE_JOB_TYPE),
        (StoreError("down"), ErrorCode.STORE_ERROR),
        (StoreContentionError(attempts=3), ErrorCode.STORE_CONTENTION),
        (ConfigError("bad"), ErrorCode.CONFIG_ERROR),
    ])
    def test_codes(self, error, code):
        assert error.code is code
        assert isinstance(error, JobStatusError)

    def test_hierarchy(self):
        assert issubclass(UnknownJobType, RegistryError)
        assert issubclass(DuplicateJobType, RegistryError)
        assert issubclass(StoreContentionError, StoreError)

    def test_attributes(self):
        assert InvalidProgress(total=-1).total == -1
        assert CoordinationFailure(parent_uuid="p").parent_uuid == "p"
        assert StoreContentionError(attempts=7).attempts == 7
        assert UnknownJobType(job_name="Nope").message == "Unknown job type: Nope"
        assert ParentNotInitialized().message == "Parent not initiated"


class TestCancelled:
    """Tests for the cancellation signal."""

    def test_not_an_exception(self):
        assert not issubclass(Cancelled, Exception)
        assert issubclass(Cancelled, BaseException)

    def test_escapes_except_exception(self):
        def body():
            try:
                raise Cancelled("abc")
            except Exception:
                return "swallowed"

        with pytest.raises(Cancelled):
            body()

    def test_message(self):
        assert str(Cancelled("abc")) == "Job abc was killed"
        assert Cancelled().uuid is None
