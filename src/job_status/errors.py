"""
Error taxonomy for job-status.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- The job uuid the error belongs to
- Chained causes for failures raised out of job bodies and hooks

Cancellation is not an error: ``Cancelled`` derives from BaseException so
a job body's own ``except Exception`` blocks cannot swallow it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes."""

    # Progress reporting (1xxx)
    INVALID_PROGRESS = "ERR_1000"

    # Execution (2xxx)
    EXECUTION_FAILURE = "ERR_2000"
    COORDINATION_FAILURE = "ERR_2001"
    PARENT_NOT_INITIALIZED = "ERR_2002"

    # Registry (3xxx)
    UNKNOWN_JOB_TYPE = "ERR_3000"
    DUPLICATE_JOB_TYPE = "ERR_3001"

    # Store (4xxx)
    STORE_ERROR = "ERR_4000"
    STORE_CONTENTION = "ERR_4001"

    # Configuration (6xxx)
    CONFIG_ERROR = "ERR_6000"

    INTERNAL_ERROR = "ERR_9000"


class JobStatusError(Exception):
    """
    Base exception for all job-status errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        uuid: Job instance the error belongs to, if any
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        uuid: str | None = None,
        code: ErrorCode | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.uuid = uuid
        if code is not None:
            self.code = code
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.uuid:
            parts.append(f"(uuid={self.uuid})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "uuid": self.uuid,
            "cause": str(self.cause) if self.cause else None,
        }


class InvalidProgress(JobStatusError):
    """A progress report supplied a non-positive total."""

    code = ErrorCode.INVALID_PROGRESS

    def __init__(
        self,
        message: str = "Progress total must be a positive number",
        *,
        total: Any = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.total = total


class ExecutionFailure(JobStatusError):
    """A job body raised and no failure hook absorbed the error."""

    code = ErrorCode.EXECUTION_FAILURE

    def __init__(
        self,
        message: str = "Job execution failed",
        *,
        job_name: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.job_name = job_name


class CoordinationFailure(JobStatusError):
    """The success hook raised while finalizing a parent job."""

    code = ErrorCode.COORDINATION_FAILURE

    def __init__(
        self,
        message: str = "Parent finalization failed",
        *,
        parent_uuid: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.parent_uuid = parent_uuid


class ParentNotInitialized(JobStatusError):
    """enqueue_child was called before init_parent."""

    code = ErrorCode.PARENT_NOT_INITIALIZED

    def __init__(self, message: str = "Parent not initiated", **kwargs):
        super().__init__(message, **kwargs)


class RegistryError(JobStatusError):
    """Base class for job type registry errors."""

    code = ErrorCode.UNKNOWN_JOB_TYPE


class UnknownJobType(RegistryError):
    """No job type is registered under the requested name."""

    def __init__(
        self,
        message: str | None = None,
        *,
        job_name: str | None = None,
        **kwargs,
    ):
        super().__init__(message or f"Unknown job type: {job_name}", **kwargs)
        self.job_name = job_name


class DuplicateJobType(RegistryError):
    """A job type name was registered twice."""

    code = ErrorCode.DUPLICATE_JOB_TYPE


class StoreError(JobStatusError):
    """Base class for status store errors."""

    code = ErrorCode.STORE_ERROR


class StoreContentionError(StoreError):
    """An atomic update kept losing its optimistic transaction."""

    code = ErrorCode.STORE_CONTENTION

    def __init__(
        self,
        message: str = "Atomic update kept conflicting with concurrent writers",
        *,
        attempts: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class ConfigError(JobStatusError):
    """Invalid configuration."""

    code = ErrorCode.CONFIG_ERROR


class Cancelled(BaseException):
    """Cooperative cancellation signal.

    Raised only from progress-report poll points when the running job's
    uuid is on the kill list, and caught only by the lifecycle engine.
    """

    def __init__(self, uuid: str | None = None):
        super().__init__(f"Job {uuid} was killed" if uuid else "Job was killed")
        self.uuid = uuid


__all__ = [
    "ErrorCode",
    "JobStatusError",
    "InvalidProgress",
    "ExecutionFailure",
    "CoordinationFailure",
    "ParentNotInitialized",
    "RegistryError",
    "UnknownJobType",
    "DuplicateJobType",
    "StoreError",
    "StoreContentionError",
    "ConfigError",
    "Cancelled",
]
