"""
job-status - status tracking for distributed background jobs.

This package tracks long-running jobs executed by many workers that
share one key-value store:
- StatusRecord: persisted status and progress of one job instance
- StatusStore: persistence, listing index, kill list and TTL (memory, Redis)
- StatusedJob: base class for job types, with optional lifecycle hooks
- LifecycleEngine: queued -> working -> completed | failed | killed
- FanCoordinator: parent/child fan-out and race-free fan-in
- RetryPolicy: bounded re-enqueue of failed instances
- StatusRuntime: wiring, enqueue API, worker entry point, management API
"""

from .config import JobTypeConfig, LoggingConfig, Settings, StoreConfig, configure, get_settings, load_env
from .dispatch import Dispatcher, InProcessDispatcher
from .errors import (
    Cancelled,
    CoordinationFailure,
    ErrorCode,
    ExecutionFailure,
    InvalidProgress,
    JobStatusError,
    ParentNotInitialized,
    StoreContentionError,
    StoreError,
    UnknownJobType,
)
from .fan import FanCoordinator
from .job import FailureHook, JobContext, KilledHook, StatusedJob, SuccessHook
from .kill import KillSwitch
from .lifecycle import LifecycleEngine
from .logging import StructuredLogger, configure_logging, get_logger
from .registry import JobRegistry
from .retry import RetryPolicy
from .runtime import StatusRuntime
from .store import InMemoryStatusStore, RedisStatusStore, StatusFilter, StatusStore
from .types import JobStatus, StatusRecord, merge_patches

__version__ = "0.5.0"

__all__ = [
    # Types
    "JobStatus",
    "StatusRecord",
    "merge_patches",
    # Store
    "StatusStore",
    "StatusFilter",
    "InMemoryStatusStore",
    "RedisStatusStore",
    # Jobs
    "StatusedJob",
    "JobContext",
    "SuccessHook",
    "FailureHook",
    "KilledHook",
    "JobRegistry",
    # Coordination
    "KillSwitch",
    "FanCoordinator",
    "RetryPolicy",
    "LifecycleEngine",
    "StatusRuntime",
    # Dispatch
    "Dispatcher",
    "InProcessDispatcher",
    # Config
    "Settings",
    "StoreConfig",
    "LoggingConfig",
    "JobTypeConfig",
    "get_settings",
    "configure",
    "load_env",
    # Logging
    "StructuredLogger",
    "get_logger",
    "configure_logging",
    # Errors
    "ErrorCode",
    "JobStatusError",
    "InvalidProgress",
    "ExecutionFailure",
    "CoordinationFailure",
    "ParentNotInitialized",
    "UnknownJobType",
    "StoreError",
    "StoreContentionError",
    "Cancelled",
]
