"""
Status record types.

This module defines the JobStatus enum, the StatusRecord dataclass and
the pure patch-merge function every status update goes through.
"""

from __future__ import annotations

import json
import time
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Union


PARENT_UUID_KEY = "_parent_uuid"


class JobStatus(str, Enum):
    """Job lifecycle states.

    State transitions:
    - QUEUED -> WORKING (worker picked the job up)
    - WORKING -> COMPLETED (body finished)
    - WORKING -> FAILED (body raised or failed itself)
    - WORKING -> KILLED (kill flag observed at a progress report)
    - FAILED -> QUEUED (automatic retry)
    - WORKING -> QUEUED (retry decided before the record was failed)
    - QUEUED -> FAILED (retry rejected by the dispatcher)
    """
    QUEUED = "queued"
    WORKING = "working"
    COMPLETED = "completed"
    FAILED = "failed"
    KILLED = "killed"

    @property
    def is_terminal(self) -> bool:
        """Terminal for the current attempt."""
        return self in {
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.KILLED,
        }

    @property
    def is_killable(self) -> bool:
        return self in {JobStatus.QUEUED, JobStatus.WORKING}


VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.WORKING, JobStatus.FAILED},
    JobStatus.WORKING: {
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.KILLED,
        JobStatus.QUEUED,
    },
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: {JobStatus.QUEUED},
    JobStatus.KILLED: set(),
}


@dataclass
class StatusRecord:
    """Persisted status of one job instance.

    Top-level and child jobs share this shape. Keys a job attaches that
    are not declared fields live in ``extra`` and are written back at the
    top level of the stored payload.
    """
    uuid: str
    name: str | None = None
    status: JobStatus = JobStatus.QUEUED
    message: str | None = None
    options: dict[str, Any] = field(default_factory=dict)
    parent_uuid: str | None = None

    # Progress
    num: int | None = None
    total: int | None = None

    # Timestamps (unix seconds)
    time: int = field(default_factory=lambda: int(time.time()))
    started_at: int | None = None

    retry_num: int = 0

    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_queued(self) -> bool:
        return self.status is JobStatus.QUEUED

    @property
    def is_working(self) -> bool:
        return self.status is JobStatus.WORKING

    @property
    def is_completed(self) -> bool:
        return self.status is JobStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status is JobStatus.FAILED

    @property
    def is_killed(self) -> bool:
        return self.status is JobStatus.KILLED

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def killable(self) -> bool:
        return self.status.is_killable

    @property
    def pct_complete(self) -> int:
        """Percentage done, truncated. Always 100 once completed."""
        if self.is_completed:
            return 100
        total = self.total or 1
        return int(float(self.num or 0) / float(total) * 100)

    def can_transition_to(self, new_status: JobStatus) -> bool:
        """Check if moving to new_status is valid. Same-status writes are."""
        if new_status is self.status:
            return True
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __getitem__(self, key: str) -> Any:
        if key in _FIELD_NAMES:
            return getattr(self, key)
        return self.extra[key]

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the flat stored shape."""
        data: dict[str, Any] = dict(self.extra)
        data.update({
            "uuid": self.uuid,
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "options": dict(self.options),
            "parent_uuid": self.parent_uuid,
            "num": self.num,
            "total": self.total,
            "time": self.time,
            "started_at": self.started_at,
            "retry_num": self.retry_num,
        })
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StatusRecord:
        """Deserialize from the flat stored shape."""
        extra = {k: v for k, v in data.items() if k not in _FIELD_NAMES}
        options = dict(data.get("options") or {})
        return cls(
            uuid=data["uuid"],
            name=data.get("name"),
            status=JobStatus(data.get("status", "queued")),
            message=data.get("message"),
            options=options,
            parent_uuid=data.get("parent_uuid") or options.get(PARENT_UUID_KEY),
            num=data.get("num"),
            total=data.get("total"),
            time=data.get("time") or int(time.time()),
            started_at=data.get("started_at"),
            retry_num=int(data.get("retry_num") or 0),
            extra=extra,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str | bytes) -> StatusRecord:
        return cls.from_dict(json.loads(payload))


_FIELD_NAMES = frozenset(f.name for f in fields(StatusRecord)) - {"extra"}

StatusPatch = Union[StatusRecord, Mapping[str, Any]]


def _patch_items(patch: StatusPatch) -> Mapping[str, Any]:
    if isinstance(patch, StatusRecord):
        return patch.to_dict()
    return patch


def merge_patches(record: StatusRecord, *patches: StatusPatch) -> StatusRecord:
    """Apply ``patches`` to ``record`` left to right and return a new record.

    Later values win on key conflicts. ``uuid`` never changes and a
    ``started_at`` that is already set is kept. Keys that are not record
    fields are stored as extension fields.
    """
    values: dict[str, Any] = {}
    extra = dict(record.extra)
    for patch in patches:
        if patch is None:
            continue
        for key, value in _patch_items(patch).items():
            if key == "extra":
                extra.update(value or {})
            elif key in _FIELD_NAMES:
                values[key] = value
            else:
                extra[key] = value

    values.pop("uuid", None)
    if record.started_at is not None:
        values.pop("started_at", None)
    if "status" in values and not isinstance(values["status"], JobStatus):
        values["status"] = JobStatus(values["status"])
    if "options" in values:
        values["options"] = dict(values["options"] or {})
    if "retry_num" in values:
        values["retry_num"] = int(values["retry_num"] or 0)

    return replace(record, extra=extra, **values)


__all__ = [
    "JobStatus",
    "StatusRecord",
    "StatusPatch",
    "VALID_TRANSITIONS",
    "PARENT_UUID_KEY",
    "merge_patches",
]
