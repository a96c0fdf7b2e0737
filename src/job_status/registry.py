"""
Job type registry.

Maps the job name the dispatcher carries to the StatusedJob subclass
and the JobTypeConfig (queue, retry ceilings) it was registered with.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Type, Union

from .config import JobTypeConfig
from .errors import DuplicateJobType, UnknownJobType
from .job import StatusedJob


logger = logging.getLogger(__name__)

JobRef = Union[str, Type[StatusedJob]]


@dataclass
class JobTypeInfo:
    """A registered job type."""
    job_cls: Type[StatusedJob]
    config: JobTypeConfig


class JobRegistry:
    """Registry of job types by name."""

    def __init__(self, defaults: Optional[JobTypeConfig] = None):
        self._types: dict[str, JobTypeInfo] = {}
        self._defaults = defaults or JobTypeConfig()

    def register(
        self,
        job_cls: Type[StatusedJob],
        config: Optional[JobTypeConfig] = None,
    ) -> JobTypeInfo:
        """Register a job type.

        Raises:
            DuplicateJobType: If another class is registered under the same name
        """
        config = config or replace(self._defaults)
        name = config.name or job_cls.type_name()
        config = replace(config, name=name)

        existing = self._types.get(name)
        if existing is not None and existing.job_cls is not job_cls:
            raise DuplicateJobType(f"Job type '{name}' is already registered")

        info = JobTypeInfo(job_cls=job_cls, config=config)
        self._types[name] = info
        logger.info(
            "Registered job type: %s (queue=%s, retry_failed=%d, retry_failed_child=%d)",
            name, config.queue, config.retry_failed, config.retry_failed_child,
        )
        return info

    def unregister(self, name: str) -> bool:
        return self._types.pop(name, None) is not None

    def resolve(self, job: JobRef) -> JobTypeInfo:
        """Look a job type up by name or class.

        Raises:
            UnknownJobType: If nothing is registered under that name
        """
        if isinstance(job, str):
            name = job
        else:
            name = self._name_of(job)
        info = self._types.get(name)
        if info is None:
            raise UnknownJobType(job_name=name)
        return info

    def _name_of(self, job_cls: Type[StatusedJob]) -> str:
        for name, info in self._types.items():
            if info.job_cls is job_cls:
                return name
        return job_cls.type_name()

    def __contains__(self, job: JobRef) -> bool:
        try:
            self.resolve(job)
        except UnknownJobType:
            return False
        return True

    def names(self) -> list[str]:
        return sorted(self._types)


__all__ = [
    "JobRegistry",
    "JobTypeInfo",
    "JobRef",
]
