"""
Shared test fixtures for job-status tests.

This module provides:
- A manually advanced clock
- Status stores (in-memory and Redis on fakeredis), parametrized so
  store-level tests run against both
- An in-process dispatcher and a runtime wired to them
"""

from __future__ import annotations

import fakeredis
import pytest

from job_status import (
    InMemoryStatusStore,
    InProcessDispatcher,
    RedisStatusStore,
    StatusRuntime,
    StructuredLogger,
)
from tests._jobs_testkit import FakeClock, make_redis_client, reset_recorders

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_recorders():
    reset_recorders()
    yield
    reset_recorders()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def redis_client() -> fakeredis.FakeAsyncRedis:
    return make_redis_client()


@pytest.fixture(params=["memory", "redis"])
def store(request, clock, redis_client):
    if request.param == "memory":
        return InMemoryStatusStore(clock=clock)
    return RedisStatusStore(redis_client, key_prefix="test-status", clock=clock)


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger(name="job_status.tests", level="DEBUG")


@pytest.fixture
def dispatcher() -> InProcessDispatcher:
    return InProcessDispatcher()


@pytest.fixture
def runtime(store, dispatcher, logger) -> StatusRuntime:
    return StatusRuntime(store, dispatcher, logger=logger)
