"""
Tests for structured logging.
"""

import asyncio
import json
import logging

import pytest

from job_status.errors import InvalidProgress
from job_status.logging import (
    JSONFormatter,
    StructuredLogger,
    TransitionLog,
    configure_logging,
    get_logger,
)

LOGGER_NAME = "job_status.tests.logging"


@pytest.fixture
def json_logger() -> StructuredLogger:
    return StructuredLogger(name=LOGGER_NAME, level="DEBUG", json_output=True)


def last_payload(caplog) -> dict:
    return json.loads(caplog.records[-1].getMessage())


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_job_context_fields_attached(self, json_logger, caplog):
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            with json_logger.job_context(uuid="abc", job="ExportJob", queue="statused"):
                json_logger.info("hello", rows=3)

        payload = last_payload(caplog)
        assert payload["message"] == "hello"
        assert payload["uuid"] == "abc"
        assert payload["job"] == "ExportJob"
        assert payload["queue"] == "statused"
        assert payload["rows"] == 3

    def test_context_reset_after_block(self, json_logger):
        with json_logger.job_context(uuid="abc"):
            assert json_logger.context.uuid == "abc"
        assert json_logger.context.uuid is None

    def test_nested_context_inherits_fields(self, json_logger):
        with json_logger.job_context(uuid="parent", job="FanOutJob"):
            with json_logger.job_context(uuid="child"):
                assert json_logger.context.uuid == "child"
                assert json_logger.context.job == "FanOutJob"

    def test_text_output(self, caplog):
        logger = StructuredLogger(name=LOGGER_NAME + ".text", level="DEBUG")
        with caplog.at_level(logging.DEBUG, logger=logger.name):
            with logger.job_context(uuid="abc"):
                logger.warning("slow", seconds=4)

        assert caplog.records[-1].getMessage() == "slow uuid=abc seconds=4"
        assert caplog.records[-1].levelno == logging.WARNING

    @pytest.mark.asyncio
    async def test_context_isolated_between_tasks(self, json_logger, caplog):
        async def run(uuid):
            with json_logger.job_context(uuid=uuid):
                await asyncio.sleep(0)
                json_logger.info("step")

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            await asyncio.gather(run("first"), run("second"))

        uuids = sorted(
            json.loads(r.getMessage())["uuid"] for r in caplog.records if r.name == LOGGER_NAME
        )
        assert uuids == ["first", "second"]


class TestTypedRecords:
    """Tests for transition and error records."""

    def test_transition_logged_at_info(self, json_logger, caplog):
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            json_logger.log_transition(TransitionLog(
                uuid="abc", status="working", previous_status="queued", job="ExportJob",
            ))

        payload = last_payload(caplog)
        assert caplog.records[-1].levelno == logging.INFO
        assert payload["event_type"] == "transition"
        assert payload["previous_status"] == "queued"
        assert payload["message"] == "Job abc: queued -> working"

    def test_failed_transition_logged_at_warning(self, json_logger, caplog):
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            json_logger.log_transition(TransitionLog(uuid="abc", status="failed"))

        assert caplog.records[-1].levelno == logging.WARNING

    def test_transitions_can_be_disabled(self, caplog):
        logger = StructuredLogger(name=LOGGER_NAME, level="DEBUG", log_transitions=False)
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            logger.log_transition(TransitionLog(uuid="abc", status="completed"))

        assert caplog.records == []

    def test_log_error_includes_code(self, json_logger, caplog):
        error = InvalidProgress(total=0, uuid="abc")
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            json_logger.log_error(error)

        payload = last_payload(caplog)
        assert caplog.records[-1].levelno == logging.ERROR
        assert payload["error_type"] == "InvalidProgress"
        assert payload["error_code"] == "ERR_1000"


class TestFormatters:
    """Tests for log formatters and module helpers."""

    def test_json_formatter_merges_payload(self):
        record = logging.LogRecord(
            name="job_status", level=logging.INFO, pathname=__file__, lineno=1,
            msg=json.dumps({"message": "hi", "uuid": "abc"}), args=None, exc_info=None,
        )

        data = json.loads(JSONFormatter().format(record))
        assert data["level"] == "INFO"
        assert data["uuid"] == "abc"
        assert data["message"] == "hi"

    def test_json_formatter_plain_message(self):
        record = logging.LogRecord(
            name="job_status", level=logging.INFO, pathname=__file__, lineno=1,
            msg="plain text", args=None, exc_info=None,
        )

        assert json.loads(JSONFormatter().format(record))["message"] == "plain text"

    def test_configure_logging_replaces_default(self):
        logger = configure_logging(level="DEBUG", json_output=True, log_progress=True)

        assert get_logger() is logger
        assert logger.json_output is True
        assert logger.log_progress is True
