"""
Tests for status record types and patch merging.
"""

import pytest

from job_status import JobStatus, StatusRecord, merge_patches


def make_record(**overrides) -> StatusRecord:
    values = {
        "uuid": "abc123",
        "name": "ExportJob",
        "status": JobStatus.WORKING,
        "options": {"rows": 10},
        "time": 1_700_000_000,
        "started_at": 1_700_000_000,
    }
    values.update(overrides)
    return StatusRecord(**values)


class TestMergePatches:
    """Tests for merge_patches."""

    def test_later_patch_wins(self):
        record = merge_patches(make_record(), {"message": "first"}, {"message": "second"})
        assert record.message == "second"

    def test_unspecified_fields_preserved(self):
        """Setting only a message keeps options and started_at."""
        record = merge_patches(make_record(), {"message": "halfway"})

        assert record.options == {"rows": 10}
        assert record.started_at == 1_700_000_000
        assert record.name == "ExportJob"
        assert record.status is JobStatus.WORKING

    def test_started_at_immutable_once_set(self):
        record = merge_patches(make_record(), {"started_at": 1_800_000_000})
        assert record.started_at == 1_700_000_000

    def test_started_at_set_when_absent(self):
        record = merge_patches(make_record(started_at=None), {"started_at": 1_800_000_000})
        assert record.started_at == 1_800_000_000

    def test_uuid_never_changes(self):
        record = merge_patches(make_record(), {"uuid": "other"})
        assert record.uuid == "abc123"

    def test_unknown_keys_become_extension_fields(self):
        record = merge_patches(make_record(), {"output_url": "s3://bucket/out.csv"})

        assert record.extra == {"output_url": "s3://bucket/out.csv"}
        assert record["output_url"] == "s3://bucket/out.csv"
        assert record.to_dict()["output_url"] == "s3://bucket/out.csv"

    def test_extension_fields_survive_later_patches(self):
        record = merge_patches(make_record(), {"output_url": "s3://x"})
        record = merge_patches(record, {"message": "done"})
        assert record.get("output_url") == "s3://x"

    def test_string_status_coerced(self):
        record = merge_patches(make_record(), {"status": "completed"})
        assert record.status is JobStatus.COMPLETED

    def test_record_patch_applies_all_fields(self):
        patch = make_record(message="from record", num=3, total=4)
        record = merge_patches(make_record(), patch)
        assert record.message == "from record"
        assert (record.num, record.total) == (3, 4)

    def test_none_patch_skipped(self):
        record = merge_patches(make_record(message="kept"), None)
        assert record.message == "kept"

    def test_input_record_not_mutated(self):
        original = make_record()
        merge_patches(original, {"message": "changed", "custom": 1})
        assert original.message is None
        assert original.extra == {}


class TestPctComplete:
    """Tests for the pct_complete property."""

    def test_completed_is_100(self):
        assert make_record(status=JobStatus.COMPLETED, num=1, total=10).pct_complete == 100

    def test_ratio_truncated(self):
        assert make_record(num=1, total=3).pct_complete == 33
        assert make_record(num=3, total=4).pct_complete == 75

    def test_without_counters_is_zero(self):
        assert make_record().pct_complete == 0

    def test_zero_total_is_zero(self):
        assert make_record(num=0, total=0).pct_complete == 0


class TestJobStatus:
    """Tests for JobStatus and transition rules."""

    def test_terminal_statuses(self):
        assert {s for s in JobStatus if s.is_terminal} == {
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.KILLED,
        }

    def test_killable_statuses(self):
        assert {s for s in JobStatus if s.is_killable} == {JobStatus.QUEUED, JobStatus.WORKING}

    @pytest.mark.parametrize("current,new,allowed", [
        (JobStatus.QUEUED, JobStatus.WORKING, True),
        (JobStatus.QUEUED, JobStatus.COMPLETED, False),
        (JobStatus.QUEUED, JobStatus.FAILED, True),
        (JobStatus.WORKING, JobStatus.KILLED, True),
        (JobStatus.FAILED, JobStatus.QUEUED, True),
        (JobStatus.COMPLETED, JobStatus.WORKING, False),
        (JobStatus.KILLED, JobStatus.QUEUED, False),
        (JobStatus.COMPLETED, JobStatus.COMPLETED, True),
    ])
    def test_can_transition_to(self, current, new, allowed):
        assert make_record(status=current).can_transition_to(new) is allowed


class TestSerialization:
    """Tests for the flat stored shape."""

    def test_dict_round_trip(self):
        record = make_record(message="hi", num=1, total=2, extra={"custom": [1, 2]})
        assert StatusRecord.from_dict(record.to_dict()) == record

    def test_status_stored_as_string(self):
        assert make_record().to_dict()["status"] == "working"

    def test_parent_uuid_falls_back_to_options(self):
        record = StatusRecord.from_dict({
            "uuid": "child",
            "options": {"_parent_uuid": "parent"},
        })
        assert record.parent_uuid == "parent"
        assert record.status is JobStatus.QUEUED

    def test_from_json(self):
        record = StatusRecord.from_json('{"uuid": "u1", "status": "failed", "message": "x"}')
        assert record.is_failed
        assert record.message == "x"
