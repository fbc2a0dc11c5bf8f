from __future__ import annotations
from datetime import UTC, datetime

import pytest

from tabular_intake.models.job import (
    Job,
    JobSnapshot,
    ProcessingRecord,
    RecordStatus,
)


def _snapshot(*statuses: str) -> JobSnapshot:
    records = tuple(
        ProcessingRecord.from_payload({"id": i, "status": s}) for i, s in enumerate(statuses)
    )
    return JobSnapshot(job_id="j1", records=records, fetched_at=datetime.now(UTC))


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("done", RecordStatus.DONE),
        ("Done", RecordStatus.DONE),
        ("completed", RecordStatus.DONE),
        ("failed", RecordStatus.FAILED),
        ("ERROR", RecordStatus.FAILED),
        ("pending", RecordStatus.PENDING),
        ("processing", RecordStatus.PENDING),
        ("", RecordStatus.PENDING),
    ],
)
def test_record_status_parse(raw: str, expected: RecordStatus):
    assert RecordStatus.parse(raw) is expected


def test_record_from_payload_keeps_extra_fields_as_closed_values():
    rec = ProcessingRecord.from_payload(
        {"id": 7, "status": "done", "name": "Ada", "score": 1.5, "ok": True, "meta": {"a": [1, 2]}, "note": None}
    )
    assert rec.record_id == "7"
    assert rec.status is RecordStatus.DONE
    assert rec.status_text == "done"
    assert rec.fields["name"] == "Ada"
    assert rec.fields["score"] == 1.5
    assert rec.fields["ok"] is True
    assert rec.fields["note"] is None
    # ネスト値は JSON 文字列
    assert rec.fields["meta"] == '{"a": [1, 2]}'
    assert "id" not in rec.fields and "status" not in rec.fields


def test_record_fields_are_read_only():
    rec = ProcessingRecord.from_payload({"id": "1", "status": "pending", "x": 1})
    with pytest.raises(TypeError):
        rec.fields["x"] = 2  # type: ignore[index]


@pytest.mark.parametrize(
    "payload",
    [
        {"status": "done"},
        {"id": "1"},
        {"id": None, "status": "done"},
        ["id", "status"],
        "done",
    ],
)
def test_record_from_payload_rejects_invalid(payload: object):
    with pytest.raises(ValueError):
        ProcessingRecord.from_payload(payload)


def test_snapshot_counts():
    snap = _snapshot("done", "failed", "pending", "done")
    assert snap.total == 4
    assert snap.done_count == 2
    assert snap.failed_count == 1
    assert snap.pending_count == 1
    assert [r.record_id for r in snap.failed_records] == ["1"]
    assert snap.is_converged is False


def test_snapshot_converged_when_all_terminal():
    assert _snapshot("done", "done").is_converged is True
    # failed も終端扱い
    assert _snapshot("done", "failed").is_converged is True


def test_empty_snapshot_is_converged():
    # レコード 0 件のジョブは全件終端とみなす
    snap = _snapshot()
    assert snap.total == 0
    assert snap.is_converged is True


def test_job_create_is_utc_stamped():
    job = Job.create("abc")
    assert job.job_id == "abc"
    assert job.submitted_at.tzinfo is not None
