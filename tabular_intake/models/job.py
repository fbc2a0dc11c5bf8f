from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Union

"""Job tracking domain models.

Job is created once the backend acknowledges an upload. Each poll produces a
JobSnapshot which replaces the previous one wholesale; records inside a
snapshot are never patched in place.

State transitions of a tracker: idle -> polling -> converged
"""

__all__ = [
    "FieldValue",
    "Job",
    "JobSnapshot",
    "ProcessingRecord",
    "RecordStatus",
    "TrackerState",
]

FieldValue = Union[str, int, float, bool, None]


class RecordStatus(Enum):
    """Per-record processing status reported by the backend.

    - PENDING: not yet processed (also any unknown status string)
    - DONE: processed successfully
    - FAILED: processing failed; still terminal for convergence
    """
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RecordStatus.PENDING

    @classmethod
    def parse(cls, raw: Any) -> RecordStatus:
        text = str(raw).strip().lower()
        if text in ("done", "completed", "success"):
            return cls.DONE
        if text in ("failed", "error"):
            return cls.FAILED
        return cls.PENDING


class TrackerState(Enum):
    IDLE = "idle"
    POLLING = "polling"
    CONVERGED = "converged"


@dataclass(frozen=True)
class Job:
    """One backend-tracked unit of asynchronous multi-record processing."""
    job_id: str
    submitted_at: datetime

    @staticmethod
    def create(job_id: str) -> Job:
        return Job(job_id=job_id, submitted_at=datetime.now(UTC))


def _field_value(value: Any) -> FieldValue:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    # ネストした JSON 値は文字列化して閉じた型に収める
    return json.dumps(value, ensure_ascii=False, sort_keys=True)


@dataclass(frozen=True)
class ProcessingRecord:
    """Backend view of a single record of a Job.

    Attributes:
        record_id: backend record id (stringified)
        status: parsed RecordStatus
        status_text: status string as the backend sent it
        fields: every other key of the payload, read-only
    """
    record_id: str
    status: RecordStatus
    status_text: str = ""
    fields: Mapping[str, FieldValue] = field(default_factory=lambda: MappingProxyType({}))

    @staticmethod
    def from_payload(payload: Any) -> ProcessingRecord:
        """Build a record from one element of the records array.

        Raises:
            ValueError: payload is not an object or lacks id/status
        """
        if not isinstance(payload, dict):
            raise ValueError(f"record must be an object, got {type(payload).__name__}")
        if payload.get("id") is None:
            raise ValueError("record lacks 'id'")
        if payload.get("status") is None:
            raise ValueError(f"record {payload['id']!r} lacks 'status'")
        extra = {
            str(k): _field_value(v) for k, v in payload.items() if k not in ("id", "status")
        }
        return ProcessingRecord(
            record_id=str(payload["id"]),
            status=RecordStatus.parse(payload["status"]),
            status_text=str(payload["status"]),
            fields=MappingProxyType(extra),
        )


@dataclass(frozen=True)
class JobSnapshot:
    """Full state of all records of a Job as observed at one poll."""
    job_id: str
    records: tuple[ProcessingRecord, ...]
    fetched_at: datetime
    poll_number: int = 1

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def done_count(self) -> int:
        return sum(1 for r in self.records if r.status is RecordStatus.DONE)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.records if r.status is RecordStatus.FAILED)

    @property
    def pending_count(self) -> int:
        return self.total - self.done_count - self.failed_count

    @property
    def failed_records(self) -> tuple[ProcessingRecord, ...]:
        return tuple(r for r in self.records if r.status is RecordStatus.FAILED)

    @property
    def is_converged(self) -> bool:
        """True when every record is terminal (vacuously true for zero records)."""
        return all(r.status.is_terminal for r in self.records)
