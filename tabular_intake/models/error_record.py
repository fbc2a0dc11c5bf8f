from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

Structured record for submission and polling failures, written as JSON Lines
by ErrorLogBuffer. The key set is fixed (see tabular_intake/logging/error_log_schema.json).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        job_id: Job id, or "-" when no Job exists yet (submission failures)
        stage: "submit" or "poll"
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description
    """
    timestamp: str  # ISO8601 UTC
    job_id: str
    stage: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(job_id: str, stage: str, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            job_id=job_id,
            stage=stage,
            error_type=error_type,
            message=message,
        )

    @staticmethod
    def from_exception(job_id: str, stage: str, exc: BaseException) -> ErrorRecord:
        """Create a record classified by the exception class (TransportError -> TRANSPORT_ERROR)."""
        error_type = re.sub(r"(?<!^)(?=[A-Z])", "_", type(exc).__name__).upper()
        return ErrorRecord.create(job_id, stage, error_type, str(exc))

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
