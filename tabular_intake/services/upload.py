from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ErrorRecord
from ..models.job import Job
from ..models.raw_file import RawFile
from ..tabular.decoder import detect_format
from ..transport.client import BackendClient, BackendError

if TYPE_CHECKING:
    from .tracker import JobStatusTracker

"""Upload coordinator: lifecycle of one file submission.

raw file -> format check -> one POST -> job id -> Job -> tracker.attach(job)

- リトライしない (再送はバックエンド側で冪等とは限らない)
- 同時に 1 件のみ。実行中の submit があれば SubmissionInProgressError (キューしない)
- 失敗時は Job を作らず tracker も attach しない
"""

__all__ = [
    "SubmissionInProgressError",
    "UploadCoordinator",
]

logger = logging.getLogger(__name__)


class SubmissionInProgressError(RuntimeError):
    """Raised when submit() is called while another submission is in flight."""


class UploadCoordinator:
    def __init__(
        self,
        client: BackendClient,
        *,
        tracker: JobStatusTracker | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self._client = client
        self._tracker = tracker
        self._error_log = error_log
        self._in_flight: RawFile | None = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    async def submit(self, raw: RawFile) -> Job:
        """Upload a RawFile and return the Job the backend created for it.

        Raises:
            UnsupportedFormatError: the file is not CSV / XLS / XLSX (no request sent)
            SubmissionInProgressError: another submit is still running
            TransportError / RejectedUploadError / MalformedResponseError
        """
        if self._in_flight is not None:
            raise SubmissionInProgressError(
                f"submission of {self._in_flight.name!r} still in flight"
            )
        fmt = detect_format(raw)

        self._in_flight = raw
        logger.info(f"uploading file={raw.name} bytes={raw.size} format={fmt.value}")
        try:
            job_id = await self._client.upload(raw)
        except BackendError as exc:
            logger.error(f"upload failed file={raw.name}: {exc}")
            if self._error_log is not None:
                self._error_log.append(ErrorRecord.from_exception("-", "submit", exc))
            raise
        finally:
            self._in_flight = None

        job = Job.create(job_id)
        logger.info(f"upload accepted file={raw.name} job={job.job_id}")
        if self._tracker is not None:
            await self._tracker.attach(job)
        return job
