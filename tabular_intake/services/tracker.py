from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary
from ..models.error_record import ErrorRecord
from ..models.job import Job, JobSnapshot, TrackerState
from ..transport.client import BackendClient, BackendError
from .summary import render_job_summary_body

"""Job status tracker: polling state machine over one Job.

States: idle -> polling -> converged

- attach(job): 既存ループを完全に停止してから新しい Job のポーリングを開始
- attach / cancel は lock で直列化。同時 attach でもループは常に 1 本
- 初回は即時 fetch, 以降は「前回完了 -> interval 秒 -> 次回開始」
- ポーリングは直列。前回の応答処理が終わるまで次のリクエストは出さない
- 各ループは generation を持ち、現在の generation と異なる応答は破棄する
- snapshot は丸ごと差し替え (単一代入)。部分更新はしない
- 全レコードが終端 (done / failed) になったら converged。以後 fetch しない
- 1 回のポーリング失敗は致命的ではない: 記録して次の tick で継続
"""

__all__ = [
    "JobStatusTracker",
    "PollError",
    "TrackingCancelledError",
]

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[JobSnapshot], None]


class PollError(Exception):
    """A single failed poll. Reported, never raised out of the polling loop."""

    def __init__(self, job_id: str, poll_number: int, cause: BackendError) -> None:
        super().__init__(f"poll #{poll_number} for job {job_id} failed: {cause}")
        self.job_id = job_id
        self.poll_number = poll_number
        self.cause = cause


class TrackingCancelledError(Exception):
    """Raised to wait_converged() callers when tracking stopped before convergence."""


ErrorCallback = Callable[[PollError], None]


class JobStatusTracker:
    """Polls per-record status of one Job until every record is terminal.

    Parameters
    ----------
    client : BackendClient
        Source of record snapshots (fetch_records).
    interval : float
        Seconds between the end of one poll and the start of the next.
    on_snapshot : callable, optional
        Called with every stored snapshot.
    on_error : callable, optional
        Called with every PollError.
    error_log : ErrorLogBuffer, optional
        Poll failures are appended as ErrorRecord(stage="poll").
    """

    def __init__(
        self,
        client: BackendClient,
        *,
        interval: float = 2.0,
        on_snapshot: SnapshotCallback | None = None,
        on_error: ErrorCallback | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self._client = client
        self.interval = interval
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._error_log = error_log

        self._state = TrackerState.IDLE
        self._job: Job | None = None
        self._snapshot: JobSnapshot | None = None
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._stopped = asyncio.Event()
        self._started_at = 0.0

        self.poll_count = 0
        self.poll_failures = 0
        self.last_error: PollError | None = None

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def job(self) -> Job | None:
        return self._job

    @property
    def snapshot(self) -> JobSnapshot | None:
        """Latest complete snapshot (None before the first successful poll)."""
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    async def attach(self, job: Job) -> None:
        """Start tracking a Job, stopping any previous polling loop first.

        Concurrent attach() calls are serialized; the last one to run wins.
        """
        async with self._lock:
            await self._stop_polling()
            self._generation += 1
            self._job = job
            self._snapshot = None
            self._stopped = asyncio.Event()
            self.poll_count = 0
            self.poll_failures = 0
            self.last_error = None
            self._started_at = time.monotonic()
            self._state = TrackerState.POLLING
            logger.info(f"tracking job={job.job_id} interval={self.interval}s")
            self._task = asyncio.create_task(
                self._run(job, self._generation), name=f"poll-job-{job.job_id}"
            )
            self._task.add_done_callback(self._on_task_done)

    async def cancel(self) -> None:
        """Stop polling. Idempotent; a converged tracker stays converged."""
        async with self._lock:
            await self._stop_polling()

    async def _stop_polling(self) -> None:
        # caller holds self._lock
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._state is TrackerState.POLLING:
            # 旧ループの遅延応答を破棄させる
            self._generation += 1
            self._state = TrackerState.IDLE
            self._stopped.set()
            logger.info(f"tracking cancelled job={self._job.job_id if self._job else '-'}")

    async def wait_converged(self, timeout: float | None = None) -> JobSnapshot:
        """Wait until the attached Job converges and return its final snapshot.

        Raises:
            TrackingCancelledError: no job attached, or tracking was cancelled / replaced
            asyncio.TimeoutError: timeout elapsed (polling keeps running)
        """
        if self._job is None:
            raise TrackingCancelledError("no job attached")
        job = self._job
        stopped = self._stopped
        if timeout is None:
            await stopped.wait()
        else:
            await asyncio.wait_for(stopped.wait(), timeout)
        if self._job is not job or self._state is not TrackerState.CONVERGED:
            raise TrackingCancelledError(f"tracking of job {job.job_id} stopped before convergence")
        snapshot = self._snapshot
        if snapshot is None:
            raise TrackingCancelledError(f"job {job.job_id} converged without a snapshot")
        return snapshot

    async def _run(self, job: Job, generation: int) -> None:
        poll_number = 0
        while True:
            poll_number += 1
            try:
                records = await self._client.fetch_records(job.job_id)
            except BackendError as exc:
                if generation != self._generation:
                    return
                self.poll_count = poll_number
                self._report_error(PollError(job.job_id, poll_number, exc))
            else:
                if generation != self._generation:
                    logger.debug(f"discarding stale response job={job.job_id} poll={poll_number}")
                    return
                self.poll_count = poll_number
                snapshot = JobSnapshot(
                    job_id=job.job_id,
                    records=records,
                    fetched_at=datetime.now(UTC),
                    poll_number=poll_number,
                )
                self._snapshot = snapshot
                logger.debug(
                    f"poll #{poll_number} job={job.job_id} total={snapshot.total} "
                    f"done={snapshot.done_count} failed={snapshot.failed_count}"
                )
                if self._on_snapshot is not None:
                    self._on_snapshot(snapshot)
                if snapshot.is_converged:
                    self._converge(snapshot)
                    return
            await asyncio.sleep(self.interval)

    def _converge(self, snapshot: JobSnapshot) -> None:
        self._state = TrackerState.CONVERGED
        elapsed = time.monotonic() - self._started_at
        if snapshot.failed_count:
            ids = ", ".join(r.record_id for r in snapshot.failed_records)
            logger.warning(f"job={snapshot.job_id} finished with failed records: {ids}")
        log_summary(
            render_job_summary_body(
                snapshot,
                polls=self.poll_count,
                poll_failures=self.poll_failures,
                elapsed_seconds=round(elapsed, 3),
            )
        )
        self._stopped.set()

    def _report_error(self, error: PollError) -> None:
        self.poll_failures += 1
        self.last_error = error
        logger.warning(str(error))
        if self._error_log is not None:
            self._error_log.append(ErrorRecord.from_exception(error.job_id, "poll", error.cause))
        if self._on_error is not None:
            self._on_error(error)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            # コールバック等の想定外例外: ループは停止済み
            logger.error(f"polling loop crashed: {exc!r}")
            if self._task is task:
                self._state = TrackerState.IDLE
                self._stopped.set()
