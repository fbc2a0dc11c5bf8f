from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from ..config.loader import default_config, load_config, load_env_file
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import setup_logging
from ..models.config_models import IntakeConfig
from ..models.job import Job, JobSnapshot
from ..models.raw_file import RawFile
from ..tabular.preview import TablePreview, build_preview
from ..transport.client import BackendClient
from .progress import RecordProgress
from .tracker import JobStatusTracker
from .upload import UploadCoordinator

"""Intake session: wires config, logging, client, coordinator and tracker.

Flow of run(path):
1. RawFile 読み込み
2. ローカルプレビュー (decode + normalize)。壊れたファイルはここで失敗しアップロードしない
3. submit -> Job -> tracker.attach
4. 収束待ち (timeout は呼び出し側が指定)
5. エラーログ flush
"""

__all__ = [
    "IntakeSession",
    "SessionResult",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionResult:
    preview: TablePreview
    job: Job
    snapshot: JobSnapshot


class IntakeSession:
    """Async context manager owning one client / coordinator / tracker set."""

    def __init__(
        self,
        config: IntakeConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        debug: bool = False,
    ) -> None:
        setup_logging(debug=debug)
        self.config = config or default_config()
        self.error_log = ErrorLogBuffer(Path(self.config.logs_directory))
        self.client = BackendClient(self.config.backend, transport=transport)
        self.progress = RecordProgress()
        self.tracker = JobStatusTracker(
            self.client,
            interval=self.config.polling.interval_seconds,
            on_snapshot=self.progress.update,
            error_log=self.error_log,
        )
        self.coordinator = UploadCoordinator(
            self.client, tracker=self.tracker, error_log=self.error_log
        )

    @classmethod
    def from_config_file(cls, path: Path, **kwargs: Any) -> IntakeSession:
        """Load .env (if present) and the YAML config, then build a session.

        Raises:
            ConfigError
        """
        load_env_file(Path(".env"), override=True)
        return cls(load_config(path), **kwargs)

    async def __aenter__(self) -> IntakeSession:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.tracker.cancel()
        self.progress.close()
        path = self.error_log.flush()
        if path is not None:
            logger.info(f"error log written: {path}")
        await self.client.close()

    def preview(self, raw: RawFile) -> TablePreview:
        return build_preview(
            raw,
            data_rows=self.config.preview.data_rows,
            preview_rows=self.config.preview.preview_rows,
        )

    async def run(self, path: Path, *, timeout: float | None = None) -> SessionResult:
        """Preview, upload and track one file until its job converges.

        Raises:
            DecodeError, BackendError, TrackingCancelledError, asyncio.TimeoutError
        """
        raw = RawFile.from_path(path)
        preview = self.preview(raw)
        logger.info(f"preview {preview.describe()}")
        job = await self.coordinator.submit(raw)
        try:
            snapshot = await self.tracker.wait_converged(timeout)
        finally:
            self.error_log.flush()
        return SessionResult(preview=preview, job=job, snapshot=snapshot)
