from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the tabular intake client.

These are populated by tabular_intake.config.loader from YAML + environment.
Defaults here are the built-in values used when a key is absent.
"""

DEFAULT_BASE_URL = "http://127.0.0.1:8000"


@dataclass(frozen=True)
class BackendConfig:
    """Backend HTTP endpoints.

    Path templates use str.format placeholders: {job_id} / {file_id}.
    """
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 30.0
    upload_path: str = "/upload"
    records_path: str = "/jobs/{job_id}/records"
    files_path: str = "/files"
    output_files_path: str = "/files/output"
    download_path: str = "/download/{file_id}"


@dataclass(frozen=True)
class PollingConfig:
    """Job status polling settings."""
    interval_seconds: float = 2.0  # 前回ポーリング完了から次回開始までの間隔


@dataclass(frozen=True)
class PreviewConfig:
    """Local preview sizes (first N normalized records)."""
    data_rows: int = 100
    preview_rows: int = 5


@dataclass(frozen=True)
class IntakeConfig:
    """Root configuration object."""
    backend: BackendConfig = field(default_factory=BackendConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    logs_directory: str = "./logs"
