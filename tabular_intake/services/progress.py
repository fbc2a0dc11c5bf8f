from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.job import JobSnapshot

"""Record progress display with tqdm (TTY only).

- Single tqdm instance, disabled in non-TTY environments (CI) to avoid ANSI spam
- Fed with every JobSnapshot: bar position = terminal records, total = records
"""

__all__ = [
    "RecordProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class RecordProgress:
    """Progress bar of terminal / total records of the tracked job.

    Usable directly as a tracker on_snapshot callback.
    """

    def __init__(self, *, description: str = "Processing records") -> None:
        self.description = description
        self.total = 0
        self.completed = 0
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None

    def update(self, snapshot: JobSnapshot) -> None:
        self.total = snapshot.total
        self.completed = snapshot.total - snapshot.pending_count
        if not self.enabled:
            return
        if self.pbar is None:
            self.pbar = tqdm(
                total=self.total,
                desc=f"{self.description} (job {snapshot.job_id})",
                unit="record",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        elif self.pbar.total != self.total:
            # バックエンドがレコードを後から追加した場合
            self.pbar.total = self.total
        self.pbar.n = self.completed
        self.pbar.set_postfix(done=snapshot.done_count, failed=snapshot.failed_count)
        self.pbar.refresh()

    __call__ = update

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> RecordProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
