from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import Mock, patch

from tabular_intake.models.job import JobSnapshot, ProcessingRecord
from tabular_intake.services.progress import RecordProgress, is_tty_enabled


def _snapshot(*statuses: str, job_id: str = "j1") -> JobSnapshot:
    records = tuple(
        ProcessingRecord.from_payload({"id": i, "status": s}) for i, s in enumerate(statuses)
    )
    return JobSnapshot(job_id=job_id, records=records, fetched_at=datetime.now(UTC))


def test_is_tty_enabled_returns_stdout_isatty():
    """Test that is_tty_enabled returns sys.stdout.isatty()."""
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestRecordProgress:
    """Test cases for RecordProgress class."""

    def test_init_does_not_create_bar_before_first_snapshot(self):
        with patch('tabular_intake.services.progress.is_tty_enabled', return_value=True), \
             patch('tabular_intake.services.progress.tqdm') as mock_tqdm:

            progress = RecordProgress(description="Records")

            assert progress.enabled is True
            assert progress.total == 0
            assert progress.pbar is None
            mock_tqdm.assert_not_called()

    def test_first_update_creates_bar_with_tty_enabled(self):
        mock_pbar = Mock()
        mock_pbar.total = 3

        with patch('tabular_intake.services.progress.is_tty_enabled', return_value=True), \
             patch('tabular_intake.services.progress.tqdm', return_value=mock_pbar) as mock_tqdm:

            progress = RecordProgress(description="Records")
            progress.update(_snapshot("done", "failed", "pending", job_id="42"))

            mock_tqdm.assert_called_once_with(
                total=3,
                desc="Records (job 42)",
                unit="record",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
            assert mock_pbar.n == 2
            mock_pbar.set_postfix.assert_called_once_with(done=1, failed=1)
            mock_pbar.refresh.assert_called_once()
            assert progress.completed == 2

    def test_update_adjusts_total_when_records_grow(self):
        mock_pbar = Mock()
        mock_pbar.total = 1

        with patch('tabular_intake.services.progress.is_tty_enabled', return_value=True), \
             patch('tabular_intake.services.progress.tqdm', return_value=mock_pbar) as mock_tqdm:

            progress = RecordProgress()
            progress.update(_snapshot("pending"))
            progress(_snapshot("done", "pending"))

            mock_tqdm.assert_called_once()
            assert mock_pbar.total == 2
            assert mock_pbar.n == 1

    def test_update_with_tty_disabled(self):
        with patch('tabular_intake.services.progress.is_tty_enabled', return_value=False), \
             patch('tabular_intake.services.progress.tqdm') as mock_tqdm:

            progress = RecordProgress()
            progress.update(_snapshot("done", "pending"))

            assert progress.enabled is False
            assert progress.pbar is None
            assert progress.total == 2
            assert progress.completed == 1
            mock_tqdm.assert_not_called()

    def test_close_with_tty_enabled(self):
        mock_pbar = Mock()
        mock_pbar.total = 1

        with patch('tabular_intake.services.progress.is_tty_enabled', return_value=True), \
             patch('tabular_intake.services.progress.tqdm', return_value=mock_pbar):

            progress = RecordProgress()
            progress.update(_snapshot("done"))
            progress.close()
            progress.close()

            mock_pbar.close.assert_called_once()
            assert progress.pbar is None

    def test_close_with_tty_disabled(self):
        with patch('tabular_intake.services.progress.is_tty_enabled', return_value=False):
            progress = RecordProgress()
            progress.close()
            # Should not raise any errors

    def test_context_manager(self):
        mock_pbar = Mock()
        mock_pbar.total = 1

        with patch('tabular_intake.services.progress.is_tty_enabled', return_value=True), \
             patch('tabular_intake.services.progress.tqdm', return_value=mock_pbar):

            with RecordProgress() as progress:
                assert isinstance(progress, RecordProgress)
                progress.update(_snapshot("done"))

            mock_pbar.close.assert_called_once()
