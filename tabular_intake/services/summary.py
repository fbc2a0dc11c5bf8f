from __future__ import annotations

from ..models.job import JobSnapshot

"""Summary line rendering for a converged job.

Format:
SUMMARY job={id} records={n} done={d} failed={f} polls={p} poll_failures={e} elapsed_sec={s}

render_job_summary_body() は "SUMMARY " ラベルを含まない本体部分。
ラベルはログ出力時に LabeledFormatter が付与する。
"""

SUMMARY_LABEL = "SUMMARY"


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # Format very small numbers to avoid scientific notation
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_job_summary_body(
    snapshot: JobSnapshot, *, polls: int, poll_failures: int, elapsed_seconds: float
) -> str:
    """Render the key=value fields of a job summary, without the label."""
    return (
        f"job={snapshot.job_id} "
        f"records={snapshot.total} "
        f"done={snapshot.done_count} "
        f"failed={snapshot.failed_count} "
        f"polls={polls} "
        f"poll_failures={poll_failures} "
        f"elapsed_sec={_format_seconds(elapsed_seconds)}"
    )


def render_job_summary(
    snapshot: JobSnapshot, *, polls: int, poll_failures: int, elapsed_seconds: float
) -> str:
    """Render the SUMMARY line of a job from its final snapshot.

    Examples:
        >>> from datetime import datetime, timezone
        >>> snap = JobSnapshot(job_id="42", records=(), fetched_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        >>> render_job_summary(snap, polls=3, poll_failures=1, elapsed_seconds=4.0)
        'SUMMARY job=42 records=0 done=0 failed=0 polls=3 poll_failures=1 elapsed_sec=4'
    """
    body = render_job_summary_body(
        snapshot, polls=polls, poll_failures=poll_failures, elapsed_seconds=elapsed_seconds
    )
    return f"{SUMMARY_LABEL} {body}"
