"""
ProgressAggregator - derives display progress from raw status payloads.

This component is responsible for:
- Computing the completion percentage from completed/total counts
- Passing the backend's ETA string through unchanged
- Generating one-line progress summaries and completion messages

Counts are reported exactly as the backend sent them; they are not checked
against each other.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import Job, JobStatus, StatusSnapshot


@dataclass(frozen=True)
class ProgressReport:
    """Data class holding aggregated progress for display."""
    status: JobStatus
    percentage: int = 0
    total: int = 0
    completed: int = 0
    successful: int = 0
    analyzing: int = 0
    failed: int = 0
    pending: int = 0
    eta: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def buckets(self) -> Dict[str, int]:
        """Per-bucket stock counts."""
        return {
            "pending": self.pending,
            "analyzing": self.analyzing,
            "completed": self.completed,
            "failed": self.failed,
        }


def compute_percentage(completed: int, total: int) -> int:
    """Whole percent complete; 0 when there is nothing to do."""
    if total <= 0:
        return 0
    return (100 * completed) // total


def aggregate(snapshot: StatusSnapshot) -> ProgressReport:
    """Build a ProgressReport from the latest status snapshot."""
    return ProgressReport(
        status=snapshot.status,
        percentage=compute_percentage(snapshot.completed, snapshot.total),
        total=snapshot.total,
        completed=snapshot.completed,
        successful=snapshot.successful,
        analyzing=snapshot.analyzing,
        failed=snapshot.failed,
        pending=snapshot.pending,
        eta=snapshot.eta,
        errors=list(snapshot.errors),
    )


def aggregate_job(job: Job) -> ProgressReport:
    """Build a ProgressReport from the counts last applied to a job."""
    return ProgressReport(
        status=job.status,
        percentage=compute_percentage(job.completed, job.total),
        total=job.total,
        completed=job.completed,
        successful=job.successful,
        analyzing=job.analyzing,
        failed=job.failed,
        pending=job.pending,
        eta=job.eta,
        errors=list(job.errors),
    )


def summarize(report: ProgressReport) -> str:
    """Generate a human-readable progress summary."""
    summary = (
        f"Analyzing {report.completed}/{report.total} stocks "
        f"({report.percentage}% complete)"
    )
    if report.eta:
        summary += f" • ETA: {report.eta}"
    summary += (
        f" • Completed: {report.completed} Analyzing: {report.analyzing}"
        f" Failed: {report.failed} Pending: {report.pending}"
    )
    if report.error_count:
        summary += f" • {report.error_count} error(s) occurred"
    return summary


def completion_message(job: Job) -> str:
    """Message shown once a job reaches a terminal status."""
    if job.status is JobStatus.COMPLETED:
        analyzed = job.successful or job.completed
        return f"Analysis completed! {analyzed}/{job.total} stocks analyzed successfully."
    if job.status is JobStatus.FAILED:
        return "Analysis failed. Please check the logs."
    if job.status is JobStatus.CANCELLED:
        return "Analysis was cancelled."
    return f"Analysis {job.status.value}."
