"""
Status sources used by the polling engine.

Single and watchlist jobs are tracked through ``GET /status/{job_id}``; a full
"analyze all stocks" run is tracked through ``GET /all-stocks/progress``.
Both are normalized into a StatusSnapshot here so the engine only deals with
one shape. A payload that cannot be read is treated as a transport failure.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from ..api.client import AnalysisApiClient
from ..exceptions import TransportError
from .models import JobSlot, JobStatus, StatusSnapshot
from .progress import compute_percentage


class StatusSource(ABC):
    """Fetches the status of one job and sends cancellation requests."""

    def __init__(self, client: AnalysisApiClient):
        self.client = client

    @abstractmethod
    async def fetch(self, job_id: str) -> StatusSnapshot:
        """Fetch and normalize the current status of job_id."""
        pass

    async def cancel(self, job_id: str) -> None:
        await self.client.cancel_job(job_id)


class JobStatusSource(StatusSource):
    """Status of a ticker or watchlist job."""

    async def fetch(self, job_id: str) -> StatusSnapshot:
        data = await self.client.get_job_status(job_id)
        try:
            return parse_job_status(data)
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError('GET', f'/status/{job_id}', f"malformed status payload: {e}") from e


class AllStocksProgressSource(StatusSource):
    """
    Progress of a full-universe run.

    The run counts as finished once the backend is no longer analyzing and no
    stock is in the analyzing bucket.
    """

    async def fetch(self, job_id: str) -> StatusSnapshot:
        data = await self.client.get_all_stocks_progress()
        try:
            return parse_all_stocks_progress(data)
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError('GET', '/all-stocks/progress', f"malformed progress payload: {e}") from e


def status_source_for(slot: JobSlot, client: AnalysisApiClient) -> StatusSource:
    if slot is JobSlot.ALL_STOCKS:
        return AllStocksProgressSource(client)
    return JobStatusSource(client)


def parse_job_status(data: Dict[str, Any]) -> StatusSnapshot:
    return StatusSnapshot(
        status=JobStatus(data['status']),
        progress=_count(data, 'progress'),
        total=_count(data, 'total'),
        completed=_count(data, 'completed'),
        successful=_count(data, 'successful'),
        analyzing=_count(data, 'analyzing'),
        failed=_count(data, 'failed'),
        pending=_count(data, 'pending'),
        errors=tuple(str(error) for error in data.get('errors') or ()),
        eta=data.get('estimated_time_remaining'),
    )


def parse_all_stocks_progress(data: Dict[str, Any]) -> StatusSnapshot:
    analyzing = _count(data, 'analyzing')
    still_running = bool(data.get('is_analyzing')) or analyzing > 0
    total = _count(data, 'total')
    completed = _count(data, 'completed')

    return StatusSnapshot(
        status=JobStatus.RUNNING if still_running else JobStatus.COMPLETED,
        progress=compute_percentage(completed, total),
        total=total,
        completed=completed,
        analyzing=analyzing,
        failed=_count(data, 'failed'),
        pending=_count(data, 'pending'),
        eta=data.get('estimated_time_remaining'),
    )


def _count(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    return int(value)
