"""
Job orchestration for the trading dashboard.

Submitting analysis jobs into slots, polling them to completion, aggregating
their progress, and re-attaching to them after a reload.
"""

from .models import (
    AnalysisSnapshot,
    Job,
    JobSlot,
    JobStatus,
    PollState,
    StatusSnapshot,
    StockEntry,
    StockStatus,
    WatchlistEntry,
)
from .polling import JobHandle, JobObserver, PollingEngine
from .progress import ProgressReport, aggregate, aggregate_job, completion_message, summarize
from .recovery import SessionRecovery
from .selection import SelectionManager, filter_stocks
from .sources import AllStocksProgressSource, JobStatusSource, StatusSource, status_source_for
from .submitter import JobSubmitter

__all__ = [
    'AllStocksProgressSource',
    'AnalysisSnapshot',
    'Job',
    'JobHandle',
    'JobObserver',
    'JobSlot',
    'JobStatus',
    'JobStatusSource',
    'JobSubmitter',
    'PollState',
    'PollingEngine',
    'ProgressReport',
    'SelectionManager',
    'SessionRecovery',
    'StatusSnapshot',
    'StatusSource',
    'StockEntry',
    'StockStatus',
    'WatchlistEntry',
    'aggregate',
    'aggregate_job',
    'completion_message',
    'filter_stocks',
    'status_source_for',
    'summarize',
]
