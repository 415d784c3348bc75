"""
Data classes shared by the job orchestration layer.

A Job is only ever changed by applying a StatusSnapshot fetched from the
backend; nothing here increments counters locally.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..caching.cache_store import CacheKey
from ..config.schema import PollingConfig


class JobStatus(str, Enum):
    """Job status as reported by the backend."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class PollState(str, Enum):
    """States of a slot's polling state machine."""
    IDLE = "idle"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    ERRORED = "errored"  # status fetch failed, not a job-reported failure


class JobSlot(str, Enum):
    """Logical channel hosting at most one running job."""
    SINGLE = "single"
    WATCHLIST = "watchlist"
    ALL_STOCKS = "all_stocks"

    @property
    def cache_key(self) -> str:
        """Key of the list that goes stale when a job runs in this slot."""
        if self is JobSlot.ALL_STOCKS:
            return CacheKey.all_stocks()
        return CacheKey.watchlist()

    @property
    def accepts_empty_selection(self) -> bool:
        # An empty symbol list means "analyze everything"
        return self is JobSlot.ALL_STOCKS

    def poll_interval(self, polling: PollingConfig) -> float:
        return {
            JobSlot.SINGLE: polling.single_interval,
            JobSlot.WATCHLIST: polling.watchlist_interval,
            JobSlot.ALL_STOCKS: polling.all_stocks_interval,
        }[self]


@dataclass(frozen=True)
class StatusSnapshot:
    """One poll result, normalized across the job and all-stocks endpoints."""
    status: JobStatus
    progress: int = 0
    total: int = 0
    completed: int = 0
    successful: int = 0
    analyzing: int = 0
    failed: int = 0
    pending: int = 0
    errors: Tuple[str, ...] = ()
    eta: Optional[str] = None


@dataclass
class Job:
    """A backend-tracked analysis run."""
    job_id: str
    slot: JobSlot
    identifiers: Tuple[str, ...] = ()
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    total: int = 0
    completed: int = 0
    successful: int = 0
    analyzing: int = 0
    failed: int = 0
    pending: int = 0
    errors: List[str] = field(default_factory=list)
    eta: Optional[str] = None
    submitted_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def submitted(cls, job_id: str, slot: JobSlot, identifiers: Tuple[str, ...]) -> "Job":
        return cls(job_id=job_id, slot=slot, identifiers=identifiers,
                   total=len(identifiers), pending=len(identifiers))

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def apply(self, snapshot: StatusSnapshot) -> None:
        """Take counts from a fresh snapshot; progress never moves backwards."""
        self.status = snapshot.status
        self.progress = min(100, max(self.progress, snapshot.progress))
        self.total = snapshot.total
        self.completed = snapshot.completed
        self.successful = snapshot.successful
        self.analyzing = snapshot.analyzing
        self.failed = snapshot.failed
        self.pending = snapshot.pending
        self.errors = list(snapshot.errors)
        self.eta = snapshot.eta

    def mark_cancelled(self) -> None:
        self.status = JobStatus.CANCELLED


class StockStatus(str, Enum):
    """Per-stock analysis status in the all-stocks list."""
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class StockEntry:
    """One row of the all-stocks list, keyed by yahoo_symbol."""
    yahoo_symbol: str
    symbol: str
    name: str = ""
    status: StockStatus = StockStatus.PENDING
    score: Optional[float] = None
    verdict: Optional[str] = None
    entry: Optional[float] = None
    target: Optional[float] = None
    has_analysis: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StockEntry":
        try:
            status = StockStatus(data.get('status') or StockStatus.PENDING.value)
        except ValueError:
            status = StockStatus.PENDING
        return cls(
            yahoo_symbol=data['yahoo_symbol'],
            symbol=data.get('symbol') or data['yahoo_symbol'],
            name=data.get('name') or "",
            status=status,
            score=_optional_float(data.get('score')),
            verdict=data.get('verdict'),
            entry=_optional_float(data.get('entry')),
            target=_optional_float(data.get('target')),
            has_analysis=bool(data.get('has_analysis', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data


@dataclass(frozen=True)
class AnalysisSnapshot:
    """A single historical analysis of one stock."""
    analyzed_at: Optional[str] = None
    score: Optional[float] = None
    verdict: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisSnapshot":
        details = {k: v for k, v in data.items() if k not in ('analyzed_at', 'score', 'verdict')}
        return cls(
            analyzed_at=data.get('analyzed_at'),
            score=_optional_float(data.get('score')),
            verdict=data.get('verdict'),
            details=details,
        )


@dataclass(frozen=True)
class WatchlistEntry:
    """A watchlist stock with the verdict of its latest analysis."""
    symbol: str
    name: str = ""
    verdict: str = "No analysis available"
    confidence: float = 0.0
    has_analysis: bool = False

    @classmethod
    def from_history(cls, data: Dict[str, Any],
                     history: List[AnalysisSnapshot]) -> "WatchlistEntry":
        symbol = data['symbol']
        name = data.get('name') or ""
        if not history:
            return cls(symbol=symbol, name=name)

        latest = history[0]
        # Scores are 0-100, confidence is a fraction
        confidence = (latest.score / 100) if latest.score else 0.0
        return cls(
            symbol=symbol,
            name=name,
            verdict=latest.verdict or '-',
            confidence=confidence,
            has_analysis=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)
