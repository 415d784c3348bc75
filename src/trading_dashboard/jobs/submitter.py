"""
JobSubmitter - turns a stock selection into exactly one backend job.

Order of operations for a submission:

1. Reject if the slot is busy or the selection is empty.
2. Invalidate the slot's cached list, before anything is sent.
3. Send one job-creation request (never retried).
4. Record the job id in the session, start the slot's PollingEngine and
   clear the slot's selection.
"""

from typing import Dict, Iterable, List, Optional, Set

from ..api.client import AnalysisApiClient
from ..caching.cache_store import CacheStore, SessionMarkers
from ..config.logging_config import get_logger, log_job_event
from ..exceptions import EmptySelectionError, SlotBusyError, TransportError
from .models import Job, JobSlot
from .polling import JobHandle, PollingEngine
from .selection import SelectionManager

logger = get_logger(__name__)


class JobSubmitter:
    """Submits analysis jobs into slots, one running job per slot."""

    def __init__(self,
                 client: AnalysisApiClient,
                 engines: Dict[JobSlot, PollingEngine],
                 cache: CacheStore,
                 markers: SessionMarkers,
                 selections: Optional[Dict[JobSlot, SelectionManager]] = None,
                 indicators: Optional[List[str]] = None):
        self.client = client
        self.engines = engines
        self.cache = cache
        self.markers = markers
        self.selections = selections or {}
        self.indicators = indicators
        self._submitting: Set[JobSlot] = set()

    def is_busy(self, slot: JobSlot) -> bool:
        return slot in self._submitting or self.engines[slot].is_busy

    async def submit(self, slot: JobSlot, identifiers: Iterable[str],
                     indicators: Optional[List[str]] = None) -> JobHandle:
        """
        Start an analysis job for identifiers in slot.

        For the all-stocks slot an empty selection means every stock.

        Raises
        ------
        SlotBusyError
            The slot already hosts a job that has not finished
        EmptySelectionError
            Nothing selected for a slot that needs a selection
        TransportError
            The job could not be created
        """
        engine = self.engines[slot]
        if self.is_busy(slot):
            active = engine.job.job_id if engine.job else None
            raise SlotBusyError(slot.value, active)

        tickers = _dedupe(identifiers)
        if not tickers and not slot.accepts_empty_selection:
            raise EmptySelectionError(slot.value)

        # Reserved until the engine takes over, so a second submit cannot race past the check
        self._submitting.add(slot)
        try:
            self.cache.invalidate(slot.cache_key)
            job_id = await self._create_job(slot, tickers, indicators)
        finally:
            self._submitting.discard(slot)

        # A recovered job may have taken the slot while the request was in flight
        if engine.is_busy:
            logger.warning(f"Slot {slot.value} was taken by {engine.job.job_id} while submitting, "
                           f"job {job_id} is not tracked")
            raise SlotBusyError(slot.value, engine.job.job_id)

        job = Job.submitted(job_id, slot, tuple(tickers))
        self.markers.set(slot.value, job_id)
        handle = engine.start(job)
        log_job_event(logger, "submitted", slot.value, job_id, tickers=len(tickers))

        selection = self.selections.get(slot)
        if selection is not None:
            selection.clear()
        return handle

    async def _create_job(self, slot: JobSlot, tickers: List[str],
                          indicators: Optional[List[str]]) -> str:
        if slot is JobSlot.ALL_STOCKS:
            path = '/analyze-all-stocks'
            response = await self.client.analyze_all_stocks(tickers)
        else:
            path = '/analyze'
            response = await self.client.analyze_stocks(tickers, indicators or self.indicators)

        job_id = response.get('job_id') if isinstance(response, dict) else None
        if not job_id:
            raise TransportError('POST', path, "response did not include a job_id")
        return str(job_id)


def _dedupe(identifiers: Iterable[str]) -> List[str]:
    seen = set()
    tickers = []
    for identifier in identifiers:
        if identifier and identifier not in seen:
            seen.add(identifier)
            tickers.append(identifier)
    return tickers
