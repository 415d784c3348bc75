"""
PollingEngine - per-slot state machine that follows a job to its end.

States::

    Idle -> Polling -> Completed | Failed | Cancelled | Errored
    Polling -> Idle                 (explicit cancel)

Each tick fetches the job status once; the next tick is only armed after that
fetch resolved, so status updates for a job are applied in the order they
were requested. A response that arrives after the job left Polling (it was
cancelled, or a newer job took the slot) is discarded.

Completed, Failed and Cancelled come from the backend's own job status.
Errored means the status request itself failed; the job may still be running
on the server.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from ..caching.cache_store import CacheStore, SessionMarkers
from ..config.logging_config import get_logger, log_job_event, log_poll_result
from ..exceptions import JobCancelled, JobFailed, TransportError
from .models import Job, JobSlot, JobStatus, PollState, StatusSnapshot
from .progress import ProgressReport, aggregate
from .sources import StatusSource

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]

_TERMINAL_STATES = {
    JobStatus.COMPLETED: PollState.COMPLETED,
    JobStatus.FAILED: PollState.FAILED,
    JobStatus.CANCELLED: PollState.CANCELLED,
}


class JobObserver:
    """Receives job events from a PollingEngine. Override what you need."""

    def on_progress(self, job: Job, report: ProgressReport) -> None:
        pass

    def on_completed(self, job: Job) -> None:
        pass

    def on_failed(self, job: Job, error: JobFailed) -> None:
        pass

    def on_cancelled(self, job: Job, error: JobCancelled) -> None:
        pass

    def on_errored(self, job: Job, error: TransportError) -> None:
        pass


class JobHandle:
    """Reference to one submitted job and its eventual outcome."""

    def __init__(self, engine: "PollingEngine", job: Job):
        self.engine = engine
        self.job = job
        self.outcome: Optional[PollState] = None
        self._done = asyncio.Event()

    @property
    def slot(self) -> JobSlot:
        return self.job.slot

    @property
    def job_id(self) -> str:
        return self.job.job_id

    @property
    def done(self) -> bool:
        return self.outcome is not None

    async def wait(self) -> PollState:
        """Wait until the job left Polling and return the state it ended in."""
        await self._done.wait()
        return self.outcome

    async def cancel(self) -> Optional[Job]:
        if self.done:
            return None
        return await self.engine.cancel()

    def _resolve(self, state: PollState) -> None:
        if self.outcome is None:
            self.outcome = state
            self._done.set()

    def __repr__(self):
        return f"JobHandle(slot={self.slot.value!r}, job_id={self.job_id!r}, outcome={self.outcome})"


class PollingEngine:
    """Polls one slot's active job until it reaches a terminal state."""

    def __init__(self,
                 slot: JobSlot,
                 source: StatusSource,
                 interval: float,
                 cache: Optional[CacheStore] = None,
                 markers: Optional[SessionMarkers] = None,
                 sleep: SleepFunc = asyncio.sleep,
                 auto_tick: bool = True):
        """
        Parameters
        ----------
        slot : JobSlot
            Slot this engine serves
        source : StatusSource
            Where job status is fetched from
        interval : float
            Seconds between the end of one poll and the start of the next
        cache : Optional[CacheStore]
            Store whose list for this slot is refreshed when a job ends
        markers : Optional[SessionMarkers]
            Active job markers, cleared when a job ends
        sleep : SleepFunc
            Timer used between ticks
        auto_tick : bool
            If False, no timer is armed and ticks are driven by calling tick()
        """
        self.slot = slot
        self.source = source
        self.interval = interval
        self.cache = cache
        self.markers = markers
        self.auto_tick = auto_tick
        self._sleep = sleep

        self._state = PollState.IDLE
        self._job: Optional[Job] = None
        self._handle: Optional[JobHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._sleeping = False
        self._in_flight = False
        self._observers: List[JobObserver] = []
        self.last_job: Optional[Job] = None

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def job(self) -> Optional[Job]:
        """The job currently being polled, if any."""
        return self._job

    @property
    def handle(self) -> Optional[JobHandle]:
        return self._handle

    @property
    def is_busy(self) -> bool:
        return self._state is PollState.POLLING

    def subscribe(self, observer: JobObserver) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: JobObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def start(self, job: Job, interval: Optional[float] = None) -> JobHandle:
        """
        Begin polling job.

        If the slot is already polling, nothing changes and the existing
        handle is returned.
        """
        if self.is_busy:
            logger.debug(f"Slot {self.slot.value} already polling {self._job.job_id}, keeping it")
            return self._handle

        if interval is not None:
            self.interval = interval

        self._job = job
        self._state = PollState.POLLING
        self._handle = JobHandle(self, job)
        log_job_event(logger, "polling started", self.slot.value, job.job_id, interval=self.interval)

        if self.auto_tick:
            self._task = asyncio.get_running_loop().create_task(self._run(job))
        return self._handle

    async def tick(self) -> PollState:
        """Fetch the job status once and apply it."""
        job = self._job
        if job is None or not self.is_busy or self._in_flight:
            return self._state

        self._in_flight = True
        try:
            snapshot = await self.source.fetch(job.job_id)
        except TransportError as e:
            if self._is_current(job):
                self._errored(job, e)
            else:
                logger.debug(f"Ignoring failed poll for {job.job_id}, job no longer active")
            return self._state
        finally:
            self._in_flight = False

        await self.apply(snapshot, job)
        return self._state

    async def apply(self, snapshot: StatusSnapshot, job: Optional[Job] = None) -> None:
        """Apply a fetched snapshot to the active job, if it still is active."""
        job = job or self._job
        if job is None or not self._is_current(job):
            logger.debug(f"Discarding stale status for job {job.job_id if job else None}")
            return

        job.apply(snapshot)
        log_poll_result(logger, self.slot.value, job.job_id, job.status.value, job.progress)

        if not job.is_terminal:
            report = aggregate(snapshot)
            self._notify('on_progress', job, report)
            return

        await self._finish(job)

    async def cancel(self) -> Optional[Job]:
        """
        Stop polling and ask the backend to cancel the job.

        Local polling stops before the cancel request is sent. The job is
        marked cancelled once that request has settled, whether or not the
        backend accepted it; a failed request is re-raised afterwards.
        """
        job = self._job
        if job is None or not self.is_busy:
            return None

        handle = self._handle
        self._teardown(job, PollState.IDLE)
        log_job_event(logger, "cancel requested", self.slot.value, job.job_id)

        error: Optional[TransportError] = None
        try:
            await self.source.cancel(job.job_id)
        except TransportError as e:
            error = e
            logger.warning(f"Cancel request for {job.job_id} failed, job stopped locally only: {e}")

        job.mark_cancelled()
        self._notify('on_cancelled', job, JobCancelled(job.job_id, by_user=True))
        handle._resolve(PollState.CANCELLED)

        if error is not None:
            raise error
        return job

    def stop(self) -> None:
        """
        Stop polling without contacting the backend.

        The session marker is kept, so a later SessionRecovery can pick the
        job up again.
        """
        job = self._job
        if job is None or not self.is_busy:
            return
        handle = self._handle
        self._teardown(job, PollState.IDLE, clear_marker=False)
        log_job_event(logger, "polling stopped", self.slot.value, job.job_id)
        handle._resolve(PollState.IDLE)

    async def _run(self, job: Job) -> None:
        while self._is_current(job):
            self._sleeping = True
            try:
                await self._sleep(self.interval)
            finally:
                self._sleeping = False
            if not self._is_current(job):
                break
            await self.tick()

    async def _finish(self, job: Job) -> None:
        state = _TERMINAL_STATES[job.status]
        handle = self._handle
        self._teardown(job, state)
        log_job_event(logger, state.value, self.slot.value, job.job_id,
                      completed=job.completed, total=job.total, failed=job.failed)

        # Observers and the handle are always told about the outcome, even if the refresh breaks
        if self.cache is not None:
            try:
                await self.cache.refresh(self.slot.cache_key)
            except Exception:
                logger.exception(f"Refreshing {self.slot.cache_key} after job {job.job_id} failed")

        if state is PollState.COMPLETED:
            self._notify('on_completed', job)
        elif state is PollState.FAILED:
            self._notify('on_failed', job, JobFailed(job.job_id, job.errors))
        else:
            self._notify('on_cancelled', job, JobCancelled(job.job_id, by_user=False))
        handle._resolve(state)

    def _errored(self, job: Job, error: TransportError) -> None:
        handle = self._handle
        self._teardown(job, PollState.ERRORED)
        logger.error(f"Status poll for {job.job_id} failed, polling stopped: {error}")
        self._notify('on_errored', job, error)
        handle._resolve(PollState.ERRORED)

    def _teardown(self, job: Job, state: PollState, clear_marker: bool = True) -> None:
        self._state = state
        self._job = None
        self.last_job = job

        # A task that is mid-tick exits on its own once it sees the new state
        if self._task is not None and self._sleeping:
            self._task.cancel()
        self._task = None

        if clear_marker and self.markers is not None:
            self.markers.clear(self.slot.value)

    def _is_current(self, job: Job) -> bool:
        return self._state is PollState.POLLING and self._job is job

    def _notify(self, event: str, *args) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, event)(*args)
            except Exception:
                logger.exception(f"Job observer {observer!r} failed handling {event}")
