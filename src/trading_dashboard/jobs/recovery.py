"""Re-attach polling to jobs that were running before the dashboard reloaded."""

from typing import Dict, Iterable, List, Optional

from ..caching.cache_store import SessionMarkers
from ..config.logging_config import get_logger, log_job_event
from ..exceptions import TransportError
from .models import Job, JobSlot
from .polling import JobHandle, PollingEngine

logger = get_logger(__name__)


class SessionRecovery:
    """
    Picks up job markers left in the session by a previous dashboard.

    A recovered job is not re-submitted: its status is fetched once and, if
    the backend still knows it, the slot's engine resumes polling it. If that
    fetch fails the marker is dropped and the slot is simply left idle.
    """

    def __init__(self, engines: Dict[JobSlot, PollingEngine], markers: SessionMarkers):
        self.engines = engines
        self.markers = markers

    async def recover(self, slot: JobSlot) -> Optional[JobHandle]:
        job_id = self.markers.get(slot.value)
        if not job_id:
            return None

        engine = self.engines[slot]
        if engine.is_busy:
            return engine.handle

        try:
            snapshot = await engine.source.fetch(job_id)
        except TransportError as e:
            logger.info(f"Dropping stale job marker {job_id} for {slot.value}: {e}")
            self.markers.clear(slot.value)
            return None

        job = Job(job_id=job_id, slot=slot)
        handle = engine.start(job)
        log_job_event(logger, "recovered", slot.value, job_id, status=snapshot.status.value)
        # An already finished job is processed as a terminal tick right away
        await engine.apply(snapshot, job)
        return handle

    async def recover_all(self, slots: Optional[Iterable[JobSlot]] = None) -> List[JobHandle]:
        handles = []
        for slot in slots or list(JobSlot):
            handle = await self.recover(slot)
            if handle is not None:
                handles.append(handle)
        return handles
