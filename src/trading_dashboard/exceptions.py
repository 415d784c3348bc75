"""
Custom exception classes for the trading dashboard job layer.

This module defines specific exceptions so that callers can tell a busy slot,
an empty selection, a transport failure and a job-reported failure apart
instead of catching a generic Exception.
"""

from typing import List, Optional


class DashboardError(Exception):
    """Base exception for all trading dashboard errors."""
    pass


class SlotBusyError(DashboardError):
    """A job was submitted into a slot that already hosts a running job."""

    def __init__(self, slot: str, job_id: Optional[str] = None):
        self.slot = slot
        self.job_id = job_id
        message = f"Slot '{slot}' already has an active analysis job"
        if job_id:
            message += f" ({job_id})"
        super().__init__(message)


class EmptySelectionError(DashboardError):
    """A job was submitted without any stocks selected."""

    def __init__(self, slot: str):
        self.slot = slot
        super().__init__(f"No stocks selected for slot '{slot}'")


class TransportError(DashboardError):
    """Network or backend failure while talking to the analysis API."""

    def __init__(self, method: str, path: str, message: str,
                 status_code: Optional[int] = None):
        self.method = method
        self.path = path
        self.status_code = status_code
        prefix = f"{method} {path} failed"
        if status_code is not None:
            prefix += f" with HTTP {status_code}"
        super().__init__(f"{prefix}: {message}")

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class JobFailed(DashboardError):
    """The backend reports that the analysis job itself failed."""

    def __init__(self, job_id: str, errors: Optional[List[str]] = None):
        self.job_id = job_id
        self.errors = list(errors or [])
        message = f"Analysis job {job_id} failed"
        if self.errors:
            message += f" with {len(self.errors)} error(s)"
        super().__init__(message)


class JobCancelled(DashboardError):
    """The analysis job was cancelled, locally or by the backend."""

    def __init__(self, job_id: str, by_user: bool = True):
        self.job_id = job_id
        self.by_user = by_user
        origin = "by user" if by_user else "by backend"
        super().__init__(f"Analysis job {job_id} was cancelled {origin}")


class CacheError(DashboardError):
    """A durable cache snapshot could not be written."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Failed to write cache snapshot '{key}': {message}")


class ConfigurationError(DashboardError):
    """Invalid configuration or setup error."""
    pass
