"""Import job store interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, List

from tedtalks.jobs.models import ImportJob, ImportStatus, utcnow


class ImportJobStore(ABC):
    """Durable record of every import's lifecycle state.

    Backend failures are raised as StoreUnavailableError.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    @abstractmethod
    def create(self, job_id: str) -> ImportJob:
        """Insert a PROCESSING record started now. Raises DuplicateImportError."""
        ...

    @abstractmethod
    def get(self, job_id: str) -> ImportJob:
        """Raises ImportNotFoundError for unknown ids."""
        ...

    @abstractmethod
    def list_all(self) -> List[ImportJob]:
        """Every record in the store. Only the recovery sweep needs this."""
        ...

    @abstractmethod
    def _save_terminal(self, job: ImportJob) -> None:
        """Overwrite the status, completed_at and revision of ``job``."""
        ...

    def mark_completed(self, job_id: str, now: datetime) -> ImportJob:
        return self._finish(job_id, ImportStatus.COMPLETED, now)

    def mark_failed(self, job_id: str, now: datetime) -> ImportJob:
        return self._finish(job_id, ImportStatus.FAILED, now)

    def _finish(self, job_id: str, status: ImportStatus, now: datetime) -> ImportJob:
        # Only the owning task finalizes a job, so the prior state is not re-checked.
        job = self.get(job_id).finish(status, now)
        self._save_terminal(job)
        return job
