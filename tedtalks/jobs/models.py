"""Import job record data model."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps read back from the database."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class ImportStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not ImportStatus.PROCESSING


class ImportJob(BaseModel):
    """Tracks the lifecycle of one CSV import.

    ``completed_at`` is set exactly when ``status`` is terminal, and
    ``revision`` grows by one with every write to the record.
    """
    id: str
    status: ImportStatus = ImportStatus.PROCESSING
    started_at: datetime
    completed_at: Optional[datetime] = None
    revision: int = 0

    model_config = {"frozen": True}

    @field_validator("started_at", "completed_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @classmethod
    def start(cls, job_id: str, now: datetime) -> "ImportJob":
        return cls(id=job_id, started_at=now)

    def finish(self, status: ImportStatus, now: datetime) -> "ImportJob":
        """Return the terminal version of this record."""
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        return self.model_copy(
            update={
                "status": status,
                "completed_at": as_utc(now),
                "revision": self.revision + 1,
            }
        )

    def is_stale(self, now: datetime, threshold: timedelta) -> bool:
        """True when still PROCESSING and started longer than ``threshold`` ago."""
        return self.status is ImportStatus.PROCESSING and self.started_at < now - threshold
