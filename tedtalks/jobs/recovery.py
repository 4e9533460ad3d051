"""Startup reconciliation of imports interrupted by a previous process."""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List

from tedtalks.errors import TedTalksError
from tedtalks.jobs.models import utcnow
from tedtalks.storage.job_store import ImportJobStore
from tedtalks.storage.staged_files import StagedFileHolder

logger = logging.getLogger(__name__)


@dataclass
class RecoveryReport:
    failed_jobs: List[str] = field(default_factory=list)
    deleted_files: List[str] = field(default_factory=list)
    errors: int = 0


class RecoverySweep:
    """Repairs job records and staged files left behind by a crash.

    Must run before the worker pool starts: at that point no worker owns a
    job or a staged file, so every stale PROCESSING job and every staged
    file is an orphan.
    """

    def __init__(
        self,
        job_store: ImportJobStore,
        staging: StagedFileHolder,
        stale_after: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._job_store = job_store
        self._staging = staging
        self._stale_after = stale_after
        self._clock = clock

    def run(self) -> RecoveryReport:
        report = RecoveryReport()
        self._fail_stuck_imports(report)
        self._delete_orphaned_files(report)
        return report

    def _fail_stuck_imports(self, report: RecoveryReport) -> None:
        now = self._clock()
        try:
            jobs = self._job_store.list_all()
        except TedTalksError:
            report.errors += 1
            logger.error("Failed to scan imports for stuck jobs on startup", exc_info=True)
            return

        for job in jobs:
            try:
                if not job.is_stale(now, self._stale_after):
                    continue
                self._job_store.mark_failed(job.id, now)
            except (TedTalksError, TypeError):
                report.errors += 1
                logger.error("Failed to mark stuck import %s as FAILED", job.id, exc_info=True)
                continue
            report.failed_jobs.append(job.id)

        if not report.failed_jobs and not report.errors:
            logger.info("No stuck imports found on startup")
            return
        logger.warning("Marked %d stuck imports as FAILED on startup", len(report.failed_jobs))

    def _delete_orphaned_files(self, report: RecoveryReport) -> None:
        try:
            orphans = list(self._staging.orphans())
        except OSError:
            report.errors += 1
            logger.error("Failed to scan staging dir %s on startup",
                         self._staging.base_dir, exc_info=True)
            return

        for path in orphans:
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError:
                report.errors += 1
                logger.error("Failed to delete temp file %s", path, exc_info=True)
                continue
            report.deleted_files.append(os.path.basename(path))
            logger.warning("Deleted stale temp file on startup: %s", path)
