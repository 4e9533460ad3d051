"""CSV import orchestration: stream, validate, batch, finalize.

``ImportOrchestrator.run`` is the worker function handed to the worker pool.
It is synchronous and runs in the pool's thread executor.
"""

import csv
import logging
from datetime import datetime
from typing import Callable, List

from tedtalks.errors import ImportFailedError, RowValidationError, StoreUnavailableError
from tedtalks.jobs.models import ImportStatus, utcnow
from tedtalks.jobs.rows import REQUIRED_COLUMNS, describe, to_talk_request
from tedtalks.storage.job_store import ImportJobStore
from tedtalks.storage.staged_files import StagedFileHolder
from tedtalks.talks.models import TalkRequest
from tedtalks.talks.repository import TalkRepository

logger = logging.getLogger(__name__)


class ImportOrchestrator:
    """Turns one staged CSV file into talk batches and a terminal job status."""

    def __init__(
        self,
        job_store: ImportJobStore,
        sink: TalkRepository,
        staging: StagedFileHolder,
        batch_size: int,
        clock: Callable[[], datetime] = utcnow,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._job_store = job_store
        self._sink = sink
        self._staging = staging
        self._batch_size = batch_size
        self._clock = clock

    def run(self, job_id: str, staged_path: str) -> None:
        """Process the staged file for ``job_id`` and release it afterwards.

        Raises ImportFailedError if the file could not be read or a batch
        could not be written; the job is marked FAILED first.
        """
        try:
            try:
                imported, skipped = self._ingest(job_id, staged_path)
            except Exception as exc:
                logger.error("CSV import failed [%s]: %s", job_id, exc)
                self._finalize(job_id, ImportStatus.FAILED)
                raise ImportFailedError(job_id) from exc
            self._finalize(job_id, ImportStatus.COMPLETED)
            logger.info(
                "CSV import completed [%s]: %d talks imported, %d rows skipped",
                job_id, imported, skipped,
            )
        finally:
            self._staging.release(staged_path)

    def _ingest(self, job_id: str, staged_path: str):
        batch: List[TalkRequest] = []
        imported = 0
        skipped = 0

        with open(staged_path, newline="", encoding="utf-8-sig") as fh:
            reader = csv.DictReader(fh, skipinitialspace=True)
            if reader.fieldnames:
                reader.fieldnames = [name.strip().lower() for name in reader.fieldnames]
            missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
            if missing:
                logger.warning("CSV import [%s] header is missing columns %s", job_id, missing)

            for row in reader:
                try:
                    batch.append(to_talk_request(row))
                except RowValidationError as exc:
                    skipped += 1
                    logger.warning(
                        "Invalid record skipped [%s] line %d [%s]: %s",
                        job_id, reader.line_num, describe(row), exc,
                    )
                    continue

                if len(batch) == self._batch_size:
                    self._flush(job_id, batch)
                    imported += len(batch)
                    batch = []

            if batch:
                self._flush(job_id, batch)
                imported += len(batch)

        return imported, skipped

    def _flush(self, job_id: str, batch: List[TalkRequest]) -> None:
        self._sink.create_many(batch)
        logger.debug("CSV import [%s] flushed batch of %d", job_id, len(batch))

    def _finalize(self, job_id: str, status: ImportStatus) -> None:
        try:
            if status is ImportStatus.COMPLETED:
                self._job_store.mark_completed(job_id, self._clock())
            else:
                self._job_store.mark_failed(job_id, self._clock())
        except StoreUnavailableError:
            logger.critical(
                "Could not mark import %s as %s; leaving it for the recovery sweep",
                job_id, status.value, exc_info=True,
            )
