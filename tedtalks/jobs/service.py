"""Submission and status boundary of the CSV import pipeline."""

import logging
import uuid

from tedtalks.errors import CsvImportError, TooManyImportsError
from tedtalks.jobs.dispatcher import ImportDispatcher
from tedtalks.jobs.models import ImportJob
from tedtalks.jobs.orchestrator import ImportOrchestrator
from tedtalks.storage.job_store import ImportJobStore
from tedtalks.storage.staged_files import StagedFileHolder

logger = logging.getLogger(__name__)

_CHUNK_BYTES = 1024 * 1024


class ImportService:
    """Stages uploads, admits them to the worker pool and answers status polls."""

    def __init__(
        self,
        job_store: ImportJobStore,
        staging: StagedFileHolder,
        dispatcher: ImportDispatcher,
        orchestrator: ImportOrchestrator,
        max_upload_bytes: int,
        retry_after_seconds: int,
    ):
        self._job_store = job_store
        self._staging = staging
        self._dispatcher = dispatcher
        self._orchestrator = orchestrator
        self._max_upload_bytes = max_upload_bytes
        self._retry_after_seconds = retry_after_seconds

    async def start_import(self, upload) -> ImportJob:
        """Stage ``upload`` and hand it to the worker pool.

        ``upload`` is anything with an async ``read(size)``, such as a
        FastAPI ``UploadFile``. Returns the new PROCESSING job.
        Raises TooManyImportsError when the pool is full and CsvImportError
        for empty or oversized files.
        """
        # Reject before writing anything to disk
        if not self._dispatcher.has_capacity():
            raise TooManyImportsError(self._retry_after_seconds)

        job_id = str(uuid.uuid4())
        staged_path = self._staging.path_for(job_id)
        try:
            size = await self._stage(upload, staged_path)
        except BaseException:
            self._staging.release(staged_path)
            raise
        if size == 0:
            self._staging.release(staged_path)
            raise CsvImportError("File is empty")

        if not self._dispatcher.submit(job_id, self._orchestrator.run, job_id, staged_path):
            self._staging.release(staged_path)
            raise TooManyImportsError(self._retry_after_seconds)

        # No await between submit() and create(): the worker cannot start
        # before this coroutine yields, so the record always exists first and
        # a failed create() can still withdraw the queued job.
        try:
            job = self._job_store.create(job_id)
        except Exception:
            self._dispatcher.cancel(job_id)
            self._staging.release(staged_path)
            raise
        logger.info("CSV import started [%s] (%d bytes)", job_id, size)
        return job

    def get_status(self, job_id: str) -> ImportJob:
        return self._job_store.get(job_id)

    async def _stage(self, upload, staged_path: str) -> int:
        total = 0
        with open(staged_path, "wb") as dst:
            while True:
                chunk = await upload.read(_CHUNK_BYTES)
                if not chunk:
                    break
                total += len(chunk)
                if total > self._max_upload_bytes:
                    limit_mb = self._max_upload_bytes // (1024 * 1024)
                    raise CsvImportError(f"File too large (max {limit_mb} MB)", status_code=413)
                dst.write(chunk)
        return total
