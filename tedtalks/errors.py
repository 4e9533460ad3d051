"""Exception types shared by the import pipeline, the stores and the API layer."""


class TedTalksError(Exception):
    """Base class for all application errors."""


class CsvImportError(TedTalksError):
    """The uploaded file cannot be accepted (empty, too large, unreadable)."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class TooManyImportsError(TedTalksError):
    """The worker pool is saturated. Retryable by the client."""

    def __init__(self, retry_after_seconds: int):
        super().__init__("Too many concurrent imports, please retry later")
        self.retry_after_seconds = retry_after_seconds


class RowValidationError(TedTalksError, ValueError):
    """A single CSV row could not be converted into a talk."""


class ImportFailedError(TedTalksError):
    """An import job hit an I/O-level error and was marked FAILED."""

    def __init__(self, job_id: str):
        super().__init__(f"Import {job_id} failed")
        self.job_id = job_id


class StoreUnavailableError(TedTalksError):
    """The backing store could not be reached or refused the operation."""


class ImportNotFoundError(TedTalksError):
    def __init__(self, job_id: str):
        super().__init__(f"Import not found with id: {job_id}")
        self.job_id = job_id


class DuplicateImportError(TedTalksError):
    def __init__(self, job_id: str):
        super().__init__(f"Import already exists with id: {job_id}")
        self.job_id = job_id


class TalkNotFoundError(TedTalksError):
    def __init__(self, talk_id: int):
        super().__init__(f"TED Talk not found with id: {talk_id}")
        self.talk_id = talk_id
