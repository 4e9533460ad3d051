"""Local staging area for uploaded CSV files."""

import logging
import os
from typing import Iterator

logger = logging.getLogger(__name__)


class StagedFileHolder:
    """Owns the staging directory where uploads wait for their import job.

    Each staged file is named ``<prefix><job_id>.csv`` and belongs to the
    worker running that job, which releases it when the job ends. Anything
    still carrying the prefix at process start is an orphan.
    """

    def __init__(self, base_dir: str, prefix: str = "csv-import-"):
        self._base_dir = base_dir
        self._prefix = prefix
        os.makedirs(self._base_dir, exist_ok=True)

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def path_for(self, job_id: str) -> str:
        """Get the staging path for a job's upload."""
        return os.path.join(self._base_dir, f"{self._prefix}{job_id}.csv")

    def release(self, path: str) -> bool:
        """Delete a staged file. Returns False if it was already gone."""
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError:
            logger.warning("Failed to delete staged file: %s", path, exc_info=True)
            return False
        return True

    def orphans(self) -> Iterator[str]:
        """Yield paths of every file in the staging dir carrying the prefix."""
        with os.scandir(self._base_dir) as entries:
            for entry in entries:
                if entry.name.startswith(self._prefix) and entry.is_file():
                    yield entry.path
