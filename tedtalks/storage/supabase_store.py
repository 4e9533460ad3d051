"""Supabase implementation of the job store and talk catalog.

Expects two tables mirroring the SQL schema:
``import_status(import_id, status, started_at, completed_at, revision)`` with
``timestamptz`` timestamps, and
``ted_talks(id, title, author, year_value, month_value, views, likes, link)``.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from tedtalks.errors import (
    DuplicateImportError,
    ImportNotFoundError,
    StoreUnavailableError,
    TalkNotFoundError,
)
from tedtalks.jobs.models import ImportJob, ImportStatus, utcnow
from tedtalks.storage.job_store import ImportJobStore
from tedtalks.talks.models import Talk, TalkPage, TalkRequest
from tedtalks.talks.repository import TalkRepository, from_row, to_row, to_rows

logger = logging.getLogger(__name__)

IMPORT_TABLE = "import_status"
TALK_TABLE = "ted_talks"

# Postgres unique_violation
_UNIQUE_VIOLATION = "23505"

_client: Client | None = None


def get_supabase(url: str, service_role_key: str) -> Client:
    """Get or create the Supabase client using the service role key."""
    global _client
    if _client is None:
        if not url or not service_role_key:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set"
            )
        _client = create_client(url, service_role_key)
    return _client


def _like_prefix(value: str) -> str:
    """LIKE pattern that matches ``value`` literally as a prefix."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped + "%"


def _quoted(value: str) -> str:
    """Quote a value inside a PostgREST logic filter such as ``or=(...)``."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _to_job(row: dict) -> ImportJob:
    return ImportJob(
        id=row["import_id"],
        status=ImportStatus(row["status"]),
        started_at=row["started_at"],
        completed_at=row.get("completed_at"),
        revision=row.get("revision", 0),
    )


class SupabaseImportJobStore(ImportJobStore):
    def __init__(self, client: Client, clock: Callable[[], datetime] = utcnow):
        super().__init__(clock)
        self._client = client

    def create(self, job_id: str) -> ImportJob:
        job = ImportJob.start(job_id, self._clock())
        try:
            self._client.table(IMPORT_TABLE).insert({
                "import_id": job.id,
                "status": job.status.value,
                "started_at": job.started_at.isoformat(),
                "completed_at": None,
                "revision": job.revision,
            }).execute()
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise DuplicateImportError(job_id) from exc
            raise StoreUnavailableError(f"Could not create import {job_id}") from exc
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(f"Could not create import {job_id}") from exc
        return job

    def get(self, job_id: str) -> ImportJob:
        try:
            response = (
                self._client.table(IMPORT_TABLE)
                .select("*")
                .eq("import_id", job_id)
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailableError(f"Could not read import {job_id}") from exc
        if not response.data:
            raise ImportNotFoundError(job_id)
        return _to_job(response.data[0])

    def list_all(self) -> List[ImportJob]:
        try:
            response = self._client.table(IMPORT_TABLE).select("*").execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailableError("Could not list imports") from exc
        return [_to_job(row) for row in response.data or []]

    def _save_terminal(self, job: ImportJob) -> None:
        try:
            self._client.table(IMPORT_TABLE).update({
                "status": job.status.value,
                "completed_at": job.completed_at.isoformat(),
                "revision": job.revision,
            }).eq("import_id", job.id).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailableError(f"Could not update import {job.id}") from exc


class SupabaseTalkRepository(TalkRepository):
    def __init__(self, client: Client):
        self._client = client

    def create(self, request: TalkRequest) -> Talk:
        try:
            response = self._client.table(TALK_TABLE).insert(to_row(request)).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailableError("Could not create talk") from exc
        talk = from_row(response.data[0])
        logger.info("Created TED Talk: %s", talk.title)
        return talk

    def create_many(self, requests: Sequence[TalkRequest]) -> None:
        if not requests:
            return
        # A single insert call is one statement on the PostgREST side
        try:
            self._client.table(TALK_TABLE).insert(to_rows(requests)).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailableError(f"Could not write {len(requests)} talks") from exc
        logger.info("Batch created %d TED Talks", len(requests))

    def get(self, talk_id: int) -> Talk:
        try:
            response = (
                self._client.table(TALK_TABLE)
                .select("*")
                .eq("id", talk_id)
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailableError(f"Could not read talk {talk_id}") from exc
        if not response.data:
            raise TalkNotFoundError(talk_id)
        return from_row(response.data[0])

    def update(self, talk_id: int, request: TalkRequest) -> Talk:
        try:
            response = (
                self._client.table(TALK_TABLE)
                .update(to_row(request))
                .eq("id", talk_id)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailableError(f"Could not update talk {talk_id}") from exc
        if not response.data:
            raise TalkNotFoundError(talk_id)
        logger.info("Updated TED Talk: %d", talk_id)
        return from_row(response.data[0])

    def delete(self, talk_id: int) -> None:
        try:
            response = self._client.table(TALK_TABLE).delete().eq("id", talk_id).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailableError(f"Could not delete talk {talk_id}") from exc
        if not response.data:
            raise TalkNotFoundError(talk_id)
        logger.info("Deleted TED Talk: %d", talk_id)

    def search(
        self,
        author: Optional[str] = None,
        year: Optional[int] = None,
        keyword: Optional[str] = None,
        page: int = 0,
        size: int = 20,
    ) -> TalkPage:
        query = self._client.table(TALK_TABLE).select("*", count="exact")
        if author:
            query = query.ilike("author", _like_prefix(author))
        if year is not None:
            query = query.eq("year_value", year)
        if keyword:
            pattern = _quoted(_like_prefix(keyword))
            query = query.or_(f"title.ilike.{pattern},author.ilike.{pattern}")
        start = page * size
        try:
            response = query.order("id").range(start, start + size - 1).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailableError("Could not search talks") from exc
        items = [from_row(row) for row in response.data or []]
        return TalkPage.of(items, page, size, response.count or 0)
