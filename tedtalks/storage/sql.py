"""SQL implementation of the job store and talk catalog (SQLite or Postgres)."""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from sqlalchemy import Column, DateTime, func, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

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


class ImportStatusRow(SQLModel, table=True):
    __tablename__ = "import_status"

    import_id: str = Field(primary_key=True)
    status: str = Field(default=ImportStatus.PROCESSING.value, index=True)
    started_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    completed_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    revision: int = Field(default=0)


class TalkRow(SQLModel, table=True):
    __tablename__ = "ted_talks"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    author: str = Field(index=True)
    year_value: int = Field(index=True)
    month_value: int
    views: int = Field(default=0, index=True)
    likes: int = Field(default=0, index=True)
    link: str


def create_db_engine(database_url: str) -> Engine:
    """Create the engine and make sure both tables exist."""
    connect_args = {}
    if database_url.startswith("sqlite://"):
        # Sessions are opened from pool worker threads
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, connect_args=connect_args)
    SQLModel.metadata.create_all(engine)
    return engine


def _to_job(row: ImportStatusRow) -> ImportJob:
    return ImportJob(
        id=row.import_id,
        status=ImportStatus(row.status),
        started_at=row.started_at,
        completed_at=row.completed_at,
        revision=row.revision,
    )


class SqlImportJobStore(ImportJobStore):
    def __init__(self, engine: Engine, clock: Callable[[], datetime] = utcnow):
        super().__init__(clock)
        self._engine = engine

    def create(self, job_id: str) -> ImportJob:
        job = ImportJob.start(job_id, self._clock())
        row = ImportStatusRow(
            import_id=job.id,
            status=job.status.value,
            started_at=job.started_at,
            revision=job.revision,
        )
        try:
            with Session(self._engine) as session:
                session.add(row)
                session.commit()
        except IntegrityError as exc:
            raise DuplicateImportError(job_id) from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not create import {job_id}") from exc
        return job

    def get(self, job_id: str) -> ImportJob:
        try:
            with Session(self._engine) as session:
                row = session.get(ImportStatusRow, job_id)
                if row is None:
                    raise ImportNotFoundError(job_id)
                return _to_job(row)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not read import {job_id}") from exc

    def list_all(self) -> List[ImportJob]:
        try:
            with Session(self._engine) as session:
                rows = session.exec(select(ImportStatusRow)).all()
                return [_to_job(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Could not list imports") from exc

    def _save_terminal(self, job: ImportJob) -> None:
        try:
            with Session(self._engine) as session:
                row = session.get(ImportStatusRow, job.id)
                if row is None:
                    raise ImportNotFoundError(job.id)
                row.status = job.status.value
                row.completed_at = job.completed_at
                row.revision = job.revision
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not update import {job.id}") from exc


class SqlTalkRepository(TalkRepository):
    def __init__(self, engine: Engine):
        self._engine = engine

    def create(self, request: TalkRequest) -> Talk:
        row = TalkRow(**to_row(request))
        try:
            with Session(self._engine) as session:
                session.add(row)
                session.commit()
                session.refresh(row)
                talk = from_row(row.model_dump())
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Could not create talk") from exc
        logger.info("Created TED Talk: %s", talk.title)
        return talk

    def create_many(self, requests: Sequence[TalkRequest]) -> None:
        if not requests:
            return
        try:
            with Session(self._engine) as session:
                session.add_all([TalkRow(**row) for row in to_rows(requests)])
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not write {len(requests)} talks") from exc
        logger.info("Batch created %d TED Talks", len(requests))

    def get(self, talk_id: int) -> Talk:
        try:
            with Session(self._engine) as session:
                row = session.get(TalkRow, talk_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not read talk {talk_id}") from exc
        if row is None:
            raise TalkNotFoundError(talk_id)
        return from_row(row.model_dump())

    def update(self, talk_id: int, request: TalkRequest) -> Talk:
        try:
            with Session(self._engine) as session:
                row = session.get(TalkRow, talk_id)
                if row is None:
                    raise TalkNotFoundError(talk_id)
                for column, value in to_row(request).items():
                    setattr(row, column, value)
                session.add(row)
                session.commit()
                session.refresh(row)
                talk = from_row(row.model_dump())
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not update talk {talk_id}") from exc
        logger.info("Updated TED Talk: %d", talk_id)
        return talk

    def delete(self, talk_id: int) -> None:
        try:
            with Session(self._engine) as session:
                row = session.get(TalkRow, talk_id)
                if row is None:
                    raise TalkNotFoundError(talk_id)
                session.delete(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not delete talk {talk_id}") from exc
        logger.info("Deleted TED Talk: %d", talk_id)

    def search(
        self,
        author: Optional[str] = None,
        year: Optional[int] = None,
        keyword: Optional[str] = None,
        page: int = 0,
        size: int = 20,
    ) -> TalkPage:
        conditions = []
        if author:
            conditions.append(
                func.lower(TalkRow.author).startswith(author.lower(), autoescape=True)
            )
        if year is not None:
            conditions.append(TalkRow.year_value == year)
        if keyword:
            conditions.append(
                or_(
                    func.lower(TalkRow.title).startswith(keyword.lower(), autoescape=True),
                    func.lower(TalkRow.author).startswith(keyword.lower(), autoescape=True),
                )
            )

        try:
            with Session(self._engine) as session:
                total = session.exec(
                    select(func.count()).select_from(TalkRow).where(*conditions)
                ).one()
                rows = session.exec(
                    select(TalkRow)
                    .where(*conditions)
                    .order_by(TalkRow.id)
                    .offset(page * size)
                    .limit(size)
                ).all()
                items = [from_row(row.model_dump()) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Could not search talks") from exc
        return TalkPage.of(items, page, size, total)
