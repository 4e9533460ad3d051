"""
Shared fixtures for the import pipeline and API tests.
"""

import re
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import List, Optional, Sequence

import pytest
from postgrest.exceptions import APIError

from tedtalks.config import Settings
from tedtalks.errors import StoreUnavailableError, TalkNotFoundError
from tedtalks.storage.sql import SqlImportJobStore, SqlTalkRepository, create_db_engine
from tedtalks.storage.staged_files import StagedFileHolder
from tedtalks.talks.models import Talk, TalkPage, TalkRequest
from tedtalks.talks.repository import TalkRepository

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSink(TalkRepository):
    """Talk repository that records each batch it receives."""

    def __init__(self, fail_on_batch: Optional[int] = None):
        self.batches: List[List[TalkRequest]] = []
        self._fail_on_batch = fail_on_batch

    @property
    def talks(self) -> List[TalkRequest]:
        return [talk for batch in self.batches for talk in batch]

    def create(self, request: TalkRequest) -> Talk:
        self.batches.append([request])
        return Talk(id=len(self.talks), **request.model_dump())

    def create_many(self, requests: Sequence[TalkRequest]) -> None:
        if self._fail_on_batch is not None and len(self.batches) == self._fail_on_batch:
            raise StoreUnavailableError("sink is down")
        self.batches.append(list(requests))

    def get(self, talk_id: int) -> Talk:
        raise TalkNotFoundError(talk_id)

    def update(self, talk_id: int, request: TalkRequest) -> Talk:
        raise TalkNotFoundError(talk_id)

    def delete(self, talk_id: int) -> None:
        raise TalkNotFoundError(talk_id)

    def search(self, author=None, year=None, keyword=None, page=0, size=20) -> TalkPage:
        return TalkPage.of([], page, size, 0)


def like_matches(pattern: str, value: str) -> bool:
    """Case-insensitive LIKE with backslash escapes, as Postgres ILIKE does it."""
    regex = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            regex.append(re.escape(next(chars, "\\")))
        elif ch == "%":
            regex.append(".*")
        elif ch == "_":
            regex.append(".")
        else:
            regex.append(re.escape(ch))
    return re.fullmatch("".join(regex), value, re.IGNORECASE | re.DOTALL) is not None


def _split_logic_tree(filters: str) -> List[str]:
    """Split ``a.op.x,b.op."y,z"`` on the commas outside double quotes."""
    parts, current, quoted, escaped = [], [], False, False
    for ch in filters:
        if escaped:
            escaped = False
        elif ch == "\\" and quoted:
            escaped = True
        elif ch == '"':
            quoted = not quoted
        elif ch == "," and not quoted:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def _unquote(value: str) -> str:
    if not (len(value) >= 2 and value[0] == value[-1] == '"'):
        return value
    out = []
    chars = iter(value[1:-1])
    for ch in chars:
        out.append(next(chars, "") if ch == "\\" else ch)
    return "".join(out)


class FakeQuery:
    """Just enough of the postgrest query builder for both stores."""

    def __init__(self, table):
        self._table = table
        self._op = "select"
        self._payload = None
        self._filters = []
        self._limit = None
        self._range = None
        self._order = None
        self._count = None

    def insert(self, payload):
        self._op, self._payload = "insert", payload
        return self

    def update(self, payload):
        self._op, self._payload = "update", payload
        return self

    def delete(self):
        self._op = "delete"
        return self

    def select(self, *columns, count=None):
        self._op, self._count = "select", count
        return self

    def eq(self, column, value):
        self._table.calls.append(("eq", column, value))
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def ilike(self, column, pattern):
        self._table.calls.append(("ilike", column, pattern))
        self._filters.append(lambda row: like_matches(pattern, str(row.get(column, ""))))
        return self

    def or_(self, filters):
        self._table.calls.append(("or", filters))
        branches = []
        for part in _split_logic_tree(filters):
            pieces = part.split(".", 2)
            if len(pieces) != 3 or pieces[1] != "ilike":
                raise APIError({"code": "PGRST100", "message": f"failed to parse logic tree ({filters})"})
            column, _, pattern = pieces
            branches.append((column, _unquote(pattern)))
        self._filters.append(
            lambda row: any(like_matches(p, str(row.get(c, ""))) for c, p in branches)
        )
        return self

    def order(self, column):
        self._order = column
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def _matches(self, row):
        return all(predicate(row) for predicate in self._filters)

    def _insert(self, rows):
        payload = self._payload if isinstance(self._payload, list) else [self._payload]
        for new in payload:
            if "import_id" in new and any(r.get("import_id") == new["import_id"] for r in rows):
                raise APIError({"code": "23505", "message": "duplicate key"})
        inserted = []
        for new in payload:
            row = dict(new)
            if "id" not in row:
                self._table.next_id += 1
                row["id"] = self._table.next_id
            rows.append(row)
            inserted.append(dict(row))
        return SimpleNamespace(data=inserted, count=None)

    def execute(self):
        if self._table.error is not None:
            raise self._table.error
        rows = self._table.rows
        if self._op == "insert":
            return self._insert(rows)
        matched = [r for r in rows if self._matches(r)]
        if self._op == "update":
            for r in matched:
                r.update(self._payload)
        if self._op == "delete":
            self._table.rows = [r for r in rows if not self._matches(r)]
        if self._order is not None:
            matched.sort(key=lambda r: r[self._order])
        total = len(matched)
        if self._range is not None:
            start, end = self._range
            matched = matched[start:end + 1]
        if self._limit is not None:
            matched = matched[: self._limit]
        count = total if self._count == "exact" else None
        return SimpleNamespace(data=[dict(r) for r in matched], count=count)


class FakeTable:
    def __init__(self):
        self.rows = []
        self.calls = []
        self.error = None
        self.next_id = 0


class FakeSupabase:
    def __init__(self):
        self.tables = {}

    def table(self, name):
        return FakeQuery(self.tables.setdefault(name, FakeTable()))

    def rows(self, name):
        return self.tables.setdefault(name, FakeTable()).rows


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def job_store(engine, clock):
    return SqlImportJobStore(engine, clock=clock)


@pytest.fixture
def talk_repository(engine):
    return SqlTalkRepository(engine)


@pytest.fixture
def staging(tmp_path):
    return StagedFileHolder(str(tmp_path / "staging"))


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def app_settings(tmp_path):
    """Settings pointing every path at the test's temp dir."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'app.db'}",
        staging_dir=str(tmp_path / "app_staging"),
        import_batch_size=2,
        max_concurrent_imports=2,
        import_queue_capacity=2,
        worker_idle_timeout_seconds=0.5,
    )


@pytest.fixture
def supabase():
    return FakeSupabase()
