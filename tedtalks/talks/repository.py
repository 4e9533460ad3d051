"""Talk catalog storage interface."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from tedtalks.talks.models import Talk, TalkPage, TalkRequest


class TalkRepository(ABC):
    """Abstract catalog storage (SQL database or Supabase)."""

    @abstractmethod
    def create(self, request: TalkRequest) -> Talk:
        ...

    @abstractmethod
    def create_many(self, requests: Sequence[TalkRequest]) -> None:
        """Persist a batch of talks. All rows are written or none are."""
        ...

    @abstractmethod
    def get(self, talk_id: int) -> Talk:
        """Return one talk. Raises TalkNotFoundError."""
        ...

    @abstractmethod
    def update(self, talk_id: int, request: TalkRequest) -> Talk:
        """Replace every field of a talk. Raises TalkNotFoundError."""
        ...

    @abstractmethod
    def delete(self, talk_id: int) -> None:
        """Raises TalkNotFoundError."""
        ...

    @abstractmethod
    def search(
        self,
        author: Optional[str] = None,
        year: Optional[int] = None,
        keyword: Optional[str] = None,
        page: int = 0,
        size: int = 20,
    ) -> TalkPage:
        """Page through talks ordered by id, optionally filtered."""
        ...


def to_row(request: TalkRequest) -> dict:
    """Column mapping shared by the storage backends."""
    return {
        "title": request.title,
        "author": request.author,
        "year_value": request.year,
        "month_value": request.month,
        "views": request.views,
        "likes": request.likes,
        "link": request.link,
    }


def to_rows(requests: Sequence[TalkRequest]) -> List[dict]:
    return [to_row(r) for r in requests]


def from_row(row: dict) -> Talk:
    return Talk(
        id=row["id"],
        title=row["title"],
        author=row["author"],
        year=row["year_value"],
        month=row["month_value"],
        views=row["views"],
        likes=row["likes"],
        link=row["link"],
    )
