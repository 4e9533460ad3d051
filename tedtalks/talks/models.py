"""Talk catalog data models."""

import math
from typing import List

from pydantic import BaseModel, Field, field_validator


class TalkRequest(BaseModel):
    """A validated talk ready to be written to the catalog."""
    title: str = Field(min_length=1, max_length=500)
    author: str = Field(min_length=1, max_length=200)
    year: int = Field(ge=1, le=9999)
    month: int = Field(ge=1, le=12)
    views: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    link: str = Field(min_length=1, max_length=1000)

    @field_validator("title", "author", "link", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class Talk(TalkRequest):
    id: int


class TalkPage(BaseModel):
    items: List[Talk]
    page: int
    size: int
    total_elements: int
    total_pages: int

    @classmethod
    def of(cls, items: List[Talk], page: int, size: int, total: int) -> "TalkPage":
        return cls(
            items=items,
            page=page,
            size=size,
            total_elements=total,
            total_pages=math.ceil(total / size) if size else 0,
        )
