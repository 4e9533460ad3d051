"""Conversion of raw CSV rows into validated talk requests."""

from datetime import datetime
from typing import Dict, Optional, Tuple

from pydantic import ValidationError

from tedtalks.errors import RowValidationError
from tedtalks.talks.models import TalkRequest

REQUIRED_COLUMNS = ("title", "author", "date", "link")

# Tried in order, first match wins: "December 2021", then "Dec 2021"
DATE_FORMATS = ("%B %Y", "%b %Y")


def parse_year_month(value: Optional[str]) -> Tuple[int, int]:
    if value is None or not value.strip():
        raise RowValidationError("Date is required")
    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed.year, parsed.month
    raise RowValidationError(f"Invalid date: {value}")


def parse_count(value: Optional[str], field: str) -> int:
    """Parse a views/likes counter. Blank is zero, negatives clamp to zero."""
    if value is None or not value.strip():
        return 0
    try:
        return max(0, int(value.strip()))
    except ValueError:
        raise RowValidationError(f"Invalid {field}: {value}") from None


def to_talk_request(row: Dict[Optional[str], Optional[str]]) -> TalkRequest:
    """Build a TalkRequest from a csv.DictReader row.

    Raises RowValidationError for anything the row itself gets wrong.
    """
    for column in REQUIRED_COLUMNS:
        value = row.get(column)
        if value is None or not value.strip():
            raise RowValidationError(f"Missing required field: {column}")

    year, month = parse_year_month(row.get("date"))
    try:
        return TalkRequest(
            title=row["title"],
            author=row["author"],
            year=year,
            month=month,
            views=parse_count(row.get("views"), "views"),
            likes=parse_count(row.get("likes"), "likes"),
            link=row["link"],
        )
    except ValidationError as exc:
        raise RowValidationError(str(exc)) from exc


def describe(row: Dict[Optional[str], Optional[str]]) -> str:
    """Short identifier for a row in log lines."""
    link = row.get("link")
    if isinstance(link, str) and link.strip():
        return link.strip()
    return "<unknown>"
