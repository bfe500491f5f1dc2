"""Shared listing helpers: text search, date windows, pagination"""

import unicodedata
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

from didattika.models.document import DateRange

T = TypeVar("T")


def matches_search(query: Optional[str], fields: Iterable[Optional[str]]) -> bool:
    """Case-insensitive substring match OR'd across ``fields``; empty query matches."""
    if not query:
        return True
    needle = query.lower()
    return any(field and needle in field.lower() for field in fields)


def in_date_range(value: datetime, date_range: Optional[DateRange]) -> bool:
    return date_range is None or date_range.contains(value)


def in_values(value: Optional[str], allowed: Optional[Sequence[str]]) -> bool:
    return not allowed or value in allowed


def collation_key(text: Optional[str]) -> Tuple[str, str]:
    """Sort key for display names and titles.

    Accents and case are ignored first, so "Émile" sorts with the E names;
    the original text breaks ties.
    """
    text = text or ""
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), text


def paginate(items: List[T], page: int, limit: int) -> Tuple[List[T], int]:
    """Slice a 1-based page out of ``items``; returns the page and the full count."""
    total = len(items)
    start = (page - 1) * limit
    return items[start:start + limit], total
