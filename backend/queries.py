"""
List query construction.

build_filter turns ListParams into a small filter tree; database.to_mongo_filter
translates that tree for MongoDB. resolve_page bounds the paging and sort
parameters.
"""
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Union

from schemas import ListParams

DEFAULT_SORT_FIELD = "submittedAt"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50
MAX_LIMIT = 100
# Keeps skip well inside a signed 64-bit integer
MAX_PAGE = 10 ** 9

ASCENDING = 1
DESCENDING = -1

_LEADING_INT = re.compile(r"^\s*([+-]?)(\d+)")
_MAX_DIGITS = 18


# --- Filter tree ---

@dataclass(frozen=True)
class TextSearch:
    term: str


@dataclass(frozen=True)
class FieldEquals:
    field: str
    value: Any


@dataclass(frozen=True)
class DateRange:
    field: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass(frozen=True)
class MatchNothing:
    """Stands in for a clause built from unusable input, e.g. a bad date."""
    reason: str = ""


@dataclass(frozen=True)
class AnyOf:
    clauses: List["Filter"]


@dataclass(frozen=True)
class AllOf:
    clauses: List["Filter"]


Filter = Union[TextSearch, FieldEquals, DateRange, MatchNothing, AnyOf, AllOf]


def _clean(value: Optional[str]) -> str:
    return value.strip() if value else ""


def _day_bound(value: str, end_of_day: bool) -> Optional[datetime]:
    try:
        day = date.fromisoformat(value.strip())
    except ValueError:
        return None
    moment = time(23, 59, 59, 999000) if end_of_day else time.min
    return datetime.combine(day, moment, tzinfo=timezone.utc)


def build_filter(params: ListParams) -> AllOf:
    """AND of every filter present in params; an empty AllOf matches everything."""
    clauses: List[Filter] = []

    search = _clean(params.search)
    if search:
        clauses.append(TextSearch(search))

    project = _clean(params.project)
    if project:
        clauses.append(FieldEquals("project", project))

    payment = _clean(params.payment)
    if payment:
        clauses.append(FieldEquals("payment", payment))

    if params.startDate or params.endDate:
        start = _day_bound(params.startDate, False) if params.startDate else None
        end = _day_bound(params.endDate, True) if params.endDate else None
        if (params.startDate and start is None) or (params.endDate and end is None):
            clauses.append(MatchNothing(f"invalid date range {params.startDate!r}..{params.endDate!r}"))
        else:
            clauses.append(DateRange("submittedAt", start, end))

    return AllOf(clauses)


# --- Paging ---

@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int
    sort_field: str
    sort_direction: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def _leading_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    if not match:
        return None
    sign, digits = match.groups()
    digits = digits.lstrip("0") or "0"
    number = 10 ** _MAX_DIGITS if len(digits) > _MAX_DIGITS else int(digits)
    return -number if sign == "-" else number


def resolve_page(params: ListParams) -> PageRequest:
    page = _leading_int(params.page)
    page = DEFAULT_PAGE if page is None else min(MAX_PAGE, max(1, page))

    limit = _leading_int(params.limit)
    limit = DEFAULT_LIMIT if limit is None else min(MAX_LIMIT, max(1, limit))

    # sortBy is not restricted to known fields
    sort_field = params.sortBy or DEFAULT_SORT_FIELD
    direction = ASCENDING if params.sortOrder == "asc" else DESCENDING
    return PageRequest(page=page, limit=limit, sort_field=sort_field, sort_direction=direction)


def pagination_summary(page: PageRequest, total: int) -> Dict[str, Any]:
    return {
        "total": total,
        "page": page.page,
        "limit": page.limit,
        "totalPages": math.ceil(total / page.limit),
        "hasNext": page.page * page.limit < total,
        "hasPrev": page.page > 1,
    }
