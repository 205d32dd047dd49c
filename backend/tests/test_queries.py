"""List filter construction and page/sort resolution."""
import math
from datetime import datetime, timezone

import pytest

from queries import (
    ASCENDING,
    DESCENDING,
    MAX_PAGE,
    AllOf,
    DateRange,
    FieldEquals,
    MatchNothing,
    TextSearch,
    build_filter,
    pagination_summary,
    resolve_page,
)
from schemas import ListParams


def test_no_params_matches_everything():
    assert build_filter(ListParams()) == AllOf([])


def test_blank_values_are_ignored():
    params = ListParams(search="  ", project="", payment=" ")
    assert build_filter(params) == AllOf([])


def test_all_filters_combine():
    params = ListParams(
        search=" 平安 ", project=" 供灯 ", payment="已缴费",
        startDate="2024-01-01", endDate="2024-01-31",
    )
    assert build_filter(params).clauses == [
        TextSearch("平安"),
        FieldEquals("project", "供灯"),
        FieldEquals("payment", "已缴费"),
        DateRange(
            "submittedAt",
            datetime(2024, 1, 1, tzinfo=timezone.utc),
            datetime(2024, 1, 31, 23, 59, 59, 999000, tzinfo=timezone.utc),
        ),
    ]


def test_start_date_alone_is_open_ended():
    (clause,) = build_filter(ListParams(startDate="2024-01-13")).clauses
    assert clause == DateRange("submittedAt", datetime(2024, 1, 13, tzinfo=timezone.utc), None)


def test_end_date_alone_is_open_ended():
    (clause,) = build_filter(ListParams(endDate="2024-01-13")).clauses
    assert clause.start is None
    assert clause.end == datetime(2024, 1, 13, 23, 59, 59, 999000, tzinfo=timezone.utc)


@pytest.mark.parametrize("start, end", [
    ("not-a-date", None),
    (None, "2024-13-40"),
    ("2024-01-01", "garbage"),
])
def test_invalid_dates_match_nothing(start, end):
    (clause,) = build_filter(ListParams(startDate=start, endDate=end)).clauses
    assert isinstance(clause, MatchNothing)


def test_page_defaults():
    page = resolve_page(ListParams())
    assert (page.page, page.limit, page.skip) == (1, 50, 0)
    assert page.sort_field == "submittedAt"
    assert page.sort_direction == DESCENDING


@pytest.mark.parametrize("raw_page, raw_limit, page, limit", [
    ("0", "10", 1, 10),
    ("-4", "10", 1, 10),
    ("abc", "xyz", 1, 50),
    ("3", "0", 3, 1),
    ("3", "-20", 3, 1),
    ("2", "1000", 2, 100),
    ("2.9", "25.5", 2, 25),
    ("7abc", "40items", 7, 40),
    ("", "", 1, 50),
    ("9" * 5000, "9" * 5000, MAX_PAGE, 100),
    ("-" + "9" * 5000, "-" + "9" * 5000, 1, 1),
    ("9" * 20, "20", MAX_PAGE, 20),
    ("000000000000000000000000003", "0005", 3, 5),
])
def test_page_and_limit_are_bounded(raw_page, raw_limit, page, limit):
    resolved = resolve_page(ListParams(page=raw_page, limit=raw_limit))
    assert resolved.page == page
    assert resolved.limit == limit
    assert 1 <= resolved.limit <= 100
    assert resolved.skip == (resolved.page - 1) * resolved.limit


def test_sort_order_and_field():
    assert resolve_page(ListParams(sortOrder="asc")).sort_direction == ASCENDING
    assert resolve_page(ListParams(sortOrder="ASC")).sort_direction == DESCENDING
    assert resolve_page(ListParams(sortOrder="desc")).sort_direction == DESCENDING
    assert resolve_page(ListParams(sortBy="amountTWD")).sort_field == "amountTWD"


@pytest.mark.parametrize("page_no, limit, total", [
    (1, 50, 0), (1, 50, 4), (2, 2, 4), (2, 3, 4), (5, 10, 41), (1, 1, 1),
])
def test_pagination_summary(page_no, limit, total):
    page = resolve_page(ListParams(page=str(page_no), limit=str(limit)))
    summary = pagination_summary(page, total)
    assert summary == {
        "total": total,
        "page": page_no,
        "limit": limit,
        "totalPages": math.ceil(total / limit),
        "hasNext": page_no * limit < total,
        "hasPrev": page_no > 1,
    }


def test_skip_fits_in_int64_for_huge_page():
    page = resolve_page(ListParams(page="9" * 20, limit="100"))
    assert page.skip < 2 ** 63
