from __future__ import annotations

import pytest

from adaptive_fetch.pagination import (
    PaginationConvention,
    PaginationPlanner,
    PositionKind,
    apply_params,
    caller_pagination_params,
    detect_caller_pagination,
)


@pytest.mark.parametrize(
    "url,page,size,expected",
    [
        (
            "https://dev1.service-now.com/api/now/table/incident",
            3,
            100,
            {"sysparm_limit": "100", "sysparm_offset": "200"},
        ),
        ("https://api.github.com/repos/o/r/issues", 2, 50, {"per_page": "50", "page": "2"}),
        ("https://api.cloudflare.com/client/v4/zones", 1, 20, {"per_page": "20", "page": "1"}),
        ("https://search.local/idx/_search", 2, 10, {"size": "10", "from": "10"}),
        ("https://example.com/api/v1/users", 1, 100, {"limit": "100", "offset": "0"}),
    ],
)
def test_known_conventions(url: str, page: int, size: int, expected: dict[str, str]) -> None:
    assert PaginationPlanner().plan(url, page, size) == expected


def test_unknown_api_gets_every_known_parameter() -> None:
    params = PaginationPlanner().plan("https://data.example.org/things", 2, 25)
    assert params["sysparm_limit"] == "25"
    assert params["sysparm_offset"] == "25"
    assert params["per_page"] == "25"
    assert params["page"] == "2"
    assert params["limit"] == "25"
    assert params["offset"] == "25"
    assert params["size"] == "25"
    assert params["from"] == "25"


def test_registered_convention_takes_precedence() -> None:
    planner = PaginationPlanner()
    planner.register(
        PaginationConvention(
            name="odata",
            url_patterns=("/odata/",),
            kind=PositionKind.OFFSET,
            limit_param="$top",
            position_param="$skip",
        )
    )
    assert planner.plan("https://host/api/odata/Products", 3, 10) == {"$top": "10", "$skip": "20"}


def test_convention_requires_patterns() -> None:
    with pytest.raises(ValueError):
        PaginationConvention(name="x", url_patterns=(), kind=PositionKind.PAGE, limit_param="a", position_param="b")


def test_plan_rejects_bad_page() -> None:
    with pytest.raises(ValueError):
        PaginationPlanner().plan("https://example.com/api/x", 0, 10)


def test_apply_params_keeps_existing_query() -> None:
    url = apply_params("https://example.com/api/x?q=open&limit=5", {"limit": 100, "offset": 0})
    assert url == "https://example.com/api/x?q=open&limit=100&offset=0"


def test_apply_params_keeps_repeated_keys() -> None:
    url = apply_params(
        "https://api.github.com/repos/o/r/issues?labels=bug&labels=ui&page=9",
        {"per_page": 100, "page": 1},
    )
    assert url == "https://api.github.com/repos/o/r/issues?labels=bug&labels=ui&per_page=100&page=1"


@pytest.mark.parametrize(
    "url",
    [
        "https://api.github.com/repos/o/r/issues?per_page=10",
        "https://x.service-now.com/api/now/table/incident?sysparm_limit=5",
        "https://example.com/items?$top=3",
        "https://example.com/items?cursor=abc",
        "https://example.com/items?pageSize=10",
    ],
)
def test_detects_caller_pagination(url: str) -> None:
    assert detect_caller_pagination(url)


def test_no_caller_pagination() -> None:
    assert not detect_caller_pagination("https://example.com/items?q=open&sort=name")
    assert not detect_caller_pagination("https://example.com/page/limit")


def test_caller_pagination_params_subset() -> None:
    params = caller_pagination_params("https://example.com/items?q=open&limit=5&offset=10")
    assert params == {"limit": "5", "offset": "10"}
