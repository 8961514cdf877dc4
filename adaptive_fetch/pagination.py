"""Query parameter conventions for paging through JSON APIs.

Vendors are described as data: a ``PaginationConvention`` names the URL
substrings it applies to and the parameter pair it uses. New vendors are
added with ``PaginationPlanner.register`` instead of new branches.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


class PositionKind(str, Enum):
    PAGE = "page"
    OFFSET = "offset"


@dataclass(frozen=True)
class PaginationConvention:
    name: str
    url_patterns: tuple[str, ...]
    kind: PositionKind
    limit_param: str
    position_param: str

    def __post_init__(self) -> None:
        if not self.url_patterns:
            raise ValueError("url_patterns must not be empty")
        if not self.limit_param or not self.position_param:
            raise ValueError("limit_param and position_param are required")

    def matches(self, url: str) -> bool:
        lowered = url.lower()
        return any(p.lower() in lowered for p in self.url_patterns)

    def params(self, page: int, page_size: int) -> dict[str, str]:
        if self.kind == PositionKind.OFFSET:
            position = (page - 1) * page_size
        else:
            position = page
        return {self.limit_param: str(page_size), self.position_param: str(position)}


DEFAULT_CONVENTIONS: tuple[PaginationConvention, ...] = (
    PaginationConvention(
        name="servicenow",
        url_patterns=("service-now", "servicenow"),
        kind=PositionKind.OFFSET,
        limit_param="sysparm_limit",
        position_param="sysparm_offset",
    ),
    PaginationConvention(
        name="github",
        url_patterns=("api.github.com", "github.com/api"),
        kind=PositionKind.PAGE,
        limit_param="per_page",
        position_param="page",
    ),
    PaginationConvention(
        name="cloudflare",
        url_patterns=("api.cloudflare.com",),
        kind=PositionKind.PAGE,
        limit_param="per_page",
        position_param="page",
    ),
    PaginationConvention(
        name="elasticsearch",
        url_patterns=("elastic", "_search"),
        kind=PositionKind.OFFSET,
        limit_param="size",
        position_param="from",
    ),
    PaginationConvention(
        name="generic-rest",
        url_patterns=("/api/", "/rest/"),
        kind=PositionKind.OFFSET,
        limit_param="limit",
        position_param="offset",
    ),
)

CALLER_PAGINATION_PARAMS = frozenset(
    {
        "page",
        "per_page",
        "page_size",
        "pageSize",
        "limit",
        "offset",
        "size",
        "sysparm_limit",
        "sysparm_offset",
        "cursor",
        "$top",
        "$skip",
    }
)


def apply_params(url: str, params: Mapping[str, Any]) -> str:
    """Merge ``params`` into the query string of ``url``, overriding existing keys.

    Repeated keys that are not overridden keep every value, in order.
    """
    parts = urlsplit(url)
    pairs = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    pairs.extend((k, str(v)) for k, v in params.items())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(pairs), parts.fragment))


def caller_pagination_params(url: str) -> dict[str, str]:
    parts = urlsplit(url)
    return {k: v for k, v in parse_qsl(parts.query, keep_blank_values=True) if k in CALLER_PAGINATION_PARAMS}


def detect_caller_pagination(url: str) -> bool:
    return bool(caller_pagination_params(url))


class PaginationPlanner:
    def __init__(self, conventions: Iterable[PaginationConvention] | None = None) -> None:
        self._conventions: list[PaginationConvention] = list(
            DEFAULT_CONVENTIONS if conventions is None else conventions
        )

    @property
    def conventions(self) -> tuple[PaginationConvention, ...]:
        return tuple(self._conventions)

    def register(self, convention: PaginationConvention, *, first: bool = True) -> None:
        """Add a convention; by default it takes precedence over existing ones."""
        if first:
            self._conventions.insert(0, convention)
        else:
            self._conventions.append(convention)

    def match(self, url: str) -> PaginationConvention | None:
        for convention in self._conventions:
            if convention.matches(url):
                return convention
        return None

    def plan(self, url: str, page: int, page_size: int) -> dict[str, str]:
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        convention = self.match(url)
        if convention is not None:
            return convention.params(page, page_size)
        # unknown API: send every known pair
        out: dict[str, str] = {}
        for c in self._conventions:
            for key, value in c.params(page, page_size).items():
                out.setdefault(key, value)
        return out

    def page_url(self, url: str, page: int, page_size: int) -> str:
        return apply_params(url, self.plan(url, page, page_size))
