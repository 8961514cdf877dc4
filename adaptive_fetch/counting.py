from __future__ import annotations

from typing import Any, Mapping

from .models import CountEstimate, CountProvenance

COUNT_HEADERS = ("x-total-count", "x-total", "total-count", "total-records")

COUNT_FIELDS = (
    "total",
    "count",
    "totalCount",
    "total_count",
    "totalRecords",
    "total_records",
    "totalElements",
    "totalSize",
    "totalResults",
    "total_results",
    "totalItems",
    "total_items",
)

PAGE_COUNT_FIELDS = ("total_pages", "totalPages", "pages")

ENVELOPE_CONTAINERS = (
    "pagination",
    "paging",
    "meta",
    "metadata",
    "result_info",
    "page_info",
    "pageInfo",
    "_meta",
    "page",
    "info",
)

MAX_SEARCH_DEPTH = 3


def _as_count(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _find_field(node: Any, names: tuple[str, ...], depth: int) -> tuple[int, int] | None:
    """Return (value, depth found) for the first count-bearing field, searching envelopes."""
    if not isinstance(node, dict) or depth > MAX_SEARCH_DEPTH:
        return None
    for name in names:
        if name in node:
            value = _as_count(node[name])
            if value is not None:
                return value, depth
    for container in ENVELOPE_CONTAINERS:
        child = node.get(container)
        if isinstance(child, dict):
            hit = _find_field(child, names, depth + 1)
            if hit is not None:
                return hit
    return None


def _longest_array(node: Any, depth: int = 0) -> int | None:
    if isinstance(node, list):
        best = len(node)
        if depth < MAX_SEARCH_DEPTH:
            for item in node:
                sub = _longest_array(item, depth + 1)
                if sub is not None and sub > best:
                    best = sub
        return best
    if isinstance(node, dict) and depth < MAX_SEARCH_DEPTH:
        best: int | None = None
        for value in node.values():
            sub = _longest_array(value, depth + 1)
            if sub is not None and (best is None or sub > best):
                best = sub
        return best
    return None


class TotalCountResolver:
    """Estimate how many records an endpoint holds from one response."""

    def resolve(self, headers: Mapping[str, str] | None, body: Any) -> CountEstimate:
        from_header = self.from_headers(headers)
        if from_header is not None:
            return CountEstimate(from_header, CountProvenance.HEADER)

        hit = _find_field(body, COUNT_FIELDS, 0)
        if hit is not None:
            value, depth = hit
            provenance = CountProvenance.ENVELOPE if depth == 0 else CountProvenance.NESTED_PAGINATION
            return CountEstimate(value, provenance)

        if isinstance(body, list):
            return CountEstimate(len(body), CountProvenance.INFERRED)

        longest = _longest_array(body)
        if longest is not None:
            return CountEstimate(longest, CountProvenance.INFERRED)

        return CountEstimate.unknown()

    @staticmethod
    def from_headers(headers: Mapping[str, str] | None) -> int | None:
        if not headers:
            return None
        lowered = {str(k).lower(): v for k, v in headers.items()}
        for name in COUNT_HEADERS:
            value = _as_count(lowered.get(name))
            if value is not None and value > 0:
                return value
        return None


def find_total_pages(body: Any) -> int | None:
    """Explicit page count exposed by the response, if any."""
    hit = _find_field(body, PAGE_COUNT_FIELDS, 0)
    return hit[0] if hit is not None else None
