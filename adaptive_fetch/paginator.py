from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .counting import find_total_pages
from .errors import FetchError, error_for_status
from .extract import RecordExtractor
from .pagination import PaginationPlanner
from .sources.base import HttpRequest, HttpResponse, Transport
from .telemetry import log_page_fetched, log_pagination_stopped
from .validator import ResponseValidator


@dataclass(frozen=True)
class Page:
    response: HttpResponse
    body: Any
    records: list[dict[str, Any]]


@dataclass
class PageCrawl:
    records: list[dict[str, Any]] = field(default_factory=list)
    pages_fetched: int = 0
    safety_limit_hit: bool = False
    stop_reason: str | None = None
    error: FetchError | None = None
    last_response: HttpResponse | None = None


class PageFetcher:
    """Issue one request and turn the response into records, or raise FetchError."""

    def __init__(
        self,
        transport: Transport,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        timeout_s: float = 60.0,
        validator: ResponseValidator | None = None,
        extractor: RecordExtractor | None = None,
    ) -> None:
        self.transport = transport
        self.method = method
        self.headers = dict(headers or {})
        self.body = body
        self.timeout_s = timeout_s
        self.validator = validator or ResponseValidator()
        self.extractor = extractor or RecordExtractor()

    def get(self, url: str) -> Page:
        request = HttpRequest(method=self.method, url=url, headers=self.headers, body=self.body)
        resp = self.transport.send(request, timeout_s=self.timeout_s)

        status_error = error_for_status(resp.status, resp.content_type)
        if status_error is not None:
            raise status_error

        result = self.validator.validate(resp.status, resp.content_type, resp.body)
        if not result.ok:
            raise FetchError(
                kind=result.reason,
                message=result.details,
                http_status=resp.status,
                content_type=resp.content_type,
            )
        return Page(response=resp, body=result.parsed, records=self.extractor.extract(result.parsed))


class Paginator:
    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        inter_page_delay_s: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.fetcher = fetcher
        self.inter_page_delay_s = inter_page_delay_s
        self.sleep = sleep

    def fetch_pages(
        self,
        url: str,
        planner: PaginationPlanner,
        per_page_cap: int,
        page_limit: int,
        first_page: Page | None = None,
    ) -> PageCrawl:
        """
        Crawl ``url`` page by page until the API runs out of data.

        A page is the last one when the response reports ``total_pages`` and
        it has been reached, or, without that metadata, when the page holds
        fewer than ``per_page_cap`` records. Errors stop the crawl but keep
        what was already collected. ``first_page`` is used as page 1 when
        the caller already fetched it.
        """
        crawl = PageCrawl()
        page_no = 1
        while True:
            if page_no == 1 and first_page is not None:
                page = first_page
            else:
                if crawl.pages_fetched > 0 and self.inter_page_delay_s > 0:
                    self.sleep(self.inter_page_delay_s)
                try:
                    page = self.fetcher.get(planner.page_url(url, page_no, per_page_cap))
                except FetchError as exc:
                    crawl.error = exc
                    crawl.stop_reason = "error"
                    break

            crawl.pages_fetched += 1
            crawl.last_response = page.response
            crawl.records.extend(page.records)
            count = len(page.records)
            log_page_fetched(url=url, page=page_no, records=count, accumulated=len(crawl.records))

            if count == 0:
                crawl.stop_reason = "empty_page"
                break

            total_pages = find_total_pages(page.body)
            if total_pages is not None:
                more = page_no < total_pages
            else:
                more = count >= per_page_cap
            if not more:
                crawl.stop_reason = "last_page"
                break

            if crawl.pages_fetched >= page_limit:
                crawl.safety_limit_hit = True
                crawl.stop_reason = "safety_limit"
                break
            page_no += 1

        log_pagination_stopped(
            url=url,
            reason=crawl.stop_reason or "unknown",
            pages_fetched=crawl.pages_fetched,
            records=len(crawl.records),
        )
        return crawl
