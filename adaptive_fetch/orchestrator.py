"""Top-level fetch state machine.

One call picks exactly one of three paths:

- direct: the caller paginated the URL; one request, reported as-is
- complete: the estimated total is small enough; crawl every page
- sampled: the total is large; one request sized to the sample

Every failure is returned as a ``FetchResult`` / ``ProbeResult`` value.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from .config import EngineConfig, FetchConfig
from .counting import TotalCountResolver
from .errors import AUTH_KINDS, ErrorKind, FetchError, TransportError, error_for_status, remediation_hints
from .extract import RecordExtractor
from .models import (
    CountEstimate,
    CountProvenance,
    FetchResult,
    ProbeResult,
    RecordSet,
    Strategy,
    StrategyDecision,
)
from .pagination import PaginationPlanner, apply_params, caller_pagination_params, detect_caller_pagination
from .paginator import PageCrawl, PageFetcher, Paginator
from .preview import build_preview
from .sources.auth import build_auth_headers, describe_auth
from .sources.base import HttpRequest, Transport
from .sources.http_json import RequestsTransport
from .store import BlobStore
from .strategy import StrategySelector, coverage_percent
from .telemetry import (
    log_estimate_adjusted,
    log_fetch_completed,
    log_fetch_failed,
    log_fetch_started,
    log_sample_fallback,
    log_strategy_selected,
)
from .utils import Timer, new_data_id, utc_now_iso
from .validator import ResponseValidator

logger = logging.getLogger(__name__)


class FetchOrchestrator:
    def __init__(
        self,
        engine_config: EngineConfig | None = None,
        *,
        transport: Transport | None = None,
        store: BlobStore | None = None,
        planner: PaginationPlanner | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = engine_config or EngineConfig()
        self.transport = transport or RequestsTransport(
            user_agent=self.config.user_agent,
            max_redirects=self.config.max_redirects,
        )
        self.store = store
        self.planner = planner or PaginationPlanner()
        self.sleep = sleep
        self.validator = ResponseValidator()
        self.resolver = TotalCountResolver()
        self.extractor = RecordExtractor(self.config.max_flatten_depth)
        self.selector = StrategySelector(self.config)

    # ---------- fetch ----------

    def fetch(self, fetch_config: FetchConfig) -> FetchResult:
        t = Timer.start_new()
        url = _effective_url(fetch_config)
        try:
            return self._fetch(fetch_config, url, t)
        except FetchError as exc:
            log_fetch_failed(url=url, kind=exc.kind, details=exc.message, http_status=exc.http_status)
            return FetchResult.failure(
                exc.kind,
                exc.message,
                http_status=exc.http_status,
                metadata=self._failure_metadata(fetch_config, url, t),
            )
        except Exception as exc:
            logger.exception("fetch_unexpected_error", extra={"url": url})
            return FetchResult.failure(
                ErrorKind.UNEXPECTED_ERROR,
                f"{type(exc).__name__}: {exc}",
                metadata=self._failure_metadata(fetch_config, url, t),
            )

    def _fetch(self, fetch_config: FetchConfig, url: str, t: Timer) -> FetchResult:
        cfg = self.config
        caller_paginated = detect_caller_pagination(url)
        log_fetch_started(url=url, method=fetch_config.method, caller_paginated=caller_paginated)
        fetcher = self._fetcher(fetch_config, cfg.request_timeout_s)

        crawl: PageCrawl | None = None
        sample_size: int | None = None
        sample_error: FetchError | None = None
        is_partial = False

        if caller_paginated:
            page = fetcher.get(url)
            estimate = self.resolver.resolve(page.response.headers, page.body)
            decision = StrategyDecision(Strategy.DIRECT)
            log_strategy_selected(url=url, decision=decision, estimate=estimate)
            records = page.records
            last_response = page.response
            pages_fetched = 1
            body = page.body
            is_partial = not estimate.is_inferred and len(records) < estimate.value
        else:
            first = fetcher.get(self.planner.page_url(url, 1, cfg.page_size))
            estimate = self.resolver.resolve(first.response.headers, first.body)
            decision = self.selector.select(
                False,
                estimate.value,
                force_complete=fetch_config.force_complete,
                force_sample=fetch_config.force_sample,
            )
            log_strategy_selected(url=url, decision=decision, estimate=estimate)

            if decision.strategy == Strategy.COMPLETE:
                paginator = Paginator(fetcher, inter_page_delay_s=cfg.inter_page_delay_s, sleep=self.sleep)
                crawl = paginator.fetch_pages(url, self.planner, cfg.page_size, cfg.max_pages, first_page=first)
                if crawl.error is not None and not crawl.records:
                    raise crawl.error
                records = crawl.records
                last_response = crawl.last_response or first.response
                pages_fetched = crawl.pages_fetched
                body = first.body
                is_partial = crawl.error is not None or crawl.safety_limit_hit
            else:
                sample_size = decision.sample_size or cfg.min_sample_size
                if cfg.inter_page_delay_s > 0:
                    self.sleep(cfg.inter_page_delay_s)
                try:
                    sample = fetcher.get(self.planner.page_url(url, 1, sample_size))
                except FetchError as exc:
                    # keep the first page rather than failing the whole fetch
                    sample = first
                    sample_error = exc
                    log_sample_fallback(
                        url=url, kind=exc.kind, details=exc.message, records=min(len(first.records), sample_size)
                    )
                records = sample.records[:sample_size]
                last_response = sample.response
                body = sample.body
                pages_fetched = 2
                is_partial = True

        estimate = self._reconcile(url, estimate, len(records))
        flat = [self.extractor.flatten(r) for r in records]
        record_set = RecordSet(records=flat, strategy=decision.strategy)

        data_id = new_data_id()
        metadata: dict[str, Any] = {
            "dataId": data_id,
            "dataType": describe_data_type(body),
            "url": url,
            "method": fetch_config.method,
            "httpStatus": last_response.status,
            "contentType": last_response.content_type,
            "authenticationUsed": describe_auth(fetch_config.credentials, fetch_config.headers),
            "fetchedAt": utc_now_iso(),
            "durationMs": t.elapsed_ms(),
            "fetchStrategy": decision.strategy.value,
            "totalRecordsInAPI": estimate.value,
            "recordsForComparison": record_set.count,
            "comparisonCoverage": (
                100.0 if decision.strategy == Strategy.COMPLETE else coverage_percent(record_set.count, estimate.value)
            ),
            "countProvenance": estimate.provenance.value,
            "sampleSize": sample_size,
            "pagesFetched": pages_fetched,
            "paginationSafetyLimitHit": bool(crawl and crawl.safety_limit_hit),
            "paginationStopReason": crawl.stop_reason if crawl else None,
            "paginationError": crawl.error.to_dict() if crawl and crawl.error else None,
            "sampleError": sample_error.to_dict() if sample_error else None,
            "isPartialResult": is_partial,
            "isExhaustive": decision.strategy == Strategy.COMPLETE and not (crawl and crawl.safety_limit_hit),
            "userPaginationParams": caller_pagination_params(url),
        }

        preview = build_preview(flat)
        if self.store is not None:
            self.store.put(data_id, flat, metadata)

        log_fetch_completed(
            url=url,
            strategy=decision.strategy.value,
            records=record_set.count,
            estimated_total=estimate.value,
            pages_fetched=pages_fetched,
            duration_ms=metadata["durationMs"],
        )
        return FetchResult.success(
            record_set=record_set,
            estimate=estimate,
            metadata=metadata,
            preview=preview,
            data_id=data_id,
        )

    def _reconcile(self, url: str, estimate: CountEstimate, observed: int) -> CountEstimate:
        if estimate.is_inferred:
            if observed > estimate.value:
                return CountEstimate(observed, CountProvenance.INFERRED)
            return estimate
        if observed > estimate.value:
            log_estimate_adjusted(url=url, reported=estimate.value, observed=observed)
            return CountEstimate(observed, CountProvenance.INFERRED)
        return estimate

    # ---------- probe ----------

    def probe(self, fetch_config: FetchConfig) -> ProbeResult:
        """Check connectivity and credentials with one small GET request."""
        url = _effective_url(fetch_config)
        if not detect_caller_pagination(url):
            url = self.planner.page_url(url, 1, 1)
        auth_type = describe_auth(fetch_config.credentials, fetch_config.headers)
        headers = {**build_auth_headers(fetch_config.credentials), **fetch_config.headers}

        t = Timer.start_new()
        try:
            resp = self.transport.send(
                HttpRequest(method="GET", url=url, headers=headers),
                timeout_s=self.config.probe_timeout_s,
            )
        except TransportError as exc:
            return ProbeResult(
                connection_ok=False,
                authentication_ok=False,
                status=None,
                content_type=None,
                elapsed_ms=t.elapsed_ms(),
                auth_type=auth_type,
                message=exc.message,
                reason=exc.kind,
                suggestions=remediation_hints(exc.kind),
            )
        except Exception as exc:
            logger.exception("probe_unexpected_error", extra={"url": url})
            return ProbeResult(
                connection_ok=False,
                authentication_ok=False,
                status=None,
                content_type=None,
                elapsed_ms=t.elapsed_ms(),
                auth_type=auth_type,
                message=f"{type(exc).__name__}: {exc}",
                reason=ErrorKind.UNEXPECTED_ERROR,
            )

        elapsed = t.elapsed_ms()
        status_error = error_for_status(resp.status, resp.content_type)
        if status_error is not None:
            return ProbeResult(
                connection_ok=True,
                authentication_ok=status_error.kind not in AUTH_KINDS,
                status=resp.status,
                content_type=resp.content_type,
                elapsed_ms=elapsed,
                auth_type=auth_type,
                message=status_error.message,
                reason=status_error.kind,
                suggestions=remediation_hints(status_error.kind, resp.status),
            )

        validation = self.validator.validate(resp.status, resp.content_type, resp.body)
        if validation.ok:
            return ProbeResult(
                connection_ok=True,
                authentication_ok=True,
                status=resp.status,
                content_type=resp.content_type,
                elapsed_ms=elapsed,
                auth_type=auth_type,
                message="Connection successful",
            )
        if validation.reason == ErrorKind.EMPTY_RESPONSE:
            return ProbeResult(
                connection_ok=True,
                authentication_ok=True,
                status=resp.status,
                content_type=resp.content_type,
                elapsed_ms=elapsed,
                auth_type=auth_type,
                message="Connection successful but the API returned an empty response",
                warning=validation.details,
                suggestions=remediation_hints(ErrorKind.EMPTY_RESPONSE),
            )
        html = validation.reason in (ErrorKind.HTML_CONTENT_TYPE, ErrorKind.HTML_CONTENT)
        return ProbeResult(
            connection_ok=False,
            authentication_ok=not html,
            status=resp.status,
            content_type=resp.content_type,
            elapsed_ms=elapsed,
            auth_type=auth_type,
            message=f"API returned invalid data: {validation.details}",
            reason=validation.reason,
            suggestions=remediation_hints(validation.reason),
        )

    # ---------- helpers ----------

    def _fetcher(self, fetch_config: FetchConfig, timeout_s: float) -> PageFetcher:
        headers = {**build_auth_headers(fetch_config.credentials), **fetch_config.headers}
        return PageFetcher(
            self.transport,
            method=fetch_config.method.upper(),
            headers=headers,
            body=fetch_config.body,
            timeout_s=timeout_s,
            validator=self.validator,
            extractor=self.extractor,
        )

    def _failure_metadata(self, fetch_config: FetchConfig, url: str, t: Timer) -> dict[str, Any]:
        return {
            "url": url,
            "method": fetch_config.method,
            "authenticationUsed": describe_auth(fetch_config.credentials, fetch_config.headers),
            "fetchedAt": utc_now_iso(),
            "durationMs": t.elapsed_ms(),
        }


def _effective_url(fetch_config: FetchConfig) -> str:
    if fetch_config.pagination_params:
        return apply_params(fetch_config.url, fetch_config.pagination_params)
    return fetch_config.url


def describe_data_type(body: Any) -> str:
    """Short description of the parsed body shape, e.g. ``Array (25 items)``."""
    if isinstance(body, list):
        return f"Array ({len(body)} items)"
    if isinstance(body, dict):
        return f"Object ({len(body)} properties)"
    if body is None:
        return "null"
    return type(body).__name__
