"""Structured log events emitted while fetching.

Every event is a short snake_case message with its fields passed through
``extra`` so a JSON formatter can pick them up unchanged.
"""

from __future__ import annotations

import logging

from .errors import ErrorKind
from .models import CountEstimate, StrategyDecision

logger = logging.getLogger(__name__)


def log_fetch_started(*, url: str, method: str, caller_paginated: bool) -> None:
    logger.info(
        "fetch_started",
        extra={"url": url, "method": method, "caller_paginated": caller_paginated},
    )


def log_strategy_selected(*, url: str, decision: StrategyDecision, estimate: CountEstimate) -> None:
    """Log the strategy chosen for a fetch.

    Args:
        url: Request URL without pagination overrides
        decision: Strategy plus sample size when sampling
        estimate: Total count the decision was based on
    """
    logger.info(
        "strategy_selected",
        extra={
            "url": url,
            "strategy": decision.strategy.value,
            "sample_size": decision.sample_size,
            "estimated_total": estimate.value,
            "count_provenance": estimate.provenance.value,
        },
    )


def log_page_fetched(*, url: str, page: int, records: int, accumulated: int) -> None:
    logger.debug(
        "page_fetched",
        extra={"url": url, "page": page, "records": records, "accumulated": accumulated},
    )


def log_pagination_stopped(*, url: str, reason: str, pages_fetched: int, records: int) -> None:
    level = logging.WARNING if reason == "safety_limit" else logging.INFO
    logger.log(
        level,
        "pagination_stopped",
        extra={"url": url, "reason": reason, "pages_fetched": pages_fetched, "records": records},
    )


def log_estimate_adjusted(*, url: str, reported: int, observed: int) -> None:
    logger.warning(
        "estimate_adjusted",
        extra={"url": url, "reported_total": reported, "observed_records": observed},
    )


def log_sample_fallback(*, url: str, kind: ErrorKind, details: str, records: int) -> None:
    logger.warning(
        "sample_request_failed",
        extra={"url": url, "error_kind": kind.value, "details": details, "fallback_records": records},
    )


def log_fetch_completed(
    *,
    url: str,
    strategy: str,
    records: int,
    estimated_total: int,
    pages_fetched: int,
    duration_ms: int,
) -> None:
    """Log a successful fetch.

    Args:
        url: Request URL
        strategy: Strategy value used
        records: Records returned to the caller
        estimated_total: Final (reconciled) total estimate
        pages_fetched: HTTP data requests issued
        duration_ms: Wall time of the whole fetch
    """
    logger.info(
        "fetch_completed",
        extra={
            "url": url,
            "strategy": strategy,
            "records": records,
            "estimated_total": estimated_total,
            "pages_fetched": pages_fetched,
            "duration_ms": duration_ms,
        },
    )


def log_fetch_failed(*, url: str, kind: ErrorKind, details: str, http_status: int | None = None) -> None:
    logger.warning(
        "fetch_failed",
        extra={"url": url, "error_kind": kind.value, "details": details, "http_status": http_status},
    )
