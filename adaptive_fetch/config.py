from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import ErrorKind, FetchError
from .sources.auth import Credentials

DEFAULT_USER_AGENT = "adaptive-fetch/1.0"


@dataclass(frozen=True)
class EngineConfig:
    """Tuning knobs for one engine instance.

    Attributes:
        record_threshold: Estimated totals at or below this are fetched completely.
        min_sample_size: Lower bound for a representative sample.
        max_sample_size: Upper bound for a representative sample.
        sampling_fraction: Target share of the estimated total to sample.
        request_timeout_ms: Timeout for data requests.
        probe_timeout_ms: Timeout for connectivity probes.
        max_redirects: Redirects followed per request.
        inter_page_delay_ms: Pause between consecutive page requests.
        max_pages: Hard limit on pages per crawl.
        page_size: Records requested per page when crawling.
        max_flatten_depth: Nesting depth after which objects are serialized.
        user_agent: User-Agent header sent with every request.
    """

    record_threshold: int = 5000
    min_sample_size: int = 100
    max_sample_size: int = 10000
    sampling_fraction: float = 0.22
    request_timeout_ms: int = 60000
    probe_timeout_ms: int = 30000
    max_redirects: int = 5
    inter_page_delay_ms: int = 100
    max_pages: int = 1000
    page_size: int = 100
    max_flatten_depth: int = 5
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if self.record_threshold < 0:
            raise ValueError("record_threshold must be >= 0")
        if self.min_sample_size < 1:
            raise ValueError("min_sample_size must be >= 1")
        if self.max_sample_size < self.min_sample_size:
            raise ValueError("max_sample_size must be >= min_sample_size")
        if not 0 < self.sampling_fraction <= 1:
            raise ValueError("sampling_fraction must be in (0, 1]")
        if self.max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.inter_page_delay_ms < 0:
            raise ValueError("inter_page_delay_ms must be >= 0")

    @property
    def request_timeout_s(self) -> float:
        return self.request_timeout_ms / 1000.0

    @property
    def probe_timeout_s(self) -> float:
        return self.probe_timeout_ms / 1000.0

    @property
    def inter_page_delay_s(self) -> float:
        return self.inter_page_delay_ms / 1000.0

    @classmethod
    def from_dict(cls, cfg: Mapping[str, Any] | None) -> "EngineConfig":
        cfg = cfg or {}
        defaults = cls()
        try:
            return cls(
                record_threshold=int(cfg.get("record_threshold", defaults.record_threshold)),
                min_sample_size=int(cfg.get("min_sample_size", defaults.min_sample_size)),
                max_sample_size=int(cfg.get("max_sample_size", defaults.max_sample_size)),
                sampling_fraction=float(cfg.get("sampling_fraction", defaults.sampling_fraction)),
                request_timeout_ms=int(cfg.get("request_timeout_ms", defaults.request_timeout_ms)),
                probe_timeout_ms=int(cfg.get("probe_timeout_ms", defaults.probe_timeout_ms)),
                max_redirects=int(cfg.get("max_redirects", defaults.max_redirects)),
                inter_page_delay_ms=int(cfg.get("inter_page_delay_ms", defaults.inter_page_delay_ms)),
                max_pages=int(cfg.get("max_pages", defaults.max_pages)),
                page_size=int(cfg.get("page_size", defaults.page_size)),
                max_flatten_depth=int(cfg.get("max_flatten_depth", defaults.max_flatten_depth)),
                user_agent=str(cfg.get("user_agent") or defaults.user_agent),
            )
        except (TypeError, ValueError) as exc:
            raise FetchError(kind=ErrorKind.INVALID_CONFIG, message=f"Invalid engine config: {exc}") from exc


@dataclass(frozen=True)
class FetchConfig:
    url: str
    method: str = "GET"
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    credentials: Credentials | None = None
    force_complete: bool = False
    force_sample: bool = False
    pagination_params: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        if not self.url or not str(self.url).startswith(("http://", "https://")):
            raise FetchError(kind=ErrorKind.INVALID_CONFIG, message=f"url must be an absolute http(s) URL: {self.url!r}")
        if self.force_complete and self.force_sample:
            raise FetchError(kind=ErrorKind.INVALID_CONFIG, message="force_complete and force_sample are exclusive")
