from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import ErrorKind, remediation_hints


class CountProvenance(str, Enum):
    HEADER = "header"
    ENVELOPE = "envelope-field"
    NESTED_PAGINATION = "nested-pagination"
    INFERRED = "inferred-array-length"
    UNKNOWN = "unknown"


class Strategy(str, Enum):
    DIRECT = "direct-user-request"
    COMPLETE = "complete-dataset"
    SAMPLED = "representative-sample"


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: ErrorKind | None = None
    details: str = ""
    parsed: Any = None

    @classmethod
    def valid(cls, parsed: Any) -> "ValidationResult":
        return cls(ok=True, parsed=parsed)

    @classmethod
    def invalid(cls, reason: ErrorKind, details: str) -> "ValidationResult":
        return cls(ok=False, reason=reason, details=details)


@dataclass(frozen=True)
class CountEstimate:
    value: int
    provenance: CountProvenance

    @property
    def is_inferred(self) -> bool:
        """True when the value is a lower bound rather than a reported total."""
        return self.provenance in (CountProvenance.INFERRED, CountProvenance.UNKNOWN)

    @classmethod
    def unknown(cls) -> "CountEstimate":
        return cls(value=0, provenance=CountProvenance.UNKNOWN)


@dataclass(frozen=True)
class StrategyDecision:
    strategy: Strategy
    sample_size: int | None = None


@dataclass(frozen=True)
class RecordSet:
    records: list[dict[str, Any]]
    strategy: Strategy

    @property
    def count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class FetchResult:
    ok: bool
    record_set: RecordSet | None = None
    estimate: CountEstimate | None = None
    strategy: Strategy | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    preview: dict[str, Any] | None = None
    data_id: str | None = None
    error_kind: ErrorKind | None = None
    details: str | None = None
    http_status: int | None = None

    @classmethod
    def success(
        cls,
        *,
        record_set: RecordSet,
        estimate: CountEstimate,
        metadata: dict[str, Any],
        preview: dict[str, Any] | None = None,
        data_id: str | None = None,
    ) -> "FetchResult":
        return cls(
            ok=True,
            record_set=record_set,
            estimate=estimate,
            strategy=record_set.strategy,
            metadata=metadata,
            preview=preview,
            data_id=data_id,
        )

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        details: str,
        *,
        http_status: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "FetchResult":
        return cls(
            ok=False,
            error_kind=kind,
            details=details,
            http_status=http_status,
            metadata=metadata or {},
        )

    @property
    def hints(self) -> list[str]:
        if self.error_kind is None:
            return []
        return remediation_hints(self.error_kind, self.http_status)

    def error_payload(self) -> dict[str, Any] | None:
        if self.ok or self.error_kind is None:
            return None
        return {
            "kind": self.error_kind.value,
            "message": self.details,
            "http_status": self.http_status,
            "hints": self.hints,
        }


@dataclass(frozen=True)
class ProbeResult:
    connection_ok: bool
    authentication_ok: bool
    status: int | None
    content_type: str | None
    elapsed_ms: int
    auth_type: str
    message: str
    reason: ErrorKind | None = None
    warning: str | None = None
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "connection_ok": self.connection_ok,
            "authentication_ok": self.authentication_ok,
            "status": self.status,
            "content_type": self.content_type,
            "elapsed_ms": self.elapsed_ms,
            "auth_type": self.auth_type,
            "message": self.message,
            "reason": self.reason.value if self.reason else None,
            "warning": self.warning,
            "suggestions": list(self.suggestions),
        }
