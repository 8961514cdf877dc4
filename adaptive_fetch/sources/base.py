from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol


@dataclass(frozen=True)
class HttpRequest:
    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass(frozen=True)
class HttpResponse:
    status: int
    headers: dict[str, str]
    body: Any
    elapsed_ms: int = 0
    url: str | None = None

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")


class Transport(Protocol):
    """Issues one HTTP request; raises TransportError when no response arrives."""

    def send(self, request: HttpRequest, *, timeout_s: float) -> HttpResponse: ...
