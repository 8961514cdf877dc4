from __future__ import annotations

import json
from typing import Any, Callable
from urllib.parse import parse_qsl, urlsplit

import pytest

from adaptive_fetch.config import EngineConfig
from adaptive_fetch.sources.base import HttpRequest, HttpResponse

Handler = Callable[[HttpRequest], HttpResponse]


def json_response(payload: Any, *, status: int = 200, headers: dict[str, str] | None = None) -> HttpResponse:
    merged = {"content-type": "application/json"}
    merged.update({k.lower(): v for k, v in (headers or {}).items()})
    return HttpResponse(status=status, headers=merged, body=json.dumps(payload))


def text_response(body: str, *, status: int = 200, content_type: str = "application/json") -> HttpResponse:
    return HttpResponse(status=status, headers={"content-type": content_type}, body=body)


def query_of(url: str) -> dict[str, str]:
    return dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))


class FakeTransport:
    """Transport double: answers from a handler or a queue and records every request."""

    def __init__(self, handler: Handler | None = None, responses: list[HttpResponse | Exception] | None = None):
        self.handler = handler
        self.queue = list(responses or [])
        self.requests: list[HttpRequest] = []
        self.timeouts: list[float] = []

    def send(self, request: HttpRequest, *, timeout_s: float) -> HttpResponse:
        self.requests.append(request)
        self.timeouts.append(timeout_s)
        if self.handler is not None:
            return self.handler(request)
        item = self.queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def urls(self) -> list[str]:
        return [r.url for r in self.requests]


def paged_api(sizes: list[int], *, page_param: str = "page", size_param: str = "per_page") -> Handler:
    """Serve pages of the given sizes; any page past the list is empty."""

    def handler(request: HttpRequest) -> HttpResponse:
        q = query_of(request.url)
        page = int(q.get(page_param, "1"))
        n = sizes[page - 1] if page <= len(sizes) else 0
        start = sum(sizes[: page - 1])
        return json_response([{"id": start + i + 1} for i in range(n)])

    return handler


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(inter_page_delay_ms=0)
