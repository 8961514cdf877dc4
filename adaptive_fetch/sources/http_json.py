from __future__ import annotations

import json
import logging
from typing import Any

import requests

from ..errors import ErrorKind, TransportError
from ..utils import Timer
from .base import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

_BODY_METHODS = ("POST", "PUT", "PATCH")


class RequestsTransport:
    """Transport backed by a requests.Session. One call, one request, no retries."""

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        user_agent: str = "adaptive-fetch/1.0",
        max_redirects: int = 5,
    ) -> None:
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json", "User-Agent": user_agent})
        self.session.max_redirects = max_redirects

    def send(self, request: HttpRequest, *, timeout_s: float) -> HttpResponse:
        method = request.method.upper()
        headers = dict(request.headers)
        kwargs: dict[str, Any] = {}
        if method in _BODY_METHODS and request.body is not None:
            payload = request.body
            if isinstance(payload, str):
                try:
                    payload = json.loads(payload)
                except json.JSONDecodeError:
                    kwargs["data"] = payload
            if "data" not in kwargs:
                kwargs["json"] = payload

        t = Timer.start_new()
        try:
            resp = self.session.request(
                method=method,
                url=request.url,
                headers=headers,
                timeout=timeout_s,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise _classify(exc, request.url) from exc

        logger.debug(
            "http_response",
            extra={"method": method, "url": request.url, "status": resp.status_code, "elapsed_ms": t.elapsed_ms()},
        )
        return HttpResponse(
            status=resp.status_code,
            headers={k.lower(): v for k, v in resp.headers.items()},
            body=resp.text,
            elapsed_ms=t.elapsed_ms(),
            url=resp.url,
        )


def _classify(exc: requests.RequestException, url: str) -> TransportError:
    text = str(exc)
    lowered = text.lower()
    if isinstance(exc, requests.Timeout):
        kind = ErrorKind.TIMEOUT
        message = f"Request to {url} timed out"
    elif isinstance(exc, requests.TooManyRedirects):
        kind = ErrorKind.TOO_MANY_REDIRECTS
        message = f"Too many redirects for {url}"
    elif isinstance(exc, requests.ConnectionError) and (
        "name or service not known" in lowered
        or "nodename nor servname" in lowered
        or "getaddrinfo failed" in lowered
        or "name resolution" in lowered
    ):
        kind = ErrorKind.DNS_FAILURE
        message = f"Could not resolve host for {url}"
    elif isinstance(exc, requests.ConnectionError) and "refused" in lowered:
        kind = ErrorKind.CONNECTION_REFUSED
        message = f"Connection refused by {url}"
    else:
        kind = ErrorKind.NETWORK_ERROR
        message = text or "network error"
    return TransportError(kind=kind, message=message)
