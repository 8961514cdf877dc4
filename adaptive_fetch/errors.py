from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    # response validation
    HTML_CONTENT_TYPE = "HTML_CONTENT_TYPE"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    RESPONSE_TOO_SHORT = "RESPONSE_TOO_SHORT"
    HTML_CONTENT = "HTML_CONTENT"
    NOT_JSON_FORMAT = "NOT_JSON_FORMAT"
    TRUNCATED_JSON = "TRUNCATED_JSON"
    INCOMPLETE_JSON = "INCOMPLETE_JSON"
    JSON_SYNTAX_ERROR = "JSON_SYNTAX_ERROR"
    JSON_PARSE_ERROR = "JSON_PARSE_ERROR"
    # authentication
    AUTHENTICATION_REQUIRED = "AuthenticationRequired"
    ACCESS_DENIED = "AccessDenied"
    HTTP_ERROR = "HTTP_ERROR"
    # transport
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    DNS_FAILURE = "DNS_FAILURE"
    TIMEOUT = "TIMEOUT"
    TOO_MANY_REDIRECTS = "TOO_MANY_REDIRECTS"
    NETWORK_ERROR = "NETWORK_ERROR"
    # local
    INVALID_CONFIG = "INVALID_CONFIG"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


VALIDATION_KINDS = frozenset(
    {
        ErrorKind.HTML_CONTENT_TYPE,
        ErrorKind.EMPTY_RESPONSE,
        ErrorKind.RESPONSE_TOO_SHORT,
        ErrorKind.HTML_CONTENT,
        ErrorKind.NOT_JSON_FORMAT,
        ErrorKind.TRUNCATED_JSON,
        ErrorKind.INCOMPLETE_JSON,
        ErrorKind.JSON_SYNTAX_ERROR,
        ErrorKind.JSON_PARSE_ERROR,
    }
)

AUTH_KINDS = frozenset({ErrorKind.AUTHENTICATION_REQUIRED, ErrorKind.ACCESS_DENIED})

TRANSPORT_KINDS = frozenset(
    {
        ErrorKind.CONNECTION_REFUSED,
        ErrorKind.DNS_FAILURE,
        ErrorKind.TIMEOUT,
        ErrorKind.TOO_MANY_REDIRECTS,
        ErrorKind.NETWORK_ERROR,
    }
)


@dataclass(frozen=True)
class FetchError(Exception):
    kind: ErrorKind
    message: str
    http_status: int | None = None
    content_type: str | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"[{self.kind.value}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "http_status": self.http_status,
            "content_type": self.content_type,
            "hints": remediation_hints(self.kind, self.http_status),
        }


@dataclass(frozen=True)
class TransportError(FetchError):
    """Raised by transports when no HTTP response could be obtained."""


def error_for_status(status: int, content_type: str | None = None) -> FetchError | None:
    """Map an HTTP status to the error it represents, or None for success codes."""
    if status == 401:
        return FetchError(
            kind=ErrorKind.AUTHENTICATION_REQUIRED,
            message="API returned 401 Unauthorized",
            http_status=status,
            content_type=content_type,
        )
    if status == 403:
        return FetchError(
            kind=ErrorKind.ACCESS_DENIED,
            message="API returned 403 Forbidden",
            http_status=status,
            content_type=content_type,
        )
    if status >= 400:
        side = "Server" if status >= 500 else "Client"
        return FetchError(
            kind=ErrorKind.HTTP_ERROR,
            message=f"{side} error {status}",
            http_status=status,
            content_type=content_type,
        )
    return None


_HINTS: dict[ErrorKind, tuple[str, ...]] = {
    ErrorKind.EMPTY_RESPONSE: (
        "Connection and authentication look fine; the collection may be empty",
        "Add a filter or query parameters that are known to return rows",
    ),
    ErrorKind.RESPONSE_TOO_SHORT: (
        "The API returned an unusually short response",
        "Check that the endpoint path is correct",
    ),
    ErrorKind.TRUNCATED_JSON: (
        "The response was cut off before the JSON document ended",
        "Reduce the response size with a smaller page size or a field selection",
    ),
    ErrorKind.INCOMPLETE_JSON: (
        "The JSON document ended unexpectedly",
        "Reduce the response size with a smaller page size or a field selection",
    ),
    ErrorKind.JSON_SYNTAX_ERROR: (
        "The API returned invalid JSON syntax",
        "Check the API documentation for the correct endpoint format",
    ),
    ErrorKind.JSON_PARSE_ERROR: (
        "The API returned a body that could not be parsed as JSON",
        "Check the API documentation for the correct endpoint format",
    ),
    ErrorKind.NOT_JSON_FORMAT: (
        "The response does not look like a JSON object or array",
        "Make sure the URL points at the JSON API and not a web page",
    ),
    ErrorKind.HTML_CONTENT_TYPE: (
        "The API is returning HTML instead of JSON",
        "Check the API URL",
        "Verify authentication; the server may be redirecting to a login page",
    ),
    ErrorKind.HTML_CONTENT: (
        "The API is returning HTML instead of JSON",
        "Check the API URL",
        "Verify authentication; the server may be redirecting to a login page",
    ),
    ErrorKind.AUTHENTICATION_REQUIRED: (
        "Configure authentication for this API",
        "Check your credentials",
    ),
    ErrorKind.ACCESS_DENIED: ("Your credentials may not have permission to access this endpoint",),
    ErrorKind.CONNECTION_REFUSED: ("The API server is not reachable; check host and port",),
    ErrorKind.DNS_FAILURE: ("The host name could not be resolved; check the URL",),
    ErrorKind.TIMEOUT: ("The API server was too slow; try a smaller page or retry later",),
    ErrorKind.TOO_MANY_REDIRECTS: ("The URL redirects in a loop; use the final API URL directly",),
    ErrorKind.NETWORK_ERROR: ("A network error occurred; check connectivity and retry",),
    ErrorKind.INVALID_CONFIG: ("Fix the fetch configuration and run again",),
}


def remediation_hints(kind: ErrorKind, http_status: int | None = None) -> list[str]:
    hints = list(_HINTS.get(kind, ("Check API endpoint URL and authentication",)))
    if kind == ErrorKind.HTTP_ERROR and http_status is not None:
        if http_status >= 500:
            hints = ["The API server failed; retry later"]
        elif http_status == 404:
            hints = ["The endpoint was not found; check the URL path"]
        elif http_status == 429:
            hints = ["The API is rate limiting requests; retry later"]
    return hints
