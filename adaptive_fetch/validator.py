"""Classify raw HTTP responses as usable JSON or as a specific failure.

Checks run cheapest first: content type, emptiness, length, HTML sniffing,
bracket sniffing and finally the actual parse.
"""

from __future__ import annotations

import json
from typing import Any

from .errors import ErrorKind
from .models import ValidationResult

_HTML_MARKERS = ("<!doctype", "<html")
_PAIRS = {"{": "}", "[": "]"}
_CONTEXT = 20


class ResponseValidator:
    def validate(self, http_status: int | None, content_type: str | None, body: Any) -> ValidationResult:
        ct = (content_type or "").lower()
        if "text/html" in ct:
            return ValidationResult.invalid(
                ErrorKind.HTML_CONTENT_TYPE,
                f"API returned Content-Type: {content_type} (expected application/json)",
            )

        if isinstance(body, (dict, list)):
            return ValidationResult.valid(body)

        if body is None:
            text = ""
        elif isinstance(body, (bytes, bytearray)):
            text = bytes(body).decode("utf-8", errors="replace")
        else:
            text = str(body)

        trimmed = text.strip()
        if trimmed == "":
            return ValidationResult.invalid(ErrorKind.EMPTY_RESPONSE, "API returned empty string response")

        if len(trimmed) < 2:
            return ValidationResult.invalid(
                ErrorKind.RESPONSE_TOO_SHORT,
                f'Response only {len(trimmed)} characters: "{trimmed}"',
            )

        if trimmed[:20].lower().startswith(_HTML_MARKERS):
            return ValidationResult.invalid(ErrorKind.HTML_CONTENT, "Response contains HTML markup instead of JSON")

        if _PAIRS.get(trimmed[0]) != trimmed[-1]:
            return ValidationResult.invalid(
                ErrorKind.NOT_JSON_FORMAT,
                "Response does not start/end with JSON brackets. "
                f'Starts with: "{trimmed[:10]}", Ends with: "{trimmed[-10:]}"',
            )

        return _parse(trimmed)


def _parse(trimmed: str) -> ValidationResult:
    try:
        parsed = json.loads(trimmed)
    except json.JSONDecodeError as exc:
        if _is_end_of_input(exc, trimmed):
            if _brackets_left_open(trimmed):
                return ValidationResult.invalid(
                    ErrorKind.TRUNCATED_JSON,
                    "JSON response appears truncated. Starts correctly but the opening bracket is never closed. "
                    f"Response length: {len(trimmed)} chars.",
                )
            return ValidationResult.invalid(
                ErrorKind.INCOMPLETE_JSON,
                f"JSON response is incomplete or corrupted. Response length: {len(trimmed)} chars.",
            )
        start = max(0, exc.pos - _CONTEXT)
        end = min(len(trimmed), exc.pos + _CONTEXT)
        offset = len(trimmed[: exc.pos].encode("utf-8"))
        return ValidationResult.invalid(
            ErrorKind.JSON_SYNTAX_ERROR,
            f'JSON syntax error at byte offset {offset} ({exc.msg}). Context: "{trimmed[start:end]}"',
        )
    except (ValueError, RecursionError) as exc:
        return ValidationResult.invalid(ErrorKind.JSON_PARSE_ERROR, f"JSON parsing failed: {exc}")
    return ValidationResult.valid(parsed)


def _is_end_of_input(exc: json.JSONDecodeError, text: str) -> bool:
    if exc.msg.startswith("Unterminated string"):
        return True
    return exc.pos >= len(text)


def _brackets_left_open(text: str) -> bool:
    """Scan bracket depth outside string literals; True if the text ends unbalanced."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _PAIRS:
            stack.append(_PAIRS[ch])
        elif stack and ch == stack[-1]:
            stack.pop()
    return in_string or bool(stack)
