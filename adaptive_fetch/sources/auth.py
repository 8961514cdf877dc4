from __future__ import annotations

import base64
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..errors import ErrorKind, FetchError


@dataclass(frozen=True)
class Credentials:
    username: str | None = None
    password: str | None = None
    token: str | None = None
    api_key: str | None = None
    api_key_header: str = "X-API-Key"
    headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, cfg: Mapping[str, Any] | None) -> "Credentials | None":
        """
        Build credentials from a config mapping.

        Every secret may be given literally or as an environment variable name
        using the "<name>_env" key (e.g. "password_env": "API_PASSWORD").
        """
        if not cfg:
            return None

        def _value(name: str) -> str | None:
            env_name = cfg.get(f"{name}_env")
            if env_name:
                value = os.getenv(str(env_name))
                if not value:
                    raise FetchError(
                        kind=ErrorKind.INVALID_CONFIG,
                        message=f"Missing required environment variable: {env_name}",
                    )
                return value
            raw = cfg.get(name)
            return str(raw) if raw not in (None, "") else None

        raw_headers = cfg.get("headers") or {}
        return cls(
            username=_value("username"),
            password=_value("password"),
            token=_value("token"),
            api_key=_value("api_key"),
            api_key_header=str(cfg.get("api_key_header") or "X-API-Key"),
            headers=parse_header_lines(raw_headers) if isinstance(raw_headers, str) else dict(raw_headers),
        )


def parse_header_lines(text: str) -> dict[str, str]:
    """Parse "Name: value" lines; a value may itself contain colons."""
    out: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip():
            out[key.strip()] = value.strip()
    return out


def build_auth_headers(credentials: Credentials | None) -> dict[str, str]:
    if credentials is None:
        return {}
    headers: dict[str, str] = {}
    if credentials.username and credentials.password:
        raw = f"{credentials.username}:{credentials.password}".encode("utf-8")
        headers["Authorization"] = "Basic " + base64.b64encode(raw).decode("ascii")
    elif credentials.token:
        headers["Authorization"] = f"Bearer {credentials.token}"
    if credentials.api_key:
        headers[credentials.api_key_header] = credentials.api_key
    headers.update(credentials.headers)
    return headers


def describe_auth(credentials: Credentials | None, extra_headers: Mapping[str, str] | None = None) -> str:
    if credentials is not None and credentials.username and credentials.password:
        return "Basic Authentication"
    if credentials is not None and credentials.token:
        return "Bearer Token Authentication"
    if credentials is not None and credentials.api_key:
        return "API Key Authentication"
    headers = {**(extra_headers or {}), **(credentials.headers if credentials else {})}
    if not headers:
        return "No Authentication"
    lowered = {k.lower(): str(v).lower() for k, v in headers.items()}
    if "x-api-key" in lowered:
        return "API Key Authentication"
    if lowered.get("authorization", "").startswith("bearer"):
        return "Bearer Token Authentication"
    return "Custom Headers"
