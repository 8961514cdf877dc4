from __future__ import annotations

from typing import Any

from ..config import FetchConfig
from ..errors import ErrorKind, FetchError
from .auth import Credentials, parse_header_lines


def _invalid(source_id: str, message: str) -> FetchError:
    return FetchError(kind=ErrorKind.INVALID_CONFIG, message=f"source '{source_id}': {message}")


def build_fetch_config(source_cfg: dict[str, Any]) -> FetchConfig:
    """
    Build a FetchConfig from one entry of the "sources" list:

    {
      "id": "...",
      "request": {"url": "...", "method": "GET", "headers": {...}, "body": ..., "params": {...}},
      "credentials": {"token_env": "API_TOKEN"},
      "strategy": {"force_complete": false, "force_sample": false}
    }
    """
    source_id = source_cfg.get("id")
    if not source_id:
        raise FetchError(kind=ErrorKind.INVALID_CONFIG, message="Each source requires an 'id'")
    source_id = str(source_id)

    req = source_cfg.get("request") or {}
    if not isinstance(req, dict) or "url" not in req:
        raise _invalid(source_id, "request.url is required")

    raw_headers = req.get("headers") or {}
    if isinstance(raw_headers, str):
        headers = parse_header_lines(raw_headers)
    elif isinstance(raw_headers, dict):
        headers = {str(k): str(v) for k, v in raw_headers.items()}
    else:
        raise _invalid(source_id, "request.headers must be an object or 'Name: value' lines")

    params = req.get("params")
    if params is not None and not isinstance(params, dict):
        raise _invalid(source_id, "request.params must be an object")

    strategy = source_cfg.get("strategy") or {}
    return FetchConfig(
        url=str(req["url"]),
        method=str(req.get("method") or "GET").upper(),
        body=req.get("body"),
        headers=headers,
        credentials=Credentials.from_dict(source_cfg.get("credentials")),
        force_complete=bool(strategy.get("force_complete", False)),
        force_sample=bool(strategy.get("force_sample", False)),
        pagination_params=params,
    )
