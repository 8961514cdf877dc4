from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .config import EngineConfig, FetchConfig
from .errors import FetchError
from .orchestrator import FetchOrchestrator
from .pipeline import run_pipeline
from .sources.auth import Credentials, parse_header_lines
from .store import LocalBlobStore
from .utils import json_dumps


def _add_request_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--url", required=True, help="API endpoint URL.")
    p.add_argument("--method", default="GET", help="HTTP method (default: GET).")
    p.add_argument(
        "--header",
        action="append",
        default=[],
        metavar="NAME: VALUE",
        help="Extra request header; may be repeated.",
    )
    p.add_argument("--body", default=None, help="Request body for POST/PUT/PATCH (JSON text).")
    p.add_argument("--username-env", default=None, help="Environment variable holding the basic-auth user.")
    p.add_argument("--password-env", default=None, help="Environment variable holding the basic-auth password.")
    p.add_argument("--token-env", default=None, help="Environment variable holding a bearer token.")
    p.add_argument("--api-key-env", default=None, help="Environment variable holding an API key.")
    p.add_argument("--engine-config", default=None, help="JSON file with engine settings.")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="adaptive-fetch", add_help=True)
    p.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING).")
    sub = p.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Fetch every source in a config file and write local JSON outputs.")
    run.add_argument("--config", required=True, help="Path to the JSON configuration file.")
    run.add_argument("--out", required=True, help="Output root directory (a run_... folder is created within).")
    run.add_argument(
        "--debug",
        action="store_true",
        help="Include tracebacks in error.json files (useful for troubleshooting).",
    )
    run.add_argument(
        "--allow-partial",
        action="store_true",
        help="Do not fail the whole run if a source fails (exit code 0).",
    )

    fetch = sub.add_parser("fetch", help="Fetch one endpoint and print a summary.")
    _add_request_args(fetch)
    group = fetch.add_mutually_exclusive_group()
    group.add_argument("--force-complete", action="store_true", help="Crawl every page regardless of size.")
    group.add_argument("--force-sample", action="store_true", help="Take a representative sample regardless of size.")
    fetch.add_argument("--store", default=None, help="Directory where records and metadata are saved.")

    probe = sub.add_parser("probe", help="Check connectivity and authentication for one endpoint.")
    _add_request_args(probe)

    show = sub.add_parser("show", help="Print metadata and a preview of a stored fetch.")
    show.add_argument("--store", required=True, help="Directory used with 'fetch --store'.")
    show.add_argument("--id", required=True, dest="data_id", help="dataId of the stored fetch.")
    return p.parse_args(argv)


def _fetch_config(args: argparse.Namespace, **extra: Any) -> FetchConfig:
    headers: dict[str, str] = {}
    for line in args.header:
        headers.update(parse_header_lines(line))
    creds_cfg = {
        "username_env": args.username_env,
        "password_env": args.password_env,
        "token_env": args.token_env,
        "api_key_env": args.api_key_env,
    }
    return FetchConfig(
        url=args.url,
        method=args.method.upper(),
        body=args.body,
        headers=headers,
        credentials=Credentials.from_dict({k: v for k, v in creds_cfg.items() if v}),
        **extra,
    )


def _engine_config(path: str | None) -> EngineConfig:
    if not path:
        return EngineConfig()
    return EngineConfig.from_dict(json.loads(Path(path).expanduser().read_text(encoding="utf-8")))


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if args.cmd == "run":
        config_path = Path(args.config).expanduser()
        out_root = Path(args.out).expanduser()
        cfg = json.loads(config_path.read_text(encoding="utf-8"))
        result = run_pipeline(
            config=cfg,
            out_root=out_root,
            debug=args.debug,
            allow_partial_override=args.allow_partial,
        )
        return int(result.exit_code)

    if args.cmd == "show":
        store = LocalBlobStore(Path(args.store).expanduser())
        try:
            preview = store.preview(args.data_id)
        except KeyError:
            print(f"ERROR: no stored fetch with id {args.data_id}", file=sys.stderr)
            return 1
        metadata = preview.pop("metadata")
        print(json_dumps({"metadata": metadata, "preview": preview}))
        return 0

    try:
        engine = _engine_config(args.engine_config)
        if args.cmd == "probe":
            fetch_config = _fetch_config(args)
        else:
            fetch_config = _fetch_config(args, force_complete=args.force_complete, force_sample=args.force_sample)
    except FetchError as exc:
        print(json_dumps({"ok": False, "error": exc.to_dict()}))
        return 2

    if args.cmd == "probe":
        probe = FetchOrchestrator(engine).probe(fetch_config)
        print(json_dumps(probe.to_dict()))
        return 0 if probe.connection_ok and probe.authentication_ok else 1

    if args.cmd == "fetch":
        store = LocalBlobStore(Path(args.store).expanduser()) if args.store else None
        result = FetchOrchestrator(engine, store=store).fetch(fetch_config)
        if result.ok:
            print(json_dumps({"ok": True, "metadata": result.metadata, "preview": result.preview}))
            return 0
        print(json_dumps({"ok": False, "error": result.error_payload(), "metadata": result.metadata}))
        return 1

    raise RuntimeError(f"Unsupported command: {args.cmd}")
