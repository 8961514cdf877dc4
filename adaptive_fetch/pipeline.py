from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import EngineConfig
from .errors import FetchError
from .orchestrator import FetchOrchestrator
from .sources.base import Transport
from .sources.factory import build_fetch_config
from .store import LocalBlobStore
from .utils import (
    Timer,
    environment_info,
    ensure_dir,
    exception_payload,
    sha256_json,
    try_get_git_commit,
    utc_now_iso,
    utc_run_id,
    write_json,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    run_dir: Path
    ok: bool
    exit_code: int


def run_pipeline(
    *,
    config: dict[str, Any],
    out_root: Path,
    debug: bool,
    allow_partial_override: bool,
    transport: Transport | None = None,
) -> PipelineResult:
    t = Timer.start_new()
    base_dir = Path.cwd()

    run_cfg = config.get("run") or {}
    allow_partial = bool(run_cfg.get("allow_partial", False)) or bool(allow_partial_override)

    run_dir = out_root / f"run_{utc_run_id()}"
    sources_dir = run_dir / "sources"
    ensure_dir(sources_dir)

    manifest: dict[str, Any] = {
        "started_at": utc_now_iso(),
        "ended_at": None,
        "elapsed_ms": None,
        "ok": None,
        "exit_code": None,
        "run_dir": str(run_dir),
        "config_sha256": sha256_json(config),
        "git_commit": try_get_git_commit(base_dir),
        "environment": environment_info(),
        "settings": {"allow_partial": allow_partial, "debug": debug},
        "sources": [],
        "summary": {"sources_ok": 0, "sources_failed": 0, "records_total": 0},
    }

    try:
        engine_config = EngineConfig.from_dict(config.get("engine"))
    except FetchError as exc:
        err = exception_payload(exc, debug=debug)
        write_json(run_dir / "manifest.json", {**manifest, "ok": False, "exit_code": 2, "fatal_error": err})
        return PipelineResult(run_dir=run_dir, ok=False, exit_code=2)
    manifest["settings"]["engine"] = {
        "record_threshold": engine_config.record_threshold,
        "min_sample_size": engine_config.min_sample_size,
        "max_sample_size": engine_config.max_sample_size,
        "sampling_fraction": engine_config.sampling_fraction,
        "max_pages": engine_config.max_pages,
        "page_size": engine_config.page_size,
    }

    sources_cfg = config.get("sources") or []
    if not isinstance(sources_cfg, list) or len(sources_cfg) == 0:
        err = {"type": "ValueError", "message": "config.sources must be a non-empty list"}
        write_json(run_dir / "manifest.json", {**manifest, "ok": False, "exit_code": 2, "fatal_error": err})
        return PipelineResult(run_dir=run_dir, ok=False, exit_code=2)

    orchestrator = FetchOrchestrator(
        engine_config,
        transport=transport,
        store=LocalBlobStore(run_dir / "blobs"),
    )

    all_ok = True
    for source_cfg in sources_cfg:
        source_id = str(source_cfg.get("id", "unknown"))
        out_dir = sources_dir / source_id
        ensure_dir(out_dir)

        src_timer = Timer.start_new()
        src_entry: dict[str, Any] = {
            "id": source_id,
            "ok": False,
            "elapsed_ms": None,
            "records": 0,
            "strategy": None,
            "data_id": None,
            "paths": {
                "data_json": str(out_dir / "data.json"),
                "metadata_json": str(out_dir / "metadata.json"),
                "error_json": str(out_dir / "error.json"),
            },
        }

        try:
            fetch_config = build_fetch_config(source_cfg)
            result = orchestrator.fetch(fetch_config)
            src_entry["ok"] = bool(result.ok)
            src_entry["elapsed_ms"] = src_timer.elapsed_ms()

            if result.ok and result.record_set is not None:
                write_json(out_dir / "data.json", result.record_set.records)
                write_json(out_dir / "metadata.json", {**result.metadata, "preview": result.preview})
                src_entry["records"] = result.record_set.count
                src_entry["strategy"] = result.record_set.strategy.value
                src_entry["data_id"] = result.data_id
                manifest["summary"]["records_total"] += result.record_set.count
                manifest["summary"]["sources_ok"] += 1
            else:
                write_json(out_dir / "error.json", {**(result.error_payload() or {}), "metadata": result.metadata})
                manifest["summary"]["sources_failed"] += 1
                all_ok = False
        except Exception as exc:
            # config errors for this source
            logger.warning("source_failed", extra={"source_id": source_id, "error": str(exc)})
            write_json(out_dir / "error.json", exception_payload(exc, debug=debug))
            src_entry["ok"] = False
            src_entry["elapsed_ms"] = src_timer.elapsed_ms()
            manifest["summary"]["sources_failed"] += 1
            all_ok = False

        manifest["sources"].append(src_entry)

    exit_code = 0 if (all_ok or allow_partial) else 1
    manifest["ok"] = bool(all_ok)
    manifest["exit_code"] = int(exit_code)
    manifest["elapsed_ms"] = t.elapsed_ms()
    manifest["ended_at"] = utc_now_iso()

    write_json(run_dir / "manifest.json", manifest)
    return PipelineResult(run_dir=run_dir, ok=all_ok, exit_code=exit_code)
