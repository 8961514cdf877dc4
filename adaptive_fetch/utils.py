from __future__ import annotations

import hashlib
import json
import platform
import subprocess
import sys
import time
import traceback
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def utc_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%SZ")


def new_data_id() -> str:
    return str(uuid.uuid4())


def json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=True, default=str)


def compact_json(obj: Any) -> str:
    """Single-line JSON used for flattened array fields."""
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=str)


def sha256_json(obj: Any) -> str:
    raw = json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def write_json(path: Path, payload: Any) -> None:
    ensure_dir(path.parent)
    path.write_text(json_dumps(payload) + "\n", encoding="utf-8")


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def try_get_git_commit(cwd: Path) -> str | None:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], cwd=str(cwd), stderr=subprocess.DEVNULL)
        return out.decode("utf-8").strip()
    except (OSError, subprocess.CalledProcessError):
        return None


@dataclass
class Timer:
    start: float

    @classmethod
    def start_new(cls) -> "Timer":
        return cls(start=time.monotonic())

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.start) * 1000)


def environment_info() -> dict[str, Any]:
    return {
        "python_version": sys.version,
        "platform": platform.platform(),
        "executable": sys.executable,
    }


def exception_payload(exc: BaseException, debug: bool) -> dict[str, Any]:
    to_dict = getattr(exc, "to_dict", None)
    payload: dict[str, Any] = to_dict() if callable(to_dict) else {"message": str(exc)}
    payload["type"] = type(exc).__name__
    if debug:
        payload["traceback"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return payload
