from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from .preview import build_preview
from .utils import ensure_dir, read_json, write_json


class BlobStore(Protocol):
    def put(self, data_id: str, payload: Any, metadata: dict[str, Any]) -> None: ...

    def get(self, data_id: str) -> tuple[Any, dict[str, Any]]: ...

    def delete(self, data_id: str) -> None: ...


class LocalBlobStore:
    """
    Stores each fetch as two JSON files under ``root``:
    <data_id>.json with the records and <data_id>_metadata.json with the metadata.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        ensure_dir(self.root)

    def data_path(self, data_id: str) -> Path:
        return self.root / f"{data_id}.json"

    def metadata_path(self, data_id: str) -> Path:
        return self.root / f"{data_id}_metadata.json"

    def put(self, data_id: str, payload: Any, metadata: dict[str, Any]) -> None:
        write_json(self.data_path(data_id), payload)
        write_json(self.metadata_path(data_id), metadata)

    def get(self, data_id: str) -> tuple[Any, dict[str, Any]]:
        path = self.data_path(data_id)
        if not path.exists():
            raise KeyError(data_id)
        meta_path = self.metadata_path(data_id)
        metadata = read_json(meta_path) if meta_path.exists() else {}
        return read_json(path), metadata

    def delete(self, data_id: str) -> None:
        for path in (self.data_path(data_id), self.metadata_path(data_id)):
            if path.exists():
                path.unlink()

    def exists(self, data_id: str) -> bool:
        return self.data_path(data_id).exists()

    def preview(self, data_id: str) -> dict[str, Any]:
        records, metadata = self.get(data_id)
        preview = build_preview(records if isinstance(records, list) else [])
        preview["metadata"] = metadata
        return preview
