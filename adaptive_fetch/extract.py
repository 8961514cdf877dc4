from __future__ import annotations

from typing import Any

from .utils import compact_json

REFERENCE_KEYS = ("value", "link", "display_value")


def _as_record(item: Any) -> dict[str, Any]:
    return item if isinstance(item, dict) else {"value": item}


def _longest_array_field(body: dict[str, Any]) -> list[Any] | None:
    """
    Longest array among the direct properties of ``body`` and the properties
    of its object-valued children. Ties go to the first array discovered.
    """
    best: list[Any] | None = None
    for value in body.values():
        if isinstance(value, list):
            if best is None or len(value) > len(best):
                best = value
        elif isinstance(value, dict):
            for nested in value.values():
                if isinstance(nested, list) and (best is None or len(nested) > len(best)):
                    best = nested
    return best


class RecordExtractor:
    def __init__(self, max_depth: int = 5) -> None:
        self.max_depth = max_depth

    def extract(self, body: Any) -> list[dict[str, Any]]:
        """
        Locate the record collection inside a parsed body:
        - a list is the collection itself (non-object items become {"value": item})
        - an object contributes its longest array field
        - an object without array fields is a single record
        """
        if isinstance(body, list):
            return [_as_record(item) for item in body]
        if isinstance(body, dict):
            found = _longest_array_field(body)
            if found is None:
                return [body]
            return [_as_record(item) for item in found]
        if body is None:
            return []
        return [{"value": body}]

    def flatten(self, record: dict[str, Any], max_depth: int | None = None) -> dict[str, Any]:
        limit = self.max_depth if max_depth is None else max_depth
        out: dict[str, Any] = {}
        _flatten_into(out, record, "", 1, limit, {str(k) for k in record})
        return out

    def extract_flat(self, body: Any) -> list[dict[str, Any]]:
        return [self.flatten(r) for r in self.extract(body)]


def _free_name(out: dict[str, Any], reserved: set[str], name: str) -> str:
    """``name``, or ``name_2``, ``name_3``... when it is taken by another field."""
    if name not in out and name not in reserved:
        return name
    n = 2
    while f"{name}_{n}" in out or f"{name}_{n}" in reserved:
        n += 1
    return f"{name}_{n}"


def _flatten_into(
    out: dict[str, Any],
    node: dict[str, Any],
    prefix: str,
    depth: int,
    limit: int,
    reserved: set[str],
) -> None:
    # top-level keys keep their names; joined names never overwrite another field
    for key, value in node.items():
        name = f"{prefix}_{key}" if prefix else str(key)
        if prefix:
            name = _free_name(out, reserved, name)
        if value is None:
            out[name] = None
        elif isinstance(value, list):
            out[name] = compact_json(value)
        elif isinstance(value, dict):
            if any(k in value for k in REFERENCE_KEYS):
                for ref_key in REFERENCE_KEYS:
                    if ref_key in value:
                        ref = value[ref_key]
                        if isinstance(ref, (dict, list)):
                            ref = compact_json(ref)
                        out[_free_name(out, reserved, f"{name}_{ref_key}")] = ref
            elif depth >= limit:
                out[name] = compact_json(value)
            else:
                _flatten_into(out, value, name, depth + 1, limit, reserved)
        else:
            out[name] = value


def flatten(record: dict[str, Any], max_depth: int = 5) -> dict[str, Any]:
    return RecordExtractor(max_depth).flatten(record)
