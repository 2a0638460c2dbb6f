"""Snapshot encoding: readable on-disk JSON plus a canonical digest."""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any


class SnapshotDecodeError(ValueError):
    """Raised when a stored snapshot is not a JSON object."""


class SnapshotEncodeError(TypeError):
    """Raised when state holds a value JSON cannot represent."""


def _check(obj: Any, path: str = "$") -> None:
    if isinstance(obj, dict):
        for key, value in obj.items():
            if not isinstance(key, str):
                raise SnapshotEncodeError(f"Non-string key at {path}: {key!r}")
            _check(value, f"{path}.{key}")
    elif isinstance(obj, list):
        for idx, item in enumerate(obj):
            _check(item, f"{path}[{idx}]")
    elif isinstance(obj, float):
        if not math.isfinite(obj):
            raise SnapshotEncodeError(f"Non-finite float at {path}: {obj!r}")
    elif obj is not None and not isinstance(obj, (str, int, bool)):
        raise SnapshotEncodeError(f"Unsupported type at {path}: {type(obj).__name__}")


def canonical_dumps(obj: Any) -> str:
    """Key-sorted, whitespace-free JSON; equal data always yields equal text."""
    _check(obj)
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"), allow_nan=False)


def snapshot_digest(obj: Any) -> str:
    data = canonical_dumps(obj).encode("utf-8")
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def encode_snapshot(obj: dict) -> str:
    _check(obj)
    return json.dumps(obj, indent=2, ensure_ascii=False, allow_nan=False) + "\n"


def decode_snapshot(text: str) -> dict:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SnapshotDecodeError(f"Invalid JSON: {exc.msg} (line {exc.lineno})") from exc
    if not isinstance(parsed, dict):
        raise SnapshotDecodeError(f"Snapshot root must be an object, got {type(parsed).__name__}")
    return parsed


def json_differs(before: Any, after: Any) -> bool:
    """Compare by JSON form, where 1 and True are different values."""
    try:
        return canonical_dumps(before) != canonical_dumps(after)
    except (SnapshotEncodeError, ValueError):
        return before != after
