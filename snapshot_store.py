"""Whole-snapshot persistence backends for the form store."""

from __future__ import annotations

import copy
import os
import tempfile
from pathlib import Path
from typing import Protocol

from formkit.snapshot_codec import SnapshotDecodeError, SnapshotEncodeError, decode_snapshot, encode_snapshot


class SnapshotReadError(RuntimeError):
    pass


class SnapshotWriteError(RuntimeError):
    pass


class SnapshotStore(Protocol):
    def load(self) -> dict | None:
        """Return the stored snapshot, or None when nothing was saved yet."""

    def save(self, data: dict) -> None:
        ...


class JsonFileSnapshotStore:
    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)

    def load(self) -> dict | None:
        if not self.path.exists():
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SnapshotReadError(f"read failed path={self.path}: {exc}") from exc
        try:
            return decode_snapshot(text)
        except SnapshotDecodeError as exc:
            raise SnapshotReadError(f"decode failed path={self.path}: {exc}") from exc

    def save(self, data: dict) -> None:
        try:
            text = encode_snapshot(data)
        except (SnapshotEncodeError, ValueError) as exc:
            raise SnapshotWriteError(f"encode failed: {exc}") from exc
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise SnapshotWriteError(f"write failed path={self.path}: {exc}") from exc


class MemorySnapshotStore:
    def __init__(self, initial: dict | None = None) -> None:
        self._data = copy.deepcopy(initial) if initial is not None else None
        self.saves = 0

    def load(self) -> dict | None:
        return copy.deepcopy(self._data) if self._data is not None else None

    def save(self, data: dict) -> None:
        try:
            encode_snapshot(data)
        except (SnapshotEncodeError, ValueError) as exc:
            raise SnapshotWriteError(f"encode failed: {exc}") from exc
        self._data = copy.deepcopy(data)
        self.saves += 1

    def snapshot(self) -> dict | None:
        return self.load()
