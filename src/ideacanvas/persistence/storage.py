"""Key-value storage backends for saved sessions.

Sessions live in named slots: ``SAVE_KEY`` for explicit saves and
``AUTOSAVE_KEY`` for automatic ones, so the two never overwrite each other.
Backends store the document text verbatim and translate any I/O failure into
StorageUnavailableError; the engine downgrades that to a warning and keeps
working in memory.
"""

from __future__ import annotations

import contextlib
import re
import sqlite3
from pathlib import Path
from typing import Protocol, runtime_checkable

from ideacanvas.graph.errors import StorageUnavailableError
from ideacanvas.observability import get_logger

log = get_logger(__name__)

SAVE_KEY = "ideaCanvas"
AUTOSAVE_KEY = "ideaCanvas_autosave"

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


@runtime_checkable
class KeyValueStore(Protocol):
    """Persisted string store keyed by slot name."""

    def get(self, key: str) -> str | None:
        """Return the stored text, or None if the slot is empty."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store text in a slot, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Empty a slot. No-op if it is already empty."""
        ...


class MemoryStore:
    """In-process store; contents vanish with the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class DirectoryStore:
    """One ``<key>.json`` file per slot inside a directory.

    Writes go to a temporary file that is renamed over the target, so a crash
    mid-write never leaves a truncated session behind.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailableError(key, str(e)) from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise StorageUnavailableError(key, str(e)) from e
        log.debug("storage_written", key=key, path=str(path), size=len(value))

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailableError(key, str(e)) from e


_SCHEMA = """\
CREATE TABLE IF NOT EXISTS slots (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);
"""


class SqliteStore:
    """Slots kept in a single SQLite table."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        try:
            if isinstance(db_path, Path):
                db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._db_path, isolation_level=None)
            self._conn.executescript(_SCHEMA)
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailableError("*", str(e)) from e

    def close(self) -> None:
        self._conn.close()

    def get(self, key: str) -> str | None:
        try:
            row = self._conn.execute("SELECT value FROM slots WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailableError(key, str(e)) from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            self._conn.execute(
                "INSERT INTO slots (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')",
                (key, value),
            )
        except sqlite3.Error as e:
            raise StorageUnavailableError(key, str(e)) from e
        log.debug("storage_written", key=key, db=self._db_path, size=len(value))

    def delete(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM slots WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageUnavailableError(key, str(e)) from e


def open_store(backend: str, path: Path | None = None) -> KeyValueStore:
    """Create a storage backend by name (``memory``, ``directory``, ``sqlite``).

    Raises:
        ValueError: Unknown backend, or a file-backed backend without a path.
    """
    if backend == "memory":
        return MemoryStore()
    if path is None:
        raise ValueError(f"Storage backend '{backend}' requires a path")
    if backend == "directory":
        return DirectoryStore(path)
    if backend == "sqlite":
        return SqliteStore(path)
    raise ValueError(f"Unknown storage backend: {backend}")
