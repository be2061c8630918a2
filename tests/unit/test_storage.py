"""Tests for the key-value storage backends."""

from __future__ import annotations

from pathlib import Path

import pytest

from ideacanvas.graph.errors import StorageUnavailableError
from ideacanvas.persistence.storage import (
    AUTOSAVE_KEY,
    SAVE_KEY,
    DirectoryStore,
    KeyValueStore,
    MemoryStore,
    SqliteStore,
    open_store,
)


@pytest.fixture(params=["memory", "directory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> KeyValueStore:
    """Every backend, so the slot contract is checked once for all of them."""
    if request.param == "memory":
        return MemoryStore()
    if request.param == "directory":
        return DirectoryStore(tmp_path / "slots")
    return SqliteStore(tmp_path / "slots.db")


class TestSlotContract:
    def test_satisfies_protocol(self, store: KeyValueStore) -> None:
        assert isinstance(store, KeyValueStore)

    def test_empty_slot_is_none(self, store: KeyValueStore) -> None:
        assert store.get(SAVE_KEY) is None

    def test_set_get_overwrite(self, store: KeyValueStore) -> None:
        store.set(SAVE_KEY, '{"a": 1}')
        store.set(SAVE_KEY, '{"a": 2}')
        assert store.get(SAVE_KEY) == '{"a": 2}'

    def test_slots_are_independent(self, store: KeyValueStore) -> None:
        """Auto-save never overwrites the explicit save."""
        store.set(SAVE_KEY, "explicit")
        store.set(AUTOSAVE_KEY, "automatic")
        assert store.get(SAVE_KEY) == "explicit"
        assert store.get(AUTOSAVE_KEY) == "automatic"

    def test_delete(self, store: KeyValueStore) -> None:
        store.set(SAVE_KEY, "x")
        store.delete(SAVE_KEY)
        store.delete(SAVE_KEY)
        assert store.get(SAVE_KEY) is None


class TestDirectoryStore:
    def test_one_file_per_slot(self, tmp_path: Path) -> None:
        store = DirectoryStore(tmp_path)
        store.set(SAVE_KEY, "{}")
        assert (tmp_path / f"{SAVE_KEY}.json").read_text(encoding="utf-8") == "{}"
        assert not list(tmp_path.glob("*.tmp"))

    def test_unsafe_key_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            DirectoryStore(tmp_path).set("../escape", "x")

    def test_unwritable_location_is_unavailable(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("not a directory", encoding="utf-8")
        store = DirectoryStore(blocker / "slots")
        with pytest.raises(StorageUnavailableError) as exc_info:
            store.set(SAVE_KEY, "{}")
        assert exc_info.value.key == SAVE_KEY

    def test_failed_cleanup_still_unavailable(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A temp file that cannot be removed does not mask the storage error."""

        def denied(*_args: object, **_kwargs: object) -> None:
            raise PermissionError("denied")

        monkeypatch.setattr(Path, "replace", denied)
        monkeypatch.setattr(Path, "unlink", denied)
        with pytest.raises(StorageUnavailableError):
            DirectoryStore(tmp_path).set(SAVE_KEY, "{}")


class TestSqliteStore:
    def test_persists_across_connections(self, tmp_path: Path) -> None:
        db = tmp_path / "canvas.db"
        first = SqliteStore(db)
        first.set(SAVE_KEY, "kept")
        first.close()
        assert SqliteStore(db).get(SAVE_KEY) == "kept"

    def test_closed_connection_is_unavailable(self) -> None:
        store = SqliteStore()
        store.close()
        with pytest.raises(StorageUnavailableError):
            store.get(SAVE_KEY)


class TestOpenStore:
    def test_backends_by_name(self, tmp_path: Path) -> None:
        assert isinstance(open_store("memory"), MemoryStore)
        assert isinstance(open_store("directory", tmp_path), DirectoryStore)
        assert isinstance(open_store("sqlite", tmp_path / "x.db"), SqliteStore)

    def test_unknown_backend(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            open_store("redis", tmp_path)

    def test_file_backend_needs_path(self) -> None:
        with pytest.raises(ValueError):
            open_store("directory")
