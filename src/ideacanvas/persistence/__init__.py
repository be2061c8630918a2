"""Persistence package - session documents, storage slots and auto-save."""

from ideacanvas.persistence.autosave import AutoSaver
from ideacanvas.persistence.codec import (
    FORMAT_VERSION,
    LoadResult,
    deserialize,
    dumps,
    loads,
    serialize,
)
from ideacanvas.persistence.storage import (
    AUTOSAVE_KEY,
    SAVE_KEY,
    DirectoryStore,
    KeyValueStore,
    MemoryStore,
    SqliteStore,
    open_store,
)

__all__ = [
    "AUTOSAVE_KEY",
    "FORMAT_VERSION",
    "SAVE_KEY",
    "AutoSaver",
    "DirectoryStore",
    "KeyValueStore",
    "LoadResult",
    "MemoryStore",
    "SqliteStore",
    "deserialize",
    "dumps",
    "loads",
    "open_store",
    "serialize",
]
