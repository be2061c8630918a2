"""Engine configuration loading.

Configuration comes from ``ideacanvas.yaml`` with environment overrides on
top. Resolution order for each overridable setting:
1. Environment variable (e.g., IDEACANVAS_MOVEMENT_CONSTRAINT)
2. Config file
3. Built-in default
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from ideacanvas.graph.history import DEFAULT_LIMIT, MAX_LIMIT, MIN_LIMIT

CONFIG_FILENAME = "ideacanvas.yaml"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class HistoryConfig:
    """Undo/redo settings."""

    limit: int = DEFAULT_LIMIT
    debounce_ms: int = 750

    def __post_init__(self) -> None:
        if not MIN_LIMIT <= self.limit <= MAX_LIMIT:
            raise ValueError(f"history.limit must be between {MIN_LIMIT} and {MAX_LIMIT}")
        if self.debounce_ms < 0:
            raise ValueError("history.debounce_ms must be non-negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryConfig:
        return cls(
            limit=int(data.get("limit", DEFAULT_LIMIT)),
            debounce_ms=int(data.get("debounce_ms", 750)),
        )


@dataclass
class AutosaveConfig:
    """Auto-save settings.

    Attributes:
        enabled: Write the auto-save slot at all.
        debounce_ms: Quiet period after a change before saving.
        interval_s: Period of the background sweep.
    """

    enabled: bool = True
    debounce_ms: int = 1000
    interval_s: float = 30.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AutosaveConfig:
        return cls(
            enabled=bool(data.get("enabled", True)),
            debounce_ms=int(data.get("debounce_ms", 1000)),
            interval_s=float(data.get("interval_s", 30.0)),
        )


@dataclass
class StorageConfig:
    """Where saved sessions live.

    Attributes:
        backend: ``directory``, ``sqlite`` or ``memory``.
        path: Directory (directory backend) or database file (sqlite backend).
    """

    backend: str = "directory"
    path: Path = field(default_factory=lambda: Path(".ideacanvas"))

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> StorageConfig:
        backend = str(data.get("backend", "directory"))
        if backend not in ("directory", "sqlite", "memory"):
            raise ValueError(f"Unknown storage backend: {backend}")
        path = Path(data.get("path", ".ideacanvas"))
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        return cls(backend=backend, path=path)


@dataclass
class EngineConfig:
    """Configuration for one diagram engine instance.

    Attributes:
        movement_constraint: Block drags that place a node above a senior
            neighbor it is connected to.
        strict_duplicates: Reject an edge identical (endpoints and handles)
            to an existing one.
        auto_resolve: Compute handles from geometry and rank when connecting,
            and re-resolve touching edges after rank or position changes.
        drop_invalid: On import, drop invalid node entries instead of
            rejecting the whole document.
    """

    history: HistoryConfig = field(default_factory=HistoryConfig)
    autosave: AutosaveConfig = field(default_factory=AutosaveConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    movement_constraint: bool = True
    strict_duplicates: bool = True
    auto_resolve: bool = True
    drop_invalid: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> EngineConfig:
        """Create config from dictionary, then apply environment overrides.

        Args:
            data: Parsed config file contents.
            base_dir: Directory relative storage paths resolve against.

        Returns:
            EngineConfig instance.
        """
        constraints = data.get("constraints", {}) or {}
        edges = data.get("edges", {}) or {}
        import_ = data.get("import", {}) or {}

        history = HistoryConfig.from_dict(data.get("history", {}) or {})
        env_limit = os.getenv("IDEACANVAS_HISTORY_LIMIT")
        if env_limit:
            history = HistoryConfig(limit=int(env_limit), debounce_ms=history.debounce_ms)

        return cls(
            history=history,
            autosave=AutosaveConfig.from_dict(data.get("autosave", {}) or {}),
            storage=StorageConfig.from_dict(data.get("storage", {}) or {}, base_dir),
            movement_constraint=_env_flag(
                "IDEACANVAS_MOVEMENT_CONSTRAINT", bool(constraints.get("movement", True))
            ),
            strict_duplicates=_env_flag(
                "IDEACANVAS_STRICT_DUPLICATES", bool(edges.get("strict_duplicates", True))
            ),
            auto_resolve=bool(edges.get("auto_resolve", True)),
            drop_invalid=bool(import_.get("drop_invalid", True)),
        )

    @classmethod
    def default(cls) -> EngineConfig:
        """Defaults with environment overrides applied."""
        return cls.from_dict({})


class ConfigError(Exception):
    """Raised when the configuration file cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load config at {path}: {reason}")


def load_config(path: Path | None = None) -> EngineConfig:
    """Load engine configuration.

    Args:
        path: Config file, or a directory containing ``ideacanvas.yaml``.
            When None or when the file does not exist, defaults are used.

    Returns:
        EngineConfig instance.

    Raises:
        ConfigError: If the file exists but cannot be parsed or is invalid.
    """
    if path is None:
        return EngineConfig.default()
    config_path = path / CONFIG_FILENAME if path.is_dir() else path
    if not config_path.exists():
        return EngineConfig.default()

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
        if data is None:
            return EngineConfig.default()
        if not isinstance(data, dict):
            raise ConfigError(config_path, "Top level must be a mapping")
        return EngineConfig.from_dict(dict(data), base_dir=config_path.parent)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(config_path, str(e)) from e


def write_default_config(directory: Path) -> Path:
    """Write a default ``ideacanvas.yaml`` into *directory*."""
    defaults = EngineConfig()
    data = {
        "history": {
            "limit": defaults.history.limit,
            "debounce_ms": defaults.history.debounce_ms,
        },
        "autosave": {
            "enabled": defaults.autosave.enabled,
            "debounce_ms": defaults.autosave.debounce_ms,
            "interval_s": defaults.autosave.interval_s,
        },
        "storage": {"backend": defaults.storage.backend, "path": str(defaults.storage.path)},
        "constraints": {"movement": defaults.movement_constraint},
        "edges": {
            "strict_duplicates": defaults.strict_duplicates,
            "auto_resolve": defaults.auto_resolve,
        },
        "import": {"drop_invalid": defaults.drop_invalid},
    }
    directory.mkdir(parents=True, exist_ok=True)
    config_path = directory / CONFIG_FILENAME
    yaml = YAML()
    yaml.default_flow_style = False
    with config_path.open("w", encoding="utf-8") as f:
        yaml.dump(data, f)
    return config_path
