import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .errors import SprigError

MANIFEST_NAME = "sprig.toml"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class ReloadConfig:
    """Hot-reload configuration."""

    enabled: bool = True
    debounce_ms: int = 300  # quiet period before a burst of changes reloads
    poll_interval: float = 0.5  # seconds between mtime scans

    @property
    def debounce(self) -> float:
        return self.debounce_ms / 1000


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    json: bool = False  # also write JSONL logs to log_dir
    log_dir: str | None = None


@dataclass
class ProjectManifest:
    """
    Project configuration loaded from ``sprig.toml``.

    Example:

        [project]
        name = "demo"
        script = "ui.sprig"

        [reload]
        enabled = true
        debounce_ms = 300
        poll_interval = 0.5

        [logging]
        level = "INFO"
        json = false
        log_dir = ".sprig/logs"
    """

    name: str
    script: str = "ui.sprig"
    root: Path = field(default_factory=Path.cwd)
    reload: ReloadConfig = field(default_factory=ReloadConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def script_path(self) -> Path:
        return (self.root / self.script).resolve()

    @property
    def log_path(self) -> Path | None:
        if self.logging.log_dir is None:
            return None
        return self.root / self.logging.log_dir


def _expect(section: str, key: str, value: object, kind: type | tuple[type, ...]) -> None:
    # bool is an int subclass; reject it for numeric settings
    if isinstance(value, bool) and bool not in (kind if isinstance(kind, tuple) else (kind,)):
        raise SprigError(f"{MANIFEST_NAME}: [{section}] {key} has the wrong type: {value!r}")
    if not isinstance(value, kind):
        raise SprigError(f"{MANIFEST_NAME}: [{section}] {key} has the wrong type: {value!r}")


def load_manifest(path: Path) -> ProjectManifest:
    """
    Load a project manifest.

    Args:
        path: Path to ``sprig.toml``

    Returns:
        ProjectManifest with defaults for any missing section

    Raises:
        SprigError: If the file is not valid TOML or a value is invalid
    """
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise SprigError(f"{path}: invalid TOML: {e}") from e

    project = data.get("project", {})
    reload_data = data.get("reload", {})
    logging_data = data.get("logging", {})

    name = project.get("name", path.parent.name)
    script = project.get("script", "ui.sprig")
    _expect("project", "name", name, str)
    _expect("project", "script", script, str)

    reload_config = ReloadConfig(
        enabled=reload_data.get("enabled", True),
        debounce_ms=reload_data.get("debounce_ms", 300),
        poll_interval=reload_data.get("poll_interval", 0.5),
    )
    _expect("reload", "enabled", reload_config.enabled, bool)
    _expect("reload", "debounce_ms", reload_config.debounce_ms, int)
    _expect("reload", "poll_interval", reload_config.poll_interval, (int, float))
    if reload_config.debounce_ms < 0:
        raise SprigError(f"{MANIFEST_NAME}: [reload] debounce_ms must be >= 0")
    if reload_config.poll_interval <= 0:
        raise SprigError(f"{MANIFEST_NAME}: [reload] poll_interval must be > 0")

    logging_config = LoggingConfig(
        level=str(logging_data.get("level", "INFO")).upper(),
        json=logging_data.get("json", False),
        log_dir=logging_data.get("log_dir"),
    )
    if logging_config.level not in _LOG_LEVELS:
        raise SprigError(
            f"{MANIFEST_NAME}: [logging] level must be one of {sorted(_LOG_LEVELS)}, "
            f"got {logging_config.level!r}"
        )
    _expect("logging", "json", logging_config.json, bool)
    if logging_config.log_dir is not None:
        _expect("logging", "log_dir", logging_config.log_dir, str)

    return ProjectManifest(
        name=name,
        script=script,
        root=path.parent,
        reload=reload_config,
        logging=logging_config,
    )


def find_manifest(start: Path) -> Path | None:
    """Walk up from ``start`` looking for ``sprig.toml``."""
    current = start.resolve()
    for directory in (current, *current.parents):
        candidate = directory / MANIFEST_NAME
        if candidate.is_file():
            return candidate
    return None
