"""Tests for sprig.toml loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from sprig.core.errors import SprigError
from sprig.core.manifest import find_manifest, load_manifest


def _write(directory: Path, text: str) -> Path:
    path = directory / "sprig.toml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadManifest:
    """Parsing and validating manifests."""

    def test_full_manifest(self, tmp_path: Path) -> None:
        manifest = load_manifest(
            _write(
                tmp_path,
                """
[project]
name = "demo"
script = "screens/main.sprig"

[reload]
enabled = false
debounce_ms = 150
poll_interval = 1

[logging]
level = "debug"
json = true
log_dir = ".sprig/logs"
""",
            )
        )
        assert manifest.name == "demo"
        assert manifest.script_path == (tmp_path / "screens" / "main.sprig").resolve()
        assert manifest.reload.enabled is False
        assert manifest.reload.debounce == 0.15
        assert manifest.reload.poll_interval == 1
        assert manifest.logging.level == "DEBUG"
        assert manifest.logging.json is True
        assert manifest.log_path == tmp_path / ".sprig" / "logs"

    def test_defaults(self, tmp_path: Path) -> None:
        manifest = load_manifest(_write(tmp_path, ""))
        assert manifest.name == tmp_path.name
        assert manifest.script == "ui.sprig"
        assert manifest.reload.enabled is True
        assert manifest.reload.debounce_ms == 300
        assert manifest.logging.level == "INFO"
        assert manifest.log_path is None

    @pytest.mark.parametrize(
        "text, message",
        [
            ("[project\nname = 1", "invalid TOML"),
            ("[project]\nname = 3", r"\[project\] name has the wrong type"),
            ("[reload]\nenabled = 1", r"\[reload\] enabled has the wrong type"),
            ("[reload]\ndebounce_ms = true", r"\[reload\] debounce_ms has the wrong type"),
            ("[reload]\ndebounce_ms = -1", "debounce_ms must be >= 0"),
            ("[reload]\npoll_interval = 0", "poll_interval must be > 0"),
            ('[logging]\nlevel = "loud"', "level must be one of"),
            ("[logging]\njson = \"yes\"", r"\[logging\] json has the wrong type"),
        ],
    )
    def test_invalid(self, tmp_path: Path, text: str, message: str) -> None:
        with pytest.raises(SprigError, match=message):
            load_manifest(_write(tmp_path, text))


class TestFindManifest:
    """Searching parent directories."""

    def test_found_in_parent(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_manifest(nested) == path.resolve()

    def test_not_found(self, tmp_path: Path) -> None:
        assert find_manifest(tmp_path) is None
