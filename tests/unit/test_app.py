"""Tests for project wiring."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import pytest

from sprig.core.errors import SprigError
from sprig.core.manifest import load_manifest
from sprig.runtime.app import SprigApp, configure_logging
from sprig.runtime.commands import Command, UpdateProperties
from sprig.runtime.logging import get_log_file
from sprig.runtime.router import UIEvent


class EventSink:
    """Records batches and signals each arrival."""

    def __init__(self) -> None:
        self.batches: list[list[Command]] = []
        self._arrived = threading.Semaphore(0)

    def apply(self, commands: list[Command]) -> None:
        self.batches.append(list(commands))
        self._arrived.release()

    def wait(self, timeout: float = 5) -> bool:
        return self._arrived.acquire(timeout=timeout)


@pytest.fixture
def project(tmp_path: Path, demo_script: Path) -> Path:
    (tmp_path / "sprig.toml").write_text(
        '[project]\nname = "demo"\nscript = "demo.sprig"\n\n[reload]\nenabled = false\n',
        encoding="utf-8",
    )
    (tmp_path / "demo.sprig").write_text(demo_script.read_text(encoding="utf-8"), encoding="utf-8")
    return tmp_path


class TestSprigApp:
    """Loading a project and routing events through the pipeline thread."""

    def test_start_loads_script_and_routes_events(self, project: Path) -> None:
        sink = EventSink()
        app = SprigApp.from_project(project, sink)
        app.start()
        try:
            assert sink.wait()
            assert app.pipeline.state.live_tree.roots == ["main_window", "dialog"]

            app.post_event(
                UIEvent(widget_id="save_btn", handler_name="handle_button_click", params={"id": "save_btn"})
            )
            assert sink.wait()
            assert sink.batches[-1] == [
                UpdateProperties(id="result_text", changed={"text": "You clicked save_btn"})
            ]
        finally:
            app.stop()

    def test_manifest_settings_reach_watcher(self, project: Path) -> None:
        app = SprigApp.from_project(project, EventSink())
        assert app.watcher.path == (project / "demo.sprig").resolve()
        assert app.watcher.debounce == 0.3
        assert app.manifest.reload.enabled is False

    def test_missing_manifest(self, tmp_path: Path) -> None:
        with pytest.raises(SprigError, match="No sprig.toml found"):
            SprigApp.from_project(tmp_path, EventSink())


class TestConfigureLogging:
    """Applying the manifest's logging section."""

    def test_manifest_logging_section(self, tmp_path: Path) -> None:
        path = tmp_path / "sprig.toml"
        path.write_text('[logging]\nlevel = "warning"\njson = true\nlog_dir = "logs"\n', encoding="utf-8")
        root = logging.getLogger("sprig")
        saved = (list(root.handlers), root.level, root.propagate)
        try:
            configured = configure_logging(load_manifest(path))
            assert configured.level == logging.WARNING
            assert get_log_file() == tmp_path / "logs" / "sprig.log"
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
            for handler in saved[0]:
                root.addHandler(handler)
            root.setLevel(saved[1])
            root.propagate = saved[2]
