"""
Project wiring: manifest, logging, pipeline and hot reload.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sprig.core.errors import SprigError
from sprig.core.manifest import MANIFEST_NAME, ProjectManifest, find_manifest, load_manifest

from .commands import CommandSink
from .hot_reload import ScriptWatcher
from .logging import setup_logging
from .pipeline import Pipeline
from .router import UIEvent

logger = logging.getLogger(__name__)


def configure_logging(manifest: ProjectManifest) -> logging.Logger:
    """Apply the manifest's ``[logging]`` section."""
    return setup_logging(
        level=manifest.logging.level,
        log_dir=manifest.log_path,
        json=manifest.logging.json,
    )


class SprigApp:
    """
    A running Sprig project.

    Loads the script named by the manifest, keeps it hot-reloaded when
    ``[reload] enabled`` is set, and forwards input events to the pipeline.
    """

    def __init__(self, manifest: ProjectManifest, sink: CommandSink):
        self.manifest = manifest
        self.pipeline = Pipeline(sink)
        self.watcher = ScriptWatcher(
            manifest.script_path,
            self.pipeline.queue,
            debounce=manifest.reload.debounce,
            poll_interval=manifest.reload.poll_interval,
        )

    @classmethod
    def from_project(cls, start: Path, sink: CommandSink) -> SprigApp:
        """
        Find ``sprig.toml`` at or above ``start`` and build the app.

        Raises:
            SprigError: If no manifest is found or it is invalid
        """
        manifest_path = find_manifest(start)
        if manifest_path is None:
            raise SprigError(f"No {MANIFEST_NAME} found in {start} or its parents")
        return cls(load_manifest(manifest_path), sink)

    def start(self) -> None:
        """Queue the initial load and start consuming (and watching, if enabled)."""
        self.watcher.flush()
        self.pipeline.start()
        if self.manifest.reload.enabled:
            self.watcher.start()
        logger.info(f"Project '{self.manifest.name}' started")

    def stop(self) -> None:
        self.watcher.stop()
        self.pipeline.stop()

    def post_event(self, event: UIEvent) -> None:
        """Queue an input event; safe to call from any thread."""
        self.pipeline.submit_event(event)
