"""
Hot reload for Sprig scripts.

:class:`ScriptWatcher` turns file change notifications into reload requests
on the mutation queue. Bursts of notifications are debounced into a single
reload, and the file is read before the request is enqueued so the pipeline
never does file I/O.

State machine per watched script::

    IDLE -> PENDING -> RELOADING -> IDLE
                       RELOADING -> FAILED -> IDLE

:class:`FileWatcher` is the default notification source: it polls file
mtimes on a daemon thread.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from sprig.core.errors import SprigError

from .logging import Colors, get_logger
from .mutation_queue import MutationQueue, ReloadRequest

if TYPE_CHECKING:
    from .pipeline import ReloadResult

logger = get_logger("RELOAD", Colors.RELOAD)

DEFAULT_DEBOUNCE = 0.3


class WatchState(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    RELOADING = "reloading"
    FAILED = "failed"


class ChangeType(StrEnum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


StateListener = Callable[[WatchState, SprigError | None], None]
Transition = tuple[WatchState, SprigError | None]


class FileWatcher:
    """
    Watches files for changes using polling (cross-platform compatible).

    Uses mtime-based change detection to avoid external dependencies.
    """

    def __init__(
        self,
        paths: list[Path],
        on_change: Callable[[Path, ChangeType], None],
        patterns: list[str] | None = None,
        poll_interval: float = 0.5,
    ):
        """
        Initialize the file watcher.

        Args:
            paths: Directories or files to watch
            on_change: Callback receiving the changed path and change type
            patterns: Glob patterns matched inside watched directories
            poll_interval: How often to check for changes (seconds)
        """
        self.paths = paths
        self.on_change = on_change
        self.patterns = patterns or ["*.sprig"]
        self.poll_interval = poll_interval

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._file_mtimes: dict[Path, float] = {}

    def start(self) -> None:
        """Start watching for file changes."""
        self._file_mtimes = self._scan_files()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._watch_loop, name="sprig-file-watcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop watching for file changes."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
            self._thread = None

    def _scan_files(self) -> dict[Path, float]:
        """Scan all watched paths and return file mtimes."""
        mtimes: dict[Path, float] = {}

        for watch_path in self.paths:
            if not watch_path.exists():
                continue

            if watch_path.is_file():
                try:
                    mtimes[watch_path] = watch_path.stat().st_mtime
                except OSError:
                    continue
            else:
                for pattern in self.patterns:
                    for file_path in watch_path.rglob(pattern):
                        try:
                            mtimes[file_path] = file_path.stat().st_mtime
                        except OSError:
                            continue

        return mtimes

    def poll(self) -> list[tuple[Path, ChangeType]]:
        """Compare against the previous scan and report every change."""
        current_mtimes = self._scan_files()
        changes: list[tuple[Path, ChangeType]] = []

        for file_path, mtime in current_mtimes.items():
            if file_path not in self._file_mtimes:
                changes.append((file_path, ChangeType.CREATED))
            elif mtime != self._file_mtimes[file_path]:
                changes.append((file_path, ChangeType.MODIFIED))
        for file_path in self._file_mtimes:
            if file_path not in current_mtimes:
                changes.append((file_path, ChangeType.DELETED))

        self._file_mtimes = current_mtimes
        return changes

    def _watch_loop(self) -> None:
        """Main watch loop that polls for file changes."""
        while not self._stop_event.is_set():
            try:
                for file_path, change_type in self.poll():
                    self.on_change(file_path, change_type)
            except Exception:
                logger.exception("File watcher error")

            self._stop_event.wait(self.poll_interval)


class ScriptWatcher:
    """
    Debounces change notifications for one script into reload requests.

    ``notify`` may be called from any thread. The reload outcome arrives from
    the pipeline through the request's completion callback.
    """

    def __init__(
        self,
        path: Path,
        queue: MutationQueue,
        debounce: float = DEFAULT_DEBOUNCE,
        poll_interval: float = 0.5,
    ):
        self.path = Path(path)
        self.queue = queue
        self.debounce = debounce
        self.poll_interval = poll_interval

        self.last_error: SprigError | None = None
        self._state = WatchState.IDLE
        self._listeners: list[StateListener] = []
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._file_watcher: FileWatcher | None = None

    @property
    def state(self) -> WatchState:
        return self._state

    def add_listener(self, listener: StateListener) -> None:
        """Register ``listener(state, last_error)``, called on every transition."""
        self._listeners.append(listener)

    def _set_state(self, state: WatchState, transitions: list[Transition]) -> None:
        # Called under the lock; listeners run later from _announce
        if state == self._state:
            return
        self._state = state
        logger.debug(f"{self.path.name}: {state}")
        transitions.append((state, self.last_error))

    def _announce(self, transitions: list[Transition]) -> None:
        for state, error in transitions:
            for listener in list(self._listeners):
                listener(state, error)

    def _matches(self, path: Path) -> bool:
        try:
            return Path(path).resolve() == self.path.resolve()
        except OSError:
            return False

    def notify(self, path: Path, change_type: ChangeType | str = ChangeType.MODIFIED) -> bool:
        """
        Report a change to ``path``.

        Returns:
            True if the change was accepted and a reload is now pending
        """
        if not self._matches(path):
            return False
        if ChangeType(change_type) == ChangeType.DELETED:
            logger.warning(f"{self.path.name} was deleted; keeping the last loaded version")
            return False

        transitions: list[Transition] = []
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce, self.flush)
            self._timer.daemon = True
            self._timer.start()
            self._set_state(WatchState.PENDING, transitions)
        self._announce(transitions)
        return True

    def flush(self) -> bool:
        """
        Read the script and enqueue a reload now, skipping any remaining debounce.

        Returns:
            True if a reload request was enqueued
        """
        transitions: list[Transition] = []
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

            try:
                source = self.path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                self.last_error = SprigError(f"Cannot read {self.path}: {e}")
                logger.error(self.last_error.message)
                self._set_state(WatchState.FAILED, transitions)
                self._set_state(WatchState.IDLE, transitions)
                read_failed = True
            else:
                read_failed = False
                self._set_state(WatchState.RELOADING, transitions)
                self.queue.put(
                    ReloadRequest(path=self.path, source=source, on_complete=self._on_reload_complete)
                )
        self._announce(transitions)
        if read_failed:
            return False
        logger.info(f"Reloading {self.path.name}")
        return True

    def _on_reload_complete(self, result: ReloadResult | None) -> None:
        transitions: list[Transition] = []
        with self._lock:
            if result is not None and result.ok:
                self.last_error = None
            else:
                self.last_error = result.error if result is not None else SprigError("Reload did not complete")
                self._set_state(WatchState.FAILED, transitions)

            # A change that arrived during the reload is still waiting
            if self._timer is not None:
                self._set_state(WatchState.PENDING, transitions)
            else:
                self._set_state(WatchState.IDLE, transitions)
        self._announce(transitions)

    def start(self) -> None:
        """Poll the script's mtime and notify on change."""
        if self._file_watcher is not None:
            return
        self._file_watcher = FileWatcher(
            paths=[self.path],
            on_change=self.notify,
            poll_interval=self.poll_interval,
        )
        self._file_watcher.start()
        logger.info(f"Watching {self.path}")

    def stop(self) -> None:
        if self._file_watcher is not None:
            self._file_watcher.stop()
            self._file_watcher = None
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
