"""Tests for script watching and debounced reloads."""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path

import pytest

from sprig.runtime.commands import RecordingSink
from sprig.runtime.hot_reload import ChangeType, FileWatcher, ScriptWatcher, WatchState
from sprig.runtime.mutation_queue import MutationQueue, ReloadRequest
from sprig.runtime.pipeline import Pipeline


@pytest.fixture
def script(tmp_path: Path) -> Path:
    path = tmp_path / "ui.sprig"
    path.write_text('window(id: "w") { text(id: "t", text: "v1") }\n', encoding="utf-8")
    return path


@pytest.fixture
def queue() -> MutationQueue:
    return MutationQueue()


@pytest.fixture
def watcher(script: Path, queue: MutationQueue):
    # Long debounce so tests drive the reload with flush()
    w = ScriptWatcher(script, queue, debounce=60)
    yield w
    w.stop()


@pytest.fixture
def states(watcher: ScriptWatcher) -> list[WatchState]:
    seen: list[WatchState] = []
    watcher.add_listener(lambda state, error: seen.append(state))
    return seen


def _bump_mtime(path: Path, offset: float) -> None:
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + offset))


class TestScriptWatcher:
    """Change notifications, debouncing and the reload state machine."""

    def test_notify_marks_pending(self, watcher, script, states) -> None:
        assert watcher.notify(script, ChangeType.MODIFIED)
        assert watcher.state == WatchState.PENDING
        assert states == [WatchState.PENDING]

    def test_other_paths_are_ignored(self, watcher, tmp_path, states) -> None:
        assert not watcher.notify(tmp_path / "other.sprig")
        assert watcher.state == WatchState.IDLE
        assert states == []

    def test_deletion_is_ignored(self, watcher, script, queue) -> None:
        assert not watcher.notify(script, ChangeType.DELETED)
        assert watcher.state == WatchState.IDLE
        assert len(queue) == 0

    def test_burst_collapses_into_one_reload(self, watcher, script, queue) -> None:
        for _ in range(5):
            watcher.notify(script)
        assert len(queue) == 0

        assert watcher.flush()

        assert len(queue) == 1
        request = queue.get_nowait()
        assert isinstance(request, ReloadRequest)
        assert request.path == script
        assert 'text: "v1"' in request.source
        assert watcher.state == WatchState.RELOADING

    def test_successful_reload_returns_to_idle(self, watcher, script, queue, states) -> None:
        pipeline = Pipeline(RecordingSink(), queue=queue)
        watcher.notify(script)
        watcher.flush()
        pipeline.run_pending()

        assert states == [WatchState.PENDING, WatchState.RELOADING, WatchState.IDLE]
        assert watcher.last_error is None
        assert pipeline.state.forest.find("t").properties["text"] == "v1"

    def test_failed_reload_reports_error(self, watcher, script, queue) -> None:
        seen: list[tuple[WatchState, object]] = []
        watcher.add_listener(lambda state, error: seen.append((state, error)))
        pipeline = Pipeline(RecordingSink(), queue=queue)
        pipeline.run_pending()
        script.write_text('window(id: "w") { text(id: "t", text: }\n', encoding="utf-8")

        watcher.flush()
        pipeline.run_pending()

        assert [state for state, _ in seen] == [WatchState.RELOADING, WatchState.FAILED, WatchState.IDLE]
        failed_error = seen[1][1]
        assert failed_error is watcher.last_error
        assert "Unexpected" in watcher.last_error.message

    def test_recovery_clears_error(self, watcher, script, queue) -> None:
        pipeline = Pipeline(RecordingSink(), queue=queue)
        script.write_text("window(", encoding="utf-8")
        watcher.flush()
        pipeline.run_pending()
        assert watcher.last_error is not None

        script.write_text('window(id: "w")', encoding="utf-8")
        watcher.flush()
        pipeline.run_pending()
        assert watcher.last_error is None
        assert watcher.state == WatchState.IDLE

    def test_change_during_reload_stays_pending(self, watcher, script, queue) -> None:
        pipeline = Pipeline(RecordingSink(), queue=queue)
        watcher.flush()
        watcher.notify(script)
        pipeline.run_pending()
        assert watcher.state == WatchState.PENDING

    def test_unreadable_script(self, tmp_path, queue) -> None:
        watcher = ScriptWatcher(tmp_path / "missing.sprig", queue, debounce=60)
        seen: list[WatchState] = []
        watcher.add_listener(lambda state, error: seen.append(state))

        assert not watcher.flush()

        assert seen == [WatchState.FAILED, WatchState.IDLE]
        assert "Cannot read" in watcher.last_error.message
        assert len(queue) == 0

    def test_listener_may_call_back_into_watcher(self, watcher, script, queue, states) -> None:
        def flush_when_pending(state, error) -> None:
            if state == WatchState.PENDING:
                watcher.flush()

        watcher.add_listener(flush_when_pending)
        worker = threading.Thread(target=watcher.notify, args=(script,), daemon=True)
        worker.start()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert states == [WatchState.PENDING, WatchState.RELOADING]
        assert len(queue) == 1

    def test_unexpected_pipeline_failure_returns_to_idle(self, watcher, queue, monkeypatch) -> None:
        settled = threading.Event()

        def on_state(state, error) -> None:
            if state == WatchState.IDLE:
                settled.set()

        watcher.add_listener(on_state)
        pipeline = Pipeline(RecordingSink(), queue=queue)

        def explode(*args):
            raise RuntimeError("boom")

        monkeypatch.setattr(pipeline, "load", explode)
        pipeline.start()
        try:
            watcher.flush()
            assert settled.wait(timeout=5)
        finally:
            pipeline.stop()
        assert watcher.state == WatchState.IDLE
        assert "RuntimeError: boom" in watcher.last_error.message

    def test_debounce_timer_enqueues(self, script, queue) -> None:
        watcher = ScriptWatcher(script, queue, debounce=0.01)
        try:
            watcher.notify(script)
            request = queue.get(timeout=5)
            assert isinstance(request, ReloadRequest)
            assert watcher.state == WatchState.RELOADING
        finally:
            watcher.stop()

    def test_watching_file_changes(self, script, queue) -> None:
        watcher = ScriptWatcher(script, queue, debounce=0, poll_interval=0.01)
        watcher.start()
        try:
            _bump_mtime(script, 10)
            assert queue.get(timeout=5) is not None
        finally:
            watcher.stop()


class TestFileWatcher:
    """Polling mtime scans."""

    def test_poll_reports_changes(self, tmp_path: Path) -> None:
        script = tmp_path / "a.sprig"
        script.write_text("", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("", encoding="utf-8")
        watcher = FileWatcher(paths=[tmp_path], on_change=lambda path, change: None)

        assert watcher.poll() == [(script, ChangeType.CREATED)]
        assert watcher.poll() == []

        _bump_mtime(script, 10)
        assert watcher.poll() == [(script, ChangeType.MODIFIED)]

        nested = tmp_path / "parts"
        nested.mkdir()
        (nested / "b.sprig").write_text("", encoding="utf-8")
        assert watcher.poll() == [(nested / "b.sprig", ChangeType.CREATED)]

        script.unlink()
        assert watcher.poll() == [(script, ChangeType.DELETED)]

    def test_background_loop_calls_back(self, tmp_path: Path) -> None:
        script = tmp_path / "a.sprig"
        script.write_text("", encoding="utf-8")
        changed = threading.Event()
        watcher = FileWatcher(
            paths=[script],
            on_change=lambda path, change: changed.set(),
            poll_interval=0.01,
        )
        watcher.start()
        try:
            time.sleep(0.05)
            _bump_mtime(script, 10)
            assert changed.wait(timeout=5)
        finally:
            watcher.stop()
