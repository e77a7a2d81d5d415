"""Tests for the mutation pipeline."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from sprig.core.errors import ParseError, ReconcileInvariantError, SemanticError, SprigError
from sprig.runtime.commands import Create, Destroy, RecordingSink, UpdateProperties
from sprig.runtime.mutation_queue import DispatchRequest, ReloadRequest
from sprig.runtime.pipeline import Pipeline, ReloadResult
from sprig.runtime.router import DispatchResult, UIEvent

SCRIPT = """
def show(params)
  {updates: [{target_id: "out", action: "setText", value: "shown"}]}
end

window(id: "w") do
  text(id: "out", text: "#{label}")
  button(id: "b", on_click: show)
end
"""


def _script(label: str) -> str:
    return f'label = "{label}"\n{SCRIPT}'


class TestLoad:
    """Load and reload passes."""

    def test_initial_load(self, pipeline, sink) -> None:
        result = pipeline.load(Path("ui.sprig"), _script("one"))
        assert result.ok
        assert [type(c) for c in result.commands] == [Create, Create, Create]
        assert sink.batches == [result.commands]
        assert pipeline.state.handlers.names() == ["show"]

    def test_reload_updates_in_place(self, pipeline, sink) -> None:
        pipeline.load(Path("ui.sprig"), _script("one"))
        handle = pipeline.state.live_tree.entities["out"].handle

        result = pipeline.load(Path("ui.sprig"), _script("two"))

        assert result.commands == [UpdateProperties(id="out", changed={"text": "two"})]
        assert pipeline.state.live_tree.entities["out"].handle == handle

    def test_unchanged_reload_sends_nothing(self, pipeline, sink) -> None:
        pipeline.load(Path("ui.sprig"), _script("one"))
        sink.clear()
        result = pipeline.load(Path("ui.sprig"), _script("one"))
        assert result.ok
        assert result.commands == []
        assert sink.batches == []

    @pytest.mark.parametrize(
        "broken, error_type",
        [
            ('window(id: "w") do\n  text(id: "out")\n', ParseError),
            ('window(id: "w") { slider(id: "s") }', SemanticError),
            ('window(id: "w") { button(id: "out") }', ReconcileInvariantError),
            ("x = {a: 1}[[1]]", SemanticError),
            ("x = " + "(" * 120 + "1" + ")" * 120, ParseError),
        ],
    )
    def test_failed_reload_keeps_state(self, pipeline, sink, broken: str, error_type: type) -> None:
        pipeline.load(Path("ui.sprig"), _script("one"))
        sink.clear()
        forest = pipeline.state.forest
        handlers = pipeline.state.handlers
        before = {e.id: (e.handle, dict(e.properties)) for e in pipeline.state.live_tree.iter_entities()}

        result = pipeline.load(Path("ui.sprig"), broken)

        assert not result.ok
        assert isinstance(result.error, error_type)
        assert result.commands == []
        assert sink.batches == []
        assert pipeline.state.forest is forest
        assert pipeline.state.handlers is handlers
        after = {e.id: (e.handle, dict(e.properties)) for e in pipeline.state.live_tree.iter_entities()}
        assert after == before

    def test_unexpected_error_keeps_state(self, pipeline, sink, monkeypatch) -> None:
        pipeline.load(Path("ui.sprig"), _script("one"))
        sink.clear()
        forest = pipeline.state.forest

        def explode(live_tree, forest):
            raise RuntimeError("boom")

        monkeypatch.setattr("sprig.runtime.pipeline.reconcile", explode)
        result = pipeline.load(Path("ui.sprig"), _script("two"))

        assert not result.ok
        assert isinstance(result.error, SprigError)
        assert "Unexpected error: RuntimeError: boom" in result.error.message
        assert pipeline.state.forest is forest
        assert sink.batches == []

    def test_handlers_survive_failed_reload(self, pipeline) -> None:
        pipeline.load(Path("ui.sprig"), _script("one"))
        pipeline.load(Path("ui.sprig"), "window(")
        result = pipeline.dispatch(UIEvent(widget_id="b", handler_name="show"))
        assert result.commands == [UpdateProperties(id="out", changed={"text": "shown"})]

    def test_reload_replaces_handlers(self, pipeline) -> None:
        pipeline.load(Path("ui.sprig"), _script("one"))
        pipeline.load(Path("ui.sprig"), 'window(id: "w")')
        assert pipeline.state.handlers.names() == []
        result = pipeline.dispatch(UIEvent(widget_id="b", handler_name="show"))
        assert "Unknown handler 'show'" in result.errors[0].message

    def test_reload_discards_handler_edits(self, pipeline) -> None:
        pipeline.load(Path("ui.sprig"), _script("one"))
        pipeline.dispatch(UIEvent(widget_id="b", handler_name="show"))
        result = pipeline.load(Path("ui.sprig"), _script("one"))
        assert result.commands == [UpdateProperties(id="out", changed={"text": "one"})]


class TestQueue:
    """Consuming requests from the mutation queue."""

    def test_run_pending_processes_in_order(self, pipeline, sink) -> None:
        pipeline.submit_reload(Path("ui.sprig"), _script("one"))
        pipeline.submit_event(UIEvent(widget_id="b", handler_name="show"))

        assert pipeline.run_pending() == 2
        assert pipeline.state.live_tree.entities["out"].properties["text"] == "shown"
        assert len(sink.batches) == 2

    def test_superseded_reload_is_skipped(self, pipeline, sink) -> None:
        pipeline.submit_reload(Path("ui.sprig"), _script("one"))
        pipeline.submit_reload(Path("ui.sprig"), _script("two"))
        assert pipeline.run_pending() == 1
        assert pipeline.state.forest.find("out").properties["text"] == "two"

    def test_on_complete_receives_outcome(self, pipeline) -> None:
        outcomes: list[object] = []
        pipeline.queue.put(
            ReloadRequest(path=Path("ui.sprig"), source=_script("one"), on_complete=outcomes.append)
        )
        pipeline.queue.put(
            DispatchRequest(event=UIEvent(widget_id="b", handler_name="show"), on_complete=outcomes.append)
        )
        pipeline.run_pending()

        assert isinstance(outcomes[0], ReloadResult)
        assert isinstance(outcomes[1], DispatchResult)
        assert outcomes[1].ok

    def test_on_complete_runs_when_a_pass_raises(self, pipeline, monkeypatch) -> None:
        outcomes: list[object] = []

        def explode(*args):
            raise RuntimeError("boom")

        monkeypatch.setattr(pipeline, "load", explode)
        monkeypatch.setattr(pipeline, "dispatch", explode)
        pipeline.queue.put(
            ReloadRequest(path=Path("ui.sprig"), source=_script("one"), on_complete=outcomes.append)
        )
        with pytest.raises(RuntimeError, match="boom"):
            pipeline.run_pending()
        pipeline.queue.put(
            DispatchRequest(event=UIEvent(widget_id="b", handler_name="show"), on_complete=outcomes.append)
        )
        with pytest.raises(RuntimeError, match="boom"):
            pipeline.run_pending()

        reload_outcome, dispatch_outcome = outcomes
        assert isinstance(reload_outcome, ReloadResult)
        assert "Unexpected error: RuntimeError: boom" in reload_outcome.error.message
        assert isinstance(dispatch_outcome, DispatchResult)
        assert dispatch_outcome.errors[0].handler_name == "show"

    def test_background_consumer_survives_a_raising_pass(self, pipeline, monkeypatch) -> None:
        done = threading.Event()
        outcomes: list[object] = []

        def explode(*args):
            raise RuntimeError("boom")

        def record(outcome) -> None:
            outcomes.append(outcome)
            done.set()

        monkeypatch.setattr(pipeline, "load", explode)
        pipeline.start()
        try:
            pipeline.queue.put(ReloadRequest(path=Path("ui.sprig"), source=_script("one"), on_complete=record))
            assert done.wait(timeout=5)
            assert pipeline.running
        finally:
            pipeline.stop()
        assert not outcomes[0].ok

    def test_background_consumer(self, pipeline) -> None:
        done = threading.Event()
        pipeline.start()
        try:
            with pytest.raises(RuntimeError, match="own thread"):
                pipeline.run_pending()
            pipeline.queue.put(
                ReloadRequest(path=Path("ui.sprig"), source=_script("bg"), on_complete=lambda _: done.set())
            )
            assert done.wait(timeout=5)
        finally:
            pipeline.stop()
        assert not pipeline.running
        assert pipeline.state.forest.find("out").properties["text"] == "bg"

    def test_removed_widget_after_reload(self, pipeline) -> None:
        pipeline.load(Path("ui.sprig"), _script("one"))
        result = pipeline.load(Path("ui.sprig"), 'window(id: "w") { text(id: "out", text: "one") }')
        assert result.commands == [Destroy(id="b")]


class TestPipelineOwnership:
    """The router works on the pipeline's own state."""

    def test_router_shares_state(self) -> None:
        pipeline = Pipeline(RecordingSink())
        assert pipeline.router.state is pipeline.state
