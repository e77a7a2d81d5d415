"""
The mutation pipeline.

Sole consumer of the :class:`MutationQueue` and sole owner of the runtime
state. Each request is handled to completion before the next one starts, so
no event is dispatched while a reload is in progress and no reload starts
while an event's updates are being reconciled.

A reload pass is atomic: the script is parsed, evaluated and reconciled
first, and only a pass that succeeds in full touches the live tree, the
forest or the handler table.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from sprig.core.errors import DispatchError, SprigError
from sprig.core.evaluator import evaluate_script
from sprig.core.parser import parse_script

from .commands import Command, CommandSink
from .mutation_queue import DispatchRequest, MutationQueue, ReloadRequest, Request
from .reconciler import reconcile
from .router import DispatchResult, EventRouter, UIEvent
from .state import RuntimeState

logger = logging.getLogger(__name__)


@dataclass
class ReloadResult:
    """Outcome of one load or reload pass."""

    path: Path
    commands: list[Command] = field(default_factory=list)
    error: SprigError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Pipeline:
    """
    Processes reload and dispatch requests one at a time.

    Use :meth:`run_pending` from an embedding loop, or :meth:`start` to
    consume the queue on a background thread.
    """

    def __init__(
        self,
        sink: CommandSink,
        queue: MutationQueue | None = None,
        state: RuntimeState | None = None,
    ):
        self.sink = sink
        self.queue = queue or MutationQueue()
        self.state = state or RuntimeState()
        self.router = EventRouter(self.state)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -- Producers --

    def submit_reload(self, path: Path, source: str) -> None:
        self.queue.put(ReloadRequest(path=path, source=source))

    def submit_event(self, event: UIEvent) -> None:
        self.queue.put(DispatchRequest(event=event))

    # -- Passes --

    def load(self, path: Path, source: str) -> ReloadResult:
        """
        Parse, evaluate and reconcile ``source``, then commit and emit.

        On any parse, semantic or reconcile error nothing is applied: the
        live tree and handler table stay at the last good state.
        """
        try:
            script = parse_script(source, path)
            evaluation = evaluate_script(script, path, source)
            commands = reconcile(self.state.live_tree, evaluation.forest)
        except SprigError as e:
            logger.error(f"Reload of {path.name} failed; keeping previous state\n{e}")
            return ReloadResult(path=path, error=e)
        except Exception as e:
            logger.exception(f"Reload of {path.name} raised unexpectedly; keeping previous state")
            return ReloadResult(path=path, error=SprigError(f"Unexpected error: {type(e).__name__}: {e}"))

        self.state.commit(evaluation.forest, commands, evaluation.handlers)
        if commands:
            self.sink.apply(commands)
        logger.info(
            f"Loaded {path.name}: {len(evaluation.forest.trees)} window(s), "
            f"{len(commands)} command(s)"
        )
        return ReloadResult(path=path, commands=commands)

    def dispatch(self, event: UIEvent) -> DispatchResult:
        """Dispatch an event and emit the resulting commands."""
        result = self.router.dispatch(event)
        if result.commands:
            self.sink.apply(result.commands)
        return result

    def process(self, request: Request) -> ReloadResult | DispatchResult:
        """
        Handle one request and report its outcome to ``on_complete``.

        ``on_complete`` runs even when the pass raises, with a failed result,
        so a waiting producer is never left hanging. The exception is re-raised.
        """
        outcome: ReloadResult | DispatchResult | None = None
        try:
            if isinstance(request, ReloadRequest):
                outcome = self.load(request.path, request.source)
            else:
                outcome = self.dispatch(request.event)
            return outcome
        except Exception as e:
            outcome = _failed_outcome(request, e)
            raise
        finally:
            if request.on_complete is not None:
                request.on_complete(outcome)

    # -- Consumers --

    def run_pending(self) -> int:
        """
        Process every queued request on the calling thread.

        Returns:
            Number of requests processed
        """
        if self.running:
            raise RuntimeError("Pipeline is consuming on its own thread")
        count = 0
        while (request := self.queue.get_nowait()) is not None:
            self.process(request)
            count += 1
        return count

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start consuming the queue on a daemon thread."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._consume_loop, name="sprig-pipeline", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the consumer thread after the request in progress."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _consume_loop(self) -> None:
        while not self._stop_event.is_set():
            request = self.queue.get(timeout=0.1)
            if request is None:
                if self.queue.closed:
                    return
                continue
            try:
                self.process(request)
            except Exception:
                logger.exception(f"Pipeline request failed: {request!r}")


def _failed_outcome(request: Request, error: Exception) -> ReloadResult | DispatchResult:
    message = f"Unexpected error: {type(error).__name__}: {error}"
    if isinstance(request, ReloadRequest):
        return ReloadResult(path=request.path, error=SprigError(message))
    return DispatchResult(
        errors=[
            DispatchError(
                message,
                widget_id=request.event.widget_id,
                handler_name=request.event.handler_name,
            )
        ]
    )

