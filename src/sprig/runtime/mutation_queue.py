"""
The single mutation queue.

Reload and dispatch requests from any thread are serialized through one
ordered queue and consumed one at a time by the pipeline. Producers only
enqueue; they never touch the trees.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .router import UIEvent

logger = logging.getLogger(__name__)


@dataclass
class ReloadRequest:
    """
    Reload a script whose text has already been read.

    ``on_complete`` is called by the consumer with the pass result.
    """

    path: Path
    source: str
    on_complete: Callable[[Any], None] | None = field(default=None, compare=False)


@dataclass
class DispatchRequest:
    """Dispatch one input event."""

    event: UIEvent
    on_complete: Callable[[Any], None] | None = field(default=None, compare=False)


Request = ReloadRequest | DispatchRequest


class MutationQueue:
    """
    Thread-safe FIFO of pipeline requests.

    A reload request for a path that already has a reload waiting is replaced
    in place (last write wins), so a superseded file version is never
    processed.
    """

    def __init__(self) -> None:
        self._items: deque[Request] = deque()
        self._condition = threading.Condition()
        self._closed = False

    def __len__(self) -> int:
        with self._condition:
            return len(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, request: Request) -> None:
        """
        Enqueue a request.

        Raises:
            RuntimeError: If the queue has been closed
        """
        with self._condition:
            if self._closed:
                raise RuntimeError("Mutation queue is closed")
            if isinstance(request, ReloadRequest):
                for i, pending in enumerate(self._items):
                    if isinstance(pending, ReloadRequest) and pending.path == request.path:
                        self._items[i] = request
                        logger.debug(f"Replaced pending reload of {request.path.name}")
                        return
            self._items.append(request)
            self._condition.notify()

    def get(self, timeout: float | None = None) -> Request | None:
        """
        Remove and return the oldest request.

        Blocks up to ``timeout`` seconds (forever if None). Returns None on
        timeout, or when the queue is closed and drained.
        """
        with self._condition:
            if not self._condition.wait_for(lambda: self._items or self._closed, timeout=timeout):
                return None
            if self._items:
                return self._items.popleft()
            return None

    def get_nowait(self) -> Request | None:
        with self._condition:
            if self._items:
                return self._items.popleft()
            return None

    def close(self) -> None:
        """Refuse further requests and wake any waiting consumer."""
        with self._condition:
            self._closed = True
            self._condition.notify_all()
