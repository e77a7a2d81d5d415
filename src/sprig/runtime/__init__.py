"""
Sprig runtime: reconciliation, event routing, the mutation pipeline and hot reload.
"""

from .app import SprigApp, configure_logging
from .commands import (
    Command,
    CommandSink,
    Create,
    Destroy,
    LoggingSink,
    RecordingSink,
    Reorder,
    UpdateProperties,
)
from .hot_reload import ChangeType, FileWatcher, ScriptWatcher, WatchState
from .live_tree import LiveEntity, LiveTree
from .logging import get_logger, setup_logging
from .mutation_queue import DispatchRequest, MutationQueue, ReloadRequest
from .pipeline import Pipeline, ReloadResult
from .reconciler import reconcile
from .router import DispatchResult, EventRouter, UIEvent
from .state import RuntimeState

__all__ = [
    "ChangeType",
    "Command",
    "CommandSink",
    "Create",
    "Destroy",
    "DispatchRequest",
    "DispatchResult",
    "EventRouter",
    "FileWatcher",
    "LiveEntity",
    "LiveTree",
    "LoggingSink",
    "MutationQueue",
    "Pipeline",
    "RecordingSink",
    "ReloadRequest",
    "ReloadResult",
    "Reorder",
    "RuntimeState",
    "ScriptWatcher",
    "SprigApp",
    "UIEvent",
    "UpdateProperties",
    "WatchState",
    "configure_logging",
    "get_logger",
    "reconcile",
    "setup_logging",
]
