"""
Runtime state owned by the pipeline consumer.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sprig.core.evaluator import HandlerTable
from sprig.core.ir import DeclarationForest

from .commands import Command
from .live_tree import LiveTree


@dataclass
class RuntimeState:
    """
    The live tree, the current declaration forest and the handler table.

    ``handlers`` is None until a script has loaded successfully. Every change
    goes through :meth:`commit`, after a reconcile against ``live_tree``.
    """

    live_tree: LiveTree = field(default_factory=LiveTree)
    forest: DeclarationForest = field(default_factory=DeclarationForest)
    handlers: HandlerTable | None = None

    def commit(
        self,
        forest: DeclarationForest,
        commands: list[Command],
        handlers: HandlerTable | None = None,
    ) -> None:
        """Apply ``commands`` and adopt ``forest`` (and ``handlers``, if given)."""
        self.live_tree.apply(commands)
        self.forest = forest
        if handlers is not None:
            self.handlers = handlers
