"""
Entity reconciler.

Diffs a new declaration forest against the live tree and produces the
ordered command list that turns the latter into the former:

1. ``Destroy`` for every live subtree root that has no counterpart, top-down.
2. A top-down walk of the forest emitting ``Create`` for new nodes,
   ``UpdateProperties`` for matched nodes whose properties changed, and
   ``Reorder`` where sibling order differs from the declared order.

A declaration and a live entity match when they share an id and the same
chain of ancestor ids. Matching never looks at properties, so a property
change is always an update, never a destroy/create pair.
"""

from __future__ import annotations

import logging
from typing import Any

from sprig.core.errors import ReconcileInvariantError
from sprig.core.ir import DeclarationForest, DeclarationNode

from .commands import Command, Create, Destroy, Reorder, UpdateProperties
from .live_tree import LiveTree

logger = logging.getLogger(__name__)


def same_value(old: Any, new: Any) -> bool:
    """Type-aware equality, so ``1``, ``1.0`` and ``true`` never compare equal."""
    if type(old) is not type(new):
        return False
    if isinstance(old, list):
        return len(old) == len(new) and all(same_value(a, b) for a, b in zip(old, new, strict=True))
    if isinstance(old, dict):
        return old.keys() == new.keys() and all(same_value(old[k], new[k]) for k in old)
    return bool(old == new)


def diff_properties(old: dict[str, Any], new: dict[str, Any]) -> dict[str, Any]:
    """
    Properties of ``new`` that differ from ``old``.

    Properties absent from ``new`` are not reported: they keep their last
    applied value.
    """
    return {
        name: value
        for name, value in new.items()
        if name not in old or not same_value(old[name], value)
    }


def _declared_paths(forest: DeclarationForest) -> dict[str, tuple[str, ...]]:
    paths: dict[str, tuple[str, ...]] = {}

    def visit(node: DeclarationNode, path: tuple[str, ...]) -> None:
        if node.id in paths:
            raise ReconcileInvariantError(f"Duplicate widget id '{node.id}' in declaration forest")
        paths[node.id] = path
        for child in node.children:
            visit(child, (*path, node.id))

    for tree in forest.trees:
        visit(tree, ())
    return paths


class _Reconciliation:
    """State for one reconcile call."""

    def __init__(self, live: LiveTree, forest: DeclarationForest):
        self.live = live
        self.forest = forest
        self.commands: list[Command] = []
        declared = _declared_paths(forest)
        self.kept = {
            entity_id
            for entity_id, path in declared.items()
            if entity_id in live and live.path(entity_id) == path
        }

    def run(self) -> list[Command]:
        for node in self.forest.iter_nodes():
            if node.id in self.kept:
                entity = self.live.entities[node.id]
                if entity.kind != node.kind:
                    raise ReconcileInvariantError(
                        f"Widget '{node.id}' changed kind from '{entity.kind}' to '{node.kind}' "
                        f"at the same position; give it a new id"
                    )

        for root_id in self.live.roots:
            self._destroy_unmatched(root_id)

        self._walk(None, self.forest.trees)
        return self.commands

    def _destroy_unmatched(self, entity_id: str) -> None:
        if entity_id not in self.kept:
            self.commands.append(Destroy(id=entity_id))
            return
        for child_id in self.live.entities[entity_id].children:
            self._destroy_unmatched(child_id)

    def _walk(self, parent_id: str | None, children: list[DeclarationNode]) -> None:
        # Sibling order as the live tree will hold it after destroys and creates
        current: list[str] = []
        if parent_id is None or parent_id in self.kept:
            current = [cid for cid in self.live.children_of(parent_id) if cid in self.kept]

        previous: str | None = None
        for node in children:
            if node.id in self.kept:
                changed = diff_properties(self.live.entities[node.id].properties, node.properties)
                if changed:
                    self.commands.append(UpdateProperties(id=node.id, changed=changed))
            else:
                index = current.index(previous) + 1 if previous is not None else 0
                current.insert(index, node.id)
                self.commands.append(Create(parent_id=parent_id, declaration=node.shallow(), index=index))
            previous = node.id

        declared_order = [node.id for node in children]
        if current != declared_order:
            self.commands.append(Reorder(parent_id=parent_id, order=declared_order))

        for node in children:
            self._walk(node.id, node.children)


def reconcile(live: LiveTree, forest: DeclarationForest) -> list[Command]:
    """
    Compute the commands that bring ``live`` in line with ``forest``.

    Does not modify the live tree; apply the result with :meth:`LiveTree.apply`.

    Raises:
        ReconcileInvariantError: If an id keeps its position but changes kind,
            or the forest repeats an id
    """
    commands = _Reconciliation(live, forest).run()
    if commands:
        counts: dict[str, int] = {}
        for command in commands:
            name = type(command).__name__
            counts[name] = counts.get(name, 0) + 1
        logger.debug(f"Reconciled: {counts}")
    return commands
