"""
The live tree: persistent, materialized counterpart of the declaration forest.

The live tree is never rebuilt from scratch. It changes only by applying
reconciler commands, so entities that keep their id and position keep their
engine handle (and with it any renderer-side state such as scroll offset).
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from sprig.core.errors import ReconcileInvariantError
from sprig.core.ir import WidgetKind

from .commands import Command, Create, Destroy, Reorder, UpdateProperties

logger = logging.getLogger(__name__)


@dataclass
class LiveEntity:
    """
    A materialized widget.

    Attributes:
        id: Stable widget id
        kind: Widget kind
        parent_id: Parent entity id (None for a window root)
        handle: Engine-assigned identity, unique within the live tree
        properties: Property values as last applied
        children: Child entity ids in render order
        declaration_id: Id of the declaration this entity was created from
    """

    id: str
    kind: WidgetKind
    parent_id: str | None
    handle: int
    properties: dict[str, Any] = field(default_factory=dict)
    children: list[str] = field(default_factory=list)
    declaration_id: str = ""


class LiveTree:
    """Forest of live entities indexed by id, one tree per window."""

    def __init__(self) -> None:
        self.entities: dict[str, LiveEntity] = {}
        self.roots: list[str] = []
        self._handles = itertools.count(1)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self.entities

    def __len__(self) -> int:
        return len(self.entities)

    def get(self, entity_id: str) -> LiveEntity | None:
        return self.entities.get(entity_id)

    def is_empty(self) -> bool:
        return not self.entities

    def children_of(self, parent_id: str | None) -> list[str]:
        """Child ids of ``parent_id``; the root order when it is None."""
        if parent_id is None:
            return self.roots
        return self.entities[parent_id].children

    def path(self, entity_id: str) -> tuple[str, ...]:
        """Ancestor ids of an entity, outermost first."""
        ancestors: list[str] = []
        parent_id = self.entities[entity_id].parent_id
        while parent_id is not None:
            ancestors.append(parent_id)
            parent_id = self.entities[parent_id].parent_id
        return tuple(reversed(ancestors))

    def iter_subtree(self, entity_id: str) -> Iterator[LiveEntity]:
        """Yield an entity and all its descendants in pre-order."""
        entity = self.entities[entity_id]
        yield entity
        for child_id in entity.children:
            yield from self.iter_subtree(child_id)

    def iter_entities(self) -> Iterator[LiveEntity]:
        for root_id in self.roots:
            yield from self.iter_subtree(root_id)

    def apply(self, commands: Iterable[Command]) -> None:
        """
        Apply reconciler commands in order.

        Raises:
            ReconcileInvariantError: If a command does not fit the current tree
        """
        for command in commands:
            if isinstance(command, Create):
                self._create(command)
            elif isinstance(command, UpdateProperties):
                self._update(command)
            elif isinstance(command, Reorder):
                self._reorder(command)
            elif isinstance(command, Destroy):
                self._destroy(command)
            else:
                raise ReconcileInvariantError(f"Unknown command: {command!r}")

    def _create(self, command: Create) -> None:
        node = command.declaration
        if node.id in self.entities:
            raise ReconcileInvariantError(f"Cannot create '{node.id}': id already live")
        if command.parent_id is not None and command.parent_id not in self.entities:
            raise ReconcileInvariantError(
                f"Cannot create '{node.id}': parent '{command.parent_id}' is not live"
            )

        entity = LiveEntity(
            id=node.id,
            kind=node.kind,
            parent_id=command.parent_id,
            handle=next(self._handles),
            properties=dict(node.properties),
            declaration_id=node.id,
        )
        self.entities[node.id] = entity
        siblings = self.children_of(command.parent_id)
        siblings.insert(min(max(command.index, 0), len(siblings)), node.id)
        logger.debug(f"Created {node.kind} '{node.id}' (handle {entity.handle})")

    def _update(self, command: UpdateProperties) -> None:
        entity = self.entities.get(command.id)
        if entity is None:
            raise ReconcileInvariantError(f"Cannot update '{command.id}': not live")
        entity.properties.update(command.changed)

    def _reorder(self, command: Reorder) -> None:
        if command.parent_id is not None and command.parent_id not in self.entities:
            raise ReconcileInvariantError(f"Cannot reorder '{command.parent_id}': not live")
        siblings = self.children_of(command.parent_id)
        if sorted(siblings) != sorted(command.order):
            raise ReconcileInvariantError(
                f"Reorder of '{command.parent_id}' does not match its children: "
                f"{command.order} vs {siblings}"
            )
        siblings[:] = command.order

    def _destroy(self, command: Destroy) -> None:
        entity = self.entities.get(command.id)
        if entity is None:
            raise ReconcileInvariantError(f"Cannot destroy '{command.id}': not live")
        removed = [e.id for e in self.iter_subtree(command.id)]
        self.children_of(entity.parent_id).remove(command.id)
        for entity_id in removed:
            del self.entities[entity_id]
        logger.debug(f"Destroyed '{command.id}' ({len(removed)} entit{'y' if len(removed) == 1 else 'ies'})")
