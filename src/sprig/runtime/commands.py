"""
Entity commands and the command sink boundary.

The reconciler emits an ordered list of commands; a renderer consumes them
through a :class:`CommandSink`. Every command addresses widgets by their
stable string id.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from sprig.core.ir import DeclarationNode, to_plain

logger = logging.getLogger(__name__)


class Create(BaseModel):
    """
    Create one entity.

    ``declaration`` carries the node's kind, id and properties but no
    children; each child is created by its own later command. ``parent_id``
    is None for a window root.
    """

    parent_id: str | None
    declaration: DeclarationNode
    index: int = 0

    model_config = ConfigDict(frozen=True)

    @property
    def id(self) -> str:
        return self.declaration.id


class UpdateProperties(BaseModel):
    """Apply changed property values to an existing entity."""

    id: str
    changed: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class Reorder(BaseModel):
    """Set the child order of ``parent_id`` (None for the window roots)."""

    parent_id: str | None
    order: list[str]

    model_config = ConfigDict(frozen=True)


class Destroy(BaseModel):
    """Destroy an entity together with its entire subtree."""

    id: str

    model_config = ConfigDict(frozen=True)


Command = Create | UpdateProperties | Reorder | Destroy


def describe(command: Command) -> dict[str, Any]:
    """JSON-compatible description of a command (for logs and recordings)."""
    if isinstance(command, Create):
        node = command.declaration
        return {
            "op": "create",
            "parent_id": command.parent_id,
            "index": command.index,
            "kind": str(node.kind),
            "id": node.id,
            "properties": to_plain(node.properties),
        }
    if isinstance(command, UpdateProperties):
        return {"op": "update", "id": command.id, "changed": to_plain(command.changed)}
    if isinstance(command, Reorder):
        return {"op": "reorder", "parent_id": command.parent_id, "order": list(command.order)}
    return {"op": "destroy", "id": command.id}


@runtime_checkable
class CommandSink(Protocol):
    """Consumer of reconciler output, implemented by the renderer."""

    def apply(self, commands: list[Command]) -> None: ...


class RecordingSink:
    """Sink that keeps every batch it receives."""

    def __init__(self) -> None:
        self.batches: list[list[Command]] = []

    def apply(self, commands: list[Command]) -> None:
        self.batches.append(list(commands))

    @property
    def commands(self) -> list[Command]:
        """All received commands, flattened in order."""
        return [command for batch in self.batches for command in batch]

    @property
    def last(self) -> list[Command]:
        return self.batches[-1] if self.batches else []

    def clear(self) -> None:
        self.batches.clear()


class LoggingSink:
    """Sink that logs each command, optionally forwarding to another sink."""

    def __init__(self, inner: CommandSink | None = None, level: int = logging.DEBUG):
        self.inner = inner
        self.level = level

    def apply(self, commands: list[Command]) -> None:
        for command in commands:
            logger.log(self.level, f"{describe(command)}")
        if self.inner is not None:
            self.inner.apply(commands)
