"""
Declaration tree types.

A declaration tree is the pure-data result of evaluating a script: one tree
per top-level ``window``, every node identified by an author-supplied ``id``.
It has no ties to any rendering engine and is rebuilt in full on every
evaluation pass.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel, Field

from .location import SourceLocation
from .widgets import WidgetKind


class DeclarationNode(BaseModel):
    """
    A resolved widget description.

    Attributes:
        kind: Widget kind
        id: Author-supplied identifier, unique within the evaluation pass
        properties: Ordered property name -> property value
        children: Ordered child declarations
        location: Where the widget call appears in the script
    """

    kind: WidgetKind
    id: str
    properties: dict[str, Any] = Field(default_factory=dict)
    children: list[DeclarationNode] = Field(default_factory=list)
    location: SourceLocation | None = None

    def iter_nodes(self) -> Iterator[DeclarationNode]:
        """Yield this node and all descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.iter_nodes()

    def shallow(self) -> DeclarationNode:
        """Copy of this node without children."""
        return DeclarationNode(
            kind=self.kind,
            id=self.id,
            properties=dict(self.properties),
            location=self.location,
        )

    def child_ids(self) -> list[str]:
        return [child.id for child in self.children]


class DeclarationForest(BaseModel):
    """
    All declaration trees produced by one evaluation pass.

    Each tree is rooted at a ``window`` node. Ids are unique across the forest.
    """

    trees: list[DeclarationNode] = Field(default_factory=list)

    def iter_nodes(self) -> Iterator[DeclarationNode]:
        for tree in self.trees:
            yield from tree.iter_nodes()

    def index(self) -> dict[str, DeclarationNode]:
        """Map of id -> node for every node in the forest."""
        return {node.id: node for node in self.iter_nodes()}

    def parents(self) -> dict[str, str | None]:
        """Map of id -> parent id (None for window roots)."""
        result: dict[str, str | None] = {}
        for tree in self.trees:
            result[tree.id] = None
            for node in tree.iter_nodes():
                for child in node.children:
                    result[child.id] = node.id
        return result

    def find(self, node_id: str) -> DeclarationNode | None:
        for node in self.iter_nodes():
            if node.id == node_id:
                return node
        return None

    def parent_of(self, node_id: str) -> DeclarationNode | None:
        """Return the parent node of ``node_id`` (None for roots and unknown ids)."""
        for node in self.iter_nodes():
            for child in node.children:
                if child.id == node_id:
                    return node
        return None

    def ids(self) -> list[str]:
        return [node.id for node in self.iter_nodes()]

    def remove(self, node_id: str) -> DeclarationNode | None:
        """Detach ``node_id`` (and its subtree) from the forest; return it."""
        for i, tree in enumerate(self.trees):
            if tree.id == node_id:
                return self.trees.pop(i)
        parent = self.parent_of(node_id)
        if parent is None:
            return None
        for i, child in enumerate(parent.children):
            if child.id == node_id:
                return parent.children.pop(i)
        return None

    def clone(self) -> DeclarationForest:
        """Deep copy, safe to edit without touching this forest."""
        return self.model_copy(deep=True)


DeclarationNode.model_rebuild()
