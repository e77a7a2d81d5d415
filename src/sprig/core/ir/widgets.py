"""
Widget kinds recognised by the evaluator.

Kind validity is checked against this fixed table rather than by the shape
of the properties passed; properties themselves are open-ended and passed
through to the renderer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class WidgetKind(StrEnum):
    """Kinds of widget a script may declare."""

    WINDOW = "window"
    ROW = "row"
    COLUMN = "column"
    STACK = "stack"
    SCROLLVIEW = "scrollview"
    LIST = "list"
    GRID = "grid"
    BUTTON = "button"
    TEXT = "text"
    INPUT = "input"
    IMAGE = "image"
    SVG = "svg"
    CANVAS = "canvas"
    VIEWPORT3D = "viewport3d"


@dataclass(frozen=True)
class WidgetKindSpec:
    """Static facts about a widget kind."""

    kind: WidgetKind
    container: bool  # may hold child widgets


WIDGET_KINDS: dict[WidgetKind, WidgetKindSpec] = {
    kind: WidgetKindSpec(kind, container=container)
    for kind, container in (
        (WidgetKind.WINDOW, True),
        (WidgetKind.ROW, True),
        (WidgetKind.COLUMN, True),
        (WidgetKind.STACK, True),
        (WidgetKind.SCROLLVIEW, True),
        (WidgetKind.LIST, True),
        (WidgetKind.GRID, True),
        (WidgetKind.BUTTON, False),
        (WidgetKind.TEXT, False),
        (WidgetKind.INPUT, False),
        (WidgetKind.IMAGE, False),
        (WidgetKind.SVG, False),
        (WidgetKind.CANVAS, False),
        (WidgetKind.VIEWPORT3D, False),
    )
}

# Properties whose values must be colors
COLOR_PROPERTIES = frozenset(
    {"color", "background", "background_color", "border_color", "fill", "stroke"}
)

# Prefix marking a property as a handler reference
HANDLER_PREFIX = "on_"


def lookup_kind(name: str) -> WidgetKindSpec | None:
    """Return the definition of a widget kind by name, or None if unknown."""
    try:
        return WIDGET_KINDS[WidgetKind(name)]
    except ValueError:
        return None


def is_handler_property(name: str) -> bool:
    return name.startswith(HANDLER_PREFIX)
