"""
Sprig intermediate representation (IR) types.

Declaration trees, typed property values, the widget kind table and source
locations. All types are re-exported from this package.
"""

from .declarations import DeclarationForest, DeclarationNode
from .location import SourceLocation
from .values import Color, HandlerRef, PointList, coerce_property_value, to_plain
from .widgets import (
    COLOR_PROPERTIES,
    HANDLER_PREFIX,
    WIDGET_KINDS,
    WidgetKind,
    WidgetKindSpec,
    is_handler_property,
    lookup_kind,
)

__all__ = [
    "COLOR_PROPERTIES",
    "Color",
    "DeclarationForest",
    "DeclarationNode",
    "HANDLER_PREFIX",
    "HandlerRef",
    "PointList",
    "SourceLocation",
    "WIDGET_KINDS",
    "WidgetKind",
    "WidgetKindSpec",
    "coerce_property_value",
    "is_handler_property",
    "lookup_kind",
    "to_plain",
]
