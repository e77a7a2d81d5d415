"""
Typed property values carried by declaration nodes.

A property value is one of a closed set: ``str``, ``int``, ``float``, ``bool``,
``None``, :class:`Color`, :class:`PointList`, :class:`HandlerRef`, or a
``list``/``dict`` of property values for raw pass-through structures (for
example a 3D camera description). The renderer receives these unchanged.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_RGB_RE = re.compile(
    r"^\s*rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9]*\.?[0-9]+)\s*)?\)\s*$"
)
_HEX_RE = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


class Color(BaseModel):
    """An RGBA color. Channels are 0-255, alpha is 0.0-1.0."""

    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)
    a: float = Field(default=1.0, ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        if self.a == 1.0:
            return f"rgb({self.r}, {self.g}, {self.b})"
        return f"rgba({self.r}, {self.g}, {self.b}, {self.a})"

    @classmethod
    def parse(cls, text: str) -> Color | None:
        """
        Parse ``rgb(r, g, b)``, ``rgba(r, g, b, a)`` or ``#rgb``/``#rrggbb``/``#rrggbbaa``.

        Returns:
            The color, or None if the text is not a valid color
        """
        match = _RGB_RE.match(text)
        if match:
            r, g, b = (int(match.group(i)) for i in (1, 2, 3))
            alpha = float(match.group(4)) if match.group(4) is not None else 1.0
            if max(r, g, b) > 255 or alpha > 1.0:
                return None
            return cls(r=r, g=g, b=b, a=alpha)

        match = _HEX_RE.match(text.strip())
        if match:
            digits = match.group(1)
            if len(digits) == 3:
                digits = "".join(c * 2 for c in digits)
            r, g, b = (int(digits[i : i + 2], 16) for i in (0, 2, 4))
            alpha = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
            return cls(r=r, g=g, b=b, a=round(alpha, 3))

        return None


class PointList(BaseModel):
    """An ordered list of 2D points, e.g. a polyline for a canvas."""

    points: tuple[tuple[float, float], ...]

    model_config = ConfigDict(frozen=True)

    def __len__(self) -> int:
        return len(self.points)

    def __str__(self) -> str:
        return " ".join(f"{x:g},{y:g}" for x, y in self.points)


class HandlerRef(BaseModel):
    """
    Reference to a script handler by name.

    Resolved against the handler table only when an event is dispatched, so a
    handler may be defined after the widget that refers to it.
    """

    name: str

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.name


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_point_list(items: list[Any]) -> PointList | None:
    if not items:
        return None
    points = []
    for item in items:
        if not (isinstance(item, (list, tuple)) and len(item) == 2):
            return None
        if not all(_is_number(v) for v in item):
            return None
        points.append((float(item[0]), float(item[1])))
    return PointList(points=tuple(points))


def coerce_property_value(value: Any) -> Any:
    """
    Convert an evaluated script value into a property value.

    Lists made entirely of numeric pairs become a :class:`PointList`; other
    lists and dicts are converted element-wise.

    Raises:
        ValueError: If the value has no property representation (e.g. a function)
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (Color, PointList, HandlerRef)):
        return value
    if isinstance(value, (list, tuple)):
        points = _as_point_list(list(value))
        if points is not None:
            return points
        return [coerce_property_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): coerce_property_value(v) for k, v in value.items()}
    raise ValueError(f"{type(value).__name__} cannot be used as a property value")


def to_plain(value: Any) -> Any:
    """Render a property value as JSON-compatible data (for logs and sinks)."""
    if isinstance(value, (Color, HandlerRef)):
        return str(value)
    if isinstance(value, PointList):
        return [list(p) for p in value.points]
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    return value
