"""
Built-in functions available to Sprig scripts.

Builtins receive already-evaluated positional arguments and keyword
arguments. They are pure apart from ``puts``/``log``, which write to the
``sprig.script`` logger and have no effect on the declaration tree.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from .ir.values import Color

script_logger = logging.getLogger("sprig.script")


class BuiltinError(Exception):
    """Error raised by a builtin; the evaluator attaches the call location."""


def _number(name: str, value: Any) -> int | float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BuiltinError(f"{name}() expects numbers, got {type(value).__name__}")
    return value


def _channel(name: str, value: Any) -> int:
    number = _number(name, value)
    if number < 0 or number > 255:
        raise BuiltinError(f"{name}() channel out of range 0-255: {number}")
    return int(number)


def _arity(name: str, args: tuple[Any, ...], *counts: int) -> None:
    if len(args) not in counts:
        expected = " or ".join(str(c) for c in counts)
        raise BuiltinError(f"{name}() takes {expected} argument(s), got {len(args)}")


def builtin_rgb(*args: Any) -> Color:
    _arity("rgb", args, 3)
    r, g, b = (_channel("rgb", v) for v in args)
    return Color(r=r, g=g, b=b)


def builtin_rgba(*args: Any) -> Color:
    _arity("rgba", args, 4)
    r, g, b = (_channel("rgba", v) for v in args[:3])
    alpha = _number("rgba", args[3])
    if alpha < 0 or alpha > 1:
        raise BuiltinError(f"rgba() alpha out of range 0-1: {alpha}")
    return Color(r=r, g=g, b=b, a=float(alpha))


def builtin_hex(*args: Any) -> Color:
    _arity("hex", args, 1)
    text = args[0]
    if not isinstance(text, str):
        raise BuiltinError(f"hex() expects a string, got {type(text).__name__}")
    color = Color.parse(text if text.startswith("#") else f"#{text}")
    if color is None:
        raise BuiltinError(f"hex() got an invalid color: {text!r}")
    return color


def to_display(value: Any) -> str:
    """String form of a script value, as used by interpolation and ``str()``."""
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return "[" + ", ".join(to_display(v) for v in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{k}: {to_display(v)}" for k, v in value.items()) + "}"
    return str(value)


def builtin_puts(*args: Any) -> None:
    script_logger.info(" ".join(to_display(a) for a in args))


def builtin_len(*args: Any) -> int:
    _arity("len", args, 1)
    value = args[0]
    if value is None:
        return 0
    if not isinstance(value, (str, list, dict)):
        raise BuiltinError(f"len() expects a string, list or map, got {type(value).__name__}")
    return len(value)


def builtin_str(*args: Any) -> str:
    _arity("str", args, 1)
    return to_display(args[0])


def builtin_int(*args: Any) -> int:
    _arity("int", args, 1)
    value = args[0]
    try:
        if isinstance(value, str):
            return int(float(value)) if "." in value else int(value)
        return int(_number("int", value))
    except ValueError as e:
        raise BuiltinError(f"int() cannot convert {value!r}") from e


def builtin_float(*args: Any) -> float:
    _arity("float", args, 1)
    value = args[0]
    try:
        if isinstance(value, str):
            return float(value)
        return float(_number("float", value))
    except ValueError as e:
        raise BuiltinError(f"float() cannot convert {value!r}") from e


def builtin_concat(*args: Any) -> str:
    return "".join(to_display(a) for a in args if a is not None)


def builtin_join(*args: Any) -> str:
    _arity("join", args, 1, 2)
    items = args[0]
    separator = args[1] if len(args) > 1 else ""
    if not isinstance(items, list):
        raise BuiltinError(f"join() expects a list, got {type(items).__name__}")
    if not isinstance(separator, str):
        raise BuiltinError("join() separator must be a string")
    return separator.join(to_display(i) for i in items)


def builtin_upper(*args: Any) -> str:
    _arity("upper", args, 1)
    return to_display(args[0]).upper()


def builtin_lower(*args: Any) -> str:
    _arity("lower", args, 1)
    return to_display(args[0]).lower()


def builtin_now(*args: Any) -> str:
    """Current local time as ``HH:MM:SS``, or formatted with a strftime pattern."""
    _arity("now", args, 0, 1)
    current = datetime.now()
    if args:
        if not isinstance(args[0], str):
            raise BuiltinError("now() format must be a string")
        return current.strftime(args[0])
    return current.strftime("%H:%M:%S")


BUILTINS: dict[str, Callable[..., Any]] = {
    "rgb": builtin_rgb,
    "rgba": builtin_rgba,
    "hex": builtin_hex,
    "puts": builtin_puts,
    "log": builtin_puts,
    "len": builtin_len,
    "str": builtin_str,
    "int": builtin_int,
    "float": builtin_float,
    "concat": builtin_concat,
    "join": builtin_join,
    "upper": builtin_upper,
    "lower": builtin_lower,
    "now": builtin_now,
}


def call_builtin(name: str, args: list[Any], kwargs: dict[str, Any]) -> Any:
    """
    Invoke a builtin by name.

    Raises:
        BuiltinError: If the builtin rejects its arguments or takes no keywords
        KeyError: If ``name`` is not a builtin
    """
    func = BUILTINS[name]
    if kwargs:
        raise BuiltinError(f"{name}() does not take keyword arguments")
    return func(*args)
