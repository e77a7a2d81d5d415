"""
Event router: renderer input events to script handlers and back.

A handler's return value is an update payload: a mapping with an
``updates`` list, a bare list of directives, a JSON string encoding either,
or nil. Each directive ``{target_id (or id), action, value}`` edits a copy of
the current declaration forest; the edited forest is then reconciled against
the live tree exactly like a reload, so handler-driven changes and reloads
share one mutation path.

Failures never raise to the caller. They are collected as
:class:`DispatchError` values in the :class:`DispatchResult` and logged.
Directives that already applied are kept when a later one fails.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sprig.core.builtins import to_display
from sprig.core.errors import DispatchError, ReconcileInvariantError, SemanticError
from sprig.core.evaluator import call_handler
from sprig.core.ir import (
    COLOR_PROPERTIES,
    Color,
    DeclarationForest,
    DeclarationNode,
    HandlerRef,
    WidgetKind,
    coerce_property_value,
    is_handler_property,
    lookup_kind,
)

from .commands import Command
from .logging import log_with_context
from .reconciler import reconcile
from .state import RuntimeState

logger = logging.getLogger(__name__)


class UIEvent(BaseModel):
    """An input event produced by the windowing layer."""

    widget_id: str
    handler_name: str
    params: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


@dataclass
class DispatchResult:
    """Outcome of dispatching one event."""

    commands: list[Command] = field(default_factory=list)
    errors: list[DispatchError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class UpdateDirective:
    """One parsed entry of an update payload."""

    target_id: str
    action: str
    value: Any = None


class EventRouter:
    """
    Dispatches events against a :class:`RuntimeState`.

    With ``commit`` enabled (the default) the reconciled commands are applied
    to the state's live tree and the edited forest replaces the current one.
    """

    def __init__(self, state: RuntimeState, commit: bool = True):
        self.state = state
        self.commit = commit
        self._actions: dict[str, Callable[[DeclarationForest, DeclarationNode, UpdateDirective], None]] = {
            "setText": self._set_text,
            "setVisible": self._set_visible,
            "setProperty": self._set_property,
            "setStyle": self._set_style,
            "setImage": self._set_image,
            "setPosition": self._set_position,
            "setSize": self._set_size,
            "appendChild": self._append_child,
            "removeChild": self._remove_child,
        }

    @property
    def actions(self) -> list[str]:
        return list(self._actions)

    def dispatch(self, event: UIEvent) -> DispatchResult:
        """
        Run the handler named by ``event`` and reconcile its updates.

        Returns:
            The emitted commands and every error encountered. An unknown or
            failing handler yields zero commands.
        """
        result = self._dispatch(event)
        for error in result.errors:
            log_with_context(
                logger,
                logging.WARNING,
                error.message,
                widget_id=error.widget_id,
                handler=error.handler_name,
                target_id=error.target_id,
            )
        logger.debug(
            f"Dispatched {event.handler_name} for '{event.widget_id}': "
            f"{len(result.commands)} command(s), {len(result.errors)} error(s)"
        )
        return result

    def _error(self, event: UIEvent, message: str, target_id: str | None = None) -> DispatchError:
        return DispatchError(
            message,
            widget_id=event.widget_id,
            handler_name=event.handler_name,
            target_id=target_id,
        )

    def _dispatch(self, event: UIEvent) -> DispatchResult:
        handlers = self.state.handlers
        if handlers is None or event.handler_name not in handlers:
            return DispatchResult(
                errors=[self._error(event, f"Unknown handler '{event.handler_name}'")]
            )

        try:
            payload = call_handler(handlers, event.handler_name, event.params)
        except SemanticError as e:
            error = self._error(event, f"Handler '{event.handler_name}' failed: {e.message}")
            error.context = e.context
            return DispatchResult(errors=[error])
        except Exception as e:
            logger.exception(f"Handler '{event.handler_name}' raised unexpectedly")
            return DispatchResult(
                errors=[self._error(event, f"Handler '{event.handler_name}' failed: {type(e).__name__}: {e}")]
            )

        errors: list[DispatchError] = []
        directives = self._parse_payload(event, payload, errors)
        if not directives:
            return DispatchResult(errors=errors)

        forest = self.state.forest.clone()
        for directive in directives:
            try:
                self._apply(forest, directive)
            except DispatchError as e:
                e.widget_id = event.widget_id
                e.handler_name = event.handler_name
                errors.append(e)

        try:
            commands = reconcile(self.state.live_tree, forest)
        except ReconcileInvariantError as e:
            errors.append(self._error(event, f"Updates could not be reconciled: {e.message}"))
            return DispatchResult(errors=errors)

        if self.commit:
            self.state.commit(forest, commands)
        return DispatchResult(commands=commands, errors=errors)

    # -- Payload --

    def _parse_payload(
        self, event: UIEvent, payload: Any, errors: list[DispatchError]
    ) -> list[UpdateDirective]:
        if payload is None:
            return []

        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError:
                errors.append(self._error(event, "Handler returned a string that is not a JSON payload"))
                return []

        if isinstance(payload, dict):
            if "updates" not in payload:
                errors.append(self._error(event, "Handler payload has no 'updates' list"))
                return []
            payload = payload["updates"]
            if payload is None:
                return []

        if not isinstance(payload, list):
            errors.append(
                self._error(event, f"Handler payload must be a list of updates, got {type(payload).__name__}")
            )
            return []

        directives: list[UpdateDirective] = []
        for position, item in enumerate(payload):
            if not isinstance(item, dict):
                errors.append(self._error(event, f"Update #{position + 1} is not a map"))
                continue
            target = item.get("target_id", item.get("id"))
            action = item.get("action")
            if not isinstance(target, str) or not target:
                errors.append(self._error(event, f"Update #{position + 1} has no target id"))
                continue
            if not isinstance(action, str):
                errors.append(self._error(event, f"Update #{position + 1} has no action", target))
                continue
            directives.append(UpdateDirective(target_id=target, action=action, value=item.get("value")))
        return directives

    def _apply(self, forest: DeclarationForest, directive: UpdateDirective) -> None:
        handler = self._actions.get(directive.action)
        if handler is None:
            raise DispatchError(f"Unknown update action '{directive.action}'", target_id=directive.target_id)
        node = forest.find(directive.target_id)
        if node is None:
            raise DispatchError(
                f"Update '{directive.action}' targets unknown widget '{directive.target_id}'",
                target_id=directive.target_id,
            )
        handler(forest, node, directive)

    # -- Actions --

    def _set_text(self, forest: DeclarationForest, node: DeclarationNode, directive: UpdateDirective) -> None:
        node.properties["text"] = directive.value if isinstance(directive.value, str) else to_display(directive.value)

    def _set_visible(self, forest: DeclarationForest, node: DeclarationNode, directive: UpdateDirective) -> None:
        if not isinstance(directive.value, bool):
            raise _malformed(directive, "a boolean")
        node.properties["visible"] = directive.value

    def _set_property(self, forest: DeclarationForest, node: DeclarationNode, directive: UpdateDirective) -> None:
        value = directive.value
        if not isinstance(value, dict) or not isinstance(value.get("name"), str) or "value" not in value:
            raise _malformed(directive, "a map with 'name' and 'value'")
        name = value["name"]
        if name in ("id", "kind"):
            raise DispatchError(f"setProperty cannot change '{name}'", target_id=directive.target_id)
        node.properties[name] = _property_value(name, value["value"], directive)

    def _set_style(self, forest: DeclarationForest, node: DeclarationNode, directive: UpdateDirective) -> None:
        if not isinstance(directive.value, dict):
            raise _malformed(directive, "a map of style values")
        current = node.properties.get("style")
        merged = dict(current) if isinstance(current, dict) else {}
        for name, value in directive.value.items():
            merged[name] = _property_value(name, value, directive)
        node.properties["style"] = merged

    def _set_image(self, forest: DeclarationForest, node: DeclarationNode, directive: UpdateDirective) -> None:
        if not isinstance(directive.value, str):
            raise _malformed(directive, "an image source string")
        node.properties["source"] = directive.value

    def _set_position(self, forest: DeclarationForest, node: DeclarationNode, directive: UpdateDirective) -> None:
        x, y = _pair(directive, ("x", "y"))
        node.properties["x"] = x
        node.properties["y"] = y

    def _set_size(self, forest: DeclarationForest, node: DeclarationNode, directive: UpdateDirective) -> None:
        width, height = _pair(directive, ("width", "height"))
        node.properties["width"] = width
        node.properties["height"] = height

    def _append_child(self, forest: DeclarationForest, node: DeclarationNode, directive: UpdateDirective) -> None:
        spec = lookup_kind(node.kind)
        if spec is None or not spec.container:
            raise DispatchError(
                f"Cannot append a child to {node.kind} '{node.id}'", target_id=directive.target_id
            )

        value = directive.value
        if isinstance(value, DeclarationNode):
            child = value.model_copy(deep=True)
        elif isinstance(value, dict):
            child = _node_from_map(value, directive)
        else:
            raise _malformed(directive, "a widget or a map with 'kind' and 'id'")

        existing = set(forest.ids())
        for new_node in child.iter_nodes():
            if new_node.kind == WidgetKind.WINDOW:
                raise DispatchError("appendChild cannot add a window", target_id=directive.target_id)
            if new_node.id in existing:
                raise DispatchError(
                    f"appendChild would duplicate widget id '{new_node.id}'", target_id=directive.target_id
                )
            existing.add(new_node.id)
        node.children.append(child)

    def _remove_child(self, forest: DeclarationForest, node: DeclarationNode, directive: UpdateDirective) -> None:
        forest.remove(node.id)


def _malformed(directive: UpdateDirective, expected: str) -> DispatchError:
    return DispatchError(
        f"'{directive.action}' for '{directive.target_id}' expects {expected}, got {directive.value!r}",
        target_id=directive.target_id,
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _pair(directive: UpdateDirective, keys: tuple[str, str]) -> tuple[Any, Any]:
    value = directive.value
    if isinstance(value, dict):
        pair = (value.get(keys[0]), value.get(keys[1]))
    elif isinstance(value, list) and len(value) == 2:
        pair = (value[0], value[1])
    else:
        raise _malformed(directive, f"[{keys[0]}, {keys[1]}] or a map with '{keys[0]}' and '{keys[1]}'")
    if not all(_is_number(v) for v in pair):
        raise _malformed(directive, "numbers")
    return pair


def _property_value(name: str, value: Any, directive: UpdateDirective) -> Any:
    if name in COLOR_PROPERTIES:
        if isinstance(value, Color):
            return value
        color = Color.parse(value) if isinstance(value, str) else None
        if color is None:
            raise DispatchError(
                f"Property '{name}' is not a valid color: {value!r}", target_id=directive.target_id
            )
        return color
    if is_handler_property(name):
        if isinstance(value, str) and value:
            return HandlerRef(name=value)
        if value is None or isinstance(value, HandlerRef):
            return value
        raise DispatchError(f"Property '{name}' must name a handler", target_id=directive.target_id)
    try:
        return coerce_property_value(value)
    except ValueError as e:
        raise DispatchError(f"Property '{name}': {e}", target_id=directive.target_id) from None


def _node_from_map(data: dict[str, Any], directive: UpdateDirective) -> DeclarationNode:
    kind_name = data.get("kind")
    spec = lookup_kind(kind_name) if isinstance(kind_name, str) else None
    if spec is None:
        raise DispatchError(f"appendChild: unknown widget kind {kind_name!r}", target_id=directive.target_id)
    widget_id = data.get("id")
    if not isinstance(widget_id, str) or not widget_id:
        raise DispatchError("appendChild: widget id must be a non-empty string", target_id=directive.target_id)

    children_data = data.get("children") or []
    if not isinstance(children_data, list) or not all(isinstance(c, dict) for c in children_data):
        raise _malformed(directive, "'children' as a list of maps")
    if children_data and not spec.container:
        raise DispatchError(f"appendChild: '{spec.kind}' cannot contain child widgets", target_id=directive.target_id)

    properties = {
        name: _property_value(name, value, directive)
        for name, value in data.items()
        if name not in ("kind", "id", "children")
    }
    return DeclarationNode(
        kind=spec.kind,
        id=widget_id,
        properties=properties,
        children=[_node_from_map(child, directive) for child in children_data],
    )
