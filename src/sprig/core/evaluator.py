"""
Script evaluator for Sprig.

Walks a parsed :class:`Script` top to bottom, producing a
:class:`DeclarationForest` and a :class:`HandlerTable`. This is a safe
tree-walking interpreter over the closed set of AST node types; it never
uses Python's ``eval()``.

Semantics:
- ``def`` registers a closure in the handler table and runs nothing.
- A call whose name is a widget kind builds a declaration node immediately
  and appends it to the current accumulation target; its block is evaluated
  with that node as the new target.
- Calls to user functions run immediately, so helper functions may declare
  widgets into the caller's target.
- The value of a function call is its ``return`` value, or else the value of
  the last statement it evaluated.
- Only ``nil`` and ``false`` are falsy.

Every evaluation failure is raised as a :class:`SemanticError` carrying the
location of the offending node.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .ast_nodes import (
    Assignment,
    AttributeExpr,
    BinaryExpr,
    BinaryOp,
    Call,
    FunctionDef,
    IfStatement,
    IndexExpr,
    ListExpr,
    Literal,
    MapExpr,
    Name,
    Node,
    Return,
    Script,
    Statement,
    StringTemplate,
    Symbol,
    UnaryExpr,
    UnaryOp,
)
from .builtins import BUILTINS, BuiltinError, call_builtin, to_display
from .errors import SemanticError, extract_snippet, make_semantic_error
from .ir import (
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

logger = logging.getLogger(__name__)

MAX_CALL_DEPTH = 100


class Environment:
    """A variable scope chained to its enclosing scope."""

    def __init__(self, parent: Environment | None = None):
        self.values: dict[str, Any] = {}
        self.parent = parent

    def is_bound(self, name: str) -> bool:
        scope: Environment | None = self
        while scope is not None:
            if name in scope.values:
                return True
            scope = scope.parent
        return False

    def lookup(self, name: str) -> Any:
        """
        Resolve a variable.

        Raises:
            KeyError: If the name is bound in no enclosing scope
        """
        scope: Environment | None = self
        while scope is not None:
            if name in scope.values:
                return scope.values[name]
            scope = scope.parent
        raise KeyError(name)

    def define(self, name: str, value: Any) -> None:
        """Bind ``name`` in this scope (assignment is always local)."""
        self.values[name] = value


@dataclass
class Closure:
    """A script function together with the scope it was defined in."""

    name: str
    params: list[str]
    body: list[Statement]
    env: Environment
    definition: FunctionDef | None = None


class HandlerTable:
    """
    Name-indexed registry of script functions.

    Populated only by ``def`` statements during an evaluation pass and
    replaced wholesale when a reload succeeds. Keeps the script source so
    errors raised while a handler runs can show a snippet.
    """

    def __init__(self, file: Path | str = "<script>", text: str | None = None):
        self.file = Path(file)
        self.text = text
        self._closures: dict[str, Closure] = {}

    def register(self, closure: Closure) -> None:
        if closure.name in self._closures:
            logger.debug(f"Function '{closure.name}' redefined")
        self._closures[closure.name] = closure

    def get(self, name: str) -> Closure | None:
        return self._closures.get(name)

    def names(self) -> list[str]:
        return list(self._closures)

    def __contains__(self, name: object) -> bool:
        return name in self._closures

    def __len__(self) -> int:
        return len(self._closures)


@dataclass
class EvaluationResult:
    """Output of one evaluation pass."""

    forest: DeclarationForest
    handlers: HandlerTable


class _ReturnSignal(Exception):
    """Unwinds the Python stack for a script ``return``."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__()


def is_truthy(value: Any) -> bool:
    return value is not None and value is not False


class Evaluator:
    """
    Evaluates scripts into declaration forests and runs handlers.

    One instance serves one pass: either :meth:`evaluate` for a whole script,
    or :meth:`call_handler` for one event.
    """

    def __init__(self, handlers: HandlerTable):
        self.handlers = handlers
        self.globals = Environment()
        self._trees: list[DeclarationNode] = []
        self._targets: list[DeclarationNode] = []
        self._seen_ids: set[str] = set()
        self._call_depth = 0
        self._in_handler = False

    # -- Entry points --

    def evaluate(self, script: Script) -> EvaluationResult:
        """
        Run every top-level statement of ``script``.

        Raises:
            SemanticError: On any evaluation failure; nothing partial is returned
        """
        for statement in script.statements:
            try:
                self.execute(statement, self.globals)
            except _ReturnSignal:
                raise self.error("'return' outside of a function", statement) from None
            except RecursionError:
                raise self.error("Script recursed too deeply", statement) from None

        forest = DeclarationForest(trees=self._trees)
        logger.debug(
            f"Evaluated {len(self._trees)} window(s), {len(self._seen_ids)} widget(s), "
            f"{len(self.handlers)} function(s)"
        )
        return EvaluationResult(forest=forest, handlers=self.handlers)

    def call_handler(self, name: str, params: Mapping[str, Any]) -> Any:
        """
        Invoke handler ``name`` with event ``params``; return its payload.

        Each declared parameter is bound to ``params[param]``. A function with
        a single parameter that is not a key of ``params`` receives the whole
        mapping. Widget calls with no enclosing block return detached nodes.

        Raises:
            KeyError: If no such handler is defined
            SemanticError: If the handler fails while running
        """
        closure = self.handlers.get(name)
        if closure is None:
            raise KeyError(name)

        self._in_handler = True
        params = dict(params)
        args: dict[str, Any] = {}
        for param in closure.params:
            if param in params:
                args[param] = params[param]
            elif len(closure.params) == 1:
                args[param] = params
            else:
                args[param] = None
        try:
            return self.invoke(closure, args, closure.definition)
        except RecursionError:
            raise self.error(f"Handler '{name}' recursed too deeply", closure.definition) from None

    # -- Errors --

    def error(self, message: str, node: Node | None) -> SemanticError:
        location = node.location if node is not None else None
        if location is None:
            return make_semantic_error(message)
        return make_semantic_error(
            message,
            Path(location.file),
            location.line,
            location.column,
            snippet=extract_snippet(self.handlers.text, location.line),
        )

    # -- Statements --

    def execute_block(self, statements: list[Statement], env: Environment) -> Any:
        result = None
        for statement in statements:
            result = self.execute(statement, env)
        return result

    def execute(self, statement: Statement, env: Environment) -> Any:
        if isinstance(statement, FunctionDef):
            return self.define_function(statement, env)

        if isinstance(statement, Assignment):
            value = self.interpret(statement.value, env)
            env.define(statement.name, value)
            return value

        if isinstance(statement, Return):
            value = self.interpret(statement.value, env) if statement.value is not None else None
            raise _ReturnSignal(value)

        if isinstance(statement, IfStatement):
            for condition, body in statement.branches:
                if is_truthy(self.interpret(condition, env)):
                    return self.execute_block(body, env)
            if statement.else_body is not None:
                return self.execute_block(statement.else_body, env)
            return None

        return self.interpret(statement, env)

    def define_function(self, node: FunctionDef, env: Environment) -> None:
        if self._in_handler:
            raise self.error(f"Cannot define function '{node.name}' while a handler is running", node)
        if lookup_kind(node.name) is not None:
            raise self.error(f"Cannot define function '{node.name}': it is a widget kind", node)
        self.handlers.register(
            Closure(name=node.name, params=list(node.params), body=node.body, env=env, definition=node)
        )
        return None

    # -- Expressions --

    def interpret(self, expr: Node, env: Environment) -> Any:
        """Dispatch evaluation to the appropriate handler."""
        if isinstance(expr, Literal):
            return expr.value

        if isinstance(expr, Symbol):
            return expr.symbol

        if isinstance(expr, Name):
            try:
                return env.lookup(expr.name)
            except KeyError:
                raise self.error(f"Unknown name '{expr.name}'", expr) from None

        if isinstance(expr, StringTemplate):
            return "".join(to_display(self.interpret(part, env)) for part in expr.parts)

        if isinstance(expr, ListExpr):
            return [self.interpret(item, env) for item in expr.items]

        if isinstance(expr, MapExpr):
            return {key: self.interpret(value, env) for key, value in expr.entries}

        if isinstance(expr, BinaryExpr):
            return self.interpret_binary(expr, env)

        if isinstance(expr, UnaryExpr):
            return self.interpret_unary(expr, env)

        if isinstance(expr, IndexExpr):
            return self.interpret_index(expr, env)

        if isinstance(expr, AttributeExpr):
            return self.interpret_attribute(expr, env)

        if isinstance(expr, Call):
            return self.interpret_call(expr, env)

        raise self.error(f"Cannot evaluate {type(expr).__name__} here", expr)

    def interpret_binary(self, expr: BinaryExpr, env: Environment) -> Any:
        # Short-circuit for logical operators
        if expr.op == BinaryOp.AND:
            left = self.interpret(expr.left, env)
            if not is_truthy(left):
                return left
            return self.interpret(expr.right, env)

        if expr.op == BinaryOp.OR:
            left = self.interpret(expr.left, env)
            if is_truthy(left):
                return left
            return self.interpret(expr.right, env)

        left = self.interpret(expr.left, env)
        right = self.interpret(expr.right, env)

        if expr.op == BinaryOp.EQ:
            return left == right
        if expr.op == BinaryOp.NE:
            return left != right

        if expr.op == BinaryOp.ADD and isinstance(left, str) != isinstance(right, str):
            raise self.error(
                f"Cannot add {_type_name(left)} and {_type_name(right)}; use str() or interpolation",
                expr,
            )

        try:
            if expr.op == BinaryOp.ADD:
                return left + right
            if expr.op == BinaryOp.SUB:
                return left - right
            if expr.op == BinaryOp.MUL:
                return left * right
            if expr.op == BinaryOp.DIV:
                return left / right
            if expr.op == BinaryOp.MOD:
                return left % right
            if expr.op == BinaryOp.LT:
                return left < right
            if expr.op == BinaryOp.GT:
                return left > right
            if expr.op == BinaryOp.LE:
                return left <= right
            if expr.op == BinaryOp.GE:
                return left >= right
        except ZeroDivisionError:
            raise self.error("Division by zero", expr) from None
        except TypeError:
            raise self.error(
                f"Unsupported operands for '{expr.op.value}': "
                f"{_type_name(left)} and {_type_name(right)}",
                expr,
            ) from None

        raise self.error(f"Unknown binary operator: {expr.op}", expr)

    def interpret_unary(self, expr: UnaryExpr, env: Environment) -> Any:
        value = self.interpret(expr.operand, env)
        if expr.op == UnaryOp.NOT:
            return not is_truthy(value)
        if expr.op == UnaryOp.NEG:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise self.error(f"Cannot negate {_type_name(value)}", expr)
            return -value
        raise self.error(f"Unknown unary operator: {expr.op}", expr)

    def interpret_index(self, expr: IndexExpr, env: Environment) -> Any:
        target = self.interpret(expr.target, env)
        index = self.interpret(expr.index, env)

        if isinstance(target, dict):
            try:
                return target.get(index)
            except TypeError:
                raise self.error(f"Cannot use {_type_name(index)} as a map key", expr) from None
        if isinstance(target, (list, str)):
            if isinstance(index, bool) or not isinstance(index, int):
                raise self.error(f"Index must be an integer, got {_type_name(index)}", expr)
            if not -len(target) <= index < len(target):
                raise self.error(f"Index {index} out of range (length {len(target)})", expr)
            return target[index]
        if target is None:
            raise self.error("Cannot index nil", expr)
        raise self.error(f"Cannot index {_type_name(target)}", expr)

    def interpret_attribute(self, expr: AttributeExpr, env: Environment) -> Any:
        target = self.interpret(expr.target, env)
        if isinstance(target, dict):
            if expr.attribute not in target:
                raise self.error(
                    f"Map has no key '{expr.attribute}'; use ['{expr.attribute}'] for an optional key",
                    expr,
                )
            return target[expr.attribute]
        if isinstance(target, DeclarationNode):
            if expr.attribute == "id":
                return target.id
            if expr.attribute == "kind":
                return str(target.kind)
            return target.properties.get(expr.attribute)
        raise self.error(f"{_type_name(target)} has no attribute '{expr.attribute}'", expr)

    # -- Calls --

    def interpret_call(self, expr: Call, env: Environment) -> Any:
        spec = lookup_kind(expr.name)
        if spec is not None:
            return self.declare_widget(expr, env, spec.container)

        if expr.block is not None:
            raise self.error(f"Only widget calls take a block; '{expr.name}' is not a widget", expr)

        closure = self.handlers.get(expr.name)
        if closure is not None:
            args = self.bind_arguments(closure, expr, env)
            return self.invoke(closure, args, expr)

        if expr.name in BUILTINS:
            args = [self.interpret(a, env) for a in expr.args]
            kwargs = {k.name: self.interpret(k.value, env) for k in expr.kwargs}
            try:
                return call_builtin(expr.name, args, kwargs)
            except BuiltinError as e:
                raise self.error(str(e), expr) from None

        raise self.error(f"Unknown function or widget kind '{expr.name}'", expr)

    def bind_arguments(self, closure: Closure, expr: Call, env: Environment) -> dict[str, Any]:
        if len(expr.args) > len(closure.params):
            raise self.error(
                f"'{closure.name}' takes {len(closure.params)} argument(s), got {len(expr.args)}",
                expr,
            )
        args: dict[str, Any] = dict.fromkeys(closure.params)
        for param, arg in zip(closure.params, expr.args, strict=False):
            args[param] = self.interpret(arg, env)
        for keyword in expr.kwargs:
            if keyword.name not in args:
                raise self.error(f"'{closure.name}' has no parameter '{keyword.name}'", keyword)
            if closure.params.index(keyword.name) < len(expr.args):
                raise self.error(
                    f"'{closure.name}' got multiple values for '{keyword.name}'", keyword
                )
            args[keyword.name] = self.interpret(keyword.value, env)
        return args

    def invoke(self, closure: Closure, args: dict[str, Any], call_site: Node | None) -> Any:
        if self._call_depth >= MAX_CALL_DEPTH:
            raise self.error(f"Maximum call depth exceeded in '{closure.name}'", call_site)

        scope = Environment(parent=closure.env)
        for name, value in args.items():
            scope.define(name, value)

        self._call_depth += 1
        try:
            return self.execute_block(closure.body, scope)
        except _ReturnSignal as signal:
            return signal.value
        finally:
            self._call_depth -= 1

    # -- Widgets --

    def declare_widget(self, expr: Call, env: Environment, container: bool) -> DeclarationNode:
        kind = WidgetKind(expr.name)

        if expr.args:
            raise self.error(f"'{kind}' takes keyword properties only", expr.args[0])

        parent = self._targets[-1] if self._targets else None
        if parent is None and not self._in_handler and kind != WidgetKind.WINDOW:
            raise self.error(f"Top-level widgets must be 'window', got '{kind}'", expr)
        if parent is not None and kind == WidgetKind.WINDOW:
            raise self.error(f"'window' cannot be nested inside '{parent.kind}' '{parent.id}'", expr)
        if expr.block is not None and not container:
            raise self.error(f"'{kind}' cannot contain child widgets", expr)

        widget_id: str | None = None
        properties: dict[str, Any] = {}
        for keyword in expr.kwargs:
            if keyword.name == "id":
                value = self.interpret(keyword.value, env)
                if not isinstance(value, str) or not value:
                    raise self.error(f"'{kind}' id must be a non-empty string", keyword)
                widget_id = value
            elif is_handler_property(keyword.name):
                properties[keyword.name] = self.handler_property(keyword.name, keyword.value, env)
            elif keyword.name in COLOR_PROPERTIES:
                properties[keyword.name] = self.color_property(
                    keyword.name, self.interpret(keyword.value, env), keyword
                )
            else:
                value = self.interpret(keyword.value, env)
                try:
                    properties[keyword.name] = coerce_property_value(value)
                except ValueError as e:
                    raise self.error(f"Property '{keyword.name}': {e}", keyword) from None

        if widget_id is None:
            raise self.error(f"'{kind}' requires an 'id' property", expr)
        if widget_id in self._seen_ids:
            raise self.error(f"Duplicate widget id '{widget_id}'", expr)
        self._seen_ids.add(widget_id)

        node = DeclarationNode(kind=kind, id=widget_id, properties=properties, location=expr.location)
        if parent is not None:
            parent.children.append(node)
        elif not self._in_handler:
            self._trees.append(node)

        if expr.block is not None:
            self._targets.append(node)
            try:
                self.execute_block(expr.block, env)
            finally:
                self._targets.pop()

        return node

    def handler_property(self, name: str, value_expr: Node, env: Environment) -> HandlerRef | None:
        # A bare unbound name refers to a handler that may be defined later
        if isinstance(value_expr, Name) and not env.is_bound(value_expr.name):
            return HandlerRef(name=value_expr.name)

        value = self.interpret(value_expr, env)
        if value is None or isinstance(value, HandlerRef):
            return value
        if isinstance(value, str) and value:
            return HandlerRef(name=value)
        raise self.error(
            f"Property '{name}' must name a handler, got {_type_name(value)}", value_expr
        )

    def color_property(self, name: str, value: Any, node: Node) -> Color:
        if isinstance(value, Color):
            return value
        if isinstance(value, str):
            color = Color.parse(value)
            if color is not None:
                return color
            raise self.error(f"Property '{name}' is not a valid color: {value!r}", node)
        raise self.error(f"Property '{name}' must be a color, got {_type_name(value)}", node)


def _type_name(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "list"
    if isinstance(value, dict):
        return "map"
    if isinstance(value, DeclarationNode):
        return "widget"
    return type(value).__name__


def evaluate_script(
    script: Script, file: Path | str = "<script>", text: str | None = None
) -> EvaluationResult:
    """
    Evaluate a parsed script into a declaration forest and handler table.

    Args:
        script: Parsed script
        file: Script path (kept on the handler table for error reporting)
        text: Script source (for error snippets)

    Raises:
        SemanticError: If evaluation fails
    """
    return Evaluator(HandlerTable(file, text)).evaluate(script)


def call_handler(handlers: HandlerTable, name: str, params: Mapping[str, Any]) -> Any:
    """
    Run handler ``name`` from ``handlers`` with event ``params``.

    Raises:
        KeyError: If the handler is not defined
        SemanticError: If the handler fails while running
    """
    return Evaluator(handlers).call_handler(name, params)
