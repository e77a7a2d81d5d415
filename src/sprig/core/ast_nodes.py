"""
Abstract syntax tree for Sprig scripts.

Nodes are frozen pydantic models, so two parses of the same text compare
equal field by field. Every node records where it was written.

Statements:
- FunctionDef: ``def name(params) ... end``
- Assignment: ``name = expr``
- Return: ``return expr``
- IfStatement: ``if cond ... elif cond ... else ... end``
- any expression (most commonly a widget Call with an optional block)
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal as TypingLiteral

from pydantic import BaseModel, ConfigDict, Field

from .ir.location import SourceLocation


class BinaryOp(StrEnum):
    """Binary operators for expressions."""

    # Arithmetic
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    # Comparison
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    # Logical
    AND = "and"
    OR = "or"


class UnaryOp(StrEnum):
    """Unary operators for expressions."""

    NEG = "-"
    NOT = "not"


class Node(BaseModel):
    """Base for all AST nodes."""

    location: SourceLocation | None = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


class Literal(Node):
    """A literal value: bool, int, float, str, or None (nil)."""

    value: bool | int | float | str | None


class Symbol(Node):
    """A symbol literal such as ``:center``; evaluates to its name."""

    symbol: str


class Name(Node):
    """A bare identifier: a variable reference."""

    name: str


class StringTemplate(Node):
    """An interpolated string: literal parts and ``#{expr}`` parts in order."""

    parts: list[Expr]


class ListExpr(Node):
    """``[a, b, c]``"""

    items: list[Expr] = Field(default_factory=list)


class MapExpr(Node):
    """``{key: value, "other key": value}``"""

    entries: list[tuple[str, Expr]] = Field(default_factory=list)


class BinaryExpr(Node):
    """Binary operation: left op right."""

    op: BinaryOp
    left: Expr
    right: Expr


class UnaryExpr(Node):
    """Unary operation: op operand."""

    op: UnaryOp
    operand: Expr


class IndexExpr(Node):
    """``target[index]``"""

    target: Expr
    index: Expr


class AttributeExpr(Node):
    """``target.attribute`` (map lookup by key)."""

    target: Expr
    attribute: str


class Keyword(Node):
    """A ``name: value`` argument."""

    name: str
    value: Expr


class Call(Node):
    """
    A function or widget call, optionally followed by a nested block.

    ``block`` is None when the call has no block; ``block_style`` records
    whether it was written with ``do``/``end`` or braces.
    """

    name: str
    args: list[Expr] = Field(default_factory=list)
    kwargs: list[Keyword] = Field(default_factory=list)
    block: list[Statement] | None = None
    block_style: TypingLiteral["do", "brace"] | None = None


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


class Assignment(Node):
    """``name = value``"""

    name: str
    value: Expr


class FunctionDef(Node):
    """``def name(params) body end``; registers a handler, runs nothing."""

    name: str
    params: list[str] = Field(default_factory=list)
    body: list[Statement] = Field(default_factory=list)


class Return(Node):
    """``return`` with an optional value."""

    value: Expr | None = None


class IfStatement(Node):
    """Conditional with ordered (condition, body) branches and optional else."""

    branches: list[tuple[Expr, list[Statement]]]
    else_body: list[Statement] | None = None


class Script(Node):
    """A whole parsed script."""

    statements: list[Statement] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Union types
# ---------------------------------------------------------------------------

Expr = (
    Literal
    | Symbol
    | Name
    | StringTemplate
    | ListExpr
    | MapExpr
    | BinaryExpr
    | UnaryExpr
    | IndexExpr
    | AttributeExpr
    | Call
)

Statement = FunctionDef | Assignment | Return | IfStatement | Expr

# Rebuild models for recursive forward references
StringTemplate.model_rebuild()
ListExpr.model_rebuild()
MapExpr.model_rebuild()
BinaryExpr.model_rebuild()
UnaryExpr.model_rebuild()
IndexExpr.model_rebuild()
AttributeExpr.model_rebuild()
Keyword.model_rebuild()
Call.model_rebuild()
Assignment.model_rebuild()
FunctionDef.model_rebuild()
Return.model_rebuild()
IfStatement.model_rebuild()
Script.model_rebuild()
