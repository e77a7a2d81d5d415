"""Core Sprig functionality: lexer, parser, evaluator, IR and project configuration."""

from . import ir
from .errors import (
    DispatchError,
    ErrorContext,
    ParseError,
    ReconcileInvariantError,
    SemanticError,
    SprigError,
)
from .evaluator import EvaluationResult, HandlerTable, call_handler, evaluate_script
from .manifest import ProjectManifest, find_manifest, load_manifest
from .parser import parse_script

__all__ = [
    "ir",
    "SprigError",
    "ErrorContext",
    "ParseError",
    "SemanticError",
    "ReconcileInvariantError",
    "DispatchError",
    "parse_script",
    "evaluate_script",
    "call_handler",
    "EvaluationResult",
    "HandlerTable",
    "ProjectManifest",
    "load_manifest",
    "find_manifest",
]
