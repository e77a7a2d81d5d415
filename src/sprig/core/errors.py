"""
Error types for Sprig script parsing, evaluation, reconciliation and dispatch.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class SprigError(Exception):
    """Base exception for all Sprig errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class ParseError(SprigError):
    """
    Raised when script text cannot be tokenized or parsed.

    Examples:
    - Unexpected characters or tokens
    - Unterminated strings
    - Unmatched or mismatched block terminators (do/end, {/})
    - Duplicate keyword arguments in one call
    """

    pass


class SemanticError(SprigError):
    """
    Raised when a parsed script cannot be evaluated into a declaration tree.

    Examples:
    - Unknown widget kind or function
    - Missing or duplicate widget id
    - Malformed property value (e.g. an unparseable color)
    - Runtime failures inside script expressions
    """

    pass


class ReconcileInvariantError(SemanticError):
    """
    Raised when a declaration cannot be matched against the live tree.

    The only case is an id that keeps its position in the tree but changes
    widget kind between passes.
    """

    pass


class DispatchError(SprigError):
    """
    Reported (not raised to callers) when an input event cannot be handled.

    Examples:
    - Handler name not present in the handler table
    - Update directive targeting an unknown widget id
    - Unknown update action or malformed directive value
    """

    def __init__(
        self,
        message: str,
        context: Optional["ErrorContext"] = None,
        widget_id: str | None = None,
        handler_name: str | None = None,
        target_id: str | None = None,
    ):
        self.widget_id = widget_id
        self.handler_name = handler_name
        self.target_id = target_id
        super().__init__(message, context)


@dataclass
class ErrorContext:
    """
    Context information for an error, including source location.

    Attributes:
        file: Path to the script file where the error occurred
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional source lines around the error location
    """

    file: Path
    line: int
    column: int
    snippet: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "ui.sprig:10:5"
        """
        location = f"{self.file}:{self.line}:{self.column}"
        if self.snippet:
            return f"{location}\n{self._format_snippet()}"
        return location

    def _format_snippet(self) -> str:
        """Format code snippet with line numbers and error marker."""
        if not self.snippet:
            return ""

        lines = self.snippet.split("\n")
        formatted = []

        # Snippet starts up to 2 lines before the error line
        start_line = max(1, self.line - 2)

        for i, line in enumerate(lines):
            line_num = start_line + i
            prefix = f"{line_num:4d} | "
            formatted.append(prefix + line)

            if line_num == self.line:
                marker_pos = len(prefix) + self.column - 1
                formatted.append(" " * marker_pos + "^^^")

        return "\n".join(formatted)


def extract_snippet(text: str | None, line: int, radius: int = 2) -> str | None:
    """Return the source lines surrounding ``line`` (1-indexed) or None."""
    if not text:
        return None
    lines = text.split("\n")
    if line < 1 or line > len(lines):
        return None
    start = max(1, line - radius)
    end = min(len(lines), line + radius)
    return "\n".join(lines[start - 1 : end])


def make_parse_error(
    message: str,
    file: Path,
    line: int,
    column: int,
    snippet: str | None = None,
) -> ParseError:
    """
    Helper to create a ParseError with context.

    Args:
        message: Error description
        file: Source file path
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional code snippet

    Returns:
        ParseError with context attached
    """
    context = ErrorContext(file=file, line=line, column=column, snippet=snippet)
    return ParseError(message, context)


def make_semantic_error(
    message: str,
    file: Path | None = None,
    line: int | None = None,
    column: int | None = None,
    snippet: str | None = None,
) -> SemanticError:
    """
    Helper to create a SemanticError with optional context.

    Returns:
        SemanticError with context if location provided
    """
    if file and line and column:
        context = ErrorContext(file=file, line=line, column=column, snippet=snippet)
        return SemanticError(message, context)
    return SemanticError(message)
