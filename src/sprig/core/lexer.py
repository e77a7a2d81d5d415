"""
Lexer/Tokenizer for the Sprig UI script language.

Converts raw script text into a stream of tokens with source location tracking.
Blocks are delimited explicitly (``do``/``end`` or ``{``/``}``), so newlines are
emitted as statement separators rather than indentation tokens.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .errors import extract_snippet, make_parse_error


class TokenType(Enum):
    """Token types in the Sprig script language."""

    # Literals
    IDENTIFIER = "IDENTIFIER"
    STRING = "STRING"
    NUMBER = "NUMBER"
    SYMBOL = "SYMBOL"

    # Keywords
    DEF = "def"
    DO = "do"
    END = "end"
    IF = "if"
    ELIF = "elif"
    ELSE = "else"
    RETURN = "return"
    TRUE = "true"
    FALSE = "false"
    NIL = "nil"
    AND = "and"
    OR = "or"
    NOT = "not"

    # Comparison operators
    DOUBLE_EQUALS = "=="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_EQUAL = ">="
    LESS_EQUAL = "<="

    # Arithmetic operators
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"

    # Punctuation
    COLON = ":"
    COMMA = ","
    DOT = "."
    SEMICOLON = ";"
    EQUALS = "="
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"
    LBRACE = "{"
    RBRACE = "}"

    # Special
    NEWLINE = "NEWLINE"
    EOF = "EOF"


KEYWORDS = {
    "def",
    "do",
    "end",
    "if",
    "elif",
    "else",
    "return",
    "true",
    "false",
    "nil",
    "and",
    "or",
    "not",
}

# Single-character punctuation that never combines with a following character
SIMPLE_TOKENS = {
    ",": TokenType.COMMA,
    ".": TokenType.DOT,
    ";": TokenType.SEMICOLON,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
}

# After these tokens a ':' is punctuation (``name: value``), never a symbol
VALUE_ENDING_TOKENS = {
    TokenType.IDENTIFIER,
    TokenType.STRING,
    TokenType.NUMBER,
    TokenType.SYMBOL,
    TokenType.RPAREN,
    TokenType.RBRACKET,
    TokenType.RBRACE,
    TokenType.TRUE,
    TokenType.FALSE,
    TokenType.NIL,
    TokenType.END,
}


@dataclass(frozen=True)
class StringSegment:
    """
    One piece of a string literal.

    Literal segments hold decoded text. Expression segments hold the raw
    source of a ``#{...}`` placeholder and the position where it starts.
    """

    text: str
    is_expr: bool = False
    line: int = 0
    column: int = 0


@dataclass
class Token:
    """
    A single token in a script.

    Attributes:
        type: Type of token
        value: String value of the token (decoded text for strings)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        segments: Literal/placeholder pieces for interpolated strings
    """

    type: TokenType
    value: str
    line: int
    column: int
    segments: tuple[StringSegment, ...] = field(default=())

    def __repr__(self) -> str:
        return f"Token({self.type.value}, {self.value!r}, {self.line}:{self.column})"


class Lexer:
    """
    Lexer for Sprig scripts.

    Converts source text into a stream of tokens. Consecutive blank lines and
    comment lines collapse into a single NEWLINE token.
    """

    def __init__(self, text: str, file: Path, line: int = 1, column: int = 1):
        """
        Initialize lexer.

        Args:
            text: Source text to tokenize
            file: Source file path (for error reporting)
            line: Starting line (used when lexing an interpolation placeholder)
            column: Starting column
        """
        self.text = text
        self.file = file
        self.pos = 0
        self.line = line
        self.column = column
        self.tokens: list[Token] = []

    def current_char(self) -> str | None:
        """Get current character or None if at end."""
        if self.pos >= len(self.text):
            return None
        return self.text[self.pos]

    def peek_char(self, offset: int = 1) -> str | None:
        """Peek ahead at character."""
        pos = self.pos + offset
        if pos >= len(self.text):
            return None
        return self.text[pos]

    def advance(self) -> None:
        """Move to next character, updating line/column."""
        if self.pos < len(self.text):
            if self.text[self.pos] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1

    def error(self, message: str, line: int, column: int) -> Exception:
        return make_parse_error(
            message,
            self.file,
            line,
            column,
            snippet=extract_snippet(self.text, line) if line == self.line else None,
        )

    def skip_whitespace(self) -> None:
        """Skip spaces, tabs and carriage returns (not newlines)."""
        while self.current_char() in (" ", "\t", "\r"):
            self.advance()

    def skip_comment(self) -> None:
        """Skip comment (from # to end of line)."""
        if self.current_char() == "#":
            while self.current_char() and self.current_char() != "\n":
                self.advance()

    def read_string(self) -> tuple[str, tuple[StringSegment, ...]]:
        """
        Read a quoted string.

        Double-quoted strings support ``#{expr}`` placeholders; single-quoted
        strings are taken literally apart from escapes.

        Returns:
            Tuple of (decoded text, segments). Segments is empty when the
            string has no placeholders.
        """
        start_line = self.line
        start_col = self.column
        quote = self.current_char()
        interpolate = quote == '"'
        self.advance()  # skip opening quote

        segments: list[StringSegment] = []
        chars: list[str] = []
        has_placeholder = False

        while True:
            current = self.current_char()
            if current is None or current == "\n":
                raise make_parse_error(
                    "Unterminated string literal",
                    self.file,
                    start_line,
                    start_col,
                )
            if current == quote:
                break

            if current == "\\":
                self.advance()
                escape_char = self.current_char()
                if escape_char == "n":
                    chars.append("\n")
                elif escape_char == "t":
                    chars.append("\t")
                elif escape_char == "\\":
                    chars.append("\\")
                elif escape_char is not None:
                    # Covers \" \' and \# (a literal hash that never starts a placeholder)
                    chars.append(escape_char)
                self.advance()
                continue

            if interpolate and current == "#" and self.peek_char() == "{":
                has_placeholder = True
                if chars:
                    segments.append(StringSegment("".join(chars)))
                    chars = []
                segments.append(self._read_placeholder())
                continue

            chars.append(current)
            self.advance()

        self.advance()  # skip closing quote

        if chars:
            segments.append(StringSegment("".join(chars)))

        if not has_placeholder:
            return "".join(s.text for s in segments), ()
        decoded = "".join(s.text if not s.is_expr else "#{" + s.text + "}" for s in segments)
        return decoded, tuple(segments)

    def _read_placeholder(self) -> StringSegment:
        """Read ``#{ ... }`` and return the raw expression source."""
        open_line = self.line
        open_col = self.column
        self.advance()  # '#'
        self.advance()  # '{'
        expr_line = self.line
        expr_col = self.column

        depth = 0
        inner_quote: str | None = None
        chars: list[str] = []
        while True:
            current = self.current_char()
            if current is None or current == "\n":
                raise make_parse_error(
                    "Unterminated interpolation placeholder",
                    self.file,
                    open_line,
                    open_col,
                )
            if inner_quote:
                if current == inner_quote:
                    inner_quote = None
                elif current == "\\":
                    chars.append(current)
                    self.advance()
                    current = self.current_char() or ""
            elif current in ('"', "'"):
                inner_quote = current
            elif current == "{":
                depth += 1
            elif current == "}":
                if depth == 0:
                    self.advance()
                    break
                depth -= 1
            chars.append(current)
            self.advance()

        source = "".join(chars)
        if not source.strip():
            raise make_parse_error(
                "Empty interpolation placeholder",
                self.file,
                open_line,
                open_col,
            )
        return StringSegment(source, is_expr=True, line=expr_line, column=expr_col)

    def read_number(self) -> str:
        """Read a number (integer or decimal)."""
        chars = []
        current = self.current_char()
        while current and current.isdigit():
            chars.append(current)
            self.advance()
            current = self.current_char()

        next_char = self.peek_char()
        if current == "." and next_char is not None and next_char.isdigit():
            chars.append(".")
            self.advance()
            current = self.current_char()
            while current and current.isdigit():
                chars.append(current)
                self.advance()
                current = self.current_char()

        return "".join(chars)

    def read_identifier(self) -> str:
        """Read an identifier or keyword."""
        chars = []
        current = self.current_char()
        while current and (current.isalnum() or current == "_"):
            chars.append(current)
            self.advance()
            current = self.current_char()
        # Ruby-style predicate/bang suffixes are part of the name
        if current in ("?", "!") and self.peek_char() != "=":
            chars.append(current)
            self.advance()
        return "".join(chars)

    def _emit(self, token_type: TokenType, value: str, line: int, column: int) -> None:
        self.tokens.append(Token(token_type, value, line, column))

    def _previous_type(self) -> TokenType | None:
        return self.tokens[-1].type if self.tokens else None

    def tokenize(self) -> list[Token]:
        """
        Tokenize the entire source text.

        Returns:
            List of tokens ending with EOF

        Raises:
            ParseError: If an invalid character or literal is encountered
        """
        while self.pos < len(self.text):
            self.skip_whitespace()

            ch = self.current_char()
            if ch is None:
                break

            token_line = self.line
            token_col = self.column

            # Comments
            if ch == "#":
                self.skip_comment()
                continue

            # Newlines (collapsed)
            elif ch == "\n":
                if self.tokens and self._previous_type() != TokenType.NEWLINE:
                    self._emit(TokenType.NEWLINE, "\\n", token_line, token_col)
                self.advance()

            # Strings
            elif ch in ('"', "'"):
                value, segments = self.read_string()
                self.tokens.append(
                    Token(TokenType.STRING, value, token_line, token_col, segments=segments)
                )

            # Numbers
            elif ch.isdigit():
                self._emit(TokenType.NUMBER, self.read_number(), token_line, token_col)

            # Identifiers and keywords
            elif ch.isalpha() or ch == "_":
                value = self.read_identifier()
                if value in KEYWORDS:
                    token_type = TokenType(value)
                else:
                    token_type = TokenType.IDENTIFIER
                self._emit(token_type, value, token_line, token_col)

            # Symbols (:name) versus the keyword-argument colon
            elif ch == ":":
                next_char = self.peek_char()
                is_symbol = (
                    next_char is not None
                    and (next_char.isalpha() or next_char == "_")
                    and self._previous_type() not in VALUE_ENDING_TOKENS
                )
                self.advance()
                if is_symbol:
                    self._emit(TokenType.SYMBOL, self.read_identifier(), token_line, token_col)
                else:
                    self._emit(TokenType.COLON, ":", token_line, token_col)

            elif ch == "=":
                if self.peek_char() == "=":
                    self.advance()
                    self.advance()
                    self._emit(TokenType.DOUBLE_EQUALS, "==", token_line, token_col)
                else:
                    self.advance()
                    self._emit(TokenType.EQUALS, "=", token_line, token_col)

            elif ch == "!":
                if self.peek_char() == "=":
                    self.advance()
                    self.advance()
                    self._emit(TokenType.NOT_EQUALS, "!=", token_line, token_col)
                else:
                    raise self.error(f"Unexpected character: {ch!r}", token_line, token_col)

            elif ch == ">":
                if self.peek_char() == "=":
                    self.advance()
                    self.advance()
                    self._emit(TokenType.GREATER_EQUAL, ">=", token_line, token_col)
                else:
                    self.advance()
                    self._emit(TokenType.GREATER_THAN, ">", token_line, token_col)

            elif ch == "<":
                if self.peek_char() == "=":
                    self.advance()
                    self.advance()
                    self._emit(TokenType.LESS_EQUAL, "<=", token_line, token_col)
                else:
                    self.advance()
                    self._emit(TokenType.LESS_THAN, "<", token_line, token_col)

            elif ch in SIMPLE_TOKENS:
                self.advance()
                self._emit(SIMPLE_TOKENS[ch], ch, token_line, token_col)

            else:
                raise self.error(f"Unexpected character: {ch!r}", token_line, token_col)

        self._emit(TokenType.EOF, "", self.line, self.column)

        return self.tokens


def tokenize(text: str, file: Path) -> list[Token]:
    """
    Convenience function to tokenize script text.

    Args:
        text: Source text
        file: Source file path

    Returns:
        List of tokens
    """
    lexer = Lexer(text, file)
    return lexer.tokenize()
