"""Tests for the Sprig lexer."""

from __future__ import annotations

from pathlib import Path

import pytest

from sprig.core.errors import ParseError
from sprig.core.lexer import TokenType, tokenize


def lex(text: str) -> list:
    return tokenize(text, Path("test.sprig"))


def types(text: str) -> list[TokenType]:
    return [t.type for t in lex(text)]


class TestTokens:
    """Basic token kinds."""

    def test_call_with_keyword_arguments(self) -> None:
        assert types('button(id: "b1", width: 40)') == [
            TokenType.IDENTIFIER,
            TokenType.LPAREN,
            TokenType.IDENTIFIER,
            TokenType.COLON,
            TokenType.STRING,
            TokenType.COMMA,
            TokenType.IDENTIFIER,
            TokenType.COLON,
            TokenType.NUMBER,
            TokenType.RPAREN,
            TokenType.EOF,
        ]

    def test_keywords(self) -> None:
        source = "def do end if elif else return true false nil and or not"
        assert types(source)[:-1] == [
            TokenType.DEF,
            TokenType.DO,
            TokenType.END,
            TokenType.IF,
            TokenType.ELIF,
            TokenType.ELSE,
            TokenType.RETURN,
            TokenType.TRUE,
            TokenType.FALSE,
            TokenType.NIL,
            TokenType.AND,
            TokenType.OR,
            TokenType.NOT,
        ]

    def test_numbers(self) -> None:
        tokens = lex("42 3.14")
        assert [(t.type, t.value) for t in tokens[:2]] == [
            (TokenType.NUMBER, "42"),
            (TokenType.NUMBER, "3.14"),
        ]

    def test_operators(self) -> None:
        assert types("== != <= >= < > + - * / % =")[:-1] == [
            TokenType.DOUBLE_EQUALS,
            TokenType.NOT_EQUALS,
            TokenType.LESS_EQUAL,
            TokenType.GREATER_EQUAL,
            TokenType.LESS_THAN,
            TokenType.GREATER_THAN,
            TokenType.PLUS,
            TokenType.MINUS,
            TokenType.STAR,
            TokenType.SLASH,
            TokenType.PERCENT,
            TokenType.EQUALS,
        ]

    def test_positions_are_one_indexed(self) -> None:
        tokens = lex('window(id: "w")\n  text(id: "t")')
        text_token = next(t for t in tokens if t.value == "text")
        assert (tokens[0].line, tokens[0].column) == (1, 1)
        assert (text_token.line, text_token.column) == (2, 3)

    def test_identifier_suffixes(self) -> None:
        tokens = lex("visible? save!")
        assert [t.value for t in tokens[:2]] == ["visible?", "save!"]


class TestSymbols:
    """Symbol literals versus keyword-argument colons."""

    def test_symbol_after_colon(self) -> None:
        tokens = lex("text(id: :title)")
        symbol = tokens[4]
        assert symbol.type == TokenType.SYMBOL
        assert symbol.value == "title"

    def test_symbol_in_list(self) -> None:
        assert types("[:a, :b]")[:-1] == [
            TokenType.LBRACKET,
            TokenType.SYMBOL,
            TokenType.COMMA,
            TokenType.SYMBOL,
            TokenType.RBRACKET,
        ]

    def test_map_key_colon_is_punctuation(self) -> None:
        assert types("{align: 1}")[:-1] == [
            TokenType.LBRACE,
            TokenType.IDENTIFIER,
            TokenType.COLON,
            TokenType.NUMBER,
            TokenType.RBRACE,
        ]


class TestStrings:
    """String literals, escapes and interpolation."""

    def test_escapes(self) -> None:
        token = lex(r'"a\nb\t\"c\" \\ \#{x}"')[0]
        assert token.value == 'a\nb\t"c" \\ #{x}'
        assert token.segments == ()

    def test_single_quotes_do_not_interpolate(self) -> None:
        token = lex("'#{name}'")[0]
        assert token.value == "#{name}"
        assert token.segments == ()

    def test_interpolation_segments(self) -> None:
        token = lex('"Hello #{name}!"')[0]
        assert [(s.text, s.is_expr) for s in token.segments] == [
            ("Hello ", False),
            ("name", True),
            ("!", False),
        ]

    def test_placeholder_position(self) -> None:
        token = lex('  "ab#{x}"')[0]
        expr = token.segments[1]
        assert (expr.line, expr.column) == (1, 8)

    def test_placeholder_with_nested_quotes_and_braces(self) -> None:
        token = lex("\"#{params['id']} #{ {a: 1}['a'] }\"")[0]
        exprs = [s.text for s in token.segments if s.is_expr]
        assert exprs == ["params['id']", " {a: 1}['a'] "]

    def test_unterminated_string(self) -> None:
        with pytest.raises(ParseError, match="Unterminated string"):
            lex('text(id: "oops)')

    def test_unterminated_placeholder(self) -> None:
        with pytest.raises(ParseError, match="Unterminated interpolation"):
            lex('"#{name"')

    def test_empty_placeholder(self) -> None:
        with pytest.raises(ParseError, match="Empty interpolation"):
            lex('"#{ }"')


class TestLayout:
    """Comments and newlines."""

    def test_comments_are_discarded(self) -> None:
        tokens = lex("# heading\nwindow # trailing\n")
        assert [t.type for t in tokens] == [
            TokenType.IDENTIFIER,
            TokenType.NEWLINE,
            TokenType.EOF,
        ]

    def test_blank_lines_collapse(self) -> None:
        assert types("a\n\n\n\nb") == [
            TokenType.IDENTIFIER,
            TokenType.NEWLINE,
            TokenType.IDENTIFIER,
            TokenType.EOF,
        ]

    def test_unexpected_character(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            lex("window(id: \"w\") @")
        assert exc_info.value.context is not None
        assert exc_info.value.context.column == 17
        assert "Unexpected character" in exc_info.value.message
