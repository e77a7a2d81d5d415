"""
Recursive descent parser for Sprig scripts.

Grammar (statements are separated by newlines or ``;``):
    script      → statement*
    statement   → def | if | return | assignment | expr
    def         → "def" IDENT "(" (IDENT ("," IDENT)*)? ")" body "end"
    if          → "if" expr body ("elif" expr body)* ("else" body)? "end"
    return      → "return" expr?
    assignment  → IDENT "=" expr
    expr        → or_expr
    or_expr     → and_expr ("or" and_expr)*
    and_expr    → not_expr ("and" not_expr)*
    not_expr    → "not" not_expr | comparison
    comparison  → addition (comp_op addition)?
    addition    → multiply (("+"|"-") multiply)*
    multiply    → unary (("*"|"/"|"%") unary)*
    unary       → "-" unary | postfix
    postfix     → primary ("[" expr "]" | "." IDENT)*
    primary     → NUMBER | STRING | SYMBOL | "true" | "false" | "nil"
                | call | IDENT | list | map | "(" expr ")"
    call        → IDENT "(" arguments? ")" block?
    arguments   → argument ("," argument)*
    argument    → IDENT ":" expr | expr
    block       → "do" statement* "end" | "{" statement* "}"
    list        → "[" (expr ("," expr)*)? "]"
    map         → "{" ((IDENT | STRING) ":" expr ("," ...)*)? "}"

A ``{`` directly after a call's closing parenthesis, on the same line, opens a
block; anywhere else it opens a map literal. The parser performs no semantic
validation: unknown widget kinds and missing properties are left to the
evaluator.
"""

from __future__ import annotations

from pathlib import Path

from .ast_nodes import (
    AttributeExpr,
    BinaryExpr,
    BinaryOp,
    Call,
    Expr,
    FunctionDef,
    IfStatement,
    IndexExpr,
    Keyword,
    ListExpr,
    Literal,
    MapExpr,
    Name,
    Assignment,
    Return,
    Script,
    Statement,
    StringTemplate,
    Symbol,
    UnaryExpr,
    UnaryOp,
)
from .errors import ParseError, extract_snippet, make_parse_error
from .ir.location import SourceLocation
from .lexer import Lexer, Token, TokenType, tokenize

_COMPARISON_OPS = {
    TokenType.DOUBLE_EQUALS: BinaryOp.EQ,
    TokenType.NOT_EQUALS: BinaryOp.NE,
    TokenType.LESS_THAN: BinaryOp.LT,
    TokenType.GREATER_THAN: BinaryOp.GT,
    TokenType.LESS_EQUAL: BinaryOp.LE,
    TokenType.GREATER_EQUAL: BinaryOp.GE,
}

_ADDITIVE_OPS = {TokenType.PLUS: BinaryOp.ADD, TokenType.MINUS: BinaryOp.SUB}

_MULTIPLICATIVE_OPS = {
    TokenType.STAR: BinaryOp.MUL,
    TokenType.SLASH: BinaryOp.DIV,
    TokenType.PERCENT: BinaryOp.MOD,
}

# Expressions, blocks and literals count towards one nesting limit
MAX_NESTING_DEPTH = 48

_SEPARATORS = (TokenType.NEWLINE, TokenType.SEMICOLON)

# Tokens that close some enclosing construct
_CLOSERS = (
    TokenType.END,
    TokenType.RBRACE,
    TokenType.ELSE,
    TokenType.ELIF,
    TokenType.EOF,
)


def _describe(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "end of file"
    if token.type == TokenType.NEWLINE:
        return "end of line"
    if token.type == TokenType.STRING:
        return f"string {token.value!r}"
    return f"'{token.value}'"


class BaseParser:
    """
    Base parser class with token manipulation utilities.

    This class provides the foundation for recursive descent parsing,
    including token navigation, matching, and error generation.
    """

    def __init__(self, tokens: list[Token], file: Path, text: str | None = None):
        """
        Initialize parser.

        Args:
            tokens: List of tokens from lexer
            file: Source file path (for error reporting)
            text: Source text (for error snippets)
        """
        self.tokens = tokens
        self.file = file
        self.text = text
        self.pos = 0

    def current_token(self) -> Token:
        """Get current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # Return EOF
        return self.tokens[self.pos]

    def peek_token(self, offset: int = 1) -> Token:
        """Peek ahead at token."""
        pos = self.pos + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]  # Return EOF
        return self.tokens[pos]

    def advance(self) -> Token:
        """Consume and return current token."""
        token = self.current_token()
        if token.type != TokenType.EOF:
            self.pos += 1
        return token

    def match(self, *token_types: TokenType) -> bool:
        """Check if current token matches any of the given types."""
        return self.current_token().type in token_types

    def error(self, message: str, token: Token | None = None) -> ParseError:
        token = token or self.current_token()
        return make_parse_error(
            message,
            self.file,
            token.line,
            token.column,
            snippet=extract_snippet(self.text, token.line),
        )

    def expect(self, token_type: TokenType, context: str | None = None) -> Token:
        """
        Expect a specific token type and consume it.

        Raises:
            ParseError: If token doesn't match
        """
        token = self.current_token()
        if token.type != token_type:
            where = f" {context}" if context else ""
            raise self.error(f"Expected '{token_type.value}'{where}, got {_describe(token)}")
        return self.advance()

    def skip_newlines(self) -> None:
        """Skip any NEWLINE tokens."""
        while self.match(TokenType.NEWLINE):
            self.advance()

    def skip_separators(self) -> None:
        """Skip NEWLINE and ';' tokens between statements."""
        while self.match(*_SEPARATORS):
            self.advance()

    def location(self, token: Token) -> SourceLocation:
        return SourceLocation(file=str(self.file), line=token.line, column=token.column)


class ScriptParser(BaseParser):
    """Parser producing a :class:`Script` AST from tokens."""

    def __init__(self, tokens: list[Token], file: Path, text: str | None = None, depth: int = 0):
        super().__init__(tokens, file, text)
        self.depth = depth

    def parse(self) -> Script:
        """
        Parse the entire token stream.

        Returns:
            Script with all top-level statements

        Raises:
            ParseError: On any syntax error, including unmatched terminators
        """
        first = self.current_token()
        statements = self.parse_statements(stop=(TokenType.EOF,), opener=None)
        return Script(statements=statements, location=self.location(first))

    # -- Statements --

    def parse_statements(
        self, stop: tuple[TokenType, ...], opener: Token | None
    ) -> list[Statement]:
        """
        Parse statements until one of ``stop`` is the current token.

        ``opener`` is the token that opened the enclosing block and is used to
        report a mismatched or missing terminator.
        """
        statements: list[Statement] = []
        while True:
            self.skip_separators()
            token = self.current_token()
            if token.type in stop:
                return statements
            if token.type in _CLOSERS:
                raise self._terminator_error(token, stop, opener)

            statements.append(self.parse_statement())

            if not self.match(*_SEPARATORS) and not self.match(*_CLOSERS):
                raise self.error(f"Unexpected {_describe(self.current_token())} after statement")

    def _terminator_error(
        self, token: Token, stop: tuple[TokenType, ...], opener: Token | None
    ) -> ParseError:
        if opener is None:
            return self.error(f"Unmatched {_describe(token)}: no open block to close", token)
        expected = " or ".join(f"'{t.value}'" for t in stop if t != TokenType.EOF)
        opened_at = f"'{opener.value}' opened at {opener.line}:{opener.column}"
        if token.type == TokenType.EOF:
            return self.error(f"Unterminated block: {opened_at} expects {expected}", token)
        return self.error(
            f"Mismatched block terminator {_describe(token)}: {opened_at} expects {expected}",
            token,
        )

    def parse_statement(self) -> Statement:
        token = self.current_token()

        if token.type == TokenType.DEF:
            return self.parse_def()
        if token.type == TokenType.IF:
            return self.parse_if()
        if token.type == TokenType.RETURN:
            return self.parse_return()
        if token.type == TokenType.IDENTIFIER and self.peek_token().type == TokenType.EQUALS:
            return self.parse_assignment()

        return self.parse_expression()

    def parse_def(self) -> FunctionDef:
        def_token = self.expect(TokenType.DEF)
        name = self.expect(TokenType.IDENTIFIER, "after 'def'").value

        params: list[str] = []
        self.expect(TokenType.LPAREN, f"after function name '{name}'")
        self.skip_newlines()
        while not self.match(TokenType.RPAREN):
            param = self.expect(TokenType.IDENTIFIER, "in parameter list")
            if param.value in params:
                raise self.error(f"Duplicate parameter '{param.value}' in '{name}'", param)
            params.append(param.value)
            self.skip_newlines()
            if not self.match(TokenType.RPAREN):
                self.expect(TokenType.COMMA, "between parameters")
                self.skip_newlines()
        self.expect(TokenType.RPAREN)

        body = self.parse_statements(stop=(TokenType.END,), opener=def_token)
        self.expect(TokenType.END)
        return FunctionDef(name=name, params=params, body=body, location=self.location(def_token))

    def parse_if(self) -> IfStatement:
        if_token = self.expect(TokenType.IF)
        branches: list[tuple[Expr, list[Statement]]] = []
        else_body: list[Statement] | None = None

        condition = self.parse_expression()
        body = self.parse_statements(
            stop=(TokenType.ELIF, TokenType.ELSE, TokenType.END), opener=if_token
        )
        branches.append((condition, body))

        while self.match(TokenType.ELIF):
            elif_token = self.advance()
            condition = self.parse_expression()
            body = self.parse_statements(
                stop=(TokenType.ELIF, TokenType.ELSE, TokenType.END), opener=elif_token
            )
            branches.append((condition, body))

        if self.match(TokenType.ELSE):
            else_token = self.advance()
            else_body = self.parse_statements(stop=(TokenType.END,), opener=else_token)

        self.expect(TokenType.END)
        return IfStatement(branches=branches, else_body=else_body, location=self.location(if_token))

    def parse_return(self) -> Return:
        token = self.expect(TokenType.RETURN)
        if self.match(*_SEPARATORS) or self.match(*_CLOSERS):
            return Return(location=self.location(token))
        return Return(value=self.parse_expression(), location=self.location(token))

    def parse_assignment(self) -> Assignment:
        name_token = self.expect(TokenType.IDENTIFIER)
        self.expect(TokenType.EQUALS)
        value = self.parse_expression()
        return Assignment(name=name_token.value, value=value, location=self.location(name_token))

    # -- Expressions --

    def parse_expression(self) -> Expr:
        if self.depth >= MAX_NESTING_DEPTH:
            raise self.error(f"Expression nested too deeply (more than {MAX_NESTING_DEPTH} levels)")
        self.depth += 1
        try:
            return self.parse_or()
        finally:
            self.depth -= 1

    def parse_or(self) -> Expr:
        left = self.parse_and()
        while self.match(TokenType.OR):
            op_token = self.advance()
            right = self.parse_and()
            left = BinaryExpr(op=BinaryOp.OR, left=left, right=right, location=self.location(op_token))
        return left

    def parse_and(self) -> Expr:
        left = self.parse_not()
        while self.match(TokenType.AND):
            op_token = self.advance()
            right = self.parse_not()
            left = BinaryExpr(op=BinaryOp.AND, left=left, right=right, location=self.location(op_token))
        return left

    def parse_not(self) -> Expr:
        if self.match(TokenType.NOT):
            op_token = self.advance()
            operand = self.parse_not()
            return UnaryExpr(op=UnaryOp.NOT, operand=operand, location=self.location(op_token))
        return self.parse_comparison()

    def parse_comparison(self) -> Expr:
        left = self.parse_additive()
        token = self.current_token()
        if token.type in _COMPARISON_OPS:
            self.advance()
            right = self.parse_additive()
            return BinaryExpr(
                op=_COMPARISON_OPS[token.type], left=left, right=right, location=self.location(token)
            )
        return left

    def parse_additive(self) -> Expr:
        left = self.parse_multiplicative()
        while self.current_token().type in _ADDITIVE_OPS:
            token = self.advance()
            right = self.parse_multiplicative()
            left = BinaryExpr(
                op=_ADDITIVE_OPS[token.type], left=left, right=right, location=self.location(token)
            )
        return left

    def parse_multiplicative(self) -> Expr:
        left = self.parse_unary()
        while self.current_token().type in _MULTIPLICATIVE_OPS:
            token = self.advance()
            right = self.parse_unary()
            left = BinaryExpr(
                op=_MULTIPLICATIVE_OPS[token.type], left=left, right=right, location=self.location(token)
            )
        return left

    def parse_unary(self) -> Expr:
        if self.match(TokenType.MINUS):
            token = self.advance()
            operand = self.parse_unary()
            return UnaryExpr(op=UnaryOp.NEG, operand=operand, location=self.location(token))
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        expr = self.parse_primary()
        while True:
            if self.match(TokenType.LBRACKET):
                token = self.advance()
                self.skip_newlines()
                index = self.parse_expression()
                self.skip_newlines()
                self.expect(TokenType.RBRACKET, "to close index")
                expr = IndexExpr(target=expr, index=index, location=self.location(token))
            elif self.match(TokenType.DOT):
                token = self.advance()
                attribute = self.expect(TokenType.IDENTIFIER, "after '.'")
                expr = AttributeExpr(target=expr, attribute=attribute.value, location=self.location(token))
            else:
                return expr

    def parse_primary(self) -> Expr:
        token = self.current_token()
        loc = self.location(token)

        if token.type == TokenType.NUMBER:
            self.advance()
            value: int | float = float(token.value) if "." in token.value else int(token.value)
            return Literal(value=value, location=loc)

        if token.type == TokenType.STRING:
            self.advance()
            if token.segments:
                return self.parse_template(token)
            return Literal(value=token.value, location=loc)

        if token.type == TokenType.SYMBOL:
            self.advance()
            return Symbol(symbol=token.value, location=loc)

        if token.type in (TokenType.TRUE, TokenType.FALSE):
            self.advance()
            return Literal(value=token.type == TokenType.TRUE, location=loc)

        if token.type == TokenType.NIL:
            self.advance()
            return Literal(value=None, location=loc)

        if token.type == TokenType.IDENTIFIER:
            if self.peek_token().type == TokenType.LPAREN:
                return self.parse_call()
            self.advance()
            return Name(name=token.value, location=loc)

        if token.type == TokenType.LBRACKET:
            return self.parse_list()

        if token.type == TokenType.LBRACE:
            return self.parse_map()

        if token.type == TokenType.LPAREN:
            self.advance()
            self.skip_newlines()
            expr = self.parse_expression()
            self.skip_newlines()
            self.expect(TokenType.RPAREN, "to close parenthesised expression")
            return expr

        raise self.error(f"Unexpected {_describe(token)}: expected an expression", token)

    def parse_call(self) -> Call:
        name_token = self.expect(TokenType.IDENTIFIER)
        self.expect(TokenType.LPAREN)

        args: list[Expr] = []
        kwargs: list[Keyword] = []
        seen: set[str] = set()

        self.skip_newlines()
        while not self.match(TokenType.RPAREN):
            token = self.current_token()
            if token.type == TokenType.IDENTIFIER and self.peek_token().type == TokenType.COLON:
                self.advance()
                self.advance()
                self.skip_newlines()
                if token.value in seen:
                    raise self.error(
                        f"Duplicate keyword argument '{token.value}' in call to '{name_token.value}'",
                        token,
                    )
                seen.add(token.value)
                kwargs.append(
                    Keyword(name=token.value, value=self.parse_expression(), location=self.location(token))
                )
            else:
                if kwargs:
                    raise self.error(
                        f"Positional argument after keyword arguments in call to '{name_token.value}'",
                        token,
                    )
                args.append(self.parse_expression())

            self.skip_newlines()
            if not self.match(TokenType.RPAREN):
                self.expect(TokenType.COMMA, f"between arguments to '{name_token.value}'")
                self.skip_newlines()

        close = self.expect(TokenType.RPAREN)

        block: list[Statement] | None = None
        block_style = None
        if self.match(TokenType.DO):
            opener = self.advance()
            block = self.parse_statements(stop=(TokenType.END,), opener=opener)
            self.expect(TokenType.END)
            block_style = "do"
        elif self.match(TokenType.LBRACE) and self.current_token().line == close.line:
            opener = self.advance()
            block = self.parse_statements(stop=(TokenType.RBRACE,), opener=opener)
            self.expect(TokenType.RBRACE)
            block_style = "brace"

        return Call(
            name=name_token.value,
            args=args,
            kwargs=kwargs,
            block=block,
            block_style=block_style,
            location=self.location(name_token),
        )

    def parse_list(self) -> ListExpr:
        open_token = self.expect(TokenType.LBRACKET)
        items: list[Expr] = []
        self.skip_newlines()
        while not self.match(TokenType.RBRACKET):
            items.append(self.parse_expression())
            self.skip_newlines()
            if not self.match(TokenType.RBRACKET):
                self.expect(TokenType.COMMA, "between list items")
                self.skip_newlines()
        self.expect(TokenType.RBRACKET)
        return ListExpr(items=items, location=self.location(open_token))

    def parse_map(self) -> MapExpr:
        open_token = self.expect(TokenType.LBRACE)
        entries: list[tuple[str, Expr]] = []
        keys: set[str] = set()
        self.skip_newlines()
        while not self.match(TokenType.RBRACE):
            key_token = self.current_token()
            if key_token.type == TokenType.STRING and key_token.segments:
                raise self.error("Map keys cannot be interpolated strings", key_token)
            if key_token.type not in (TokenType.IDENTIFIER, TokenType.STRING):
                raise self.error(f"Expected map key, got {_describe(key_token)}", key_token)
            self.advance()
            self.expect(TokenType.COLON, f"after map key '{key_token.value}'")
            self.skip_newlines()
            if key_token.value in keys:
                raise self.error(f"Duplicate map key '{key_token.value}'", key_token)
            keys.add(key_token.value)
            entries.append((key_token.value, self.parse_expression()))
            self.skip_newlines()
            if not self.match(TokenType.RBRACE):
                self.expect(TokenType.COMMA, "between map entries")
                self.skip_newlines()
        self.expect(TokenType.RBRACE)
        return MapExpr(entries=entries, location=self.location(open_token))

    def parse_template(self, token: Token) -> StringTemplate:
        """Parse the ``#{...}`` placeholders of an interpolated string token."""
        parts: list[Expr] = []
        for segment in token.segments:
            if not segment.is_expr:
                parts.append(
                    Literal(value=segment.text, location=self.location(token))
                )
                continue
            sub_tokens = Lexer(segment.text, self.file, segment.line, segment.column).tokenize()
            sub_parser = ScriptParser(sub_tokens, self.file, self.text, depth=self.depth)
            sub_parser.skip_newlines()
            expr = sub_parser.parse_expression()
            sub_parser.skip_newlines()
            if not sub_parser.match(TokenType.EOF):
                raise sub_parser.error(
                    f"Unexpected {_describe(sub_parser.current_token())} in interpolation"
                )
            parts.append(expr)
        return StringTemplate(parts=parts, location=self.location(token))


def parse_script(text: str, file: Path | str = Path("<script>")) -> Script:
    """
    Parse script text into an AST.

    Args:
        text: Complete script source
        file: Source path used in error messages and node locations

    Returns:
        Parsed Script

    Raises:
        ParseError: If the text is not a valid script
    """
    path = Path(file)
    tokens = tokenize(text, path)
    try:
        return ScriptParser(tokens, path, text).parse()
    except RecursionError:
        raise ParseError(f"{path}: script is nested too deeply to parse") from None
