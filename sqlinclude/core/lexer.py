"""SQL lexer that separates named parameters from textual noise.

Statement text is cut into typed tokens so that later stages never mistake a
colon inside a comment, a string literal, a quoted identifier or a ``::``
cast for a named parameter. Concatenating the values of all tokens always
reproduces the input text exactly.
"""

import re
from collections.abc import Generator, Iterable
from enum import Enum
from typing import Final

from mypy_extensions import mypyc_attr

from sqlinclude.exceptions import LexError

__all__ = ("Token", "TokenType", "render_tokens", "tokenize")

TOKEN_SLOTS = ("type", "value", "line", "column", "position")

QUOTE_CHARS: Final = frozenset("'\"`")

_SPECIAL_START: Final = re.compile(r"--|/\*|['\"`]|:")
_LINE_COMMENT: Final = re.compile(r"--[^\n]*")
_PARAMETER: Final = re.compile(r":([^\W\d]\w*)")
_QUOTED: Final[dict[str, "re.Pattern[str]"]] = {q: re.compile(f"{q}(?:[^{q}]|{q}{q})*{q}(?!{q})") for q in QUOTE_CHARS}


class TokenType(Enum):
    """Types of spans recognized by the lexer."""

    PLAIN_TEXT = "PLAIN_TEXT"
    COMMENT_LINE = "COMMENT_LINE"
    COMMENT_BLOCK = "COMMENT_BLOCK"
    STRING_LITERAL = "STRING_LITERAL"
    PARAMETER = "PARAMETER"


@mypyc_attr(allow_interpreted_subclasses=True)
class Token:
    """A typed span of statement text."""

    __slots__ = TOKEN_SLOTS

    def __init__(self, type: TokenType, value: str, line: int, column: int, position: int) -> None:
        self.type = type
        self.value = value
        self.line = line
        self.column = column
        self.position = position

    @property
    def name(self) -> str:
        """Parameter name without the leading colon (parameter tokens only)."""
        if self.type is not TokenType.PARAMETER:
            msg = f"{self.type.value} token has no parameter name"
            raise ValueError(msg)
        return self.value[1:]

    @property
    def end(self) -> int:
        return self.position + len(self.value)

    @property
    def is_comment(self) -> bool:
        return self.type in {TokenType.COMMENT_LINE, TokenType.COMMENT_BLOCK}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Token):
            return NotImplemented
        return (self.type, self.value, self.position) == (other.type, other.value, other.position)

    def __hash__(self) -> int:
        return hash((self.type, self.value, self.position))

    def __repr__(self) -> str:
        return f"Token({self.type.value}, {self.value!r}, {self.line}:{self.column})"


class _Cursor:
    """Tracks line and column while the scanner moves forward."""

    __slots__ = ("line", "line_start", "offset", "sql")

    def __init__(self, sql: str, line: int) -> None:
        self.sql = sql
        self.line = line
        self.line_start = 0
        self.offset = 0

    def location(self, position: int) -> "tuple[int, int]":
        newlines = self.sql.count("\n", self.offset, position)
        if newlines:
            self.line += newlines
            self.line_start = self.sql.rfind("\n", self.offset, position) + 1
        self.offset = position
        return self.line, position - self.line_start + 1

    def make(self, token_type: TokenType, start: int, end: int) -> Token:
        line, column = self.location(start)
        return Token(token_type, self.sql[start:end], line, column, start)

    def error(self, message: str, position: int) -> LexError:
        line, column = self.location(position)
        return LexError(message, position, line, column)


def tokenize(sql: str, start_line: int = 1) -> Generator[Token, None, None]:
    """Split ``sql`` into typed tokens.

    Args:
        sql: Statement text.
        start_line: Line number of the first character, for diagnostics.

    Yields:
        Tokens in textual order.

    Raises:
        LexError: On an unterminated string literal or block comment.
    """
    cursor = _Cursor(sql, start_line)
    length = len(sql)
    plain_start = 0
    pos = 0

    while pos < length:
        match = _SPECIAL_START.search(sql, pos)
        if match is None:
            break
        start = match.start()
        marker = match.group(0)

        if marker == "--":
            end = _LINE_COMMENT.match(sql, start).end()  # type: ignore[union-attr]
            token_type = TokenType.COMMENT_LINE
        elif marker == "/*":
            closer = sql.find("*/", start + 2)
            if closer == -1:
                raise cursor.error("Unterminated block comment", start)
            end = closer + 2
            token_type = TokenType.COMMENT_BLOCK
        elif marker in QUOTE_CHARS:
            quoted = _QUOTED[marker].match(sql, start)
            if quoted is None:
                raise cursor.error("Unterminated string literal", start)
            end = quoted.end()
            token_type = TokenType.STRING_LITERAL
        else:
            parameter = _PARAMETER.match(sql, start)
            if parameter is None or (start > 0 and sql[start - 1] == ":"):
                # a lone colon or one half of a ``::`` cast
                pos = start + 1
                continue
            end = parameter.end()
            token_type = TokenType.PARAMETER

        if plain_start < start:
            yield cursor.make(TokenType.PLAIN_TEXT, plain_start, start)
        yield cursor.make(token_type, start, end)
        plain_start = pos = end

    if plain_start < length:
        yield cursor.make(TokenType.PLAIN_TEXT, plain_start, length)


def render_tokens(tokens: Iterable[Token]) -> str:
    """Concatenate token values back into statement text."""
    return "".join(token.value for token in tokens)
