"""
Tokenizer for the MCN-16 compiler.

The token classes mirror the editor grammar in ``mcnls.language.grammar``;
``;`` and newlines are plain whitespace, ``#`` starts a line comment and
``elseif`` is accepted as a spelling of ``elif``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto

from mcnls.compiler.errors import CompileError, CompileErrors, ErrorKind
from mcnls.compiler.nodes import Comparison, Operator, to_i16
from mcnls.compiler.span import Span


class TokenType(Enum):
    INLINE = auto()
    IF = auto()
    ELIF = auto()
    ELSE = auto()
    END = auto()
    PASS = auto()
    USE = auto()
    VAR = auto()
    FOREVER = auto()
    WHILE = auto()
    DEBUG = auto()
    IDENTIFIER = auto()
    NUMBER = auto()
    EQUALS = auto()
    BINARY_OPERATOR = auto()
    ASSIGN_OPERATOR = auto()
    COMPARISON = auto()
    OPEN_PAREN = auto()
    OPEN_CALL_PAREN = auto()
    CLOSE_PAREN = auto()
    DOT = auto()
    COMMA = auto()
    EOF = auto()


KEYWORDS: dict[str, TokenType] = {
    "inline": TokenType.INLINE,
    "if": TokenType.IF,
    "elif": TokenType.ELIF,
    "elseif": TokenType.ELIF,
    "else": TokenType.ELSE,
    "end": TokenType.END,
    "pass": TokenType.PASS,
    "use": TokenType.USE,
    "var": TokenType.VAR,
    "forever": TokenType.FOREVER,
    "while": TokenType.WHILE,
    "debug": TokenType.DEBUG,
}


@dataclass(frozen=True)
class Token:
    type: TokenType
    span: Span
    value: str | int | Operator | Comparison | None = None


_TOKEN_RE = re.compile(
    r"""
    (?P<newline>\n)
    |(?P<skip>[ \t\r;]+)
    |(?P<comment>\#[^\n]*)
    |(?P<hex>0x[0-9a-f]+)
    |(?P<binary>0b[01]+)
    |(?P<decimal>\d+)
    |(?P<name>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<assign_op>[+\-*&|^]=)
    |(?P<comparison>==|!=|<=|>=|<|>)
    |(?P<equals>=)
    |(?P<operator>[+\-*&|^])
    |(?P<open_paren>\()
    |(?P<close_paren>\))
    |(?P<dot>\.)
    |(?P<comma>,)
    """,
    re.VERBOSE,
)

_MAX_NUMBER = 0xFFFF


def tokenize(source: str) -> list[Token]:
    """
    Split ``source`` into tokens terminated by a single EOF token.

    Raises:
        CompileErrors: with one error per unexpected character or
            out-of-range number, after the whole source was scanned.
    """
    tokens: list[Token] = []
    errors: list[CompileError] = []
    line = 0
    line_start = 0
    pos = 0

    while pos < len(source):
        column = pos - line_start
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            errors.append(
                CompileError(
                    ErrorKind.UNEXPECTED_CHARACTER,
                    Span.at(line, column, 1),
                    source[pos],
                )
            )
            pos += 1
            continue

        kind = match.lastgroup
        text = match.group()
        span = Span.at(line, column, len(text))
        pos = match.end()

        if kind == "newline":
            line += 1
            line_start = pos
        elif kind in ("skip", "comment"):
            continue
        elif kind in ("hex", "binary", "decimal"):
            value = _parse_number(kind, text)
            if value > _MAX_NUMBER:
                errors.append(CompileError(ErrorKind.NUMBER_OUT_OF_RANGE, span, text))
                continue
            tokens.append(Token(TokenType.NUMBER, span, to_i16(value)))
        elif kind == "name":
            tokens.append(Token(KEYWORDS.get(text, TokenType.IDENTIFIER), span, text))
        elif kind == "assign_op":
            tokens.append(Token(TokenType.ASSIGN_OPERATOR, span, Operator(text[0])))
        elif kind == "comparison":
            tokens.append(Token(TokenType.COMPARISON, span, Comparison(text)))
        elif kind == "equals":
            tokens.append(Token(TokenType.EQUALS, span))
        elif kind == "operator":
            tokens.append(Token(TokenType.BINARY_OPERATOR, span, Operator(text)))
        elif kind == "open_paren":
            tokens.append(Token(_open_paren_type(tokens, span), span))
        elif kind == "close_paren":
            tokens.append(Token(TokenType.CLOSE_PAREN, span))
        elif kind == "dot":
            tokens.append(Token(TokenType.DOT, span))
        else:
            tokens.append(Token(TokenType.COMMA, span))

    if errors:
        raise CompileErrors(errors)

    tokens.append(Token(TokenType.EOF, Span.at(line, len(source) - line_start)))
    return tokens


def _parse_number(kind: str, text: str) -> int:
    if kind == "hex":
        return int(text[2:], 16)
    if kind == "binary":
        return int(text[2:], 2)
    return int(text)


def _open_paren_type(tokens: list[Token], span: Span) -> TokenType:
    # a paren glued to an identifier opens an argument list
    if tokens and tokens[-1].type is TokenType.IDENTIFIER and tokens[-1].span.end == span.start:
        return TokenType.OPEN_CALL_PAREN
    return TokenType.OPEN_PAREN
