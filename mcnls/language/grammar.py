"""
Lexical grammar of the MCN-16 language for editor tooling.

This is the table the editor's highlighter and indenter consume. It is
exported verbatim by ``mcnls grammar`` so the tokens, operators and
indentation rules here must stay in sync with what the editor registers.
The same rules drive ``highlight()`` and the indentation helpers so the
table can be exercised without an editor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum

LANGUAGE_ID = "mcn-16"
TOKEN_POSTFIX = f".{LANGUAGE_ID}"
DEFAULT_TOKEN = "invalid"
LINE_COMMENT = "#"

KEYWORDS: tuple[str, ...] = (
    "inline",
    "if",
    "elif",
    "elseif",
    "else",
    "forever",
    "while",
    "end",
    "pass",
    "use",
    "var",
    "debug",
)

OPERATORS: tuple[str, ...] = (
    "+",
    "-",
    "*",
    "&",
    "|",
    "^",
    "+=",
    "-=",
    "*=",
    "&=",
    "|=",
    "^=",
    "=",
    "==",
    "!=",
    "<",
    ">",
    "<=",
    ">=",
)

BRACKETS: tuple[tuple[str, str], ...] = (("(", ")"),)
AUTO_CLOSING_PAIRS: tuple[tuple[str, str], ...] = (("(", ")"),)
SURROUNDING_PAIRS: tuple[tuple[str, str], ...] = (
    ("(", ")"),
    ("forever", "end"),
    ("while", "end"),
    ("if", "end"),
    ("if", "else"),
    ("if", "elif"),
    ("if", "elseif"),
    ("elif", "end"),
    ("elseif", "end"),
    ("else", "end"),
)

SYMBOLS_PATTERN = r"[+\-*&|^]=?|!=|[=<>]=?"
IDENTIFIER_PATTERN = r"[A-Za-z_][A-Za-z0-9_]*"
WHITESPACE_PATTERN = r"[ \t\r\n;]+"
COMMENT_PATTERN = r"#[^\n]*"
HEX_PATTERN = r"0x[0-9a-f]+"
BINARY_PATTERN = r"0b[01]+"
DECIMAL_PATTERN = r"\d+"

INCREASE_INDENT_PATTERN = r"^\s*(forever|else|(if|elif|elseif|while).*)\s*$"
DECREASE_INDENT_PATTERN = r"^\s*(end)\s*$"
ON_ENTER_INDENT_PATTERN = r"^\s*(forever|else|(if|elif|elseif|while).*)$"
ON_ENTER_OUTDENT_PATTERN = r"^\s*(end)$"


class IndentAction(IntEnum):
    """Values match the editor's ``languages.IndentAction`` enum."""

    NONE = 0
    INDENT = 1
    INDENT_OUTDENT = 2
    OUTDENT = 3


# (pattern, token kind) in the order the editor tries them; None is skipped
_RULES: tuple[tuple[re.Pattern[str], str | None], ...] = (
    (re.compile(HEX_PATTERN), "number.hex"),
    (re.compile(BINARY_PATTERN), "number.binary"),
    (re.compile(DECIMAL_PATTERN), "number"),
    (re.compile(WHITESPACE_PATTERN), None),
    (re.compile(COMMENT_PATTERN), "comment"),
    (re.compile(r"[()]"), "delimiter.parenthesis"),
    (re.compile(r"[,.]"), "punctuation.separator"),
    (re.compile(SYMBOLS_PATTERN), "operator"),
    (re.compile(IDENTIFIER_PATTERN), "identifier"),
)

_KEYWORD_SET = frozenset(KEYWORDS)
_INCREASE_INDENT_RE = re.compile(INCREASE_INDENT_PATTERN)
_DECREASE_INDENT_RE = re.compile(DECREASE_INDENT_PATTERN)
_ON_ENTER_RULES: tuple[tuple[re.Pattern[str], IndentAction], ...] = (
    (re.compile(ON_ENTER_INDENT_PATTERN), IndentAction.INDENT),
    (re.compile(ON_ENTER_OUTDENT_PATTERN), IndentAction.OUTDENT),
)


@dataclass(frozen=True)
class HighlightToken:
    kind: str
    text: str
    line: int
    column: int

    @property
    def scope(self) -> str:
        return f"{self.kind}{TOKEN_POSTFIX}"


def highlight(text: str) -> list[HighlightToken]:
    """
    Tokenize ``text`` the way the editor's highlighter does.

    Whitespace (including ``;``) produces no tokens. Characters no rule
    accepts become single-character ``invalid`` tokens.
    """
    tokens: list[HighlightToken] = []
    line = 0
    line_start = 0
    pos = 0

    while pos < len(text):
        kind: str | None = DEFAULT_TOKEN
        end = pos + 1
        for pattern, rule_kind in _RULES:
            match = pattern.match(text, pos)
            if match:
                kind, end = rule_kind, match.end()
                break

        lexeme = text[pos:end]
        if kind == "identifier" and lexeme in _KEYWORD_SET:
            kind = "keyword"
        if kind is not None:
            tokens.append(HighlightToken(kind, lexeme, line, pos - line_start))

        newlines = lexeme.count("\n")
        if newlines:
            line += newlines
            line_start = pos + lexeme.rindex("\n") + 1
        pos = end

    return tokens


def should_increase_indent(line: str) -> bool:
    return _INCREASE_INDENT_RE.match(line) is not None


def should_decrease_indent(line: str) -> bool:
    return _DECREASE_INDENT_RE.match(line) is not None


def on_enter_action(before_text: str) -> IndentAction:
    """Indent action the editor applies when Enter is pressed after ``before_text``."""
    for pattern, action in _ON_ENTER_RULES:
        if pattern.match(before_text):
            return action
    return IndentAction.NONE


def monarch_definition() -> dict:
    """The highlighter table in the editor's Monarch format."""
    return {
        "brackets": [
            {"open": open_, "close": close, "token": "delimiter.parenthesis"}
            for open_, close in BRACKETS
        ],
        "defaultToken": DEFAULT_TOKEN,
        "ignoreCase": False,
        "tokenPostfix": TOKEN_POSTFIX,
        "keywords": list(KEYWORDS),
        "operators": list(OPERATORS),
        "symbols": SYMBOLS_PATTERN,
        "tokenizer": {
            "root": [
                {"include": "@numbers"},
                {"include": "@whitespace"},
                [r"[()]", "@brackets"],
                [r"[,.]", "punctuation.separator"],
                ["@symbols", "operator"],
                [
                    IDENTIFIER_PATTERN,
                    {"cases": {"@keywords": "keyword", "@default": "identifier"}},
                ],
            ],
            "whitespace": [
                [WHITESPACE_PATTERN, ""],
                [r"#.*$", "comment"],
            ],
            "numbers": [
                [HEX_PATTERN, "number.hex"],
                [BINARY_PATTERN, "number.binary"],
                [DECIMAL_PATTERN, "number"],
            ],
        },
    }


def language_configuration() -> dict:
    """Comment, bracket and indentation rules in the editor's format."""
    return {
        "comments": {"lineComment": LINE_COMMENT},
        "brackets": [list(pair) for pair in BRACKETS],
        "autoClosingPairs": [{"open": o, "close": c} for o, c in AUTO_CLOSING_PAIRS],
        "surroundingPairs": [{"open": o, "close": c} for o, c in SURROUNDING_PAIRS],
        "indentationRules": {
            "increaseIndentPattern": INCREASE_INDENT_PATTERN,
            "decreaseIndentPattern": DECREASE_INDENT_PATTERN,
        },
        "onEnterRules": [
            {
                "beforeText": pattern.pattern,
                "action": {"indentAction": int(action)},
            }
            for pattern, action in _ON_ENTER_RULES
        ],
    }
