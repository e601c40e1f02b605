"""
Compiler error taxonomy.

A ``CompileError`` is raised for a single problem at a single span; the
stages collect them and raise ``CompileErrors`` once a whole document has
been processed so every problem can be reported at once.
"""

from __future__ import annotations

from enum import Enum

from mcnls.compiler.span import Span


class ErrorKind(Enum):
    # lexer
    UNEXPECTED_CHARACTER = "Unexpected character {detail!r}"
    NUMBER_OUT_OF_RANGE = "Number {detail} does not fit into 16 bits"
    # parser
    UNEXPECTED_EOF = "Unexpected end of file"
    UNEXPECTED_TOKEN = "Unexpected token"
    MISSING_END = "Block is missing its closing 'end'"
    EMPTY_BLOCK = "Block must contain at least one statement"
    INVALID_MODULE_NAME = "Expected a module name"
    INVALID_DECLARATION = "Expected a variable name after 'var'"
    INVALID_ASSIGNMENT = "Only identifiers can be assigned to"
    MISSING_EQUALS = "Expected '=' in inline declaration"
    FUNCTION_CHAINING = "Calls cannot be chained"
    MISSING_OPEN_PAREN = "Expected '('"
    MISSING_CLOSING_PAREN = "Expected ')' to close the argument list"
    EXPECTED_PAREN = "Expected ')'"
    INVALID_DOT = "Expected a member name after '.'"
    # code generation
    FORBIDDEN_INLINE = "Inline values must be known at compile time"
    USE_OUTSIDE_GLOBAL_SCOPE = "'use' is only allowed in the global scope"
    NONEXISTENT_MODULE = "Module {detail!r} does not exist"
    UNLOADED_MODULE = "Module {detail!r} is not loaded, add 'use {detail}'"
    UNKNOWN_METHOD = "Only module methods can be called"
    NONEXISTENT_VAR = "Variable {detail!r} does not exist"
    NONEXISTENT_INLINE_VAR = "Inline variable {detail!r} does not exist"
    TOO_MANY_VARS = "Too many variables, only 32 slots are available"
    EQ_IN_NORMAL_EXPR = "Comparisons are only allowed in conditions"
    NORMAL_IN_EQ_EXPR = "Conditions must be comparisons"
    NO_CONSTANTS = "Member access is only supported for calls"
    UNSUPPORTED_OPERAND = "Expression cannot be used as an operand here"


class CompileError(Exception):
    """A single compile problem located at ``span``."""

    def __init__(self, kind: ErrorKind, span: Span, detail: object = "") -> None:
        self.kind = kind
        self.span = span
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return self.kind.value.format(detail=self.detail)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CompileError):
            return NotImplemented
        return (self.kind, self.span, self.detail) == (other.kind, other.span, other.detail)

    def __hash__(self) -> int:
        return hash((self.kind, self.span, str(self.detail)))


class CompileErrors(Exception):
    """Every error found in one compiler stage, in source order."""

    def __init__(self, errors: list[CompileError]) -> None:
        self.errors = errors
        super().__init__(f"{len(errors)} compile error(s)")
