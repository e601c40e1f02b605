"""
AST node definitions for the MCN-16 language.

Every node carries the ``span`` of source text it was parsed from so
diagnostics can point back at the offending code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from mcnls.compiler.span import Span


class Operator(Enum):
    """Arithmetic/bitwise operators shared by binary and augmented assignment."""

    PLUS = "+"
    MINUS = "-"
    MULT = "*"
    AND = "&"
    OR = "|"
    XOR = "^"

    @property
    def is_commutative(self) -> bool:
        return self is not Operator.MINUS

    def apply(self, left: int, right: int) -> int:
        if self is Operator.PLUS:
            value = left + right
        elif self is Operator.MINUS:
            value = left - right
        elif self is Operator.MULT:
            value = left * right
        elif self is Operator.AND:
            value = left & right
        elif self is Operator.OR:
            value = left | right
        else:
            value = left ^ right
        return to_i16(value)


class Comparison(Enum):
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="

    def opposite(self) -> Comparison:
        """The comparison that holds exactly when this one does not."""
        return _OPPOSITES[self]

    def turnaround(self) -> Comparison:
        """The comparison to use when both operands are swapped."""
        return _TURNAROUNDS[self]


_OPPOSITES = {
    Comparison.EQ: Comparison.NE,
    Comparison.NE: Comparison.EQ,
    Comparison.LT: Comparison.GE,
    Comparison.GE: Comparison.LT,
    Comparison.GT: Comparison.LE,
    Comparison.LE: Comparison.GT,
}

_TURNAROUNDS = {
    Comparison.EQ: Comparison.EQ,
    Comparison.NE: Comparison.NE,
    Comparison.LT: Comparison.GT,
    Comparison.GT: Comparison.LT,
    Comparison.LE: Comparison.GE,
    Comparison.GE: Comparison.LE,
}


def to_i16(value: int) -> int:
    """Wrap an integer to the signed 16-bit range of the target machine."""
    value &= 0xFFFF
    return value - 0x10000 if value >= 0x8000 else value


@dataclass(frozen=True)
class Ident:
    name: str
    span: Span


class Node:
    span: Span


@dataclass
class NumericLiteral(Node):
    value: int
    span: Span


@dataclass
class Identifier(Node):
    name: str
    span: Span


@dataclass
class DebugValue(Node):
    span: Span


@dataclass
class BinaryExpr(Node):
    left: Node
    right: Node
    operator: Operator
    span: Span


@dataclass
class EqExpr(Node):
    left: Node
    right: Node
    operator: Comparison
    span: Span


@dataclass
class Assignment(Node):
    target: Ident
    value: Node
    span: Span


@dataclass
class AugmentedAssignment(Node):
    target: Ident
    value: Node
    operator: Operator
    span: Span


@dataclass
class Member(Node):
    object: Node
    property: Ident
    span: Span


@dataclass
class Call(Node):
    function: Node
    args: list[Node]
    span: Span


@dataclass
class Pass(Node):
    span: Span


@dataclass
class Use(Node):
    modules: list[Ident]
    span: Span


@dataclass
class VarDeclaration(Node):
    ident: Ident
    span: Span


@dataclass
class InlineDeclaration(Node):
    ident: Ident
    value: Node
    span: Span


@dataclass
class Branch:
    condition: Node
    body: list[Node]


@dataclass
class Conditional(Node):
    condition: Node
    body: list[Node]
    span: Span
    branches: list[Branch] = field(default_factory=list)
    alternate: list[Node] | None = None


@dataclass
class EndlessLoop(Node):
    body: list[Node]
    span: Span


@dataclass
class WhileLoop(Node):
    condition: Node
    body: list[Node]
    span: Span
