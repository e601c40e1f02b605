"""
Instruction set of the MCN-16 target machine.

The machine has two registers, A and B. Loads into a register are split
into a low byte (``LAL``/``LBL``) and an optional high byte (``LAH``/``LBH``).
Arithmetic combines A and B into A; comparison jumps compare A with B.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from mcnls.compiler.nodes import Comparison, Operator
from mcnls.compiler.span import Span


class Opcode(Enum):
    LAL = "LAL"
    LAH = "LAH"
    LBL = "LBL"
    LBH = "LBH"
    LA = "LA"
    LB = "LB"
    SVA = "SVA"
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    AND = "AND"
    OR = "OR"
    XOR = "XOR"
    JMP = "JMP"
    JEQ = "JEQ"
    JNE = "JNE"
    JLT = "JLT"
    JGT = "JGT"
    JLE = "JLE"
    JGE = "JGE"

    @property
    def is_jump(self) -> bool:
        return self.name.startswith("J")

    @property
    def writes_a(self) -> bool:
        return self in _WRITES_A

    @property
    def writes_b(self) -> bool:
        return self in (Opcode.LBL, Opcode.LBH, Opcode.LB)

    @classmethod
    def for_operator(cls, operator: Operator) -> Opcode:
        return _OPERATOR_OPCODES[operator]

    @classmethod
    def for_comparison(cls, comparison: Comparison) -> Opcode:
        return _COMPARISON_OPCODES[comparison]


_WRITES_A = {
    Opcode.LAL,
    Opcode.LAH,
    Opcode.LA,
    Opcode.ADD,
    Opcode.SUB,
    Opcode.MUL,
    Opcode.AND,
    Opcode.OR,
    Opcode.XOR,
}

_OPERATOR_OPCODES = {
    Operator.PLUS: Opcode.ADD,
    Operator.MINUS: Opcode.SUB,
    Operator.MULT: Opcode.MUL,
    Operator.AND: Opcode.AND,
    Operator.OR: Opcode.OR,
    Operator.XOR: Opcode.XOR,
}

_COMPARISON_OPCODES = {
    Comparison.EQ: Opcode.JEQ,
    Comparison.NE: Opcode.JNE,
    Comparison.LT: Opcode.JLT,
    Comparison.GT: Opcode.JGT,
    Comparison.LE: Opcode.JLE,
    Comparison.GE: Opcode.JGE,
}


@dataclass(frozen=True)
class Instruction:
    opcode: Opcode
    arg: int | None
    span: Span

    def __str__(self) -> str:
        if self.arg is None:
            return self.opcode.value
        return f"{self.opcode.value} {self.arg}"


def render(instructions: list[Instruction]) -> str:
    """Assembly text, one instruction per line."""
    return "".join(f"{instruction}\n" for instruction in instructions)
