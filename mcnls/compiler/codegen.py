"""
Code generation from the MCN-16 AST to target instructions.

The generator tracks what each register is known to hold so that
repeated loads of the same value or variable are skipped. Knowledge is
dropped at every jump target because control may arrive there from
several places.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from mcnls.compiler.errors import CompileError, CompileErrors, ErrorKind
from mcnls.compiler.instructions import Instruction, Opcode
from mcnls.compiler.nodes import (
    Assignment,
    AugmentedAssignment,
    BinaryExpr,
    Call,
    Comparison,
    Conditional,
    DebugValue,
    EndlessLoop,
    EqExpr,
    Identifier,
    InlineDeclaration,
    Member,
    Node,
    NumericLiteral,
    Pass,
    Use,
    VarDeclaration,
    WhileLoop,
)
from mcnls.compiler.span import Span

VAR_SLOTS = 32
DEBUG_VALUE = 17


@dataclass(frozen=True)
class Number:
    value: int


@dataclass(frozen=True)
class Variable:
    slot: int


RegisterContents = Number | Variable | None


@dataclass
class Scope:
    variables: dict[str, int] = field(default_factory=dict)
    inline_variables: dict[str, int] = field(default_factory=dict)


class CodeGenerator:
    def __init__(self) -> None:
        self.scopes: list[Scope] = [Scope()]
        self.slots = [False] * VAR_SLOTS
        self.instructions: list[Instruction] = []
        self.labels: dict[int, int | None] = {}
        self.a: RegisterContents = None
        self.b: RegisterContents = None

    def generate(self, program: list[Node]) -> list[Instruction]:
        """
        Compile top-level statements into a flat instruction list.

        Raises:
            CompileErrors: with one error per failed top-level statement.
        """
        errors: list[CompileError] = []
        for statement in program:
            try:
                self._statement(statement)
            except CompileError as e:
                errors.append(e)
        if errors:
            raise CompileErrors(errors)
        return self._resolve_labels()

    # emission and register tracking

    def _emit(self, opcode: Opcode, arg: int | None, span: Span) -> None:
        self.instructions.append(Instruction(opcode, arg, span))
        if opcode.writes_a:
            self.a = None
        if opcode.writes_b:
            self.b = None
        if opcode is Opcode.SVA and self.b == Variable(arg):
            self.b = None

    def _new_label(self) -> int:
        label = len(self.labels)
        self.labels[label] = None
        return label

    def _place_label(self, label: int) -> None:
        self.labels[label] = len(self.instructions)
        self.a = None
        self.b = None

    def _resolve_labels(self) -> list[Instruction]:
        return [
            replace(instruction, arg=self.labels[instruction.arg])
            if instruction.opcode.is_jump
            else instruction
            for instruction in self.instructions
        ]

    # scopes and variables

    def _is_root_scope(self) -> bool:
        return len(self.scopes) == 1

    def _block(self, body: list[Node]) -> None:
        scope = Scope()
        self.scopes.append(scope)
        try:
            for statement in body:
                self._statement(statement)
        finally:
            self.scopes.pop()
            for slot in scope.variables.values():
                self.slots[slot] = False

    def _allocate_slot(self, span: Span) -> int:
        for slot, used in enumerate(self.slots):
            if not used:
                self.slots[slot] = True
                return slot
        raise CompileError(ErrorKind.TOO_MANY_VARS, span)

    def _free_slot(self, slot: int) -> None:
        self.slots[slot] = False

    def _lookup_var(self, name: str) -> int | None:
        for scope in reversed(self.scopes):
            if name in scope.variables:
                return scope.variables[name]
        return None

    def _get_var(self, name: str, span: Span) -> int:
        slot = self._lookup_var(name)
        if slot is None:
            raise CompileError(ErrorKind.NONEXISTENT_VAR, span, name)
        return slot

    def _insert_var(self, name: str, span: Span) -> int:
        slot = self._lookup_var(name)
        if slot is None:
            slot = self._allocate_slot(span)
            self.scopes[-1].variables[name] = slot
        return slot

    def _lookup_inline(self, name: str) -> int | None:
        for scope in reversed(self.scopes):
            if name in scope.inline_variables:
                return scope.inline_variables[name]
        return None

    def _eval_const(self, expr: Node) -> int:
        if isinstance(expr, NumericLiteral):
            return expr.value
        if isinstance(expr, Identifier):
            value = self._lookup_inline(expr.name)
            if value is None:
                raise CompileError(ErrorKind.NONEXISTENT_INLINE_VAR, expr.span, expr.name)
            return value
        if isinstance(expr, BinaryExpr):
            return expr.operator.apply(self._eval_const(expr.left), self._eval_const(expr.right))
        raise CompileError(ErrorKind.FORBIDDEN_INLINE, expr.span)

    # statements

    def _statement(self, node: Node) -> None:
        if isinstance(node, InlineDeclaration):
            try:
                value = self._eval_const(node.value)
            except CompileError as e:
                raise CompileError(ErrorKind.FORBIDDEN_INLINE, e.span) from e
            self.scopes[-1].inline_variables[node.ident.name] = value
        elif isinstance(node, Use):
            if not self._is_root_scope():
                raise CompileError(ErrorKind.USE_OUTSIDE_GLOBAL_SCOPE, node.span)
            # no modules are bundled with this compiler
            raise CompileError(ErrorKind.NONEXISTENT_MODULE, node.span, node.modules[0].name)
        elif isinstance(node, VarDeclaration):
            self._insert_var(node.ident.name, node.span)
        elif isinstance(node, Pass):
            pass
        elif isinstance(node, EndlessLoop):
            self._endless_loop(node)
        elif isinstance(node, WhileLoop):
            self._while_loop(node)
        elif isinstance(node, Conditional):
            self._conditional(node)
        else:
            self._expression(node)

    def _endless_loop(self, node: EndlessLoop) -> None:
        start = self._new_label()
        self._place_label(start)
        self._block(node.body)
        self._emit(Opcode.JMP, start, node.span)

    def _while_loop(self, node: WhileLoop) -> None:
        left, right, operator = _split_condition(node.condition)
        start = self._new_label()
        end = self._new_label()

        self._comparison(left, right, operator.opposite(), node.span, end)
        self._place_label(start)
        self._block(node.body)
        self._comparison(left, right, operator, node.span, start)
        self._place_label(end)

    def _conditional(self, node: Conditional) -> None:
        end = self._new_label()
        paths = [(node.condition, node.body)]
        paths.extend((branch.condition, branch.body) for branch in node.branches)

        for index, (condition, body) in enumerate(paths):
            left, right, operator = _split_condition(condition)
            next_path = self._new_label()
            self._comparison(left, right, operator.opposite(), condition.span, next_path)
            self._block(body)
            if index != len(paths) - 1 or node.alternate is not None:
                self._emit(Opcode.JMP, end, condition.span)
            self._place_label(next_path)

        if node.alternate is not None:
            self._block(node.alternate)
        self._place_label(end)

    def _comparison(
        self,
        left: Node,
        right: Node,
        operator: Comparison,
        span: Span,
        jump_to: int,
    ) -> None:
        if self._put_ab(left, right, commutative=True):
            operator = operator.turnaround()
        self._emit(Opcode.for_comparison(operator), jump_to, span)

    # expressions

    def _expression(self, expr: Node) -> None:
        if isinstance(expr, (NumericLiteral, Identifier)):
            self._put_into_a(expr)
        elif isinstance(expr, BinaryExpr):
            self._put_ab(expr.left, expr.right, expr.operator.is_commutative)
            self._emit(Opcode.for_operator(expr.operator), None, expr.span)
        elif isinstance(expr, Assignment):
            self._expression(expr.value)
            slot = self._insert_var(expr.target.name, expr.value.span)
            self._emit(Opcode.SVA, slot, expr.value.span)
        elif isinstance(expr, AugmentedAssignment):
            self._augmented_assignment(expr)
        elif isinstance(expr, Call):
            self._call(expr)
        elif isinstance(expr, EqExpr):
            raise CompileError(ErrorKind.EQ_IN_NORMAL_EXPR, expr.span)
        elif isinstance(expr, DebugValue):
            self._emit(Opcode.LAL, DEBUG_VALUE, expr.span)
            self.a = Number(DEBUG_VALUE)
        elif isinstance(expr, Member):
            raise CompileError(ErrorKind.NO_CONSTANTS, expr.span)
        else:
            raise CompileError(ErrorKind.UNEXPECTED_TOKEN, expr.span)

    def _augmented_assignment(self, expr: AugmentedAssignment) -> None:
        target = Identifier(expr.target.name, expr.target.span)
        slot = self._get_var(expr.target.name, expr.target.span)
        if _can_put_into_b(expr.value):
            self._put_into_a(target)
            self._put_into_b(expr.value)
        else:
            self._expression(expr.value)
            self._switch(expr.value.span)
            self._put_into_a(target)
        self._emit(Opcode.for_operator(expr.operator), None, expr.span)
        self._emit(Opcode.SVA, slot, expr.span)

    def _call(self, expr: Call) -> None:
        function = expr.function
        if isinstance(function, Member) and isinstance(function.object, Identifier):
            # every module would have to be loaded with `use`, and none exist
            raise CompileError(ErrorKind.UNLOADED_MODULE, function.span, function.object.name)
        raise CompileError(ErrorKind.UNKNOWN_METHOD, function.span)

    def _switch(self, span: Span) -> None:
        """Move A into B through a temporary slot."""
        temp = self._allocate_slot(span)
        self._emit(Opcode.SVA, temp, span)
        self._emit(Opcode.LB, temp, span)
        self._free_slot(temp)

    def _put_ab(self, left: Node, right: Node, commutative: bool) -> bool:
        """
        Load ``left`` into A and ``right`` into B.

        Returns True if the operands ended up swapped, which is only done
        for commutative operations.
        """
        left_to_a = _can_put_into_a(left)
        right_to_b = _can_put_into_b(right)

        if left_to_a and right_to_b:
            if commutative and _can_put_into_b(left) and (
                self._is_in_a(right)
                or self._is_in_b(left)
                or (isinstance(right, Identifier) and isinstance(left, NumericLiteral))
            ):
                self._put_into_a(right)
                self._put_into_b(left)
                return True
            self._put_into_a(left)
            self._put_into_b(right)
            return False

        if left_to_a:
            self._expression(right)
            if commutative and _can_put_into_b(left):
                self._put_into_b(left)
                return True
            if isinstance(right, Assignment):
                self._emit(Opcode.LB, self._get_var(right.target.name, right.span), right.span)
            else:
                self._switch(left.span)
            self._put_into_a(left)
            return False

        if right_to_b:
            self._expression(left)
            self._put_into_b(right)
            return False

        self._expression(right)
        if isinstance(right, Assignment):
            self._expression(left)
            self._emit(Opcode.LB, self._get_var(right.target.name, right.span), right.span)
        else:
            temp = self._allocate_slot(left.span)
            self._emit(Opcode.SVA, temp, left.span)
            self._expression(left)
            self._emit(Opcode.LB, temp, left.span)
            self._free_slot(temp)
        return False

    def _put_into_a(self, expr: Node) -> None:
        if isinstance(expr, NumericLiteral):
            self._put_number(expr.value, expr.span, into_a=True)
        elif isinstance(expr, Identifier):
            value = self._lookup_inline(expr.name)
            if value is not None:
                self._put_number(value, expr.span, into_a=True)
                return
            slot = self._get_var(expr.name, expr.span)
            if self.a != Variable(slot):
                self._emit(Opcode.LA, slot, expr.span)
                self.a = Variable(slot)
        else:
            self._expression(expr)

    def _put_into_b(self, expr: Node) -> None:
        if isinstance(expr, NumericLiteral):
            self._put_number(expr.value, expr.span, into_a=False)
            return
        if not isinstance(expr, Identifier):
            raise CompileError(ErrorKind.UNSUPPORTED_OPERAND, expr.span)
        value = self._lookup_inline(expr.name)
        if value is not None:
            self._put_number(value, expr.span, into_a=False)
            return
        slot = self._get_var(expr.name, expr.span)
        if self.b != Variable(slot):
            self._emit(Opcode.LB, slot, expr.span)
            self.b = Variable(slot)

    def _put_number(self, value: int, span: Span, into_a: bool) -> None:
        current = self.a if into_a else self.b
        if current == Number(value):
            return
        low, high = value & 0xFF, (value >> 8) & 0xFF
        self._emit(Opcode.LAL if into_a else Opcode.LBL, low, span)
        if high:
            self._emit(Opcode.LAH if into_a else Opcode.LBH, high, span)
        if into_a:
            self.a = Number(value)
        else:
            self.b = Number(value)

    def _is_in_a(self, expr: Node) -> bool:
        contents = self._contents_of(expr)
        return contents is not None and contents == self.a

    def _is_in_b(self, expr: Node) -> bool:
        contents = self._contents_of(expr)
        return contents is not None and contents == self.b

    def _contents_of(self, expr: Node) -> RegisterContents:
        if isinstance(expr, NumericLiteral):
            return Number(expr.value)
        if isinstance(expr, Identifier):
            slot = self._lookup_var(expr.name)
            return Variable(slot) if slot is not None else None
        return None


def _can_put_into_a(expr: Node) -> bool:
    if isinstance(expr, (NumericLiteral, Identifier)):
        return True
    if isinstance(expr, Assignment):
        return _can_put_into_a(expr.value)
    return False


def _can_put_into_b(expr: Node) -> bool:
    return isinstance(expr, (NumericLiteral, Identifier))


def _split_condition(condition: Node) -> tuple[Node, Node, Comparison]:
    if not isinstance(condition, EqExpr):
        raise CompileError(ErrorKind.NORMAL_IN_EQ_EXPR, condition.span)
    return condition.left, condition.right, condition.operator


def generate(program: list[Node]) -> list[Instruction]:
    return CodeGenerator().generate(program)
