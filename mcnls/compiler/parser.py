"""
Recursive-descent parser producing the MCN-16 AST.

Precedence, lowest first: assignment, augmented assignment, comparison,
additive (``+ - & | ^``), multiplicative (``*``), call, member, primary.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable

from mcnls.compiler.errors import CompileError, CompileErrors, ErrorKind
from mcnls.compiler.lexer import Token, TokenType
from mcnls.compiler.nodes import (
    Assignment,
    AugmentedAssignment,
    BinaryExpr,
    Branch,
    Call,
    Conditional,
    DebugValue,
    EndlessLoop,
    EqExpr,
    Identifier,
    Ident,
    InlineDeclaration,
    Member,
    Node,
    NumericLiteral,
    Operator,
    Pass,
    Use,
    VarDeclaration,
    WhileLoop,
)
from mcnls.compiler.span import Span

_ADDITIVE = {Operator.PLUS, Operator.MINUS, Operator.AND, Operator.OR, Operator.XOR}
_BLOCK_END = {TokenType.END, TokenType.EOF}
_BRANCH_END = {TokenType.ELIF, TokenType.ELSE, TokenType.END, TokenType.EOF}


class Parser:
    def __init__(self) -> None:
        self._tokens: deque[Token] = deque()

    def produce_ast(self, tokens: list[Token]) -> list[Node]:
        """
        Parse a token stream into a list of top-level statements.

        Parsing continues after a failed statement so that every error of
        the document is reported.

        Raises:
            CompileErrors: if any statement failed to parse.
        """
        self._tokens = deque(tokens)
        body: list[Node] = []
        errors: list[CompileError] = []

        while self._tokens and self._at().type is not TokenType.EOF:
            try:
                body.append(self._parse_statement())
            except CompileError as e:
                errors.append(e)

        if errors:
            raise CompileErrors(errors)
        return body

    # token stream

    def _at(self) -> Token:
        return self._tokens[0]

    def _eat(self) -> Token:
        # EOF is never consumed so that every lookahead has a token
        if self._tokens[0].type is TokenType.EOF:
            return self._tokens[0]
        return self._tokens.popleft()

    def _eat_if(
        self,
        token_type: TokenType,
        kind: ErrorKind,
        span: Span | None = None,
    ) -> Token:
        token = self._eat()
        if token.type is not token_type:
            raise CompileError(kind, span or token.span)
        return token

    # statements

    def _parse_statement(self) -> Node:
        token_type = self._at().type
        if token_type is TokenType.INLINE:
            return self._parse_inline_declaration()
        if token_type is TokenType.IF:
            return self._parse_conditional()
        if token_type is TokenType.PASS:
            return Pass(self._eat().span)
        if token_type is TokenType.USE:
            return self._parse_use()
        if token_type is TokenType.VAR:
            return self._parse_var_declaration()
        if token_type is TokenType.FOREVER:
            return self._parse_endless()
        if token_type is TokenType.WHILE:
            return self._parse_while()
        return self._parse_expression()

    def _parse_block(self, terminators: set[TokenType], start: Span) -> list[Node]:
        body: list[Node] = []
        while self._at().type not in terminators:
            body.append(self._parse_statement())
        if not body:
            raise CompileError(ErrorKind.EMPTY_BLOCK, start + self._at().span)
        return body

    def _parse_conditional(self) -> Conditional:
        start = self._eat().span
        condition = self._parse_expression()
        body = self._parse_block(_BRANCH_END, start)

        branches: list[Branch] = []
        while self._at().type is TokenType.ELIF:
            branch_start = self._eat().span
            branch_condition = self._parse_expression()
            branches.append(
                Branch(branch_condition, self._parse_block(_BRANCH_END, branch_start))
            )

        alternate = None
        if self._at().type is TokenType.ELSE:
            else_start = self._eat().span
            alternate = self._parse_block(_BLOCK_END, else_start)

        end = self._eat_if(TokenType.END, ErrorKind.MISSING_END, start).span
        return Conditional(
            condition=condition,
            body=body,
            span=start + end,
            branches=branches,
            alternate=alternate,
        )

    def _parse_endless(self) -> EndlessLoop:
        start = self._eat().span
        body = self._parse_block(_BLOCK_END, start)
        end = self._eat_if(TokenType.END, ErrorKind.MISSING_END, start).span
        return EndlessLoop(body, start + end)

    def _parse_while(self) -> WhileLoop:
        start = self._eat().span
        condition = self._parse_expression()
        body = self._parse_block(_BLOCK_END, start)
        end = self._eat_if(TokenType.END, ErrorKind.MISSING_END, start).span
        return WhileLoop(condition, body, start + end)

    def _parse_use(self) -> Use:
        start = self._eat().span
        modules = [self._parse_module_name()]
        while self._at().type is TokenType.DOT:
            self._eat()
            modules.append(self._parse_module_name())
        return Use(modules, start + modules[-1].span)

    def _parse_module_name(self) -> Ident:
        token = self._eat()
        if token.type is not TokenType.IDENTIFIER:
            raise CompileError(ErrorKind.INVALID_MODULE_NAME, token.span)
        return Ident(token.value, token.span)

    def _parse_var_declaration(self) -> VarDeclaration:
        start = self._eat().span
        token = self._eat()
        if token.type is not TokenType.IDENTIFIER:
            raise CompileError(ErrorKind.INVALID_DECLARATION, token.span)
        return VarDeclaration(Ident(token.value, token.span), start + token.span)

    def _parse_inline_declaration(self) -> InlineDeclaration:
        start = self._eat().span
        token = self._eat()
        if token.type is not TokenType.IDENTIFIER:
            raise CompileError(ErrorKind.INVALID_ASSIGNMENT, token.span)
        self._eat_if(TokenType.EQUALS, ErrorKind.MISSING_EQUALS)
        value = self._parse_expression()
        return InlineDeclaration(Ident(token.value, token.span), value, start + value.span)

    # expressions

    def _parse_expression(self) -> Node:
        return self._parse_assignment()

    def _parse_assignment(self) -> Node:
        left = self._parse_augmented_assignment()
        if self._at().type is not TokenType.EQUALS:
            return left
        if not isinstance(left, Identifier):
            raise CompileError(ErrorKind.INVALID_ASSIGNMENT, self._at().span)
        self._eat()
        value = self._parse_assignment()
        return Assignment(Ident(left.name, left.span), value, left.span + value.span)

    def _parse_augmented_assignment(self) -> Node:
        left = self._parse_comparison()
        token = self._at()
        if token.type is not TokenType.ASSIGN_OPERATOR:
            return left
        if not isinstance(left, Identifier):
            raise CompileError(ErrorKind.INVALID_ASSIGNMENT, left.span)
        self._eat()
        value = self._parse_augmented_assignment()
        return AugmentedAssignment(
            Ident(left.name, left.span), value, token.value, left.span + value.span
        )

    def _parse_comparison(self) -> Node:
        left = self._parse_additive()
        while self._at().type is TokenType.COMPARISON:
            operator = self._eat().value
            right = self._parse_additive()
            left = EqExpr(left, right, operator, left.span + right.span)
        return left

    def _parse_binary(self, operand: Callable[[], Node], operators: set[Operator]) -> Node:
        left = operand()
        while (
            self._at().type is TokenType.BINARY_OPERATOR
            and self._at().value in operators
        ):
            operator = self._eat().value
            right = operand()
            left = BinaryExpr(left, right, operator, left.span + right.span)
        return left

    def _parse_additive(self) -> Node:
        return self._parse_binary(self._parse_multiplicative, _ADDITIVE)

    def _parse_multiplicative(self) -> Node:
        return self._parse_binary(self._parse_call_member, {Operator.MULT})

    def _parse_call_member(self) -> Node:
        member = self._parse_member()
        if self._at().type is not TokenType.OPEN_CALL_PAREN:
            return member
        args, args_span = self._parse_args()
        if self._at().type is TokenType.OPEN_CALL_PAREN:
            raise CompileError(ErrorKind.FUNCTION_CHAINING, self._at().span)
        return Call(member, args, member.span + args_span)

    def _parse_args(self) -> tuple[list[Node], Span]:
        start = self._eat_if(TokenType.OPEN_CALL_PAREN, ErrorKind.MISSING_OPEN_PAREN).span
        args: list[Node] = []
        if self._at().type is not TokenType.CLOSE_PAREN:
            args.append(self._parse_expression())
            while self._at().type is TokenType.COMMA:
                self._eat()
                args.append(self._parse_expression())
        end = self._eat_if(TokenType.CLOSE_PAREN, ErrorKind.MISSING_CLOSING_PAREN).span
        return args, start + end

    def _parse_member(self) -> Node:
        node = self._parse_primary()
        while self._at().type is TokenType.DOT:
            dot = self._eat().span
            prop = self._parse_primary()
            if not isinstance(prop, Identifier):
                raise CompileError(ErrorKind.INVALID_DOT, dot)
            node = Member(node, Ident(prop.name, prop.span), node.span + prop.span)
        return node

    def _parse_primary(self) -> Node:
        token = self._eat()
        if token.type is TokenType.IDENTIFIER:
            return Identifier(token.value, token.span)
        if token.type is TokenType.NUMBER:
            return NumericLiteral(token.value, token.span)
        if token.type is TokenType.DEBUG:
            return DebugValue(token.span)
        if token.type in (TokenType.OPEN_PAREN, TokenType.OPEN_CALL_PAREN):
            value = self._parse_expression()
            self._eat_if(TokenType.CLOSE_PAREN, ErrorKind.EXPECTED_PAREN)
            return value
        if token.type is TokenType.EOF:
            raise CompileError(ErrorKind.UNEXPECTED_EOF, token.span)
        raise CompileError(ErrorKind.UNEXPECTED_TOKEN, token.span)
