"""Reference compiler for the MCN-16 language."""
from mcnls.compiler.codegen import CodeGenerator
from mcnls.compiler.errors import CompileError, CompileErrors, ErrorKind
from mcnls.compiler.instructions import Instruction, Opcode, render
from mcnls.compiler.lexer import Token, TokenType, tokenize
from mcnls.compiler.parser import Parser
from mcnls.compiler.span import Location, Span


def compile_program(source: str) -> list[Instruction]:
    """
    Run the full pipeline: tokenize, parse and generate code.

    Raises:
        CompileErrors: from the first stage that failed.
    """
    tokens = tokenize(source)
    program = Parser().produce_ast(tokens)
    return CodeGenerator().generate(program)


def compile_source(source: str) -> str:
    """Compile ``source`` to assembly text."""
    return render(compile_program(source))


__all__ = [
    "CodeGenerator",
    "CompileError",
    "CompileErrors",
    "ErrorKind",
    "Instruction",
    "Location",
    "Opcode",
    "Parser",
    "Span",
    "Token",
    "TokenType",
    "compile_program",
    "compile_source",
    "render",
    "tokenize",
]
