"""
Adapter between the server and the compile engine.

``CompilerAdapter.compile`` never raises: compile errors become
diagnostics and any other fault inside the engine becomes a single
``internal`` diagnostic, so one malformed document cannot end the
editing session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

from lsprotocol import types

from mcnls.compiler import CompileError, CompileErrors, compile_source as engine_compile
from mcnls.config import ServerSettings
from mcnls.lsp.messages import INTERNAL_SOURCE, document_start_range, make_diagnostic

logger = logging.getLogger(__name__)

Engine = Callable[[str], str]


@dataclass(frozen=True)
class Success:
    assembly: str


@dataclass(frozen=True)
class Failure:
    diagnostics: tuple[types.Diagnostic, ...]


CompileResult = Union[Success, Failure]


@dataclass(frozen=True)
class Ok:
    value: str


@dataclass(frozen=True)
class Err:
    message: str


DirectResult = Union[Ok, Err]


class CompilationFailed(Exception):
    """Raised by ``compile_source`` for callers that expect an exception."""

    def __init__(self, diagnostics: tuple[types.Diagnostic, ...]) -> None:
        self.diagnostics = diagnostics
        message = diagnostics[0].message if diagnostics else "Compilation failed"
        super().__init__(message)


class CompilerAdapter:
    """
    Wraps a compile engine and normalizes every outcome to a ``CompileResult``.

    Args:
        engine: ``source -> assembly`` callable raising ``CompileErrors``.
            Defaults to the bundled MCN-16 compiler.
        settings: Supplies the source size limit and diagnostic source tag.
    """

    def __init__(
        self,
        engine: Engine | None = None,
        settings: ServerSettings | None = None,
    ) -> None:
        self.engine = engine or engine_compile
        self.settings = settings or ServerSettings()

    def compile(self, source: str) -> CompileResult:
        if not isinstance(source, str):
            return _internal_failure(TypeError(f"source must be str, not {type(source).__name__}"))

        limit = self.settings.max_source_length
        if len(source) > limit:
            return Failure(
                (
                    make_diagnostic(
                        document_start_range(),
                        f"Source is too large to compile ({len(source)} > {limit} characters)",
                        source=self.settings.diagnostic_source,
                    ),
                )
            )

        try:
            assembly = self.engine(source)
        except CompileErrors as e:
            return Failure(tuple(self._to_diagnostic(error) for error in e.errors))
        except CompileError as e:
            return Failure((self._to_diagnostic(e),))
        except Exception as e:
            logger.exception("Compile engine failed")
            return _internal_failure(e)

        if not isinstance(assembly, str):
            return _internal_failure(
                TypeError(f"engine returned {type(assembly).__name__}, expected str")
            )
        return Success(assembly)

    def compile_direct(self, source: str) -> DirectResult:
        """Stateless compile for previews: the assembly or an error marker."""
        result = self.compile(source)
        if isinstance(result, Success):
            return Ok(result.assembly)
        return Err(result.diagnostics[0].message if result.diagnostics else "Compilation failed")

    def _to_diagnostic(self, error: CompileError) -> types.Diagnostic:
        start, end = error.span
        return make_diagnostic(
            types.Range(
                start=types.Position(line=start.line, character=start.column),
                end=types.Position(line=end.line, character=end.column),
            ),
            error.message,
            source=self.settings.diagnostic_source,
        )


def _internal_failure(error: BaseException) -> Failure:
    return Failure(
        (
            make_diagnostic(
                document_start_range(),
                f"Internal compiler error: {type(error).__name__}: {error}",
                source=INTERNAL_SOURCE,
            ),
        )
    )


def compile_source(source: str, adapter: CompilerAdapter | None = None) -> str:
    """
    Compile ``source`` and return its assembly.

    Raises:
        CompilationFailed: carrying the diagnostics when compilation fails.
    """
    result = (adapter or CompilerAdapter()).compile(source)
    if isinstance(result, Failure):
        raise CompilationFailed(result.diagnostics)
    return result.assembly
