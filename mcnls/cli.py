"""
Command line interface for mcnls.

Usage:
    mcnls [serve]                          run the language server on stdio
    mcnls compile <file|->                 print the assembly of a program
    mcnls highlight <file|->               print highlight tokens
    mcnls grammar [--format json|yaml]     dump the editor grammar
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from mcnls.config import ConfigError, ServerSettings, load_settings
from mcnls.language.grammar import highlight, language_configuration, monarch_definition
from mcnls.lsp.compiler_adapter import CompilationFailed, CompilerAdapter, compile_source


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcnls", description="MCN-16 language server and tools"
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="YAML settings file"
    )
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("serve", help="Run the language server on stdin/stdout")

    compile_cmd = commands.add_parser("compile", help="Compile a program to assembly")
    compile_cmd.add_argument("source", help="Source file, or - for stdin")

    highlight_cmd = commands.add_parser("highlight", help="Show highlight tokens")
    highlight_cmd.add_argument("source", help="Source file, or - for stdin")

    grammar_cmd = commands.add_parser("grammar", help="Dump the editor grammar")
    grammar_cmd.add_argument("--format", choices=("json", "yaml"), default="json")

    return parser


def _read_source(name: str) -> str:
    if name == "-":
        return sys.stdin.read()
    return Path(name).read_text(encoding="utf-8")


def run_compile(source: str, settings: ServerSettings) -> int:
    try:
        assembly = compile_source(source, CompilerAdapter(settings=settings))
    except CompilationFailed as e:
        for diagnostic in e.diagnostics:
            start = diagnostic.range.start
            print(
                f"{start.line + 1}:{start.character + 1}: error: {diagnostic.message}",
                file=sys.stderr,
            )
        return 1
    sys.stdout.write(assembly)
    return 0


def run_highlight(source: str) -> int:
    for token in highlight(source):
        print(f"{token.line + 1}:{token.column + 1}\t{token.kind}\t{token.text}")
    return 0


def run_grammar(output_format: str) -> int:
    grammar = {
        "tokenProvider": monarch_definition(),
        "languageConfiguration": language_configuration(),
    }
    if output_format == "yaml":
        sys.stdout.write(yaml.safe_dump(grammar, sort_keys=False))
    else:
        sys.stdout.write(json.dumps(grammar, indent=2) + "\n")
    return 0


def run_server(settings: ServerSettings) -> int:
    from mcnls.lsp.server import create_server

    server = create_server(settings)

    # Start the server - it will listen on stdin/stdout for LSP messages
    # from the editor client
    server.start_io()
    return server.core.exit_code


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except (ConfigError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    # stdout carries the protocol, so logs go to stderr
    logging.basicConfig(level=settings.log_level, stream=sys.stderr)

    command = args.command or "serve"
    if command == "serve":
        return run_server(settings)

    try:
        if command == "grammar":
            return run_grammar(args.format)
        source = _read_source(args.source)
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    if command == "compile":
        return run_compile(source, settings)
    return run_highlight(source)
