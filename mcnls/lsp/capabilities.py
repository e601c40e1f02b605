"""
Capabilities advertised during ``initialize``.

Only full-document synchronization is offered: every change carries the
whole text, so the server never patches ranges.
"""

from __future__ import annotations

from lsprotocol import types

SERVER_NAME = "mcnls"
SERVER_VERSION = "0.1.0"


def server_capabilities() -> types.ServerCapabilities:
    return types.ServerCapabilities(
        text_document_sync=types.TextDocumentSyncKind.Full,
        diagnostic_provider=types.DiagnosticOptions(
            inter_file_dependencies=False,
            workspace_diagnostics=True,
        ),
    )


def initialize_result(params: types.InitializeParams) -> types.InitializeResult:
    # nothing in the client capabilities changes what this server offers
    return types.InitializeResult(
        capabilities=server_capabilities(),
        server_info=types.ServerInfo(name=SERVER_NAME, version=SERVER_VERSION),
    )
