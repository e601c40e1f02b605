from lsprotocol.types import (
    INITIALIZE,
    SHUTDOWN,
    TEXT_DOCUMENT_DIAGNOSTIC,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    WORKSPACE_DIAGNOSTIC,
    DiagnosticOptions,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DocumentDiagnosticParams,
    InitializeParams,
    WorkspaceDiagnosticParams,
)

from mcnls.config import ServerSettings
from mcnls.lsp.capabilities import SERVER_NAME, SERVER_VERSION
from mcnls.lsp.mcn_language_server import McnLanguageServer


def create_server(settings: ServerSettings | None = None) -> McnLanguageServer:
    """
    Creates and returns a configured Language Server instance.

    The LanguageServer class from pygls handles:
    - JSON-RPC communication with clients (editors)
    - Request/response lifecycle
    - Notifications and event handling

    Every handler below only forwards to ``ls.core``, which decides what
    the message means in the current phase.
    """
    server = McnLanguageServer(SERVER_NAME, SERVER_VERSION, settings=settings)

    @server.feature(INITIALIZE)
    def initialize(ls: McnLanguageServer, params: InitializeParams):
        # pygls has already answered the client; this hands the core its
        # outbound callbacks and moves it to the ready phase
        ls.forward_request(INITIALIZE, params, outbound=ls.outbound_channel())

    @server.feature(SHUTDOWN)
    def shutdown(ls: McnLanguageServer, params):
        return ls.forward_request(SHUTDOWN, params)

    @server.feature(TEXT_DOCUMENT_DID_OPEN)
    def did_open(ls: McnLanguageServer, params: DidOpenTextDocumentParams):
        ls.forward_notification(TEXT_DOCUMENT_DID_OPEN, params)

    @server.feature(TEXT_DOCUMENT_DID_CHANGE)
    def did_change(ls: McnLanguageServer, params: DidChangeTextDocumentParams):
        ls.forward_notification(TEXT_DOCUMENT_DID_CHANGE, params)

    @server.feature(TEXT_DOCUMENT_DID_CLOSE)
    def did_close(ls: McnLanguageServer, params: DidCloseTextDocumentParams):
        ls.forward_notification(TEXT_DOCUMENT_DID_CLOSE, params)

    @server.feature(
        TEXT_DOCUMENT_DIAGNOSTIC,
        DiagnosticOptions(inter_file_dependencies=False, workspace_diagnostics=True),
    )
    def document_diagnostic(ls: McnLanguageServer, params: DocumentDiagnosticParams):
        return ls.forward_request(TEXT_DOCUMENT_DIAGNOSTIC, params)

    @server.feature(WORKSPACE_DIAGNOSTIC)
    def workspace_diagnostic(ls: McnLanguageServer, params: WorkspaceDiagnosticParams):
        return ls.forward_request(WORKSPACE_DIAGNOSTIC, params)

    return server
