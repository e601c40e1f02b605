"""
Language server state machine.

``ServerCore`` owns the active document and the server phase. Inbound
messages are handled one at a time via ``dispatch``; a request yields
exactly one ``Response`` and a notification yields none. Outbound traffic
goes through the ``OutboundChannel`` captured at initialize.

Phases::

    UNINITIALIZED --initialize--> INITIALIZING --> READY
    READY --shutdown--> SHUTTING_DOWN --exit--> EXITED

Nothing raised while handling a message escapes ``dispatch``: protocol
errors become error responses, anything else is logged and answered
with ``InternalError`` (requests) or dropped (notifications).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from lsprotocol import types

from mcnls.config import ConfigError, ServerSettings
from mcnls.lsp.capabilities import initialize_result
from mcnls.lsp.compiler_adapter import CompileResult, CompilerAdapter, Failure
from mcnls.lsp.document_store import Document, DocumentStore
from mcnls.lsp.messages import (
    InvalidParams,
    InvalidRequest,
    Message,
    MethodNotFound,
    Notification,
    ProtocolError,
    Request,
    Response,
    ServerNotInitialized,
    converter,
    envelope_id,
    log_message_params,
    parse_envelope,
    publish_diagnostics_params,
    structure_params,
)

logger = logging.getLogger(__name__)

SendRequest = Callable[[str, Any], Any]
SendNotification = Callable[[str, Any], Any]

_LOG_LEVELS = {
    types.MessageType.Error: logging.ERROR,
    types.MessageType.Warning: logging.WARNING,
    types.MessageType.Info: logging.INFO,
    types.MessageType.Log: logging.DEBUG,
}


class ServerPhase(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"
    EXITED = "exited"


@dataclass(frozen=True)
class OutboundChannel:
    """
    Callbacks supplied by the transport for server-initiated traffic.

    Params are passed as lsprotocol objects, which is what pygls expects.
    Transports that carry plain JSON should build the channel with
    ``for_json``.
    """

    send_request: SendRequest
    send_notification: SendNotification

    @classmethod
    def for_json(
        cls,
        send_request: SendRequest,
        send_notification: SendNotification,
    ) -> OutboundChannel:
        """Wrap callbacks that expect params in wire (camelCase dict) shape."""
        return cls(
            send_request=lambda method, params: send_request(
                method, converter.unstructure(params)
            ),
            send_notification=lambda method, params: send_notification(
                method, converter.unstructure(params)
            ),
        )


def diagnostics_of(result: CompileResult | None) -> list[types.Diagnostic]:
    if isinstance(result, Failure):
        return list(result.diagnostics)
    return []


class ServerCore:
    def __init__(
        self,
        adapter: CompilerAdapter | None = None,
        settings: ServerSettings | None = None,
    ) -> None:
        self.settings = settings or ServerSettings()
        self.adapter = adapter or CompilerAdapter(settings=self.settings)

        self._documents = DocumentStore()
        self._phase = ServerPhase.UNINITIALIZED
        self._outbound: OutboundChannel | None = None
        self._last_result: CompileResult | None = None
        self._shutdown_requested = False

        self._request_handlers: dict[str, Callable[[Any], Any]] = {
            types.SHUTDOWN: self._shutdown,
            types.TEXT_DOCUMENT_DIAGNOSTIC: self._document_diagnostic,
            types.WORKSPACE_DIAGNOSTIC: self._workspace_diagnostic,
        }
        self._notification_handlers: dict[str, Callable[[Any], None]] = {
            types.INITIALIZED: _ignore,
            types.CANCEL_REQUEST: _ignore,
            types.SET_TRACE: _ignore,
            types.TEXT_DOCUMENT_DID_OPEN: self._did_open,
            types.TEXT_DOCUMENT_DID_CHANGE: self._did_change,
            types.TEXT_DOCUMENT_DID_CLOSE: self._did_close,
        }

    @property
    def phase(self) -> ServerPhase:
        return self._phase

    @property
    def outbound(self) -> OutboundChannel | None:
        return self._outbound

    @property
    def document(self) -> Document | None:
        return self._documents.current()

    @property
    def last_result(self) -> CompileResult | None:
        """Compile result of the active document's current version."""
        return self._last_result

    @property
    def exit_code(self) -> int:
        return 0 if self._shutdown_requested else 1

    # entry points

    def dispatch(
        self,
        message: Message,
        outbound: OutboundChannel | None = None,
    ) -> Response | None:
        """
        Handle one inbound message.

        Args:
            message: The request or notification to handle.
            outbound: Transport callbacks. Only read by ``initialize``,
                which stores them for the lifetime of the server.

        Returns:
            The response for a request, None for a notification.
        """
        if isinstance(message, Request):
            return self._handle_request(message, outbound)
        self._handle_notification(message)
        return None

    def receive(
        self,
        raw: str | bytes | Mapping[str, Any],
        outbound: OutboundChannel | None = None,
    ) -> Response | None:
        """Parse a raw transport envelope and dispatch it."""
        try:
            message = parse_envelope(raw)
        except ProtocolError as e:
            logger.warning("Malformed message: %s", e.message)
            request_id = envelope_id(raw)
            if request_id is None:
                return None
            return Response(id=request_id, error=e.to_response_error())
        return self.dispatch(message, outbound)

    # requests

    def _handle_request(
        self,
        request: Request,
        outbound: OutboundChannel | None,
    ) -> Response:
        try:
            result = self._route_request(request, outbound)
        except ProtocolError as e:
            logger.debug("Request %s rejected: %s", request.method, e.message)
            return Response(id=request.id, error=e.to_response_error())
        except Exception as e:
            logger.exception("Request %s failed", request.method)
            self._log_to_client(
                types.MessageType.Error,
                f"Error handling {request.method}: {type(e).__name__}: {e}",
            )
            return Response(
                id=request.id,
                error=types.ResponseError(
                    code=int(types.ErrorCodes.InternalError),
                    message=f"{type(e).__name__}: {e}",
                ),
            )
        return Response(id=request.id, result=result)

    def _route_request(self, request: Request, outbound: OutboundChannel | None) -> Any:
        method = request.method
        if method == types.INITIALIZE:
            return self._initialize(request.params, outbound)

        handler = self._request_handlers.get(method)
        if handler is None:
            raise MethodNotFound(f"Unhandled method {method}")
        if self._phase is ServerPhase.UNINITIALIZED:
            raise ServerNotInitialized(f"{method} received before initialize")
        if self._phase is not ServerPhase.READY:
            raise InvalidRequest(f"{method} received while {self._phase.value}")
        return handler(structure_params(method, request.params))

    def _initialize(
        self,
        params: Any,
        outbound: OutboundChannel | None,
    ) -> types.InitializeResult:
        if self._phase is not ServerPhase.UNINITIALIZED:
            raise InvalidRequest("Server is already initialized")
        if outbound is None:
            raise InvalidRequest("initialize requires an outbound channel")

        typed = structure_params(types.INITIALIZE, params)
        self._phase = ServerPhase.INITIALIZING
        try:
            options = typed.initialization_options
            if isinstance(options, Mapping):
                self.settings = self.settings.merged(options)
                self.adapter.settings = self.settings
            result = initialize_result(typed)
        except ConfigError as e:
            self._phase = ServerPhase.UNINITIALIZED
            raise InvalidParams(str(e)) from e
        except Exception:
            self._phase = ServerPhase.UNINITIALIZED
            raise

        self._outbound = outbound
        self._phase = ServerPhase.READY
        self._log_to_client(types.MessageType.Info, "MCN-16 language server initialized")
        return result

    def _shutdown(self, params: Any) -> None:
        self._shutdown_requested = True
        self._phase = ServerPhase.SHUTTING_DOWN
        return None

    def _document_diagnostic(
        self, params: types.DocumentDiagnosticParams
    ) -> types.RelatedFullDocumentDiagnosticReport:
        document = self._documents.current()
        items: list[types.Diagnostic] = []
        if document is not None and document.uri == params.text_document.uri:
            items = diagnostics_of(self._last_result)
        return types.RelatedFullDocumentDiagnosticReport(items=items)

    def _workspace_diagnostic(self, params: Any) -> types.WorkspaceDiagnosticReport:
        document = self._documents.current()
        if document is None:
            return types.WorkspaceDiagnosticReport(items=[])
        return types.WorkspaceDiagnosticReport(
            items=[
                types.WorkspaceFullDocumentDiagnosticReport(
                    uri=document.uri,
                    version=document.version,
                    items=diagnostics_of(self._last_result),
                )
            ]
        )

    # notifications

    def _handle_notification(self, notification: Notification) -> None:
        method = notification.method
        if method == types.EXIT:
            self._phase = ServerPhase.EXITED
            return

        handler = self._notification_handlers.get(method)
        if handler is None:
            logger.debug("Ignoring notification %s", method)
            return
        if self._phase is not ServerPhase.READY:
            logger.debug("Ignoring %s while %s", method, self._phase.value)
            return

        try:
            handler(structure_params(method, notification.params))
        except ProtocolError as e:
            self._log_to_client(types.MessageType.Warning, f"Ignoring {method}: {e.message}")
        except Exception as e:
            logger.exception("Notification %s failed", method)
            self._log_to_client(
                types.MessageType.Error,
                f"Error handling {method}: {type(e).__name__}: {e}",
            )

    def _did_open(self, params: types.DidOpenTextDocumentParams) -> None:
        item = params.text_document
        self._replace_document(item.text, item.version, item.uri, item.language_id)

    def _did_change(self, params: types.DidChangeTextDocumentParams) -> None:
        changes = params.content_changes
        if not changes:
            raise InvalidParams("didChange carries no content changes")
        if len(changes) > 1:
            # full sync is advertised, so only the first change is expected
            logger.warning("Applying the first of %d content changes", len(changes))
        self._replace_document(
            changes[0].text, params.text_document.version, params.text_document.uri
        )

    def _did_close(self, params: types.DidCloseTextDocumentParams) -> None:
        uri = params.text_document.uri
        if self._documents.close(uri):
            self._last_result = None
            self._notify(types.TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS, publish_diagnostics_params(uri, []))

    def _replace_document(
        self,
        text: str,
        version: int,
        uri: str,
        language_id: str | None = None,
    ) -> None:
        if not self._documents.replace(text, version, uri=uri, language_id=language_id):
            logger.debug("Ignoring stale version %s of %s", version, uri)
            return

        document = self._documents.current()
        self._last_result = self.adapter.compile(document.text)
        self._notify(
            types.TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS,
            publish_diagnostics_params(
                document.uri, diagnostics_of(self._last_result), document.version
            ),
        )

    # outbound

    def _notify(self, method: str, params: Any) -> None:
        if self._outbound is None:
            return
        try:
            self._outbound.send_notification(method, params)
        except Exception:
            logger.exception("Sending %s failed", method)

    def _log_to_client(self, level: types.MessageType, message: str) -> None:
        logger.log(_LOG_LEVELS.get(level, logging.INFO), message)
        if self.settings.log_to_client:
            self._notify(types.WINDOW_LOG_MESSAGE, log_message_params(message, level))


def _ignore(params: Any) -> None:
    return None
