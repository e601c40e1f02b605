from __future__ import annotations

import itertools
from typing import Any

from lsprotocol.types import TextDocumentSyncKind
from pygls.lsp.server import LanguageServer

from mcnls.config import ServerSettings
from mcnls.lsp.messages import Notification, ProtocolError, Request
from mcnls.lsp.server_core import OutboundChannel, ServerCore


class McnLanguageServer(LanguageServer):
    """
    pygls server that forwards protocol traffic to a ``ServerCore``.

    pygls owns the JSON-RPC framing and the built-in lifecycle handling;
    the core owns the document, its version and the diagnostics.

    Attributes:
        core: The state machine every forwarded message goes through.
    """

    def __init__(self, name: str, version: str, settings: ServerSettings | None = None):
        super().__init__(name, version, text_document_sync_kind=TextDocumentSyncKind.Full)

        self.settings = settings or ServerSettings()
        self.core = ServerCore(settings=self.settings)
        self._request_ids = itertools.count(1)

    def outbound_channel(self) -> OutboundChannel:
        return OutboundChannel(
            send_request=self.protocol.send_request,
            send_notification=self.protocol.notify,
        )

    def forward_request(
        self,
        method: str,
        params: Any,
        outbound: OutboundChannel | None = None,
    ) -> Any:
        """
        Dispatch a request to the core and unwrap its response.

        Raises:
            ProtocolError: if the core answered with an error, so pygls
                replies with an error response instead of a result.
        """
        response = self.core.dispatch(
            Request(id=next(self._request_ids), method=method, params=params),
            outbound,
        )
        if response.error is not None:
            raise ProtocolError(response.error.message, response.error.code)
        return response.result

    def forward_notification(self, method: str, params: Any) -> None:
        self.core.dispatch(Notification(method=method, params=params))
