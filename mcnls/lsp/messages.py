"""
Protocol message model.

Inbound traffic is either a ``Request`` (expects exactly one ``Response``)
or a ``Notification`` (never answered). Params are validated at the
boundary: ``structure_params`` turns the raw JSON shape of a recognized
method into its lsprotocol type and raises ``InvalidParams`` otherwise.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from lsprotocol import types
from lsprotocol.converters import get_converter

converter = get_converter()

DIAGNOSTIC_SOURCE = "mcn"
INTERNAL_SOURCE = "internal"


@dataclass(frozen=True)
class Request:
    id: int | str | None
    method: str
    params: Any = None
    cancellation_token: Any = None


@dataclass(frozen=True)
class Notification:
    method: str
    params: Any = None


@dataclass(frozen=True)
class Response:
    id: int | str | None
    result: Any = None
    error: types.ResponseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_json(self) -> dict[str, Any]:
        """JSON-RPC shaped response with camelCase keys."""
        message: dict[str, Any] = {"jsonrpc": "2.0", "id": self.id}
        if self.error is not None:
            message["error"] = converter.unstructure(self.error)
        else:
            message["result"] = converter.unstructure(self.result)
        return message


Message = Union[Request, Notification]


class ProtocolError(Exception):
    """A failure that is answered with an error response, never fatal."""

    code: int = types.ErrorCodes.InternalError

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_response_error(self) -> types.ResponseError:
        return types.ResponseError(code=int(self.code), message=self.message)


class MethodNotFound(ProtocolError):
    code = types.ErrorCodes.MethodNotFound


class InvalidParams(ProtocolError):
    code = types.ErrorCodes.InvalidParams


class InvalidRequest(ProtocolError):
    code = types.ErrorCodes.InvalidRequest


class ServerNotInitialized(ProtocolError):
    code = types.ErrorCodes.ServerNotInitialized


class MalformedMessage(ProtocolError):
    code = types.ErrorCodes.ParseError


PARAMS_TYPES: dict[str, type] = {
    types.INITIALIZE: types.InitializeParams,
    types.TEXT_DOCUMENT_DID_OPEN: types.DidOpenTextDocumentParams,
    types.TEXT_DOCUMENT_DID_CHANGE: types.DidChangeTextDocumentParams,
    types.TEXT_DOCUMENT_DID_CLOSE: types.DidCloseTextDocumentParams,
    types.TEXT_DOCUMENT_DIAGNOSTIC: types.DocumentDiagnosticParams,
}

# initialize({}) is valid here even though the protocol makes these required
_PARAMS_DEFAULTS: dict[str, dict[str, Any]] = {
    types.INITIALIZE: {"processId": None, "capabilities": {}},
}


def structure_params(method: str, params: Any) -> Any:
    """
    Validate ``params`` for ``method`` and return the typed value.

    Methods without a registered type get their params back unchanged.
    Already-typed params (as delivered by pygls) pass through.

    Raises:
        InvalidParams: if the params do not match the method's shape.
    """
    target = PARAMS_TYPES.get(method)
    if target is None or isinstance(params, target):
        return params

    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise InvalidParams(f"Params for {method} must be an object")

    raw = {**_PARAMS_DEFAULTS.get(method, {}), **params}
    try:
        return converter.structure(raw, target)
    except Exception as e:
        raise InvalidParams(f"Invalid params for {method}: {e}") from e


def parse_envelope(raw: str | bytes | Mapping[str, Any]) -> Message:
    """
    Turn a transport envelope into a ``Request`` or ``Notification``.

    The envelope is ``{kind, method, params, id?, token?}`` where ``kind``
    is ``"request"``, ``"notification"`` or ``"init"``; ``init`` is the
    initialize request.

    Raises:
        MalformedMessage: if ``raw`` is not valid JSON.
        InvalidRequest: if the envelope is missing its kind or method.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedMessage(f"Message is not valid JSON: {e}") from e

    if not isinstance(raw, Mapping):
        raise InvalidRequest("Message must be an object")

    kind = raw.get("kind")
    if kind == "init":
        return Request(id=raw.get("id", 0), method=types.INITIALIZE, params=raw.get("params"))

    method = raw.get("method")
    if not isinstance(method, str) or not method:
        raise InvalidRequest("Message has no method")

    if kind == "request":
        return Request(
            id=raw.get("id"),
            method=method,
            params=raw.get("params"),
            cancellation_token=raw.get("token"),
        )
    if kind == "notification":
        return Notification(method=method, params=raw.get("params"))
    raise InvalidRequest(f"Unknown message kind {kind!r}")


def envelope_id(raw: Any) -> int | str | None:
    """Best-effort request id of an envelope that failed to parse."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return None
    if isinstance(raw, Mapping) and raw.get("kind") in ("request", "init"):
        request_id = raw.get("id")
        if isinstance(request_id, (int, str)):
            return request_id
    return None


def make_diagnostic(
    range: types.Range,
    message: str,
    severity: types.DiagnosticSeverity = types.DiagnosticSeverity.Error,
    source: str = DIAGNOSTIC_SOURCE,
) -> types.Diagnostic:
    return types.Diagnostic(range=range, message=message, severity=severity, source=source)


def document_start_range() -> types.Range:
    start = types.Position(line=0, character=0)
    return types.Range(start=start, end=start)


def publish_diagnostics_params(
    uri: str,
    diagnostics: list[types.Diagnostic],
    version: int | None = None,
) -> types.PublishDiagnosticsParams:
    return types.PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics, version=version)


def log_message_params(message: str, level: types.MessageType) -> types.LogMessageParams:
    return types.LogMessageParams(type=level, message=message)
