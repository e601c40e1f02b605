import json
from unittest.mock import Mock

import pytest
from lsprotocol import types

from mcnls.config import ServerSettings
from mcnls.lsp.compiler_adapter import CompilerAdapter, Failure, Success
from mcnls.lsp.messages import Notification, Request, converter
from mcnls.lsp.server_core import OutboundChannel, ServerCore, ServerPhase

URI = "file:///workspace/main.mcn"


@pytest.fixture
def outbound():
    """Transport double recording every server-initiated message."""
    return OutboundChannel(send_request=Mock(), send_notification=Mock())


@pytest.fixture
def core():
    return ServerCore()


@pytest.fixture
def ready(core, outbound):
    """A core that has completed initialize."""
    response = core.dispatch(Request(id=1, method=types.INITIALIZE, params={}), outbound)
    assert response.ok
    return core


def published(outbound):
    return [
        converter.unstructure(params)
        for method, params in (c.args for c in outbound.send_notification.call_args_list)
        if method == types.TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS
    ]


def logged(outbound):
    return [
        converter.unstructure(params)
        for method, params in (c.args for c in outbound.send_notification.call_args_list)
        if method == types.WINDOW_LOG_MESSAGE
    ]


def did_open(text, version=1, uri=URI):
    return Notification(
        types.TEXT_DOCUMENT_DID_OPEN,
        {
            "textDocument": {
                "uri": uri,
                "languageId": "mcn-16",
                "version": version,
                "text": text,
            }
        },
    )


def did_change(text, version, uri=URI):
    return Notification(
        types.TEXT_DOCUMENT_DID_CHANGE,
        {
            "textDocument": {"uri": uri, "version": version},
            "contentChanges": [{"text": text}],
        },
    )


def test_initialize_advertises_full_sync(core, outbound):
    """Test that initialize returns full-document sync and stores the channel."""
    response = core.dispatch(Request(id=1, method=types.INITIALIZE, params={}), outbound)

    assert response.id == 1
    assert response.result.capabilities.text_document_sync == types.TextDocumentSyncKind.Full
    assert core.phase is ServerPhase.READY
    assert core.outbound is outbound


def test_initialize_result_wire_shape(core, outbound):
    result = core.dispatch(Request(id=1, method=types.INITIALIZE, params={}), outbound).to_json()[
        "result"
    ]

    assert result["capabilities"]["textDocumentSync"] == 1
    assert result["capabilities"]["diagnosticProvider"] == {
        "interFileDependencies": False,
        "workspaceDiagnostics": True,
    }
    assert result["serverInfo"]["name"] == "mcnls"


def test_edit_session_publishes_fresh_diagnostics(ready, outbound):
    """Test open, change and a stale change in sequence."""
    ready.dispatch(did_open("hi", version=1))

    (first,) = published(outbound)
    assert first["uri"] == URI
    assert first["version"] == 1
    assert len(first["diagnostics"]) >= 1
    assert all(d["severity"] == types.DiagnosticSeverity.Error for d in first["diagnostics"])

    ready.dispatch(did_change("debug 1\n", version=2))

    second = published(outbound)[-1]
    assert second["version"] == 2
    assert second["diagnostics"] == []
    assert ready.last_result == Success("LAL 17\nLAL 1\n")

    ready.dispatch(did_change("debug 2\n", version=1))

    assert len(published(outbound)) == 2
    assert ready.document.text == "debug 1\n"
    assert ready.document.version == 2
    assert ready.last_result == Success("LAL 17\nLAL 1\n")


def test_stale_version_does_not_recompile(outbound):
    adapter = Mock(wraps=CompilerAdapter())
    core = ServerCore(adapter=adapter)
    core.dispatch(Request(id=1, method=types.INITIALIZE, params={}), outbound)

    core.dispatch(did_open("pass", version=5))
    core.dispatch(did_change("debug", version=5))
    core.dispatch(did_change("debug", version=3))

    adapter.compile.assert_called_once_with("pass")


def test_only_first_content_change_is_applied(ready, outbound):
    ready.dispatch(did_open("pass", version=1))
    ready.dispatch(
        Notification(
            types.TEXT_DOCUMENT_DID_CHANGE,
            {
                "textDocument": {"uri": URI, "version": 2},
                "contentChanges": [{"text": "debug"}, {"text": "hi"}],
            },
        )
    )

    assert ready.document.text == "debug"
    assert published(outbound)[-1]["diagnostics"] == []


def test_change_without_content_is_ignored(ready, outbound):
    ready.dispatch(did_open("pass", version=1))
    ready.dispatch(
        Notification(
            types.TEXT_DOCUMENT_DID_CHANGE,
            {"textDocument": {"uri": URI, "version": 2}, "contentChanges": []},
        )
    )

    assert ready.document.version == 1
    assert len(published(outbound)) == 1
    assert logged(outbound)[-1]["type"] == types.MessageType.Warning


def test_did_close_clears_diagnostics(ready, outbound):
    ready.dispatch(did_open("hi", version=4))
    ready.dispatch(
        Notification(types.TEXT_DOCUMENT_DID_CLOSE, {"textDocument": {"uri": URI}})
    )

    assert ready.document is None
    assert ready.last_result is None
    assert published(outbound)[-1]["diagnostics"] == []

    ready.dispatch(did_open("pass", version=1))

    assert ready.document.version == 1


def test_notifications_before_initialize_are_ignored(core):
    core.dispatch(did_open("hi"))

    assert core.document is None
    assert core.phase is ServerPhase.UNINITIALIZED


def test_requests_before_initialize_are_rejected(core):
    response = core.dispatch(Request(id=3, method=types.SHUTDOWN))

    assert response.error.code == types.ErrorCodes.ServerNotInitialized
    assert core.phase is ServerPhase.UNINITIALIZED


def test_unknown_request_method(ready):
    response = ready.dispatch(Request(id=9, method="mcn/unknown", params={}))

    assert response.id == 9
    assert response.error.code == types.ErrorCodes.MethodNotFound
    assert ready.phase is ServerPhase.READY


def test_unknown_notification_is_ignored(ready, outbound):
    calls = len(outbound.send_notification.call_args_list)

    assert ready.dispatch(Notification("mcn/unknown", {"x": 1})) is None
    assert len(outbound.send_notification.call_args_list) == calls


@pytest.mark.parametrize(
    "method, params",
    [
        (types.INITIALIZED, {}),
        (types.CANCEL_REQUEST, {"id": 4}),
        (types.SET_TRACE, {"value": "verbose"}),
    ],
)
def test_ignored_notifications(ready, method, params):
    assert ready.dispatch(Notification(method, params)) is None
    assert ready.phase is ServerPhase.READY


def test_second_initialize_keeps_the_first_channel(ready, outbound):
    other = OutboundChannel(send_request=Mock(), send_notification=Mock())

    response = ready.dispatch(Request(id=2, method=types.INITIALIZE, params={}), other)

    assert response.error.code == types.ErrorCodes.InvalidRequest
    assert ready.outbound is outbound


def test_initialize_requires_outbound_channel(core):
    response = core.dispatch(Request(id=1, method=types.INITIALIZE, params={}))

    assert response.error.code == types.ErrorCodes.InvalidRequest
    assert core.phase is ServerPhase.UNINITIALIZED


def test_initialization_options_configure_the_server(core, outbound):
    params = {"initializationOptions": {"maxSourceLength": 4, "diagnosticSource": "asm"}}
    core.dispatch(Request(id=1, method=types.INITIALIZE, params=params), outbound)

    core.dispatch(did_open("debug 1"))

    (diagnostic,) = published(outbound)[0]["diagnostics"]
    assert diagnostic["source"] == "asm"
    assert "too large" in diagnostic["message"]


def test_invalid_initialization_options(core, outbound):
    params = {"initializationOptions": {"maxSourceLength": "lots"}}

    response = core.dispatch(Request(id=1, method=types.INITIALIZE, params=params), outbound)

    assert response.error.code == types.ErrorCodes.InvalidParams
    assert core.phase is ServerPhase.UNINITIALIZED
    assert core.outbound is None


def test_malformed_notification_params_are_dropped(ready, outbound):
    ready.dispatch(Notification(types.TEXT_DOCUMENT_DID_OPEN, "not an object"))
    ready.dispatch(Notification(types.TEXT_DOCUMENT_DID_OPEN, {"textDocument": {}}))

    assert ready.document is None
    assert published(outbound) == []
    assert ready.phase is ServerPhase.READY


def test_engine_fault_becomes_internal_diagnostic(outbound):
    def engine(source):
        raise RuntimeError("engine crashed")

    core = ServerCore(adapter=CompilerAdapter(engine=engine))
    core.dispatch(Request(id=1, method=types.INITIALIZE, params={}), outbound)

    core.dispatch(did_open("pass"))

    (diagnostic,) = published(outbound)[0]["diagnostics"]
    assert diagnostic["source"] == "internal"
    assert diagnostic["severity"] == types.DiagnosticSeverity.Error
    assert isinstance(core.last_result, Failure)


def test_handler_fault_does_not_stop_the_server(outbound):
    """Test that an exception inside a handler is logged and contained."""
    adapter = Mock()
    adapter.compile.side_effect = RuntimeError("boom")
    core = ServerCore(adapter=adapter)
    core.dispatch(Request(id=1, method=types.INITIALIZE, params={}), outbound)

    core.dispatch(did_open("pass"))

    assert core.phase is ServerPhase.READY
    error_log = logged(outbound)[-1]
    assert error_log["type"] == types.MessageType.Error
    assert "boom" in error_log["message"]

    response = core.dispatch(Request(id=2, method=types.SHUTDOWN))
    assert response.ok


def test_failing_outbound_channel_is_contained(core):
    outbound = OutboundChannel(
        send_request=Mock(),
        send_notification=Mock(side_effect=ConnectionError("closed")),
    )

    response = core.dispatch(Request(id=1, method=types.INITIALIZE, params={}), outbound)
    core.dispatch(did_open("debug"))

    assert response.ok
    assert core.document.text == "debug"
    assert outbound.send_notification.call_count == 2


def test_log_to_client_can_be_disabled(outbound):
    core = ServerCore(settings=ServerSettings(log_to_client=False))

    core.dispatch(Request(id=1, method=types.INITIALIZE, params={}), outbound)

    assert logged(outbound) == []


def test_pull_diagnostics(ready):
    ready.dispatch(did_open("hi"))

    response = ready.dispatch(
        Request(id=5, method=types.TEXT_DOCUMENT_DIAGNOSTIC, params={"textDocument": {"uri": URI}})
    )

    assert len(response.result.items) == 1
    assert response.to_json()["result"]["kind"] == "full"

    other = ready.dispatch(
        Request(
            id=6,
            method=types.TEXT_DOCUMENT_DIAGNOSTIC,
            params={"textDocument": {"uri": "file:///other.mcn"}},
        )
    )
    assert other.result.items == []


def test_pull_diagnostics_with_bad_params(ready):
    response = ready.dispatch(Request(id=5, method=types.TEXT_DOCUMENT_DIAGNOSTIC, params=[]))

    assert response.error.code == types.ErrorCodes.InvalidParams


def test_workspace_diagnostics(ready):
    empty = ready.dispatch(Request(id=5, method=types.WORKSPACE_DIAGNOSTIC, params={}))
    assert empty.result.items == []

    ready.dispatch(did_open("hi", version=3))
    response = ready.dispatch(Request(id=6, method=types.WORKSPACE_DIAGNOSTIC, params={}))

    (report,) = response.result.items
    assert report.uri == URI
    assert report.version == 3
    assert len(report.items) == 1


def test_shutdown_then_exit(ready, outbound):
    response = ready.dispatch(Request(id=7, method=types.SHUTDOWN))

    assert response.ok
    assert response.result is None
    assert ready.phase is ServerPhase.SHUTTING_DOWN

    ready.dispatch(did_change("debug", version=10))
    assert ready.document is None

    late = ready.dispatch(Request(id=8, method=types.TEXT_DOCUMENT_DIAGNOSTIC, params={}))
    assert late.error.code == types.ErrorCodes.InvalidRequest

    ready.dispatch(Notification(types.EXIT))
    assert ready.phase is ServerPhase.EXITED
    assert ready.exit_code == 0


def test_exit_without_shutdown(core):
    core.dispatch(Notification(types.EXIT))

    assert core.phase is ServerPhase.EXITED
    assert core.exit_code == 1


def test_cores_do_not_share_state(outbound):
    first, second = ServerCore(), ServerCore()
    other = OutboundChannel(send_request=Mock(), send_notification=Mock())
    first.dispatch(Request(id=1, method=types.INITIALIZE, params={}), outbound)
    second.dispatch(Request(id=1, method=types.INITIALIZE, params={}), other)

    first.dispatch(did_open("hi"))

    assert second.document is None
    assert published(other) == []


def test_receive_envelopes(core, outbound):
    init = core.receive(json.dumps({"kind": "init", "params": {}}), outbound)
    assert init.id == 0
    assert init.ok

    opened = {"kind": "notification", "method": types.TEXT_DOCUMENT_DID_OPEN, "params": did_open("pass").params}
    assert core.receive(json.dumps(opened)) is None
    assert core.document.text == "pass"

    response = core.receive({"kind": "request", "id": 3, "method": types.SHUTDOWN})
    assert response.id == 3
    assert core.phase is ServerPhase.SHUTTING_DOWN


def test_receive_malformed_envelopes(core):
    assert core.receive("{not json") is None

    response = core.receive('{"kind": "request", "id": 7}')

    assert response.id == 7
    assert response.error.code == types.ErrorCodes.InvalidRequest


def test_json_channel_sends_wire_shaped_params():
    sent = []
    core = ServerCore()
    channel = OutboundChannel.for_json(
        Mock(), lambda method, params: sent.append((method, params))
    )
    core.receive(json.dumps({"kind": "init", "params": {}}), channel)

    core.receive(
        {
            "kind": "notification",
            "method": types.TEXT_DOCUMENT_DID_OPEN,
            "params": did_open("hi").params,
        }
    )

    method, params = sent[-1]
    assert method == types.TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS
    assert params["uri"] == URI
    assert params["diagnostics"][0]["severity"] == 1
    json.dumps(sent)
