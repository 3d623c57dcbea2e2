from __future__ import annotations

import logging

import pytest

from scpctl.core.catalog import MACRO_RECORD_START, MACRO_RECORD_STOP, MACRO_RECORDING
from scpctl.core.config import SessionConfig
from scpctl.core.dictionary import parse_dictionary
from scpctl.core.errors import TransportConnectError, TransportSendError
from scpctl.core.model import (
    ActionInvocation,
    ConnectionStatus,
    ConsoleModel,
    FeedbackSubscription,
    RenderDirective,
)
from scpctl.core.session import ScpService

DICTIONARY = "\n".join(
    [
        'OK PRM 12 "MIXER:Current/InCh/Fader/Level" 72 1 0 1000 0 "dB" integer 1 1',
        'OK PRM 13 "MIXER:Current/InCh/Fader/On" 72 1 0 1 1 "" integer 1 1',
        'OK PRM 14 "MIXER:Current/InCh/Label/Name" 72 1 0 8 "" "" string 1 1',
        'OK PRM 1000 "MIXER:Lib/Scene" 300 1 0 300 0 "" scene 1 1',
    ]
)
FADER_NOTIFY = "NOTIFY MIXER:Current/InCh/Fader/Level 4 0 250\n"


class FakeTransport:
    def __init__(self, chunks: list[str] | None = None) -> None:
        self.sent: list[str] = []
        self.chunks = list(chunks or [])
        self.connects: list[tuple[str, int, float]] = []
        self.fail_connect = False
        self.fail_send = False
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self, host: str, port: int, *, timeout_s: float = 5.0) -> None:
        if self.fail_connect:
            raise TransportConnectError(f"TCP connect to {host}:{port} failed: refused")
        self.connects.append((host, port, timeout_s))
        self._connected = True

    def send(self, text: str) -> None:
        if self.fail_send:
            raise TransportSendError("TCP send failed: broken pipe")
        self.sent.append(text)

    def receive(self, *, timeout_s: float = 1.0) -> str | None:
        if not self.chunks:
            return None
        return self.chunks.pop(0)

    def close(self) -> None:
        self._connected = False


def _service(transport: FakeTransport | None = None, **config) -> ScpService:
    config.setdefault("host", "192.168.0.128")
    return ScpService(
        SessionConfig(**config),
        transport=transport or FakeTransport(),
        descriptors=parse_dictionary(DICTIONARY),
    )


def _fader_subscription() -> FeedbackSubscription:
    return FeedbackSubscription(id="fader5", command_id="scp_12", options={"X": 5, "Val": 250})


def test_connect_requests_identity_and_polls_subscriptions() -> None:
    transport = FakeTransport()
    statuses: list[tuple[ConnectionStatus, str | None]] = []
    service = ScpService(
        SessionConfig(host="console", timeout_s=2.0),
        transport=transport,
        descriptors=parse_dictionary(DICTIONARY),
        status_listener=lambda status, message: statuses.append((status, message)),
    )
    service.subscribe(_fader_subscription())

    assert service.connect() is True
    assert transport.connects == [("console", 49280, 2.0)]
    assert transport.sent == ["devinfo productname\n", "get MIXER:Current/InCh/Fader/Level 4 0\n"]
    assert service.status is ConnectionStatus.OK
    assert statuses == [(ConnectionStatus.OK, None)]


def test_connect_without_host_reports_error() -> None:
    service = _service(host=None)
    assert service.connect() is False
    assert service.status is ConnectionStatus.ERROR


def test_connect_failure_reports_error(caplog: pytest.LogCaptureFixture) -> None:
    transport = FakeTransport()
    transport.fail_connect = True
    service = _service(transport)

    with caplog.at_level(logging.ERROR):
        assert service.connect() is False
    assert service.status is ConnectionStatus.ERROR
    assert "Network error" in caplog.text


def test_inbound_value_signals_feedback() -> None:
    signalled: list[str] = []
    service = ScpService(
        SessionConfig(host="console"),
        transport=FakeTransport(),
        descriptors=parse_dictionary(DICTIONARY),
        feedback_listener=signalled.append,
    )
    service.subscribe(_fader_subscription())

    assert service.data_received(FADER_NOTIFY) == ["scp_12"]
    assert signalled == ["scp_12"]
    assert service.cache.get(12, 5, 1) == 250
    assert service.check_feedbacks("scp_12") == {
        "fader5": RenderDirective(color=0x000000, bgcolor=0xFF0000, matched=True)
    }


def test_lines_split_across_chunks_are_reassembled() -> None:
    service = _service()
    assert service.data_received("NOTIFY MIXER:Current/InCh/Fa") == []
    assert service.data_received("der/Level 4 0 250\nNOTIFY MIXER:Current/InCh/Fader/On 4 0 0\n") == [
        "scp_12",
        "scp_13",
    ]


def test_device_identity_is_recorded() -> None:
    service = _service()
    assert service.data_received("OK devinfo productname CL5\n") == []
    assert service.product_name == "CL5"


def test_unknown_address_is_dropped(caplog: pytest.LogCaptureFixture) -> None:
    service = _service()
    with caplog.at_level(logging.DEBUG, logger="scpctl.core.session"):
        assert service.data_received("NOTIFY MIXER:Current/Nope/On 0 0 1\n") == []
    assert "Unknown command received" in caplog.text
    assert len(service.cache) == 0


def test_run_action_sends_encoded_line() -> None:
    transport = FakeTransport()
    service = _service(transport)
    service.connect()
    transport.sent.clear()

    line = service.run_action(ActionInvocation(command_id="scp_12", options={"X": 5, "Val": 250}))
    assert line == "set MIXER:Current/InCh/Fader/Level 4 0 250"
    assert transport.sent == ["set MIXER:Current/InCh/Fader/Level 4 0 250\n"]


def test_run_action_unknown_command_is_noop() -> None:
    transport = FakeTransport()
    service = _service(transport)
    service.connect()
    transport.sent.clear()

    assert service.run_action(ActionInvocation(command_id="scp_77", options={"X": 1})) is None
    assert transport.sent == []


def test_run_action_while_disconnected_does_not_send(caplog: pytest.LogCaptureFixture) -> None:
    transport = FakeTransport()
    service = _service(transport)
    with caplog.at_level(logging.INFO):
        line = service.run_action(ActionInvocation(command_id="scp_13", options={"X": 1, "Val": False}))
    assert line == "set MIXER:Current/InCh/Fader/On 0 0 0"
    assert transport.sent == []
    assert "Socket not connected" in caplog.text


def test_scene_recall_triggers_poll() -> None:
    transport = FakeTransport()
    service = _service(transport)
    service.subscribe(_fader_subscription())
    service.connect()
    transport.sent.clear()

    service.run_action(ActionInvocation(command_id="scp_1000", options={"X": 5}))
    assert transport.sent == [
        "ssrecall_ex MIXER:Lib/Scene 5\n",
        "get MIXER:Current/InCh/Fader/Level 4 0\n",
    ]


def test_send_failure_sets_error_status() -> None:
    transport = FakeTransport()
    service = _service(transport)
    service.connect()
    transport.fail_send = True

    service.run_action(ActionInvocation(command_id="scp_12", options={"X": 1, "Val": 0}))
    assert service.status is ConnectionStatus.ERROR


def test_pump_reads_transport() -> None:
    transport = FakeTransport(chunks=[FADER_NOTIFY])
    service = _service(transport)
    service.connect()
    assert service.pump(timeout_s=0.1) == ["scp_12"]
    assert service.pump(timeout_s=0.1) == []


def test_pump_transport_error_sets_error_status(monkeypatch: pytest.MonkeyPatch) -> None:
    transport = FakeTransport()
    service = _service(transport)
    service.connect()

    def _closed(*, timeout_s: float = 1.0) -> str | None:
        raise TransportSendError("Connection closed by console")

    monkeypatch.setattr(transport, "receive", _closed)
    assert service.pump() == []
    assert service.status is ConnectionStatus.ERROR


def test_disconnect_sets_status() -> None:
    transport = FakeTransport()
    service = _service(transport)
    service.connect()
    service.disconnect()
    assert transport.connected is False
    assert service.status is ConnectionStatus.DISCONNECTED


@pytest.mark.parametrize(("clear", "expected"), [(True, 0), (False, 1)])
def test_cache_policy_on_reconnect(clear: bool, expected: int) -> None:
    service = _service(clear_cache_on_reconnect=clear)
    service.connect()
    service.data_received(FADER_NOTIFY)
    service.disconnect()

    service.connect()
    assert len(service.cache) == expected


def test_poll_skips_macro_feedback_and_unencodable_subscriptions() -> None:
    transport = FakeTransport()
    service = _service(transport)
    service.subscribe(FeedbackSubscription(id="rec", command_id=MACRO_RECORDING))
    service.subscribe(FeedbackSubscription(id="bad", command_id="scp_12", options={"X": "oops"}))
    service.subscribe(_fader_subscription())
    service.connect()
    transport.sent.clear()

    assert service.poll() == 1
    assert transport.sent == ["get MIXER:Current/InCh/Fader/Level 4 0\n"]


def test_unsubscribe_removes_subscription() -> None:
    service = _service()
    service.subscribe(_fader_subscription())
    service.unsubscribe("fader5")
    service.unsubscribe("missing")
    service.data_received(FADER_NOTIFY)
    assert service.check_feedbacks("scp_12") == {}


def test_macro_record_and_replay() -> None:
    transport = FakeTransport()
    signalled: list[str] = []
    service = ScpService(
        SessionConfig(host="console"),
        transport=transport,
        descriptors=parse_dictionary(DICTIONARY),
        feedback_listener=signalled.append,
    )
    indicator = FeedbackSubscription(id="rec", command_id=MACRO_RECORDING, options={"fg": 0xFFFFFF, "bg": 0x00FF00})
    service.subscribe(indicator)
    service.connect()

    service.run_action(ActionInvocation(command_id=MACRO_RECORD_START))
    assert service.evaluate(indicator) == RenderDirective(color=0xFFFFFF, bgcolor=0x00FF00, matched=True)
    service.run_action(ActionInvocation(command_id="scp_13", options={"X": 2, "Val": True}))
    service.run_action(ActionInvocation(command_id="scp_12", options={"X": 2, "Val": 500}))
    service.run_action(ActionInvocation(command_id=MACRO_RECORD_STOP))

    assert signalled == [MACRO_RECORDING, MACRO_RECORDING]
    assert service.evaluate(indicator).matched is False
    assert len(service.recorder.macros) == 1
    macro = service.recorder.macros[0]
    assert macro.lines == (
        "set MIXER:Current/InCh/Fader/On 1 0 1",
        "set MIXER:Current/InCh/Fader/Level 1 0 500",
    )

    transport.sent.clear()
    assert service.play_macro(macro) == 2
    assert transport.sent == [
        "set MIXER:Current/InCh/Fader/On 1 0 1\n",
        "set MIXER:Current/InCh/Fader/Level 1 0 500\n",
    ]


def test_empty_macro_is_discarded() -> None:
    service = _service()
    service.run_action(ActionInvocation(command_id=MACRO_RECORD_START))
    service.run_action(ActionInvocation(command_id=MACRO_RECORD_STOP))
    assert service.recorder.macros == []


def test_reload_replaces_session() -> None:
    service = _service()
    service.data_received(FADER_NOTIFY)
    old = service.session

    tf_dictionary = parse_dictionary('OK prminfo 1000 "scene_" 100 2 0 99 0 "" scene any rw 1')
    service.reload(SessionConfig(host="console", model=ConsoleModel.TF), descriptors=tf_dictionary)

    assert service.session is not old
    assert service.config.model is ConsoleModel.TF
    assert len(service.cache) == 0
    assert service.catalog.actions["scp_1000"].label == "Scene/Bank"
    assert "scp_12" not in service.catalog.actions
    assert old.cache.get(12, 5, 1) == 250


def test_macro_indicator_parses_color_strings() -> None:
    service = _service()
    indicator = FeedbackSubscription(id="rec", command_id=MACRO_RECORDING, options={"fg": "#ffffff", "bg": "teal"})
    service.connect()
    service.run_action(ActionInvocation(command_id=MACRO_RECORD_START))
    assert service.evaluate(indicator) == RenderDirective(color=0xFFFFFF, bgcolor=0xFF0000, matched=True)
