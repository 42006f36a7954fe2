from __future__ import annotations

import threading
import time

import pytest

from memsfcr.core.errors import (
    CommandRejectedError,
    MalformedResponseError,
    TransactionIOError,
    TransactionTimeoutError,
)
from memsfcr.protocol.defs import Command, DATAFRAME_80
from memsfcr.protocol.ecu_client import EcuClient
from memsfcr.transport.errors import TransportIOError


class ScriptedEcu:
    """
    TransportIO stub: replies are looked up by command byte.
    A reply may be bytes or a callable returning bytes.
    """
    def __init__(self, replies: dict | None = None):
        self.replies = dict(replies or {})
        self.writes: list[bytes] = []
        self.rx = bytearray()
        self.raise_on_write: Exception | None = None
        self.in_flight = 0
        self.max_in_flight = 0

    def write(self, data: bytes) -> int:
        if self.raise_on_write:
            raise self.raise_on_write
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.writes.append(bytes(data))
        reply = self.replies.get(data[0], b"")
        if callable(reply):
            reply = reply()
        self.rx.extend(reply)
        return len(data)

    def read(self, size: int) -> bytes:
        out = bytes(self.rx[:size])
        del self.rx[:size]
        if out:
            time.sleep(0.001)
            self.in_flight = 0
        return out

    def flush(self) -> None:
        return None


class RecordingSink:
    def __init__(self):
        self.events = []

    def on_command(self, event) -> None:
        self.events.append(event)

    def close(self) -> None: ...


def frame_80() -> bytes:
    f = bytearray(28)
    f[0] = 28
    return bytes(f)


def frame_7d() -> bytes:
    f = bytearray(32)
    f[0] = 32
    return bytes(f)


def handshake_replies(ecu_id: bytes = bytes.fromhex("99000203")) -> dict:
    return {0xCA: b"\xCA", 0x75: b"\x75", 0xD0: b"\xD0" + ecu_id}


def test_initialise_runs_handshake_and_returns_id():
    ecu = ScriptedEcu(handshake_replies())
    client = EcuClient(ecu, cmd_timeout_s=0.2)

    assert client.initialise() == bytes.fromhex("99000203")
    assert ecu.writes == [b"\xCA", b"\x75", b"\xD0"]
    assert client.last_ok_monotonic is not None


def test_read_dataframe_sends_80_then_7d():
    ecu = ScriptedEcu({0x80: b"\x80" + frame_80(), 0x7D: b"\x7D" + frame_7d()})
    client = EcuClient(ecu, cmd_timeout_s=0.2)

    df = client.read_dataframe()

    assert ecu.writes == [b"\x80", b"\x7D"]
    assert df.dataframe_80 == frame_80().hex().upper()


def test_read_dataframe_with_bad_size_byte_is_malformed():
    bad = b"\x00" + frame_80()[1:]
    ecu = ScriptedEcu({0x80: b"\x80" + bad, 0x7D: b"\x7D" + frame_7d()})
    client = EcuClient(ecu, cmd_timeout_s=0.2)

    with pytest.raises(MalformedResponseError):
        client.read_dataframe()


def test_silent_ecu_times_out():
    ecu = ScriptedEcu({})
    sink = RecordingSink()
    client = EcuClient(ecu, cmd_timeout_s=0.05, cmd_sink=sink)

    t0 = time.monotonic()
    with pytest.raises(TransactionTimeoutError):
        client.transact(DATAFRAME_80)
    assert time.monotonic() - t0 >= 0.05
    assert [e.kind for e in sink.events] == ["send", "timeout"]
    assert {e.payload["code"] for e in sink.events} == {0x80}
    assert sink.events[1].name == DATAFRAME_80.label
    assert client.last_ok_monotonic is None


def test_partial_reply_is_malformed():
    ecu = ScriptedEcu({0x80: b"\x80\x1C\x00"})
    client = EcuClient(ecu, cmd_timeout_s=0.05)

    with pytest.raises(MalformedResponseError):
        client.transact(DATAFRAME_80)


def test_wrong_echo_is_malformed():
    ecu = ScriptedEcu({0xCC: b"\xCD\x00"})
    client = EcuClient(ecu, cmd_timeout_s=0.1)

    with pytest.raises(MalformedResponseError) as ei:
        client.send_command(Command.CLEAR_FAULTS)
    assert ei.value.details["reply"] == "cd00"


def test_transport_failure_maps_to_io_error():
    ecu = ScriptedEcu({})
    ecu.raise_on_write = TransportIOError("unplugged")
    sink = RecordingSink()
    client = EcuClient(ecu, cmd_timeout_s=0.1, cmd_sink=sink)

    with pytest.raises(TransactionIOError):
        client.send_command(Command.HEARTBEAT)
    assert sink.events[-1].kind == "error"


def test_ack_command_accepted():
    ecu = ScriptedEcu({0xCC: b"\xCC\x00"})
    client = EcuClient(ecu, cmd_timeout_s=0.1)

    res = client.send_command(Command.CLEAR_FAULTS)

    assert res.ok is True
    assert res.command == Command.CLEAR_FAULTS.value
    assert res.value == 0


def test_ack_command_rejected_raises():
    ecu = ScriptedEcu({0xFA: b"\xFA\x01"})
    sink = RecordingSink()
    client = EcuClient(ecu, cmd_timeout_s=0.1, cmd_sink=sink)

    with pytest.raises(CommandRejectedError) as ei:
        client.send_command(Command.RESET_ECU)
    assert ei.value.status == 1
    assert ei.value.command == Command.RESET_ECU.value
    assert "rejected" in [e.kind for e in sink.events]
    # the ECU answered, so the link counts as alive
    assert client.last_ok_monotonic is not None


def test_adjustment_returns_new_value():
    ecu = ScriptedEcu({0x91: b"\x91\x81"})
    client = EcuClient(ecu, cmd_timeout_s=0.1)

    res = client.send_command(Command.IDLE_SPEED_INCREMENT)

    assert res.ok is True
    assert res.value == 0x81


def test_sink_errors_do_not_break_transactions():
    class BrokenSink:
        def on_command(self, event):
            raise RuntimeError("boom")

        def close(self): ...

    ecu = ScriptedEcu({0xF4: b"\xF4\x00"})
    client = EcuClient(ecu, cmd_timeout_s=0.1, cmd_sink=BrokenSink())

    assert client.send_command(Command.HEARTBEAT).ok is True


def test_concurrent_callers_never_overlap_transactions():
    ecu = ScriptedEcu({0xF4: b"\xF4\x00"})
    client = EcuClient(ecu, cmd_timeout_s=0.2)
    errors = []

    def worker():
        try:
            for _ in range(20):
                client.send_command(Command.HEARTBEAT)
        except Exception as e:  # pragma: no cover
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert errors == []
    assert len(ecu.writes) == 80
    assert ecu.max_in_flight == 1
