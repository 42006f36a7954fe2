from __future__ import annotations

from types import SimpleNamespace

import pytest

import memsfcr.transport.uart as uart_mod
from memsfcr.transport.errors import TransportIOError, TransportOpenError


class FakeSerial:
    def __init__(self, port, **kwargs):
        self.port = port
        self.kwargs = kwargs
        self.is_open = True

        self.chunks: list[bytes] = []
        self.written: list[bytes] = []
        self.fail_with: Exception | None = None

        self.resets = 0
        self.flushes = 0
        self.closes = 0

    def reset_input_buffer(self):
        self.resets += 1

    def reset_output_buffer(self):
        self.resets += 1

    def read(self, n: int) -> bytes:
        if self.fail_with is not None:
            raise self.fail_with
        return self.chunks.pop(0) if self.chunks else b""

    def write(self, data: bytes) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        self.written.append(data)
        return len(data)

    def flush(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.flushes += 1

    def close(self) -> None:
        self.closes += 1
        self.is_open = False


@pytest.fixture
def fake_serial(monkeypatch):
    created = {}

    def ctor(port, **kwargs):
        created["ser"] = FakeSerial(port, **kwargs)
        return created["ser"]

    monkeypatch.setattr(uart_mod.serial, "Serial", ctor)
    return created


def test_open_uses_mems_line_settings(fake_serial, monkeypatch):
    monkeypatch.setattr(uart_mod.sys, "platform", "linux")
    t = uart_mod.UARTTransport("/dev/ttyUSB0")
    t.open()

    ser = fake_serial["ser"]
    assert t.is_open() is True
    assert ser.port == "/dev/ttyUSB0"
    assert ser.kwargs["baudrate"] == 9600
    assert ser.kwargs["bytesize"] == uart_mod.serial.EIGHTBITS
    assert ser.kwargs["parity"] == uart_mod.serial.PARITY_NONE
    assert ser.kwargs["stopbits"] == uart_mod.serial.STOPBITS_ONE
    assert ser.kwargs["exclusive"] is True
    assert ser.resets == 2


def test_open_on_windows_skips_exclusive(fake_serial, monkeypatch):
    monkeypatch.setattr(uart_mod.sys, "platform", "win32")
    uart_mod.UARTTransport("COM3").open()
    assert "exclusive" not in fake_serial["ser"].kwargs


@pytest.mark.parametrize("exc", [uart_mod.SerialException("busy"), ValueError("bad baud")])
def test_open_failure_raises_open_error(monkeypatch, exc):
    def ctor(*a, **k):
        raise exc

    monkeypatch.setattr(uart_mod.serial, "Serial", ctor)

    t = uart_mod.UARTTransport("/dev/ttyUSB9")
    with pytest.raises(TransportOpenError):
        t.open()
    assert t.ser is None
    assert t.is_open() is False


@pytest.mark.parametrize("op", [lambda t: t.read(1), lambda t: t.write(b"\x80"), lambda t: t.flush()])
def test_io_before_open_raises(op):
    with pytest.raises(TransportIOError):
        op(uart_mod.UARTTransport("/dev/ttyUSB0"))


def test_read_collects_until_n_or_timeout(fake_serial):
    t = uart_mod.UARTTransport("/dev/ttyUSB0")
    t.open()
    fake_serial["ser"].chunks = [b"\x80", b"\x1C\x03", b""]

    assert t.read(29) == b"\x80\x1C\x03"


def test_write_and_flush_pass_through(fake_serial):
    t = uart_mod.UARTTransport("/dev/ttyUSB0")
    t.open()

    assert t.write(b"\xF4") == 1
    t.flush()

    assert fake_serial["ser"].written == [b"\xF4"]
    assert fake_serial["ser"].flushes == 1


@pytest.mark.parametrize("op", [lambda t: t.read(1), lambda t: t.write(b"\x80"), lambda t: t.flush()])
def test_serial_failure_drops_port_and_raises(fake_serial, op):
    t = uart_mod.UARTTransport("/dev/ttyUSB0")
    t.open()
    fake_serial["ser"].fail_with = uart_mod.SerialException("device disconnected")

    with pytest.raises(TransportIOError):
        op(t)
    assert t.ser is None


def test_close_is_idempotent(fake_serial):
    t = uart_mod.UARTTransport("/dev/ttyUSB0")
    t.open()
    t.close()
    t.close()

    assert fake_serial["ser"].closes == 1
    assert t.is_open() is False


def test_describe():
    assert uart_mod.UARTTransport("COM7", baudrate=9600).describe() == "uart:COM7@9600"


def test_list_serial_ports(monkeypatch):
    monkeypatch.setattr(
        uart_mod.list_ports,
        "comports",
        lambda: [SimpleNamespace(device="/dev/ttyUSB0"), SimpleNamespace(device="/dev/ttyS0")],
    )
    assert uart_mod.list_serial_ports() == ["/dev/ttyUSB0", "/dev/ttyS0"]
