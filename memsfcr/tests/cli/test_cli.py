from __future__ import annotations

import io
import json
import logging

import pytest

import memsfcr.cli.commands as commands_mod
import memsfcr.cli.main as main_mod
from memsfcr.app.bridge import QueueBridge
from memsfcr.cli.args import parse_args
from memsfcr.cli.console import ConsolePresenter, StdinActionReader, format_message
from memsfcr.core.errors import PortUnavailableError
from memsfcr.model.messages import OutboundMessage


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)


def test_parse_run_options():
    args = parse_args(["--debug", "run", "--port", "COM3", "--loop", "10", "--output", "file", "--driver", "virtual"])
    assert args.cmd == "run"
    assert args.debug is True
    assert (args.port, args.loop, args.output, args.driver) == ("COM3", "10", "file", "virtual")
    assert args.interactive is False
    assert args.json is False


def test_parse_rejects_unknown_output():
    with pytest.raises(SystemExit):
        parse_args(["run", "--output", "websocket"])


def test_ports_command(monkeypatch, capsys):
    monkeypatch.setattr(commands_mod, "list_serial_ports", lambda: ["/dev/ttyUSB0"])
    assert main_mod.main(["ports"]) == 0
    assert "/dev/ttyUSB0" in capsys.readouterr().out


def test_mems_error_maps_to_exit_code(monkeypatch, capsys):
    def boom(args):
        raise PortUnavailableError("Could not open the serial port.", hint="port busy")

    monkeypatch.setattr(main_mod, "cmd_run", boom)

    assert main_mod.main(["run"]) == 1
    out = capsys.readouterr().out
    assert "ERROR: Could not open the serial port." in out
    assert "Hint: port busy" in out


def test_run_with_virtual_ecu(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("memsfcr.app.controller.list_serial_ports", lambda: [])

    rc = main_mod.main(["run", "--driver", "virtual", "--port", "sim", "--loop", "2"])

    assert rc == 0
    out = capsys.readouterr().out
    assert "Frames read: 2" in out
    assert "[status] connected=True" in out


def test_debug_logging_writes_file(tmp_path):
    path = commands_mod.configure_logging(True, log_dir=tmp_path)
    logging.getLogger("memsfcr.test").debug("hello debug")
    for h in logging.getLogger().handlers:
        h.flush()

    assert path is not None and path.name.startswith("debug-")
    assert "hello debug" in path.read_text(encoding="utf-8")


def test_format_messages():
    assert format_message(OutboundMessage("connection-status", {"connected": False, "initialised": False})) == (
        "[status] connected=False initialised=False"
    )
    line = format_message(OutboundMessage("ecu-response", {"command": "reset_ecu", "ok": True, "value": 0}))
    assert line == "[ecu] reset_ecu ok value=0"
    assert format_message(OutboundMessage("data", {}), show_frames=False) is None


def test_stdin_reader_sends_actions():
    bridge = QueueBridge()
    reader = StdinActionReader(bridge, stream=io.StringIO("pause\n\n  Clear-Faults \n"))
    reader.run()

    assert bridge.next_action(timeout=0).action == "pause"
    assert bridge.next_action(timeout=0).action == "clear-faults"
    assert bridge.next_action(timeout=0) is None


def test_stdin_reader_accepts_json_envelopes(caplog):
    bridge = QueueBridge()
    stream = io.StringIO('{"action": "reset-ecu"}\n{"action": \n{"action": "increase-idle-speed", "data": 1}\n')
    with caplog.at_level(logging.WARNING):
        StdinActionReader(bridge, stream=stream).run()

    assert bridge.next_action(timeout=0).action == "reset-ecu"
    assert bridge.next_action(timeout=0).action == "increase-idle-speed"
    assert bridge.next_action(timeout=0) is None
    assert any("UI_ACTION_UNPARSEABLE" in r.getMessage() for r in caplog.records)


def test_presenter_prints_json_envelopes():
    bridge = QueueBridge()
    out = io.StringIO()
    bridge.outbound.put(OutboundMessage("connection-status", {"connected": True, "initialised": True}))

    ConsolePresenter(bridge, out=out, as_json=True).drain()

    line = out.getvalue().strip()
    assert json.loads(line) == {"action": "connection-status", "data": {"connected": True, "initialised": True}}


def test_run_logs_startup_line(monkeypatch, tmp_path, caplog):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("memsfcr.app.controller.list_serial_ports", lambda: [])
    caplog.set_level(logging.INFO)

    rc = main_mod.main(["run", "--driver", "virtual", "--port", "sim", "--loop", "1", "--json"])

    assert rc == 0
    start = [r.getMessage() for r in caplog.records if r.getMessage().startswith("MEMSFCR_START")]
    assert len(start) == 1
    assert "version=" in start[0] and "home=" in start[0] and "driver=virtual" in start[0]
    assert any(r.getMessage().startswith("COMMAND_SUMMARY") for r in caplog.records)
