from __future__ import annotations

import json

import pytest

from memsfcr.app.bridge import QueueBridge
from memsfcr.model.messages import CommandResult, OutboundMessage, UIAction


def test_send_json_parses_envelope():
    b = QueueBridge()
    b.send_json('{"action": "clear-faults", "data": null}')

    action = b.next_action(timeout=0)
    assert action == UIAction("clear-faults", None)
    assert b.next_action(timeout=0) is None


def test_send_json_rejects_non_object():
    with pytest.raises(ValueError):
        QueueBridge().send_json("[1, 2]")


def test_receive_times_out_empty():
    assert QueueBridge().receive(timeout=0.01) is None


def test_outbound_is_bounded():
    b = QueueBridge(outbound_size=3)
    assert b.outbound.maxsize == 3


def test_outbound_json_envelope():
    msg = OutboundMessage("connection-status", {"connected": True, "initialised": True})
    assert json.loads(msg.to_json()) == {
        "action": "connection-status",
        "data": {"connected": True, "initialised": True},
    }


def test_command_result_dict():
    r = CommandResult(command="idle_speed_increment", ok=True, value=0x81)
    d = r.as_dict()
    assert d["command"] == "idle_speed_increment"
    assert d["value"] == 0x81
    assert d["error"] is None
    assert d["ts_utc"]
