# memsfcr/cli/console.py
"""
Console stand-in for the browser view.

- ConsolePresenter prints outbound messages (status, data, ECU responses).
- StdinActionReader turns lines typed on stdin into UI actions.
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import Optional, TextIO

from memsfcr.app.bridge import QueueBridge
from memsfcr.model import messages as m
from memsfcr.model.messages import OutboundMessage, UIAction

_log = logging.getLogger(__name__)


def format_message(msg: OutboundMessage, *, show_frames: bool = True) -> Optional[str]:
    p = msg.payload or {}
    if msg.action == m.OUT_CONNECTION_STATUS:
        return f"[status] connected={p.get('connected')} initialised={p.get('initialised')}"
    if msg.action == m.OUT_DATA:
        if not show_frames:
            return None
        return (
            f"{p.get('time', '')} rpm={p.get('engine_rpm'):5d} "
            f"coolant={p.get('coolant_temp')}C map={p.get('map_kpa')}kPa "
            f"batt={p.get('battery_voltage'):.1f}V iac={p.get('iac_position')} "
            f"lambda={p.get('lambda_voltage_mv')}mV ltft={p.get('long_term_fuel_trim')} "
            f"dtc={p.get('dtc0', 0):02X}{p.get('dtc1', 0):02X}"
        )
    if msg.action == m.OUT_ECU_RESPONSE:
        state = "ok" if p.get("ok") else f"failed ({p.get('error')})"
        return f"[ecu] {p.get('command')} {state} value={p.get('value')}"
    if msg.action == m.OUT_CONFIG:
        return f"[config] port={p.get('port')} driver={p.get('driver')} loop={p.get('loop')} output={p.get('output')}"
    return f"[{msg.action}] {p}"


class ConsolePresenter(threading.Thread):
    """Prints everything the core publishes to the UI channel."""

    def __init__(
        self,
        bridge: QueueBridge,
        *,
        out: TextIO = sys.stdout,
        show_frames: bool = True,
        as_json: bool = False,
    ):
        super().__init__(name="ConsolePresenter", daemon=True)
        self._bridge = bridge
        self._out = out
        self._show_frames = show_frames
        self._as_json = as_json
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.is_set():
            msg = self._bridge.receive(timeout=0.1)
            if msg is None:
                continue
            self._emit(msg)

    def drain(self) -> None:
        """Print whatever is still queued (after the core stopped)."""
        while True:
            msg = self._bridge.receive(timeout=0)
            if msg is None:
                return
            self._emit(msg)

    def stop(self) -> None:
        self._stop_event.set()

    def _emit(self, msg: OutboundMessage) -> None:
        if self._as_json:
            line = msg.to_json()
        else:
            line = format_message(msg, show_frames=self._show_frames)
        if line:
            print(line, file=self._out, flush=True)


class StdinActionReader(threading.Thread):
    """
    One action per line: a bare kind such as 'pause' or 'clear-faults', or a
    JSON envelope like {"action": "reset-ecu"}.
    """

    def __init__(self, bridge: QueueBridge, *, stream: TextIO = sys.stdin):
        super().__init__(name="StdinActionReader", daemon=True)
        self._bridge = bridge
        self._stream = stream

    def run(self) -> None:
        for line in self._stream:
            text = line.strip()
            if not text:
                continue
            if text.startswith("{"):
                try:
                    self._bridge.send_json(text)
                except ValueError as e:
                    _log.warning("UI_ACTION_UNPARSEABLE line=%r err=%s", text, e)
                continue
            self._bridge.send_action(UIAction(text.lower()))
