# memsfcr/transport/virtual.py
from __future__ import annotations

import logging
import math
import threading
import time
from typing import Optional

from memsfcr.protocol.defs import (
    ACK_OK,
    COMMAND_DEFS,
    Command,
    DATAFRAME_7D,
    DATAFRAME_80,
    ECU_ID,
    INIT_A,
    INIT_B,
)

from .base import Transport
from .errors import TransportIOError

_log = logging.getLogger(__name__)

# Adjustment commands -> (attribute, step)
_ADJUSTMENTS = {
    COMMAND_DEFS[Command.IDLE_SPEED_INCREMENT].code: ("idle_speed_offset", +1),
    COMMAND_DEFS[Command.IDLE_SPEED_DECREMENT].code: ("idle_speed_offset", -1),
    COMMAND_DEFS[Command.IDLE_DECAY_INCREMENT].code: ("idle_hot", +1),
    COMMAND_DEFS[Command.IDLE_DECAY_DECREMENT].code: ("idle_hot", -1),
    COMMAND_DEFS[Command.LTFT_INCREMENT].code: ("long_term_fuel_trim", +1),
    COMMAND_DEFS[Command.LTFT_DECREMENT].code: ("long_term_fuel_trim", -1),
    COMMAND_DEFS[Command.IGNITION_ADVANCE_INCREMENT].code: ("ignition_advance_offset", +1),
    COMMAND_DEFS[Command.IGNITION_ADVANCE_DECREMENT].code: ("ignition_advance_offset", -1),
}

_ACK_CODES = {
    COMMAND_DEFS[Command.HEARTBEAT].code,
    COMMAND_DEFS[Command.CLEAR_FAULTS].code,
    COMMAND_DEFS[Command.RESET_ECU].code,
    COMMAND_DEFS[Command.RESET_ADJUSTMENTS].code,
}

_DEFAULTS = {
    "idle_speed_offset": 0x80,
    "idle_hot": 0x23 + 35,
    "long_term_fuel_trim": 0x80,
    "ignition_advance_offset": 0x80,
}


class VirtualEcuTransport(Transport):
    """
    In-process simulated MEMS 1.6 ECU.

    Every written command byte is answered like a real ECU would: echo plus the
    fixed-length reply. Sensor values drift slowly so a running session shows
    a live-looking time series. Useful without a car attached.
    """

    def __init__(
        self,
        port: str = "virtual",
        *,
        ecu_id: bytes = bytes.fromhex("99000203"),
        reply_delay_s: float = 0.0,
        timeout: float = 0.05,
        fault_codes: bytes = b"\x00\x00",
    ):
        self.port = port
        self.ecu_id = bytes(ecu_id)
        self.reply_delay_s = float(reply_delay_s)
        self.timeout = float(timeout)
        self.fault_codes = bytes(fault_codes)

        self._open = False
        self._rx = bytearray()
        self._cond = threading.Condition()
        self._ticks = 0
        self._state = dict(_DEFAULTS)

    def open(self) -> None:
        with self._cond:
            self._open = True
            self._rx.clear()
        _log.info("VIRTUAL_ECU_OPEN port=%s ecu_id=%s", self.port, self.ecu_id.hex())

    def close(self) -> None:
        with self._cond:
            self._open = False
            self._rx.clear()
            self._cond.notify_all()

    def is_open(self) -> bool:
        return self._open

    def describe(self) -> str:
        return f"virtual:{self.port}"

    def write(self, data: bytes) -> int:
        if not self._open:
            raise TransportIOError("write while transport not open")
        for code in data:
            reply = self._respond(code)
            if self.reply_delay_s > 0:
                time.sleep(self.reply_delay_s)
            with self._cond:
                self._rx.extend(reply)
                self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        deadline = time.monotonic() + self.timeout
        with self._cond:
            while len(self._rx) < n:
                if not self._open:
                    raise TransportIOError("read while transport not open")
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._cond.wait(remaining)
            out = bytes(self._rx[:n])
            del self._rx[:n]
            return out

    def flush(self) -> None:
        if not self._open:
            raise TransportIOError("flush while transport not open")

    # ---------------- ECU behaviour ----------------
    def _respond(self, code: int) -> bytes:
        if code in (INIT_A.code, INIT_B.code):
            return bytes([code])
        if code == ECU_ID.code:
            return bytes([code]) + self.ecu_id
        if code == DATAFRAME_80.code:
            self._ticks += 1
            return bytes([code]) + self._frame_80()
        if code == DATAFRAME_7D.code:
            return bytes([code]) + self._frame_7d()
        if code in _ACK_CODES:
            if code == COMMAND_DEFS[Command.CLEAR_FAULTS].code:
                self.fault_codes = b"\x00\x00"
            elif code == COMMAND_DEFS[Command.RESET_ADJUSTMENTS].code:
                self._state = dict(_DEFAULTS)
            return bytes([code, ACK_OK])
        if code in _ADJUSTMENTS:
            attr, step = _ADJUSTMENTS[code]
            value = max(0, min(0xFF, self._state[attr] + step))
            self._state[attr] = value
            return bytes([code, value])

        # unknown command: echo with a zero byte, as the ECU does
        _log.debug("VIRTUAL_ECU_UNKNOWN_CMD code=0x%02X", code)
        return bytes([code, 0x00])

    def _wave(self, period: float, lo: int, hi: int) -> int:
        mid = (hi + lo) / 2.0
        amp = (hi - lo) / 2.0
        return int(round(mid + amp * math.sin(self._ticks / period)))

    def _frame_80(self) -> bytes:
        rpm = self._wave(15.0, 820, 960)
        coil = 1800 + self._wave(9.0, -40, 40)
        dev = 0
        f = bytearray(DATAFRAME_80.reply_len)
        f[0] = DATAFRAME_80.reply_len
        f[1], f[2] = (rpm >> 8) & 0xFF, rpm & 0xFF
        f[3] = min(0xFF, 55 + 20 + min(self._ticks, 70))   # coolant warms up to 90C
        f[4] = 55 + 18
        f[5] = 55 + 25
        f[6] = 55 + 22
        f[7] = self._wave(7.0, 32, 38)
        f[8] = self._wave(11.0, 138, 142)
        f[9] = 30
        f[10] = 0x10
        f[13], f[14] = self.fault_codes[0], self.fault_codes[1]
        f[15] = 0x88
        f[16] = self._state["idle_hot"]
        f[18] = self._wave(13.0, 30, 40)
        f[19], f[20] = (dev >> 8) & 0xFF, dev & 0xFF
        f[21] = self._state["ignition_advance_offset"]
        f[22] = 60
        f[23], f[24] = (coil >> 8) & 0xFF, coil & 0xFF
        f[25] = 0x01
        return bytes(f)

    def _frame_7d(self) -> bytes:
        f = bytearray(DATAFRAME_7D.reply_len)
        f[0] = DATAFRAME_7D.reply_len
        f[1] = 0x01
        f[2] = 0
        f[4] = 147
        f[6] = self._wave(3.0, 20, 160)
        f[7] = 0xFF
        f[8] = 0xFF
        f[9] = 0x01
        f[10] = 0x01
        f[11] = self._state["long_term_fuel_trim"]
        f[12] = self._wave(5.0, 0x7C, 0x84)
        f[15] = 0x23
        f[18] = self._state["ignition_advance_offset"]
        f[19] = self._state["idle_speed_offset"]
        f[20] = 0x80
        f[31] = 0x40
        return bytes(f)
