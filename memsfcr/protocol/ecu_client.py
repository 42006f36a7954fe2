# memsfcr/protocol/ecu_client.py
from __future__ import annotations

import itertools
import logging
import threading
import time
from typing import Optional, Protocol as TypingProtocol

from memsfcr.core.errors import (
    CommandRejectedError,
    MalformedResponseError,
    TransactionIOError,
    TransactionTimeoutError,
)
from memsfcr.interfaces.command_sink import CommandEvent, CommandSink
from memsfcr.model.messages import CommandResult
from memsfcr.transport.errors import TransportError

from . import codec
from .dataframe import DataFrame, decode_dataframe
from .defs import (
    Command,
    CommandDef,
    DATAFRAME_7D,
    DATAFRAME_80,
    ECU_ID,
    INIT_A,
    INIT_B,
    command_def,
)
from .errors import DecodeError, ProtocolError, ShortReply


class TransportIO(TypingProtocol):
    """Minimal I/O interface for EcuClient."""
    def write(self, data: bytes) -> int: ...
    def read(self, size: int) -> bytes: ...
    def flush(self) -> None: ...


class EcuClient:
    """
    Request/response API over an open transport.

    The ECU answers exactly one outstanding request at a time; every
    transaction holds `_lock` from write until the full reply is read.
    """

    def __init__(
        self,
        transport: TransportIO,
        *,
        cmd_timeout_s: float = 1.0,
        cmd_sink: Optional[CommandSink] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._transport = transport
        self.cmd_timeout_s = float(cmd_timeout_s)
        self._cmd_sink = cmd_sink
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self._last_ok_monotonic: Optional[float] = None

    @property
    def last_ok_monotonic(self) -> Optional[float]:
        return self._last_ok_monotonic

    # ---------------- High-level API ----------------
    def initialise(self) -> bytes:
        """Run the 0xCA / 0x75 / 0xD0 handshake and return the 4-byte ECU id."""
        self.transact(INIT_A)
        self.transact(INIT_B)
        return self.transact(ECU_ID)

    def read_dataframe(self) -> DataFrame:
        d80 = self.transact(DATAFRAME_80)
        d7d = self.transact(DATAFRAME_7D)
        try:
            return decode_dataframe(d80, d7d)
        except DecodeError as e:
            raise MalformedResponseError(
                "ECU returned an undecodable data frame.",
                hint=str(e),
                details={"dataframe_80": d80.hex(), "dataframe_7d": d7d.hex()},
            ) from None

    def send_command(self, command: Command) -> CommandResult:
        defn = command_def(command)
        payload = self.transact(defn)
        value = payload[0] if payload else None

        if defn.ack and not codec.is_ack(payload):
            self._emit(defn, "rejected", {"status": value})
            raise CommandRejectedError(
                f"ECU rejected {defn.label} (status=0x{value or 0:02X}).",
                command=command.value,
                status=value if value is not None else -1,
            )

        return CommandResult(command=command.value, ok=True, value=value)

    # ---------------- Transaction ----------------
    def transact(self, defn: CommandDef) -> bytes:
        request = codec.encode(defn)
        want = codec.wire_length(defn)

        with self._lock:
            seq = str(next(self._seq))
            started = time.perf_counter()
            self._log.debug("SENDING_CMD cmd=%s raw=%s", defn.label, request.hex())
            self._emit(defn, "send", None, seq)

            try:
                self._transport.write(request)
                self._transport.flush()
                raw = self._read_reply(want)
            except TransportError as e:
                self._emit(defn, "error", {"error": str(e)}, seq)
                raise TransactionIOError(
                    f"Transport failure during {defn.label}.",
                    hint=str(e),
                ) from None

            rtt_ms = (time.perf_counter() - started) * 1000.0

            if not raw:
                self._emit(defn, "timeout", {"rtt_ms": rtt_ms}, seq)
                raise TransactionTimeoutError(
                    f"{defn.label} timed out after {self.cmd_timeout_s}s.",
                    hint="Check the ECU has ignition power and the cable is seated.",
                )

            try:
                payload = codec.split_reply(defn, raw)
            except ShortReply as e:
                self._emit(defn, "timeout", {"rtt_ms": rtt_ms, "reply": raw.hex()}, seq)
                raise MalformedResponseError(
                    f"Incomplete reply to {defn.label}.",
                    hint=str(e),
                    details={"reply": raw.hex()},
                ) from None
            except ProtocolError as e:
                self._emit(defn, "error", {"rtt_ms": rtt_ms, "reply": raw.hex()}, seq)
                raise MalformedResponseError(
                    f"Unexpected reply to {defn.label}.",
                    hint=str(e),
                    details={"reply": raw.hex()},
                ) from None

            self._last_ok_monotonic = time.monotonic()
            self._log.debug("RECEIVED_REPLY cmd=%s raw=%s rtt_ms=%.1f", defn.label, raw.hex(), rtt_ms)
            self._emit(defn, "ok", {"reply": payload.hex(), "rtt_ms": rtt_ms}, seq)
            return payload

    def _read_reply(self, want: int) -> bytes:
        buf = b""
        deadline = time.monotonic() + self.cmd_timeout_s
        while len(buf) < want and time.monotonic() < deadline:
            buf += self._transport.read(want - len(buf))
        return buf

    def _emit(
        self,
        defn: CommandDef,
        kind: str,
        payload: Optional[dict] = None,
        request_id: Optional[str] = None,
    ) -> None:
        if self._cmd_sink is None:
            return
        fields = {"code": defn.code}
        fields.update(payload or {})
        try:
            self._cmd_sink.on_command(
                CommandEvent(name=defn.label, kind=kind, payload=fields, request_id=request_id)
            )
        except Exception:
            self._log.exception("CMD_SINK_ERROR cmd=%s kind=%s", defn.label, kind)
