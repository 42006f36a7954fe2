# memsfcr/runtime/connection.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from memsfcr.core.errors import (
    HandshakeRejectedError,
    HandshakeTimeoutError,
    MalformedResponseError,
    PortUnavailableError,
    TransactionIOError,
    TransactionTimeoutError,
)
from memsfcr.interfaces.command_sink import CommandSink
from memsfcr.protocol import codec
from memsfcr.protocol.ecu_client import EcuClient
from memsfcr.runtime.session import Session
from memsfcr.runtime.state import ConnectionStatus, SessionState
from memsfcr.transport.base import Transport
from memsfcr.transport.errors import TransportError

StatusCallback = Callable[[ConnectionStatus], None]


class ConnectionManager:
    """
    Owns the physical link to the ECU.

    Responsibilities:
      - open/close the transport
      - run the ECU initialisation handshake
      - answer liveness queries from the last successful transaction
      - translate low-level failures into ConnectError subclasses

    One attempt per connect() call; retrying is the caller's decision.
    """

    def __init__(
        self,
        transport: Transport,
        session: Session,
        *,
        cmd_timeout_s: float = 1.0,
        liveness_timeout_s: float = 5.0,
        cmd_sink: Optional[CommandSink] = None,
        on_status: Optional[StatusCallback] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._transport = transport
        self._session = session
        self.cmd_timeout_s = float(cmd_timeout_s)
        self.liveness_timeout_s = float(liveness_timeout_s)
        self._cmd_sink = cmd_sink
        self._on_status = on_status
        self._log = logger or logging.getLogger(__name__)

        self._client: Optional[EcuClient] = None

    @property
    def client(self) -> Optional[EcuClient]:
        return self._client

    def connect(self) -> EcuClient:
        if self._session.state == SessionState.LOST:
            self._session.transition(SessionState.DISCONNECTED)

        self._session.transition(SessionState.CONNECTING)
        self._log.info("ECU_CONNECT transport=%s", self._transport.describe())

        try:
            self._transport.open()
        except TransportError as e:
            self._log.warning("TRANSPORT_OPEN_FAILED transport=%s err=%s", self._transport.describe(), e)
            self._fail(str(e))
            raise PortUnavailableError(
                "Could not open the serial port.",
                hint=str(e),
                details={"transport": self._transport.describe()},
            ) from None

        self._session.transition(SessionState.INITIALISING)
        client = EcuClient(
            self._transport,
            cmd_timeout_s=self.cmd_timeout_s,
            cmd_sink=self._cmd_sink,
            logger=self._log,
        )

        try:
            ecu_id = client.initialise()
        except TransactionTimeoutError as e:
            self._close_transport()
            self._fail(e.message)
            raise HandshakeTimeoutError(
                "ECU did not respond to initialisation.",
                hint="Check the ignition is on and the diagnostic cable is connected.",
            ) from None
        except MalformedResponseError as e:
            self._close_transport()
            self._fail(e.message)
            raise HandshakeRejectedError(
                "ECU responded unexpectedly during initialisation.",
                hint=e.hint,
                details=e.details,
            ) from None
        except TransactionIOError as e:
            self._close_transport()
            self._fail(e.message)
            raise PortUnavailableError(
                "Serial port failed during initialisation.",
                hint=e.hint,
            ) from None

        version = codec.ecu_version(ecu_id)
        if version is None:
            self._log.warning("ECU_ID_UNKNOWN ecu_id=%s", ecu_id.hex())
        self._session.set_ecu(ecu_id, version)

        self._client = client
        self._session.transition(SessionState.CONNECTED)
        self._log.info("ECU_CONNECT_OK ecu_id=%s version=%s", ecu_id.hex(), version or "unknown")
        self._notify(ConnectionStatus(connected=True, initialised=True))
        return client

    def is_alive(self, client: Optional[EcuClient]) -> bool:
        if client is None or client is not self._client:
            return False
        if not self._transport.is_open():
            return False
        last_ok = client.last_ok_monotonic
        if last_ok is None:
            return False
        return (time.monotonic() - last_ok) <= self.liveness_timeout_s

    def close(self, client: Optional[EcuClient] = None) -> None:
        if client is not None and client is not self._client:
            return
        self._client = None
        self._close_transport()

    def _close_transport(self) -> None:
        try:
            self._transport.close()
        except Exception:
            self._log.exception("Failed to close transport")

    def _fail(self, reason: str) -> None:
        self._session.set_error(reason)
        self._session.transition(SessionState.DISCONNECTED)
        self._notify(ConnectionStatus(connected=False, initialised=False))

    def _notify(self, status: ConnectionStatus) -> None:
        cb = self._on_status
        if cb is None:
            return
        try:
            cb(status)
        except Exception:
            self._log.exception("STATUS_CALLBACK_ERROR")
