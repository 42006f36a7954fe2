# memsfcr/runtime/orchestrator.py
from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Optional, Protocol as TypingProtocol

from memsfcr.core.errors import CommandRejectedError, ConnectError, TransactionError
from memsfcr.model.messages import CommandResult
from memsfcr.protocol.dataframe import DataFrame
from memsfcr.protocol.defs import Command
from memsfcr.protocol.ecu_client import EcuClient
from memsfcr.runtime.connection import ConnectionManager
from memsfcr.runtime.session import Session
from memsfcr.runtime.state import ConnectionStatus, SessionState

# how long the idle loop sleeps between checks for a connect request
_IDLE_WAIT_S = 0.1

# states in which a connect request is accepted
_IDLE_STATES = frozenset({SessionState.DISCONNECTED, SessionState.LOST})


class Publisher(TypingProtocol):
    """Where the orchestrator hands its results. Must never block."""
    def publish_frame(self, frame: DataFrame) -> None: ...
    def publish_result(self, result: CommandResult) -> None: ...
    def publish_status(self, status: ConnectionStatus) -> None: ...


class SessionOrchestrator:
    """
    Runs the command/response cycle against the ECU on one worker thread.

    Each iteration either executes one queued command or, when the queue is
    empty, the scheduled action for the current state: a data poll while
    CONNECTED, a heartbeat while PAUSED. Scheduled actions are paced from the
    end of the previous scheduled transaction. Queued commands wake the cycle
    early and are serviced before the next scheduled action.

    The worker thread is the only code that touches the transport: connect,
    handshake, cycle and close all run on it.
    """

    def __init__(
        self,
        session: Session,
        connection: ConnectionManager,
        publisher: Publisher,
        *,
        command_queue_size: int = 16,
        logger: Optional[logging.Logger] = None,
    ):
        self._session = session
        self._connection = connection
        self._publisher = publisher
        self._log = logger or logging.getLogger(__name__)

        self._commands: "queue.Queue[Command]" = queue.Queue(maxsize=int(command_queue_size))
        self._connect_requested = threading.Event()
        self._stop_event = threading.Event()
        self.finished = threading.Event()

        self._thread: Optional[threading.Thread] = None
        self._client: Optional[EcuClient] = None
        self._last_scheduled: Optional[float] = None

    # ---------------- Lifecycle ----------------
    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self.finished.clear()
        self._thread = threading.Thread(target=self._run, name="MemsOrchestrator", daemon=True)
        self._thread.start()
        self._log.info("ORCHESTRATOR_STARTED")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cooperative stop, observed between iterations."""
        self._stop_event.set()
        self._session.signal()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None

        if self._client is not None:
            self._connection.close(self._client)
            self._client = None
        if self._session.is_active:
            self._session.transition(SessionState.DISCONNECTED)
        self.finished.set()
        self._log.info("ORCHESTRATOR_STOPPED")

    # ---------------- Inputs ----------------
    def request_connect(self) -> None:
        """Ask the worker thread to (re)connect. Ignored while connected or connecting."""
        if self._session.state not in _IDLE_STATES:
            self._log.info("CONNECT_IGNORED state=%s", self._session.state.value)
            return
        self._connect_requested.set()
        self._session.signal()

    def submit(self, command: Command) -> bool:
        """Queue an on-demand command. Returns False if it was not accepted."""
        if not self._session.is_active:
            self._log.warning("CMD_DROPPED_NOT_CONNECTED cmd=%s state=%s", command.value, self._session.state.value)
            return False
        try:
            self._commands.put_nowait(command)
        except queue.Full:
            self._log.warning("CMD_QUEUE_FULL dropped_cmd=%s", command.value)
            return False
        self._log.info("CMD_QUEUED cmd=%s", command.value)
        self._session.signal()
        return True

    # ---------------- Worker ----------------
    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                if self._session.is_active:
                    self._cycle_once()
                else:
                    self._idle_once()
            except Exception:
                # anything unexpected ends the link rather than the thread
                self._log.exception("ORCHESTRATOR_CYCLE_ERROR")
                self._lose("internal error")
                self._stop_event.wait(0.01)

    def _idle_once(self) -> None:
        if not self._connect_requested.is_set():
            self._session.wait_signal(_IDLE_WAIT_S)
            return
        self._connect_requested.clear()
        self._discard_queued()
        try:
            self._client = self._connection.connect()
        except ConnectError as e:
            self._log.warning("ECU_CONNECT_FAILED code=%s msg=%s", e.code, e.message)
            return
        finally:
            # requests that arrived during the attempt are answered by it
            self._connect_requested.clear()
        self._session.reset_loop_count()
        self._last_scheduled = None

    def _cycle_once(self) -> None:
        self._sync_pause()

        if not self._connection.is_alive(self._client):
            self._lose("link not alive")
            return

        command = self._next_command()
        if command is not None:
            self._execute(command)
            return

        paused = self._session.state == SessionState.PAUSED
        interval = self._session.heartbeat_interval_s if paused else self._session.poll_interval_s
        if self._last_scheduled is not None:
            remaining = (self._last_scheduled + interval) - time.monotonic()
            if remaining > 0:
                self._session.wait_signal(remaining)
                return

        if paused:
            self._heartbeat()
        else:
            self._poll()

    def _sync_pause(self) -> None:
        state = self._session.state
        if self._session.is_paused and state == SessionState.CONNECTED:
            self._session.transition(SessionState.PAUSED)
            self._log.info("DATA_LOOP_PAUSED sending heartbeats to keep the connection alive")
        elif not self._session.is_paused and state == SessionState.PAUSED:
            self._session.transition(SessionState.CONNECTED)
            self._log.info("DATA_LOOP_RESUMED")

    def _poll(self) -> None:
        self._log.debug("SENDING_DATAFRAME_REQUEST")
        try:
            frame = self._client.read_dataframe()
        except TransactionError as e:
            self._lose(e.message)
            return
        finally:
            self._last_scheduled = time.monotonic()

        self._publisher.publish_frame(frame)
        count = self._session.record_poll()
        self._log.debug("DATAFRAME_RECEIVED loop=%d", count)

        if self._session.loop_exhausted:
            self._finish()

    def _heartbeat(self) -> None:
        self._log.debug("SENDING_HEARTBEAT")
        try:
            self._client.send_command(Command.HEARTBEAT)
        except CommandRejectedError as e:
            # the ECU answered, so the link is up
            self._log.warning("HEARTBEAT_REJECTED status=%s", e.status)
        except TransactionError as e:
            self._lose(e.message)
        finally:
            self._last_scheduled = time.monotonic()

    def _execute(self, command: Command) -> None:
        self._log.info("EXECUTING_CMD cmd=%s", command.value)
        try:
            if command == Command.DATAFRAME:
                if self._session.state == SessionState.PAUSED:
                    self._log.warning("CMD_REJECTED_PAUSED cmd=%s", command.value)
                    self._publisher.publish_result(
                        CommandResult(command=command.value, ok=False, error="data polling is paused")
                    )
                    return
                self._publisher.publish_frame(self._client.read_dataframe())
                return
            result = self._client.send_command(command)
        except CommandRejectedError as e:
            self._log.warning("CMD_REJECTED cmd=%s status=%s", command.value, e.status)
            result = CommandResult(command=command.value, ok=False, value=e.status, error=e.message)
        except TransactionError as e:
            self._lose(e.message)
            return

        self._publisher.publish_result(result)

    def _next_command(self) -> Optional[Command]:
        try:
            return self._commands.get_nowait()
        except queue.Empty:
            return None

    def _discard_queued(self) -> None:
        while True:
            try:
                stale = self._commands.get_nowait()
            except queue.Empty:
                return
            self._log.info("CMD_DISCARDED cmd=%s", stale.value)

    # ---------------- Endings ----------------
    def _lose(self, reason: str) -> None:
        if not self._session.mark_lost(reason):
            return
        self._connection.close(self._client)
        self._client = None
        self._log.warning("ECU_CONNECTION_LOST reason=%s", reason)
        self._publisher.publish_status(ConnectionStatus(connected=False, initialised=False))

    def _finish(self) -> None:
        self._log.info("LOOP_COMPLETE count=%d", self._session.loop_count)
        self._connection.close(self._client)
        self._client = None
        self._session.transition(SessionState.DISCONNECTED)
        self._publisher.publish_status(ConnectionStatus(connected=False, initialised=False))
        self._stop_event.set()
        self.finished.set()
