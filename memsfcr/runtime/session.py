# memsfcr/runtime/session.py
from __future__ import annotations

import logging
import threading
from typing import Optional

from memsfcr.runtime.state import (
    ACTIVE_STATES,
    TRANSITIONS,
    SessionState,
    SessionStatus,
)


class Session:
    """
    The single relationship between this process and one ECU.

    State transitions are made by the orchestrator thread. The pause flag is
    the one piece of state written from outside it; it is a threading.Event
    and is reconciled into CONNECTED/PAUSED at each cycle boundary.
    """

    def __init__(
        self,
        *,
        poll_interval_s: float = 0.5,
        heartbeat_interval_s: float = 2.0,
        loop_limit: int,
        logger: Optional[logging.Logger] = None,
    ):
        self.poll_interval_s = float(poll_interval_s)
        self.heartbeat_interval_s = float(heartbeat_interval_s)
        self.loop_limit = int(loop_limit)
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._state = SessionState.DISCONNECTED
        self._loop_count = 0
        self._ecu_id: Optional[bytes] = None
        self._ecu_version: Optional[str] = None
        self._last_error: Optional[str] = None

        self._paused = threading.Event()
        self._wake = threading.Event()

    # ---------------- state ----------------
    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    def transition(self, new: SessionState) -> SessionState:
        with self._lock:
            old = self._state
            if old == new:
                return old
            if new not in TRANSITIONS[old]:
                raise RuntimeError(f"invalid session transition {old.value} -> {new.value}")
            self._state = new
        self._log.info("SESSION_STATE %s -> %s", old.value, new.value)
        return old

    def mark_lost(self, reason: str) -> bool:
        """
        Move an active session to LOST. Returns True only for the call that
        made the transition.
        """
        with self._lock:
            if self._state not in ACTIVE_STATES:
                return False
            old = self._state
            self._state = SessionState.LOST
            self._last_error = reason
        self._log.warning("SESSION_STATE %s -> lost reason=%s", old.value, reason)
        return True

    def set_ecu(self, ecu_id: bytes, version: Optional[str]) -> None:
        with self._lock:
            self._ecu_id = bytes(ecu_id)
            self._ecu_version = version
            self._last_error = None

    def set_error(self, message: str) -> None:
        with self._lock:
            self._last_error = message

    # ---------------- pause flag ----------------
    @property
    def is_paused(self) -> bool:
        return self._paused.is_set()

    def pause(self) -> None:
        self._paused.set()
        self.signal()

    def resume(self) -> None:
        self._paused.clear()
        self.signal()

    # ---------------- loop counter ----------------
    @property
    def loop_count(self) -> int:
        with self._lock:
            return self._loop_count

    def record_poll(self) -> int:
        with self._lock:
            self._loop_count += 1
            return self._loop_count

    def reset_loop_count(self) -> None:
        """A new connection starts a fresh loop."""
        with self._lock:
            self._loop_count = 0

    @property
    def loop_exhausted(self) -> bool:
        with self._lock:
            return self._loop_count >= self.loop_limit

    # ---------------- wakeups ----------------
    def signal(self) -> None:
        """Wake the orchestrator early (new command, pause/resume, stop)."""
        self._wake.set()

    def wait_signal(self, timeout: float) -> bool:
        fired = self._wake.wait(timeout)
        self._wake.clear()
        return fired

    def status(self) -> SessionStatus:
        with self._lock:
            return SessionStatus(
                state=self._state,
                paused=self._paused.is_set(),
                loop_count=self._loop_count,
                loop_limit=self.loop_limit,
                ecu_id=self._ecu_id.hex().upper() if self._ecu_id else None,
                ecu_version=self._ecu_version,
                last_error=self._last_error,
            )
