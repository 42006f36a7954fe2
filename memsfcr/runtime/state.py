# memsfcr/runtime/state.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    INITIALISING = "initialising"
    CONNECTED = "connected"
    PAUSED = "paused"
    LOST = "lost"


# Allowed transitions: state -> next states
TRANSITIONS = {
    SessionState.DISCONNECTED: {SessionState.CONNECTING},
    SessionState.CONNECTING: {SessionState.INITIALISING, SessionState.DISCONNECTED},
    SessionState.INITIALISING: {SessionState.CONNECTED, SessionState.DISCONNECTED},
    SessionState.CONNECTED: {SessionState.PAUSED, SessionState.LOST, SessionState.DISCONNECTED},
    SessionState.PAUSED: {SessionState.CONNECTED, SessionState.LOST, SessionState.DISCONNECTED},
    SessionState.LOST: {SessionState.DISCONNECTED},
}

ACTIVE_STATES = frozenset({SessionState.CONNECTED, SessionState.PAUSED})


@dataclass(frozen=True)
class ConnectionStatus:
    """
    Payload of the connection-status message sent to the UI.
    """
    connected: bool
    initialised: bool

    def as_dict(self) -> dict:
        return {"connected": self.connected, "initialised": self.initialised}


@dataclass(frozen=True)
class SessionStatus:
    """
    A snapshot of the session, safe to share across threads.
    """
    state: SessionState
    paused: bool
    loop_count: int
    loop_limit: int
    ecu_id: Optional[str] = None
    ecu_version: Optional[str] = None
    last_error: Optional[str] = None
