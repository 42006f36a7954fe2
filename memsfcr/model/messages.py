# memsfcr/model/messages.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Inbound (UI -> core) action kinds
ACTION_READ_CONFIG = "read-config"
ACTION_CONNECT = "connect"
ACTION_REQUEST_DATAFRAME = "request-data-frame"
ACTION_PAUSE = "pause"
ACTION_RESUME = "resume"
ACTION_RESET_ECU = "reset-ecu"
ACTION_CLEAR_FAULTS = "clear-faults"
ACTION_RESET_ADJUSTMENTS = "reset-adjustments"
ACTION_INCREASE_IDLE_SPEED = "increase-idle-speed"
ACTION_DECREASE_IDLE_SPEED = "decrease-idle-speed"
ACTION_INCREASE_IDLE_HOT = "increase-idle-hot"
ACTION_DECREASE_IDLE_HOT = "decrease-idle-hot"
ACTION_INCREASE_FUEL_TRIM = "increase-fuel-trim"
ACTION_DECREASE_FUEL_TRIM = "decrease-fuel-trim"
ACTION_INCREASE_IGNITION_ADVANCE = "increase-ignition-advance"
ACTION_DECREASE_IGNITION_ADVANCE = "decrease-ignition-advance"

# Outbound (core -> UI) action kinds
OUT_CONFIG = "config"
OUT_CONNECTION_STATUS = "connection-status"
OUT_DATA = "data"
OUT_ECU_RESPONSE = "ecu-response"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class UIAction:
    """Inbound request from the presentation layer."""
    action: str
    payload: Optional[Any] = None

    @classmethod
    def from_json(cls, text: str) -> "UIAction":
        d = json.loads(text)
        if not isinstance(d, dict):
            raise ValueError(f"UI message must be an object, got {type(d).__name__}")
        return cls(action=str(d.get("action", "")), payload=d.get("data"))


@dataclass(frozen=True)
class OutboundMessage:
    """Envelope sent to the UI bridge."""
    action: str
    payload: Any = None

    def to_json(self) -> str:
        return json.dumps({"action": self.action, "data": self.payload}, ensure_ascii=False)


@dataclass(frozen=True)
class CommandResult:
    """
    Response to a non-data command.
    `value` is the byte the ECU returned after the echo (status or new value).
    """
    command: str
    ok: bool
    value: Optional[int] = None
    error: Optional[str] = None
    ts_utc: str = field(default_factory=_utc_now)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "ok": self.ok,
            "value": self.value,
            "error": self.error,
            "ts_utc": self.ts_utc,
        }
