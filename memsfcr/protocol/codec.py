# memsfcr/protocol/codec.py
from __future__ import annotations

from typing import Optional

from .defs import ACK_OK, CommandDef, ECU_VERSIONS
from .errors import EchoMismatch, ShortReply


def encode(defn: CommandDef) -> bytes:
    """A MEMS request is the bare command byte."""
    return bytes([defn.code])


def wire_length(defn: CommandDef) -> int:
    """Bytes expected back for `defn`: echo + reply."""
    return 1 + defn.reply_len


def split_reply(defn: CommandDef, raw: bytes) -> bytes:
    """
    Validate echo + length of a raw reply and return the payload after the echo.
    """
    if not raw:
        raise ShortReply(defn.label, wire_length(defn), 0)
    if raw[0] != defn.code:
        raise EchoMismatch(defn.code, raw[0])
    if len(raw) < wire_length(defn):
        raise ShortReply(defn.label, wire_length(defn), len(raw))
    return bytes(raw[1:wire_length(defn)])


def is_ack(payload: bytes) -> bool:
    return len(payload) >= 1 and payload[0] == ACK_OK


def ecu_version(ecu_id: bytes) -> Optional[str]:
    """Known ECU part number for a 4-byte id, or None."""
    return ECU_VERSIONS.get(bytes(ecu_id))
