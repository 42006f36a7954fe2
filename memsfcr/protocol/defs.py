# memsfcr/protocol/defs.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


@dataclass(frozen=True)
class CommandDef:
    """
    Wire definition of one MEMS 1.6 request.

    code:        single request byte; the ECU echoes it before replying
    reply_len:   number of bytes following the echo
    ack:         reply is a status byte (0x00 = accepted) rather than a value
    """
    code: int
    reply_len: int
    label: str
    ack: bool = False


class Command(str, Enum):
    """The fixed set of ECU operations the session can issue."""

    DATAFRAME = "dataframe"
    HEARTBEAT = "heartbeat"
    RESET_ECU = "reset_ecu"
    CLEAR_FAULTS = "clear_faults"
    RESET_ADJUSTMENTS = "reset_adjustments"
    IDLE_SPEED_INCREMENT = "idle_speed_increment"
    IDLE_SPEED_DECREMENT = "idle_speed_decrement"
    IDLE_DECAY_INCREMENT = "idle_decay_increment"
    IDLE_DECAY_DECREMENT = "idle_decay_decrement"
    LTFT_INCREMENT = "ltft_increment"
    LTFT_DECREMENT = "ltft_decrement"
    IGNITION_ADVANCE_INCREMENT = "ignition_advance_increment"
    IGNITION_ADVANCE_DECREMENT = "ignition_advance_decrement"


# Handshake
INIT_A = CommandDef(0xCA, 0, "INIT_A")
INIT_B = CommandDef(0x75, 0, "INIT_B")
ECU_ID = CommandDef(0xD0, 4, "ECU_ID")

# Data frames (the first byte of each reply is the frame's own size)
DATAFRAME_80 = CommandDef(0x80, 28, "DATAFRAME_80")
DATAFRAME_7D = CommandDef(0x7D, 32, "DATAFRAME_7D")

ACK_OK = 0x00

ECU_VERSIONS: Dict[bytes, str] = {
    bytes.fromhex("99000203"): "MNE101070",
    bytes.fromhex("99000303"): "MNE101170",
}

# Single-transaction commands. DATAFRAME is the 0x80 + 0x7D pair above.
COMMAND_DEFS: Dict[Command, CommandDef] = {
    Command.HEARTBEAT: CommandDef(0xF4, 1, "HEARTBEAT", ack=True),
    Command.RESET_ECU: CommandDef(0xFA, 1, "RESET_ECU", ack=True),
    Command.CLEAR_FAULTS: CommandDef(0xCC, 1, "CLEAR_FAULTS", ack=True),
    Command.RESET_ADJUSTMENTS: CommandDef(0x0F, 1, "RESET_ADJUSTMENTS", ack=True),
    Command.IDLE_SPEED_INCREMENT: CommandDef(0x91, 1, "IDLE_SPEED_INCREMENT"),
    Command.IDLE_SPEED_DECREMENT: CommandDef(0x92, 1, "IDLE_SPEED_DECREMENT"),
    Command.IDLE_DECAY_INCREMENT: CommandDef(0x89, 1, "IDLE_DECAY_INCREMENT"),
    Command.IDLE_DECAY_DECREMENT: CommandDef(0x8A, 1, "IDLE_DECAY_DECREMENT"),
    Command.LTFT_INCREMENT: CommandDef(0x7B, 1, "LTFT_INCREMENT"),
    Command.LTFT_DECREMENT: CommandDef(0x7C, 1, "LTFT_DECREMENT"),
    Command.IGNITION_ADVANCE_INCREMENT: CommandDef(0x93, 1, "IGNITION_ADVANCE_INCREMENT"),
    Command.IGNITION_ADVANCE_DECREMENT: CommandDef(0x94, 1, "IGNITION_ADVANCE_DECREMENT"),
}


def command_def(command: Command) -> CommandDef:
    try:
        return COMMAND_DEFS[command]
    except KeyError:
        raise ValueError(f"{command.value} has no single-transaction definition") from None
