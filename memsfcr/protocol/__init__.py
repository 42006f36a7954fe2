from .defs import Command, CommandDef, COMMAND_DEFS, command_def
from .dataframe import DataFrame, decode_dataframe
from .errors import ProtocolError, EchoMismatch, ShortReply, DecodeError

__all__ = [
    "Command", "CommandDef", "COMMAND_DEFS", "command_def",
    "DataFrame", "decode_dataframe",
    "ProtocolError", "EchoMismatch", "ShortReply", "DecodeError",
]
