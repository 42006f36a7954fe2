# memsfcr/core/errors.py
from __future__ import annotations


class MemsError(Exception):
    """
    Base class for all expected operational errors in memsfcr.
    """

    #: Stable machine-readable identifier (for CLI exit mapping, UI status, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration errors (no hardware access yet)
# ---------------------------------------------------------------------------

class ConfigError(MemsError):
    """
    Configuration is invalid or inconsistent.

    Examples:
      - unknown key in memsfcr.yml
      - loop count that is neither an integer nor 'inf'
      - unknown transport driver
    """
    code = "config_error"


# ---------------------------------------------------------------------------
# Connection lifecycle errors (fatal to one connect attempt)
# ---------------------------------------------------------------------------

class ConnectError(MemsError):
    """
    A connection attempt failed. Never retried internally.
    """
    code = "connect_error"


class PortUnavailableError(ConnectError):
    """
    Serial endpoint could not be opened.

    Examples:
      - port not found
      - permission denied
      - port already in use
    """
    code = "port_unavailable"


class HandshakeTimeoutError(ConnectError):
    """
    The ECU did not answer the initialisation handshake in time.
    """
    code = "handshake_timeout"


class HandshakeRejectedError(ConnectError):
    """
    The ECU answered the handshake, but not as expected.
    """
    code = "handshake_rejected"


# ---------------------------------------------------------------------------
# Transaction errors (mark the session Lost)
# ---------------------------------------------------------------------------

class TransactionError(MemsError):
    code = "transaction_error"


class TransactionTimeoutError(TransactionError):
    code = "timeout"


class TransactionIOError(TransactionError):
    """
    OS-level I/O failure during write/read (cable removed, adapter unplugged).
    """
    code = "transport_io"


class MalformedResponseError(TransactionError):
    """
    Reply arrived but did not match the request (wrong echo, short frame).
    """
    code = "malformed_response"


# ---------------------------------------------------------------------------
# Per-command errors (cycle continues)
# ---------------------------------------------------------------------------

class CommandRejectedError(MemsError):
    """
    The ECU responded but declined the operation.
    """
    code = "command_rejected"

    def __init__(self, message: str, *, command: str, status: int, **kwargs):
        super().__init__(message, **kwargs)
        self.command = command
        self.status = status
