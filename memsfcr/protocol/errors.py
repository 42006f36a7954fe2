# memsfcr/protocol/errors.py

class ProtocolError(Exception):
    """Base for codec-level failures (framing/echo/decode)."""

class EchoMismatch(ProtocolError):
    def __init__(self, expected: int, got: int):
        super().__init__(f"expected echo 0x{expected:02X}, got 0x{got:02X}")
        self.expected = expected
        self.got = got

class ShortReply(ProtocolError):
    def __init__(self, label: str, expected: int, got: int):
        super().__init__(f"{label} reply too short: expected {expected} bytes, got {got}")
        self.label = label
        self.expected = expected
        self.got = got

class DecodeError(ProtocolError):
    pass
