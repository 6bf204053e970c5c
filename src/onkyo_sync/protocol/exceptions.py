"""Exception types for eISCP protocol errors."""

from __future__ import annotations

from onkyo_sync.exceptions import OnkyoError


class OnkyoProtocolError(OnkyoError):
    """Base exception for all eISCP codec errors."""


class FrameDecodeError(OnkyoProtocolError):
    """eISCP frame or ISCP message cannot be decoded.

    Attributes:
        reason: Specific failure reason (e.g., "bad_magic", "too_short")
        data_preview: First 32 bytes of the offending data

    """

    def __init__(self, reason: str, data: bytes = b"") -> None:
        self.reason: str = reason
        self.data_preview: bytes = data[:32] if data else b""
        super().__init__(f"Frame decode failed: {reason}")


class CommandTranslationError(OnkyoProtocolError):
    """High-level command string cannot be mapped to an ISCP message.

    Raised for malformed command strings, unknown zones or verbs, and
    arguments that match neither a named value nor a numeric range.

    Attributes:
        command: The command string being translated
        reason: Specific failure reason

    """

    def __init__(self, command: str, reason: str) -> None:
        self.command: str = command
        self.reason: str = reason
        super().__init__(f"Cannot translate {command!r}: {reason}")
