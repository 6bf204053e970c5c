"""Exception types for transport layer errors.

Transport errors are recoverable: they are logged, trigger the optimistic
state revert for the in-flight command, and never crash the process.
"""

from __future__ import annotations

from onkyo_sync.exceptions import OnkyoError


class TransportError(OnkyoError):
    """Base exception for connection and write failures."""


class TransportConnectError(TransportError):
    """Connection cannot be established or is not available.

    Raised when:
    - The TCP connect fails or times out
    - A command is sent while disconnected
    - The connection drops while a reply is pending

    Attributes:
        host: Receiver address
        port: Receiver port
        reason: Specific failure reason
        state: Connection state when the error occurred

    """

    def __init__(self, host: str, port: int, reason: str, state: str = "unknown") -> None:
        self.host: str = host
        self.port: int = port
        self.reason: str = reason
        self.state: str = state
        super().__init__(f"Connection to {host}:{port} failed: {reason} (state: {state})")


class TransportWriteError(TransportError):
    """Command could not be delivered to the receiver.

    Attributes:
        command: High-level command string (e.g. "main.system-power=on")
        reason: Specific failure reason

    """

    def __init__(self, command: str, reason: str) -> None:
        self.command: str = command
        self.reason: str = reason
        super().__init__(f"Command {command!r} failed: {reason}")


class CommandRejectedError(TransportWriteError):
    """Receiver answered the command with ``N/A``.

    Attributes:
        reply: Raw ISCP reply message

    """

    def __init__(self, command: str, reply: str) -> None:
        self.reply: str = reply
        super().__init__(command, f"rejected by receiver ({reply})")
