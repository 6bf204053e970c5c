"""In-memory stand-in for a receiver's TCP connection."""

from __future__ import annotations

import asyncio
import struct
from collections.abc import Callable

from onkyo_sync.protocol.eiscp import decode_frame

_INBOUND_HEADER = struct.Struct(">4sIIB3x")

Responder = Callable[[str], list[str] | str | None]


def inbound_frame(message: str, terminator: str = "\x1a\r\n") -> bytes:
    """Frame an ISCP message the way a receiver sends it (EOF + CR LF terminated)."""
    data = f"!1{message}{terminator}".encode()
    return _INBOUND_HEADER.pack(b"ISCP", 16, len(data), 1) + data


def echo_responder(message: str) -> str | None:
    """Answer every set command with the same message; queries get no reply."""
    if message.endswith("QSTN"):
        return None
    return message


class FakeConnection:
    """Duck-typed TCPConnection.

    Inbound data is queued with ``push``/``push_bytes``; ``close_from_peer``
    makes the next ``recv`` report EOF. A ``responder`` maps each sent ISCP
    message to the reply (or replies) the receiver should push back.
    """

    def __init__(
        self,
        host: str = "192.168.1.40",
        port: int = 60128,
        connect_result: bool = True,
        send_result: bool = True,
        responder: Responder | None = echo_responder,
    ) -> None:
        self.host = host
        self.port = port
        self.connect_result = connect_result
        self.send_result = send_result
        self.responder = responder
        self.last_error = ""
        self.sent_frames: list[bytes] = []
        self.connect_calls = 0
        self.closed = False
        self._connected = False
        self._inbound: asyncio.Queue[bytes | None] = asyncio.Queue()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def sent_messages(self) -> list[str]:
        return [decode_frame(frame) for frame in self.sent_frames]

    async def connect(self) -> bool:
        self.connect_calls += 1
        if not self.connect_result:
            self.last_error = "Connection refused"
            return False
        self._connected = True
        return True

    async def send(self, data: bytes) -> bool:
        if not self.send_result:
            self.last_error = "Broken pipe"
            return False
        self.sent_frames.append(data)
        if self.responder is not None:
            replies = self.responder(decode_frame(data))
            if isinstance(replies, str):
                replies = [replies]
            for reply in replies or []:
                self.push(reply)
        return True

    async def recv(self) -> bytes | None:
        data = await self._inbound.get()
        if data is None:
            self._connected = False
            self.last_error = "closed by peer"
        return data

    async def close(self) -> None:
        self.closed = True
        self._connected = False

    def push(self, message: str) -> None:
        self._inbound.put_nowait(inbound_frame(message))

    def push_bytes(self, data: bytes) -> None:
        self._inbound.put_nowait(data)

    def close_from_peer(self) -> None:
        self._inbound.put_nowait(None)


class FakeConnectionFactory:
    """Connection factory recording every connection the transport opens.

    ``outcomes`` lists connect results for successive connections; once
    exhausted every further connection succeeds.
    """

    def __init__(self, outcomes: list[bool] | None = None, responder: Responder | None = echo_responder) -> None:
        self.outcomes = list(outcomes or [])
        self.responder = responder
        self.connections: list[FakeConnection] = []

    def __call__(self, host: str, port: int, _timeout_config: object) -> FakeConnection:
        connect_result = self.outcomes.pop(0) if self.outcomes else True
        connection = FakeConnection(host, port, connect_result=connect_result, responder=self.responder)
        self.connections.append(connection)
        return connection

    @property
    def latest(self) -> FakeConnection:
        return self.connections[-1]
