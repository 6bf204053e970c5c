"""TCP stream wrapper for one eISCP endpoint.

Failures never raise: each operation returns a falsy result and leaves a
short description in ``last_error`` for the transport to put into its
events and exceptions.
"""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__


class TCPConnection:
    """One asyncio stream pair to a receiver.

    Only connect and drain have deadlines. Reads block indefinitely because a
    receiver that is switched off or idle may not say anything for hours.
    """

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = 5.0,
        io_timeout: float = 3.0,
        max_read_size: int = 4096,
    ):
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout
        self.max_read_size = max_read_size
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self.last_error: str = ""
        self._connected = False

    def __repr__(self) -> str:
        return f"TCPConnection({self.endpoint}, {'connected' if self._connected else 'disconnected'})"

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _fail(self, reason: str, message: str, *, drop: bool = False) -> None:
        self.last_error = reason
        if drop:
            self._connected = False
        logger.warning(message, extra={"endpoint": self.endpoint, "error": reason})

    async def connect(self) -> bool:
        """Open the stream pair within ``connect_timeout``."""
        started = time.perf_counter()
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except TimeoutError:
            self._fail("timeout", f"Connect to {self.endpoint} timed out after {self.connect_timeout:.1f}s")
            return False
        except (OSError, UnicodeError) as e:
            # Malformed host names fail IDNA encoding before any socket exists
            self._fail(_describe(e), f"Connect to {self.endpoint} failed")
            return False

        self._connected = True
        self.last_error = ""
        logger.debug(
            "TCP session open",
            extra={"endpoint": self.endpoint, "elapsed_ms": round((time.perf_counter() - started) * 1000, 1)},
        )
        return True

    async def send(self, data: bytes) -> bool:
        """Write ``data`` and wait for the buffer to drain within ``io_timeout``."""
        writer = self.writer
        if not self._connected or writer is None:
            self._fail("not connected", "Send attempted without a TCP session")
            return False

        try:
            writer.write(data)
            await asyncio.wait_for(writer.drain(), timeout=self.io_timeout)
        except TimeoutError:
            self._fail("write timeout", f"Drain to {self.endpoint} exceeded {self.io_timeout:.1f}s")
            return False
        except OSError as e:
            self._fail(_describe(e), f"Write to {self.endpoint} failed")
            return False
        return True

    async def recv(self) -> bytes | None:
        """Next chunk from the stream; None once the session is gone (EOF or read error)."""
        reader = self.reader
        if not self._connected or reader is None:
            return None

        try:
            chunk = await reader.read(self.max_read_size)
        except OSError as e:
            self._fail(_describe(e), f"Read from {self.endpoint} failed", drop=True)
            return None

        if not chunk:
            self.last_error = "closed by peer"
            self._connected = False
            logger.info("Receiver closed the TCP session", extra={"endpoint": self.endpoint})
            return None
        return chunk

    async def close(self) -> None:
        writer, self.writer, self.reader = self.writer, None, None
        self._connected = False
        if writer is None:
            return
        try:
            writer.close()
            await writer.wait_closed()
        except OSError as e:
            # Already-reset sockets fail here; the session is gone either way
            logger.debug("Close raised", extra={"endpoint": self.endpoint, "error": _describe(e)})
