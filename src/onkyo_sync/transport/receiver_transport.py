"""Receiver connection lifecycle, command delivery and status routing.

``ReceiverTransport`` owns one TCP connection to one receiver. A reader task
feeds incoming bytes through the frame parser, decodes each frame into a
status message, resolves the oldest pending command waiting on the same ISCP
code and publishes a typed event to every subscribed listener.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import deque
from collections.abc import Callable
from enum import Enum

from onkyo_sync.catalog import Catalog
from onkyo_sync.const import EISCP_PORT, ONKYO_RAW
from onkyo_sync.metrics import registry
from onkyo_sync.protocol.eiscp import EiscpCodec, StatusMessage, build_command, decode_frame, encode_frame
from onkyo_sync.protocol.exceptions import FrameDecodeError
from onkyo_sync.protocol.frame_parser import FrameParser
from onkyo_sync.transport.events import (
    ClosedEvent,
    ConnectedEvent,
    DebugEvent,
    StatusEvent,
    TransportErrorEvent,
    TransportEvent,
    TransportListener,
)
from onkyo_sync.transport.exceptions import CommandRejectedError, TransportConnectError, TransportWriteError
from onkyo_sync.transport.retry_policy import RetryPolicy, TimeoutConfig
from onkyo_sync.transport.socket_abstraction import TCPConnection

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[str, int, TimeoutConfig], TCPConnection]


class ConnectionState(Enum):
    """Connection state enumeration."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


def _default_connection_factory(host: str, port: int, timeout_config: TimeoutConfig) -> TCPConnection:
    return TCPConnection(
        host,
        port,
        connect_timeout=timeout_config.connect_timeout_seconds,
        io_timeout=timeout_config.write_timeout_seconds,
    )


class ReceiverTransport:
    """Persistent eISCP connection to a single receiver.

    **Replies**: eISCP has no request ids. The receiver answers a command
    with a status message carrying the same three-letter code, so pending
    commands are kept in a FIFO queue and the oldest one waiting on a code
    takes the next message with that code. A command that gets no reply
    within ``command_timeout_seconds`` is treated as delivered.

    **Reconnection**: when the connection drops unexpectedly and
    auto-reconnect is enabled, a reconnect task retries with exponential
    backoff until it succeeds or ``disconnect()`` is called.

    **Thread Safety**: connection state is protected by ``_state_lock``;
    frame writes are serialized by ``_write_lock`` so replies arrive in
    request order.
    """

    def __init__(
        self,
        catalog: Catalog,
        port: int = EISCP_PORT,
        timeout_config: TimeoutConfig | None = None,
        connection_factory: ConnectionFactory | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            catalog: Command catalog used to translate commands and replies
            port: Receiver eISCP port
            timeout_config: Timeout configuration (defaults to TimeoutConfig() if None)
            connection_factory: Builds the TCP connection for each (re)connect
            retry_policy: Reconnect backoff (defaults to RetryPolicy() if None)

        """
        self.catalog: Catalog = catalog
        self.codec: EiscpCodec = EiscpCodec(catalog)
        self.port: int = port
        self.timeout_config: TimeoutConfig = timeout_config or TimeoutConfig()
        self.retry_policy: RetryPolicy = retry_policy or RetryPolicy()
        self._connection_factory: ConnectionFactory = connection_factory or _default_connection_factory

        self.host: str = ""
        self.model_id: str = ""
        self.conn: TCPConnection | None = None
        self.state: ConnectionState = ConnectionState.DISCONNECTED
        self._state_lock: asyncio.Lock = asyncio.Lock()
        self._write_lock: asyncio.Lock = asyncio.Lock()
        self.reader_task: asyncio.Task[None] | None = None
        self.reconnect_task: asyncio.Task[bool] | None = None
        self._auto_reconnect: bool = False
        self._closing: bool = False

        # FIFO queue of (ISCP code, reply future)
        self.pending_replies: deque[tuple[str, asyncio.Future[StatusMessage]]] = deque()
        self.framer: FrameParser = FrameParser()
        self._listeners: list[TransportListener] = []

    @property
    def device_id(self) -> str:
        return f"{self.host}:{self.port}" if self.host else "unknown"

    def is_connected(self) -> bool:
        """Check if connection is established (best effort, may be stale)."""
        return self.state == ConnectionState.CONNECTED

    def subscribe(self, listener: TransportListener) -> Callable[[], None]:
        """Register an event listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: TransportEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # Listener failures must not stop the reader loop
                logger.exception(
                    "Transport listener raised",
                    extra={
                        "device_id": self.device_id,
                        "event": type(event).__name__,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )

    async def _set_state(self, state: ConnectionState) -> None:
        async with self._state_lock:
            self.state = state
            registry.record_connection_state(self.device_id, state.value)

    async def connect(self, host: str, model_id: str, auto_reconnect: bool = True) -> bool:
        """Connect to a receiver.

        Never raises: failures are published as ``TransportErrorEvent`` and,
        with ``auto_reconnect``, hand over to the reconnect loop.

        Returns:
            True if connected, False otherwise

        """
        if self.is_connected() and host == self.host:
            logger.debug("Already connected", extra={"device_id": self.device_id})
            return True

        await self._cancel_task(self.reconnect_task)
        self.reconnect_task = None

        self.host = host
        self.model_id = model_id
        self._auto_reconnect = auto_reconnect
        self._closing = False

        if await self._open():
            return True
        if auto_reconnect:
            self._trigger_reconnect("connect_failed")
        return False

    async def _open(self, reconnecting: bool = False) -> bool:
        """Open a fresh TCP connection and start its reader task."""
        await self._set_state(ConnectionState.CONNECTING)
        try:
            conn = self._connection_factory(self.host, self.port, self.timeout_config)
            connected = await conn.connect()
            failure = conn.last_error or "connect failed"
        except Exception as e:
            logger.exception(
                "Connect raised",
                extra={"device_id": self.device_id, "error": str(e), "error_type": type(e).__name__},
            )
            connected = False
            failure = f"{type(e).__name__}: {e}"

        if not connected:
            failure_state = ConnectionState.RECONNECTING if reconnecting else ConnectionState.DISCONNECTED
            await self._set_state(failure_state)
            error = TransportConnectError(self.host, self.port, failure, state=failure_state.value)
            logger.warning(
                "✗ Connect failed",
                extra={"device_id": self.device_id, "reason": error.reason, "reconnecting": reconnecting},
            )
            self._emit(TransportErrorEvent(error))
            return False

        self.conn = conn
        self.framer.reset()
        await self._set_state(ConnectionState.CONNECTED)
        self.reader_task = asyncio.create_task(self._reader_loop(conn))
        logger.info(
            "✓ Connected to receiver",
            extra={"device_id": self.device_id, "model": self.model_id},
        )
        self._emit(ConnectedEvent(host=self.host, port=self.port, model_id=self.model_id))
        return True

    async def _reader_loop(self, conn: TCPConnection) -> None:
        """Read, frame and route incoming messages until the connection drops."""
        reason = "closed_by_peer"
        try:
            while True:
                data = await conn.recv()
                if data is None:
                    reason = conn.last_error or reason
                    break
                if ONKYO_RAW:
                    logger.debug("← Raw bytes", extra={"device_id": self.device_id, "data": data.hex()})
                for frame in self.framer.feed(data):
                    self._process_frame(frame)
        except asyncio.CancelledError:
            logger.debug("Reader cancelled (clean shutdown)", extra={"device_id": self.device_id})
            raise
        except Exception as e:
            # Reader is the connection's event loop; any crash becomes a reconnect
            logger.exception(
                "Reader loop crashed",
                extra={"device_id": self.device_id, "error": str(e), "error_type": type(e).__name__},
            )
            reason = "reader_crash"

        await self._connection_lost(conn, reason)

    def _process_frame(self, frame: bytes) -> None:
        try:
            message = decode_frame(frame)
            status = self.codec.iscp_to_status(message)
        except FrameDecodeError as e:
            logger.warning(
                "Frame decode failed",
                extra={
                    "device_id": self.device_id,
                    "reason": e.reason,
                    "data_preview": e.data_preview.hex(),
                },
            )
            registry.record_decode_error(self.device_id, e.reason)
            return

        self._emit(DebugEvent(message=message, direction="in"))
        self._resolve_pending(status)

        if status.rejected:
            logger.debug("Receiver answered N/A", extra={"device_id": self.device_id, "code": status.code})
            return
        if status.zone is None or status.verb is None:
            logger.debug(
                "Ignoring message with unknown command code",
                extra={"device_id": self.device_id, "iscp": status.message},
            )
            return

        registry.record_status_event(self.device_id, status.verb)
        self._emit(
            StatusEvent(
                zone=status.zone,
                verb=status.verb,
                value=status.value,
                code=status.code,
                raw_value=status.raw_value,
                message=status.message,
            )
        )

    def _resolve_pending(self, status: StatusMessage) -> None:
        for position, (code, future) in enumerate(self.pending_replies):
            if code == status.code:
                del self.pending_replies[position]
                if not future.done():
                    future.set_result(status)
                return

    def _discard_pending(self, future: asyncio.Future[StatusMessage]) -> None:
        for position, (_code, pending) in enumerate(self.pending_replies):
            if pending is future:
                del self.pending_replies[position]
                return

    def _fail_pending(self, error: Exception) -> None:
        while self.pending_replies:
            _code, future = self.pending_replies.popleft()
            if not future.done():
                future.set_exception(error)

    async def _connection_lost(self, conn: TCPConnection, reason: str) -> None:
        async with self._state_lock:
            if self._closing or self.conn is not conn:
                return
            self.state = ConnectionState.DISCONNECTED
            registry.record_connection_state(self.device_id, self.state.value)
            self.conn = None

        logger.warning(
            "Connection lost",
            extra={"device_id": self.device_id, "reason": reason, "auto_reconnect": self._auto_reconnect},
        )
        self._fail_pending(TransportConnectError(self.host, self.port, reason, state=self.state.value))
        await conn.close()

        self._emit(ClosedEvent(host=self.host, port=self.port, reason=reason, will_reconnect=self._auto_reconnect))
        if self._auto_reconnect:
            self._trigger_reconnect(reason)

    def _trigger_reconnect(self, reason: str) -> None:
        """Start the reconnect loop unless one is already running."""
        if self.reconnect_task is None or self.reconnect_task.done():
            logger.info("Triggering reconnection", extra={"device_id": self.device_id, "reason": reason})
            self.reconnect_task = asyncio.create_task(self._reconnect_loop(reason))
        else:
            logger.debug("Reconnection already in progress", extra={"reason": reason})

    async def _reconnect_loop(self, reason: str) -> bool:
        """Retry with exponential backoff until connected or disconnected."""
        logger.info("→ Starting reconnection", extra={"device_id": self.device_id, "reason": reason})
        await self._set_state(ConnectionState.RECONNECTING)

        attempt = 0
        while not self._closing:
            delay = self.retry_policy.get_delay(attempt)
            logger.debug(
                "Reconnect attempt %d in %.2fs",
                attempt + 1,
                delay,
                extra={"device_id": self.device_id, "attempt": attempt + 1, "delay": delay},
            )
            await asyncio.sleep(delay)
            if self._closing:
                break
            registry.record_reconnection(self.device_id, reason)
            try:
                opened = await self._open(reconnecting=True)
            except Exception as e:
                logger.exception(
                    "Reconnect attempt raised",
                    extra={"device_id": self.device_id, "attempt": attempt + 1, "error_type": type(e).__name__},
                )
                self._emit(
                    TransportErrorEvent(
                        TransportConnectError(
                            self.host,
                            self.port,
                            f"{type(e).__name__}: {e}",
                            state=ConnectionState.RECONNECTING.value,
                        )
                    )
                )
                opened = False
            if opened:
                logger.info(
                    "✓ Reconnection successful",
                    extra={"device_id": self.device_id, "reason": reason, "attempts": attempt + 1},
                )
                return True
            attempt += 1
        return False

    async def send_command(
        self,
        zone: str,
        verb: str,
        argument: object,
        relative: bool = False,
    ) -> StatusMessage | None:
        """Send ``zone.verb=argument`` (``:`` when ``relative``) and wait for the reply.

        Returns:
            The receiver's reply, or None when none arrived within the command timeout

        Raises:
            CommandTranslationError: Unknown verb or argument
            TransportConnectError: Not connected, or the connection dropped while waiting
            TransportWriteError: The frame could not be written
            CommandRejectedError: The receiver answered ``N/A``

        """
        command = build_command(zone, verb, argument, relative=relative)
        message = self.codec.command_to_iscp(command)
        return await self._send_message(message, command, verb)

    async def send_raw(self, message: str) -> StatusMessage | None:
        """Send a pre-built ISCP message such as ``PWRQSTN``."""
        return await self._send_message(message, message, message[:3].upper())

    async def _send_message(self, message: str, command: str, metric_verb: str) -> StatusMessage | None:
        async with self._state_lock:
            conn = self.conn
            if self.state != ConnectionState.CONNECTED or conn is None:
                raise TransportConnectError(
                    self.host or "unknown",
                    self.port,
                    "not connected",
                    state=self.state.value,
                )

        code = message[:3].upper()
        future: asyncio.Future[StatusMessage] = asyncio.get_running_loop().create_future()
        start_time = time.perf_counter()

        async with self._write_lock:
            self.pending_replies.append((code, future))
            logger.debug("→ Sending %s", message, extra={"device_id": self.device_id, "command": command})
            self._emit(DebugEvent(message=message, direction="out"))
            frame = encode_frame(message)
            if ONKYO_RAW:
                logger.debug("→ Raw bytes", extra={"device_id": self.device_id, "data": frame.hex()})
            if not await conn.send(frame):
                self._discard_pending(future)
                registry.record_command(self.device_id, metric_verb, "failed")
                raise TransportWriteError(command, conn.last_error or "write failed")

        try:
            reply = await asyncio.wait_for(future, timeout=self.timeout_config.command_timeout_seconds)
        except TimeoutError:
            self._discard_pending(future)
            logger.debug(
                "No reply within %.1fs, assuming delivered",
                self.timeout_config.command_timeout_seconds,
                extra={"device_id": self.device_id, "command": command},
            )
            registry.record_command(self.device_id, metric_verb, "no_reply")
            return None

        registry.record_command_latency(self.device_id, time.perf_counter() - start_time)
        if reply.rejected:
            registry.record_command(self.device_id, metric_verb, "rejected")
            raise CommandRejectedError(command, reply.message)

        registry.record_command(self.device_id, metric_verb, "success")
        logger.debug(
            "✓ Command acknowledged",
            extra={"device_id": self.device_id, "command": command, "reply": reply.message},
        )
        return reply

    async def _cancel_task(self, task: asyncio.Task[object] | None) -> None:
        if task is None or task.done() or task is asyncio.current_task():
            return
        _ = task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def disconnect(self) -> None:
        """Clean disconnect with task cleanup.

        Task cleanup order: reader first, then reconnect, then connection.
        Pending replies fail with ``TransportConnectError``.
        """
        logger.info("Disconnecting...", extra={"device_id": self.device_id})
        self._closing = True
        self._auto_reconnect = False

        async with self._state_lock:
            conn = self.conn
            self.conn = None
            self.state = ConnectionState.DISCONNECTED
            registry.record_connection_state(self.device_id, self.state.value)

        try:
            await self._cancel_task(self.reader_task)
            self.reader_task = None
            await self._cancel_task(self.reconnect_task)
            self.reconnect_task = None
            if conn is not None:
                await conn.close()
        finally:
            # Always fail waiters, even if close() raises
            self._fail_pending(
                TransportConnectError(self.host or "unknown", self.port, "disconnected", state="disconnected")
            )
            self.framer.reset()

        if conn is not None:
            self._emit(ClosedEvent(host=self.host, port=self.port, reason="disconnect_requested"))
        logger.info("Disconnect complete", extra={"device_id": self.device_id})
