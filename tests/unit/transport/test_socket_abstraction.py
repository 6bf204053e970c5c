"""Unit tests for TCPConnection socket abstraction.

Tests cover:
- Connection lifecycle (connect, send, recv, close)
- Error reporting through ``last_error``
- EOF handling on the read side
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from onkyo_sync.transport.socket_abstraction import TCPConnection


class TCPConnectionTestHarness(TCPConnection):
    """Expose protected connection state controls for testing."""

    def set_connected_state(
        self,
        connected: bool,
        *,
        reader: AsyncMock | MagicMock | None = None,
        writer: AsyncMock | MagicMock | None = None,
    ) -> None:
        self._connected = connected
        if reader is not None:
            self.reader = reader
        if writer is not None:
            self.writer = writer


@pytest.fixture
def tcp_connection() -> TCPConnectionTestHarness:
    return TCPConnectionTestHarness(host="127.0.0.1", port=60128, connect_timeout=0.1, io_timeout=0.1)


def make_writer() -> MagicMock:
    writer = MagicMock()
    writer.write = MagicMock()
    writer.drain = AsyncMock()
    writer.close = MagicMock()
    writer.wait_closed = AsyncMock()
    return writer


class TestConnect:
    """Tests for establishing connections."""

    @pytest.mark.asyncio
    async def test_connect_success(self, tcp_connection: TCPConnectionTestHarness) -> None:
        with patch("asyncio.open_connection") as mock_open:
            mock_reader = AsyncMock(spec=asyncio.StreamReader)
            mock_writer = make_writer()
            mock_open.return_value = (mock_reader, mock_writer)

            result = await tcp_connection.connect()

        assert result is True
        assert tcp_connection.is_connected is True
        assert tcp_connection.reader is mock_reader
        assert tcp_connection.writer is mock_writer
        assert tcp_connection.last_error == ""
        mock_open.assert_called_once_with("127.0.0.1", 60128)

    @pytest.mark.asyncio
    async def test_connect_timeout(self, tcp_connection: TCPConnectionTestHarness) -> None:
        async def slow_connect(*_args: object, **_kwargs: object) -> tuple[AsyncMock, MagicMock]:
            await asyncio.sleep(1.0)
            return (AsyncMock(spec=asyncio.StreamReader), make_writer())

        with patch("asyncio.open_connection", side_effect=slow_connect):
            result = await tcp_connection.connect()

        assert result is False
        assert tcp_connection.is_connected is False
        assert tcp_connection.last_error == "timeout"

    @pytest.mark.asyncio
    async def test_connect_refused(self, tcp_connection: TCPConnectionTestHarness) -> None:
        with patch("asyncio.open_connection", side_effect=ConnectionRefusedError("Connection refused")):
            result = await tcp_connection.connect()

        assert result is False
        assert tcp_connection.last_error == "Connection refused"

    @pytest.mark.asyncio
    async def test_connect_malformed_host(self) -> None:
        """Host names that fail IDNA encoding are reported, not raised."""
        connection = TCPConnection(host="receiver..local", port=60128, connect_timeout=0.1)
        error = UnicodeError("encoding with 'idna' codec failed (UnicodeError: label empty or too long)")

        with patch("asyncio.open_connection", side_effect=error):
            result = await connection.connect()

        assert result is False
        assert connection.is_connected is False
        assert "label empty or too long" in connection.last_error


class TestSend:
    """Tests for writing data."""

    @pytest.mark.asyncio
    async def test_send_success(self, tcp_connection: TCPConnectionTestHarness) -> None:
        writer = make_writer()
        tcp_connection.set_connected_state(True, writer=writer)

        result = await tcp_connection.send(b"frame")

        assert result is True
        writer.write.assert_called_once_with(b"frame")
        writer.drain.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_not_connected(self, tcp_connection: TCPConnectionTestHarness) -> None:
        result = await tcp_connection.send(b"frame")

        assert result is False
        assert tcp_connection.last_error == "not connected"

    @pytest.mark.asyncio
    async def test_send_drain_timeout(self, tcp_connection: TCPConnectionTestHarness) -> None:
        async def slow_drain() -> None:
            await asyncio.sleep(1.0)

        writer = make_writer()
        writer.drain = slow_drain
        tcp_connection.set_connected_state(True, writer=writer)

        result = await tcp_connection.send(b"frame")

        assert result is False
        assert tcp_connection.last_error == "write timeout"

    @pytest.mark.asyncio
    async def test_send_broken_pipe(self, tcp_connection: TCPConnectionTestHarness) -> None:
        writer = make_writer()
        writer.drain = AsyncMock(side_effect=BrokenPipeError("Broken pipe"))
        tcp_connection.set_connected_state(True, writer=writer)

        result = await tcp_connection.send(b"frame")

        assert result is False
        assert tcp_connection.last_error == "Broken pipe"


class TestRecv:
    """Tests for reading data."""

    @pytest.mark.asyncio
    async def test_recv_returns_data(self, tcp_connection: TCPConnectionTestHarness) -> None:
        reader = MagicMock()
        reader.read = AsyncMock(return_value=b"ISCP")
        tcp_connection.set_connected_state(True, reader=reader)

        assert await tcp_connection.recv() == b"ISCP"
        reader.read.assert_awaited_once_with(4096)

    @pytest.mark.asyncio
    async def test_recv_eof_marks_disconnected(self, tcp_connection: TCPConnectionTestHarness) -> None:
        reader = MagicMock()
        reader.read = AsyncMock(return_value=b"")
        tcp_connection.set_connected_state(True, reader=reader)

        assert await tcp_connection.recv() is None
        assert tcp_connection.is_connected is False
        assert tcp_connection.last_error == "closed by peer"

    @pytest.mark.asyncio
    async def test_recv_error_marks_disconnected(self, tcp_connection: TCPConnectionTestHarness) -> None:
        reader = MagicMock()
        reader.read = AsyncMock(side_effect=ConnectionResetError("Connection reset by peer"))
        tcp_connection.set_connected_state(True, reader=reader)

        assert await tcp_connection.recv() is None
        assert tcp_connection.is_connected is False
        assert tcp_connection.last_error == "Connection reset by peer"

    @pytest.mark.asyncio
    async def test_recv_not_connected(self, tcp_connection: TCPConnectionTestHarness) -> None:
        assert await tcp_connection.recv() is None


class TestClose:
    """Tests for closing connections."""

    @pytest.mark.asyncio
    async def test_close_clears_streams(self, tcp_connection: TCPConnectionTestHarness) -> None:
        writer = make_writer()
        tcp_connection.set_connected_state(True, reader=MagicMock(), writer=writer)

        await tcp_connection.close()

        writer.close.assert_called_once()
        writer.wait_closed.assert_awaited_once()
        assert tcp_connection.writer is None
        assert tcp_connection.reader is None
        assert tcp_connection.is_connected is False

    @pytest.mark.asyncio
    async def test_close_swallows_os_error(self, tcp_connection: TCPConnectionTestHarness) -> None:
        writer = make_writer()
        writer.wait_closed = AsyncMock(side_effect=ConnectionResetError("reset"))
        tcp_connection.set_connected_state(True, writer=writer)

        await tcp_connection.close()

        assert tcp_connection.writer is None
        assert tcp_connection.is_connected is False

    def test_repr(self, tcp_connection: TCPConnectionTestHarness) -> None:
        assert repr(tcp_connection) == "TCPConnection(127.0.0.1:60128, disconnected)"
