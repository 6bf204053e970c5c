"""Receiver transport package - connection lifecycle, command delivery and events."""

from onkyo_sync.transport.events import (
    ClosedEvent,
    ConnectedEvent,
    DebugEvent,
    StatusEvent,
    TransportErrorEvent,
    TransportEvent,
    TransportListener,
)
from onkyo_sync.transport.exceptions import (
    CommandRejectedError,
    TransportConnectError,
    TransportError,
    TransportWriteError,
)
from onkyo_sync.transport.receiver_transport import ConnectionState, ReceiverTransport
from onkyo_sync.transport.retry_policy import RetryPolicy, TimeoutConfig
from onkyo_sync.transport.socket_abstraction import TCPConnection

__all__ = [
    "ClosedEvent",
    "CommandRejectedError",
    "ConnectedEvent",
    "ConnectionState",
    "DebugEvent",
    "ReceiverTransport",
    "RetryPolicy",
    "StatusEvent",
    "TCPConnection",
    "TimeoutConfig",
    "TransportConnectError",
    "TransportError",
    "TransportErrorEvent",
    "TransportEvent",
    "TransportListener",
    "TransportWriteError",
]
