"""Typed events published by the receiver transport."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from onkyo_sync.exceptions import OnkyoError


@dataclass(frozen=True, slots=True)
class ConnectedEvent:
    """TCP connection to the receiver is established (first connect or reconnect)."""

    host: str
    port: int
    model_id: str


@dataclass(frozen=True, slots=True)
class ClosedEvent:
    host: str
    port: int
    reason: str
    will_reconnect: bool = False


@dataclass(frozen=True, slots=True)
class DebugEvent:
    """Raw protocol traffic; ``direction`` is ``"in"`` or ``"out"``."""

    message: str
    direction: str


@dataclass(frozen=True, slots=True)
class TransportErrorEvent:
    error: OnkyoError


@dataclass(frozen=True, slots=True)
class StatusEvent:
    """Decoded status notification.

    ``value`` is the catalog display name (aliases joined with ","), or an
    integer for numeric ranges such as volume.
    """

    zone: str
    verb: str
    value: str | int
    code: str = ""
    raw_value: str = ""
    message: str = ""

    @property
    def aliases(self) -> list[str]:
        if isinstance(self.value, int):
            return [str(self.value)]
        return [alias.strip() for alias in self.value.split(",")]


TransportEvent = ConnectedEvent | ClosedEvent | DebugEvent | TransportErrorEvent | StatusEvent
TransportListener = Callable[[TransportEvent], None]
