"""Deadlines for socket and command operations, and the reconnect backoff schedule."""

from __future__ import annotations

import random
from dataclasses import dataclass

from onkyo_sync.const import (
    ONKYO_COMMAND_TIMEOUT,
    ONKYO_CONNECT_TIMEOUT,
    ONKYO_RECONNECT_BASE_DELAY,
    ONKYO_RECONNECT_MAX_DELAY,
)

# 2**32 * any sane base delay is already far past every cap
_MAX_EXPONENT = 32


class TimeoutConfig:
    """Per-transport deadlines in seconds.

    ``write_timeout_seconds`` bounds the socket drain and falls back to the
    command timeout when left unset.
    """

    def __init__(
        self,
        connect_timeout_seconds: float = ONKYO_CONNECT_TIMEOUT,
        command_timeout_seconds: float = ONKYO_COMMAND_TIMEOUT,
        write_timeout_seconds: float | None = None,
    ):
        self.connect_timeout_seconds = connect_timeout_seconds
        self.command_timeout_seconds = command_timeout_seconds
        self.write_timeout_seconds = command_timeout_seconds if write_timeout_seconds is None else write_timeout_seconds

    def __repr__(self) -> str:
        parts = (
            ("connect", self.connect_timeout_seconds),
            ("command", self.command_timeout_seconds),
            ("write", self.write_timeout_seconds),
        )
        return "TimeoutConfig(" + ", ".join(f"{name}={value:.1f}s" for name, value in parts) + ")"


@dataclass(frozen=True)
class RetryPolicy:
    """Reconnect delays: doubling from ``base_delay_seconds`` up to ``max_delay_seconds``.

    A random fraction (up to ``jitter_factor``) of each delay is added so
    receivers dropped by the same network outage do not all reconnect at
    the same instant.
    """

    base_delay_seconds: float = ONKYO_RECONNECT_BASE_DELAY
    max_delay_seconds: float = ONKYO_RECONNECT_MAX_DELAY
    jitter_factor: float = 0.1

    def get_delay(self, attempt: int) -> float:
        """Seconds to wait before reconnect attempt ``attempt`` (0 = first retry)."""
        backoff = min(self.base_delay_seconds * 2 ** min(attempt, _MAX_EXPONENT), self.max_delay_seconds)
        return backoff + random.uniform(0, backoff * self.jitter_factor)
