"""Prometheus metrics registry for receiver communication."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

CONNECTION_STATES: Final = ("disconnected", "connecting", "connected", "reconnecting")

# Command metrics
onkyo_command_sent_total: Final = Counter(  # type: ignore[assignment]
    "onkyo_command_sent_total",
    "Total commands sent to receivers",
    ["device_id", "verb", "outcome"],
)

onkyo_command_latency_seconds: Final = Histogram(  # type: ignore[assignment]
    "onkyo_command_latency_seconds",
    "Command round-trip latency in seconds",
    ["device_id"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

onkyo_optimistic_revert_total: Final = Counter(  # type: ignore[assignment]
    "onkyo_optimistic_revert_total",
    "Total optimistic state updates reverted after a failed command",
    ["device_id", "field"],
)

# Inbound metrics
onkyo_status_event_total: Final = Counter(  # type: ignore[assignment]
    "onkyo_status_event_total",
    "Total status notifications decoded",
    ["device_id", "verb"],
)

onkyo_decode_errors_total: Final = Counter(  # type: ignore[assignment]
    "onkyo_decode_errors_total",
    "Total frame/message decode errors",
    ["device_id", "reason"],
)

onkyo_unmapped_input_total: Final = Counter(  # type: ignore[assignment]
    "onkyo_unmapped_input_total",
    "Total input notifications whose label is not in the input table",
    ["device_id"],
)

# Connection metrics
onkyo_connection_state: Final = Gauge(  # type: ignore[assignment]
    "onkyo_connection_state",
    "Current connection state",
    ["device_id", "state"],
)

onkyo_reconnection_total: Final = Counter(  # type: ignore[assignment]
    "onkyo_reconnection_total",
    "Total reconnection attempts",
    ["device_id", "reason"],
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9410) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_command(device_id: str, verb: str, outcome: str) -> None:
    """Record a command send and its outcome (success, rejected, failed)."""
    onkyo_command_sent_total.labels(device_id=device_id, verb=verb, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_command_latency(device_id: str, latency_seconds: float) -> None:
    onkyo_command_latency_seconds.labels(device_id=device_id).observe(latency_seconds)  # type: ignore[no-untyped-call]


def record_optimistic_revert(device_id: str, field: str) -> None:
    onkyo_optimistic_revert_total.labels(device_id=device_id, field=field).inc()  # type: ignore[no-untyped-call]


def record_status_event(device_id: str, verb: str) -> None:
    onkyo_status_event_total.labels(device_id=device_id, verb=verb).inc()  # type: ignore[no-untyped-call]


def record_decode_error(device_id: str, reason: str) -> None:
    onkyo_decode_errors_total.labels(device_id=device_id, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_unmapped_input(device_id: str) -> None:
    onkyo_unmapped_input_total.labels(device_id=device_id).inc()  # type: ignore[no-untyped-call]


def record_connection_state(device_id: str, state: str) -> None:
    """Record connection state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in CONNECTION_STATES:
        value = 1 if s == state else 0
        onkyo_connection_state.labels(device_id=device_id, state=s).set(value)  # type: ignore[no-untyped-call]


def record_reconnection(device_id: str, reason: str) -> None:
    onkyo_reconnection_total.labels(device_id=device_id, reason=reason).inc()  # type: ignore[no-untyped-call]
