"""Metrics module."""

from . import registry
from .registry import (
    record_command,
    record_connection_state,
    record_decode_error,
    record_status_event,
    start_metrics_server,
)

__all__ = [
    "record_command",
    "record_connection_state",
    "record_decode_error",
    "record_status_event",
    "registry",
    "start_metrics_server",
]
