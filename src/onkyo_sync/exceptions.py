"""Exception hierarchy for onkyo-sync.

Errors raise instead of returning None. Caller errors (bad input index, bad
volume level, unknown remote key) are raised synchronously before anything is
sent; transport errors surface through the transport's error event and the
per-command result.
"""

from __future__ import annotations


class OnkyoError(Exception):
    """Base exception for all onkyo-sync errors."""


class CatalogLoadError(OnkyoError):
    """Command catalog is missing or malformed.

    Fatal at startup: no device can be initialized without a catalog.

    Attributes:
        path: Catalog file that failed to load
        reason: Specific failure reason

    """

    def __init__(self, path: str, reason: str) -> None:
        self.path: str = path
        self.reason: str = reason
        super().__init__(f"Failed to load command catalog {path}: {reason}")


class InvalidInputIndexError(OnkyoError, IndexError):
    """Active input index outside ``[1, len(input_table)]``."""

    def __init__(self, index: int, size: int) -> None:
        self.index: int = index
        self.size: int = size
        if size:
            message = f"Input index {index} out of range (valid: 1..{size})"
        else:
            message = f"Input index {index} out of range (input table is empty)"
        super().__init__(message)


class InvalidVolumeLevelError(OnkyoError, ValueError):
    """Absolute volume level outside the zone's native range."""

    def __init__(self, level: int, maximum: int) -> None:
        self.level: int = level
        self.maximum: int = maximum
        super().__init__(f"Volume level {level} out of range (valid: 0..{maximum})")


class UnsupportedRemoteKeyError(OnkyoError, ValueError):
    """Remote key has no press-token mapping."""

    def __init__(self, key: object) -> None:
        self.key: object = key
        super().__init__(f"Unsupported remote key: {key!r}")


class UnmappedInputError(OnkyoError):
    """Inbound input label has no entry in the device's input table.

    Non-fatal: the snapshot keeps its previous input value.
    """

    def __init__(self, label: str, zone: str) -> None:
        self.label: str = label
        self.zone: str = zone
        super().__init__(f"Input {label!r} reported by {zone} is not in the input table")


class DeviceConfigError(OnkyoError):
    """Device configuration file is missing or invalid.

    Attributes:
        path: Configuration file that failed to load
        reason: Specific failure reason

    """

    def __init__(self, path: str, reason: str) -> None:
        self.path: str = path
        self.reason: str = reason
        super().__init__(f"Invalid device configuration {path}: {reason}")
