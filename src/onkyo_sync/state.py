"""Local snapshot of one receiver zone's state."""

from __future__ import annotations

import contextlib
from collections.abc import Callable
from types import MappingProxyType

from onkyo_sync.logging_abstraction import get_logger
from onkyo_sync.zones import StateField

__all__ = ["SAFE_DEFAULTS", "ReceiverState", "StateObserver"]

logger = get_logger(__name__)

StateObserver = Callable[[StateField, bool | int], None]

# Values a field falls back to when an optimistic write is reverted
SAFE_DEFAULTS: MappingProxyType[StateField, bool | int] = MappingProxyType(
    {
        StateField.POWER: False,
        StateField.MUTE: False,
        StateField.VOLUME: 0,
        StateField.INPUT: 0,
    },
)


class ReceiverState:
    """Power, mute, volume and input of one zone.

    Each field is Unknown until its first value arrives; reads of an unknown
    field return the safe default. Every change, whether from a status
    notification or an optimistic write, is pushed to the subscribed
    observers as ``(field, value)``.
    """

    def __init__(self) -> None:
        self._values: dict[StateField, bool | int] = dict(SAFE_DEFAULTS)
        self._known: set[StateField] = set()
        self._observers: list[StateObserver] = []

    def __repr__(self) -> str:
        fields = ", ".join(
            f"{field.value}={self._values[field]!r}" if field in self._known else f"{field.value}=unknown"
            for field in StateField
        )
        return f"ReceiverState({fields})"

    @property
    def power(self) -> bool:
        return bool(self._values[StateField.POWER])

    @property
    def mute(self) -> bool:
        return bool(self._values[StateField.MUTE])

    @property
    def volume(self) -> int:
        return int(self._values[StateField.VOLUME])

    @property
    def input(self) -> int:
        return int(self._values[StateField.INPUT])

    def get(self, field: StateField) -> bool | int:
        return self._values[field]

    def is_known(self, field: StateField) -> bool:
        return field in self._known

    def update(self, field: StateField, value: bool | int) -> bool:
        """Set a field; observers are notified only when it changed.

        Returns:
            True if the value changed or the field was Unknown

        """
        changed = field not in self._known or self._values[field] != value
        self._values[field] = value
        self._known.add(field)
        if changed:
            self._notify(field, value)
        return changed

    def reset_unknown(self) -> None:
        """Forget every field; values fall back to the safe defaults.

        Observers get the safe default for each field that was known and
        held a different value, so they stop showing the stale one.
        """
        stale = [field for field in StateField if field in self._known and self._values[field] != SAFE_DEFAULTS[field]]
        self._values = dict(SAFE_DEFAULTS)
        self._known.clear()
        for field in stale:
            self._notify(field, SAFE_DEFAULTS[field])

    def snapshot(self) -> dict[str, bool | int | None]:
        """Field name to value, None for fields still Unknown."""
        return {field.value: self._values[field] if field in self._known else None for field in StateField}

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, field: StateField, value: bool | int) -> None:
        for observer in list(self._observers):
            try:
                observer(field, value)
            except Exception:
                logger.exception(
                    "State observer raised",
                    extra={"field": field.value, "value": value},
                )
