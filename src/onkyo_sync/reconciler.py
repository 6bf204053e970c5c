"""Reconciles receiver status notifications into the local state snapshot."""

from __future__ import annotations

import contextlib
from collections.abc import Callable

from onkyo_sync.exceptions import OnkyoError, UnmappedInputError
from onkyo_sync.inputs import InputTable, primary_label
from onkyo_sync.logging_abstraction import get_logger
from onkyo_sync.metrics import registry
from onkyo_sync.state import ReceiverState
from onkyo_sync.transport.events import ConnectedEvent, StatusEvent, TransportEvent
from onkyo_sync.transport.receiver_transport import ReceiverTransport
from onkyo_sync.zones import ZONE_VERBS, StateField, Zone

__all__ = ["ErrorListener", "StateReconciler"]

logger = get_logger(__name__)

ErrorListener = Callable[[OnkyoError], None]

# First alias of a power or mute status
_SWITCH_STATES = {"on": True, "off": False, "standby": False}


class StateReconciler:
    """Applies status events for one zone to a ``ReceiverState``.

    Status events are authoritative: they overwrite the matching field
    whatever its current value, including optimistic writes made by the
    dispatcher. A reconnect resets every field to Unknown since the
    receiver may have changed while the connection was down.
    """

    def __init__(
        self,
        transport: ReceiverTransport,
        state: ReceiverState,
        input_table: InputTable,
        zone: Zone = Zone.MAIN,
    ) -> None:
        self.transport: ReceiverTransport = transport
        self.state: ReceiverState = state
        self.input_table: InputTable = input_table
        self.zone: Zone = zone
        self.verbs = ZONE_VERBS[zone]
        self._error_listeners: list[ErrorListener] = []
        self._has_connected: bool = False
        self._unsubscribe: Callable[[], None] | None = transport.subscribe(self.handle_event)

    def close(self) -> None:
        """Stop listening to the transport."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def add_error_listener(self, listener: ErrorListener) -> Callable[[], None]:
        """Register a listener for non-fatal reconciliation errors; returns an unsubscribe callable."""
        self._error_listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._error_listeners.remove(listener)

        return unsubscribe

    def handle_event(self, event: TransportEvent) -> None:
        if isinstance(event, ConnectedEvent):
            self._handle_connected(event)
        elif isinstance(event, StatusEvent) and event.zone == self.zone.value:
            self._handle_status(event)

    def _handle_connected(self, event: ConnectedEvent) -> None:
        if self._has_connected:
            logger.info(
                "Receiver reconnected, state reset to unknown",
                extra={"zone": self.zone.value, "host": event.host},
            )
            self.state.reset_unknown()
        self._has_connected = True

    def _handle_status(self, event: StatusEvent) -> None:
        field = self.verbs.field_for(event.verb)
        if field is None:
            return

        if field in (StateField.POWER, StateField.MUTE):
            switch = _SWITCH_STATES.get(event.aliases[0].casefold())
            if switch is None:
                logger.debug(
                    "Ignoring unrecognised switch status",
                    extra={"zone": self.zone.value, "verb": event.verb, "value": event.value},
                )
            else:
                self._apply(field, switch)
        elif field is StateField.VOLUME:
            if isinstance(event.value, int):
                self._apply(field, event.value)
            else:
                logger.debug(
                    "Ignoring non-numeric volume status",
                    extra={"zone": self.zone.value, "value": event.value},
                )
        else:
            try:
                self.apply_input_label(str(event.value))
            except UnmappedInputError as e:
                self._report_error(e)

    def apply_input_label(self, label: str) -> int:
        """Set the input index from a (possibly comma-qualified) input label.

        Returns:
            The 1-based index now in the snapshot

        Raises:
            UnmappedInputError: If the label is not in the input table (snapshot unchanged)

        """
        name = primary_label(label)
        index = self.input_table.index_of_label(name)
        if index is None:
            raise UnmappedInputError(name, self.zone.value)
        self._apply(StateField.INPUT, index)
        return index

    def _apply(self, field: StateField, value: bool | int) -> None:
        previous = self.state.get(field) if self.state.is_known(field) else None
        if self.state.update(field, value):
            logger.info(
                "Receiver state changed",
                extra={"zone": self.zone.value, "field": field.value, "previous": previous, "value": value},
            )

    def _report_error(self, error: UnmappedInputError) -> None:
        logger.warning(
            "Unmapped input reported by receiver",
            extra={"zone": error.zone, "label": error.label, "inputs": len(self.input_table)},
        )
        registry.record_unmapped_input(self.transport.device_id)
        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception:
                logger.exception("Error listener raised", extra={"zone": self.zone.value})
