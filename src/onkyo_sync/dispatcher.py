"""Zone command dispatcher: user intents to receiver commands.

Every intent is validated synchronously, written optimistically to the state
snapshot and then delivered in a background task. The caller gets the task
back immediately; awaiting it yields a ``CommandResult``. When delivery fails
the optimistic write is reverted to the field's safe default.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, cast

from uuid_extensions import uuid7

from onkyo_sync.correlation import correlation_context
from onkyo_sync.exceptions import InvalidVolumeLevelError, OnkyoError, UnsupportedRemoteKeyError
from onkyo_sync.inputs import InputTable
from onkyo_sync.logging_abstraction import get_logger
from onkyo_sync.metrics import registry
from onkyo_sync.protocol.eiscp import build_command
from onkyo_sync.state import SAFE_DEFAULTS, ReceiverState
from onkyo_sync.transport.receiver_transport import ReceiverTransport
from onkyo_sync.zones import REMOTE_KEY_COMMANDS, ZONE_VERBS, RemoteKey, StateField, VolumeDirection, Zone

__all__ = ["DEFAULT_MAX_VOLUME", "CommandResult", "ZoneCommandDispatcher"]

logger = get_logger(__name__)

DEFAULT_MAX_VOLUME = 100


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Network outcome of one intent."""

    success: bool
    command: str
    correlation_id: str
    reply: str | None = None
    reason: str = ""


class ZoneCommandDispatcher:
    """Turns power, mute, volume, input and remote-key intents into commands for one zone."""

    def __init__(
        self,
        transport: ReceiverTransport,
        state: ReceiverState,
        input_table: InputTable,
        zone: Zone = Zone.MAIN,
        max_volume: int | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            transport: Connected (or reconnecting) receiver transport
            state: Snapshot receiving optimistic writes
            input_table: Inputs valid for this device and zone
            zone: Zone the intents address
            max_volume: Upper bound of absolute volume (default: the catalog's volume range)

        """
        self.transport: ReceiverTransport = transport
        self.state: ReceiverState = state
        self.input_table: InputTable = input_table
        self.zone: Zone = zone
        self.verbs = ZONE_VERBS[zone]
        if max_volume is None:
            spec = transport.catalog.command(zone.value, self.verbs.volume_code)
            max_volume = spec.maximum if spec is not None and spec.maximum is not None else DEFAULT_MAX_VOLUME
        self.max_volume: int = max_volume
        self._tasks: set[asyncio.Task[Any]] = set()

    def set_power(self, on: bool) -> asyncio.Task[CommandResult]:
        _ = self.state.update(StateField.POWER, bool(on))
        return self._dispatch(StateField.POWER, self.zone, self.verbs.power, "on" if on else "standby")

    def set_mute(self, on: bool) -> asyncio.Task[CommandResult]:
        _ = self.state.update(StateField.MUTE, bool(on))
        return self._dispatch(StateField.MUTE, self.zone, self.verbs.muting, "on" if on else "off")

    def set_volume_absolute(self, level: int) -> asyncio.Task[CommandResult]:
        """Set the volume in native receiver units.

        Raises:
            InvalidVolumeLevelError: If ``level`` is outside ``[0, max_volume]``

        """
        if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= self.max_volume:
            raise InvalidVolumeLevelError(level, self.max_volume)
        _ = self.state.update(StateField.VOLUME, level)
        return self._dispatch(StateField.VOLUME, self.zone, self.verbs.volume, level)

    def set_volume_relative(self, direction: VolumeDirection | str) -> asyncio.Task[CommandResult]:
        """Step the volume one unit up or down; the snapshot is clamped to ``[0, max_volume]``."""
        direction = VolumeDirection(direction)
        step = 1 if direction is VolumeDirection.INCREMENT else -1
        level = min(max(self.state.volume + step, 0), self.max_volume)
        _ = self.state.update(StateField.VOLUME, level)
        return self._dispatch(StateField.VOLUME, self.zone, self.verbs.volume, direction.value, relative=True)

    def set_input(self, index: int) -> asyncio.Task[CommandResult]:
        """Select the input at a 1-based table index.

        Raises:
            InvalidInputIndexError: If ``index`` is outside the input table (nothing is sent)

        """
        source = self.input_table.get(index)
        _ = self.state.update(StateField.INPUT, source.index)
        return self._dispatch(StateField.INPUT, self.zone, self.verbs.input, source.label, relative=True)

    def press_remote_key(self, key: RemoteKey | int) -> asyncio.Task[CommandResult]:
        """Send a remote button press; keys always address the main zone.

        Raises:
            UnsupportedRemoteKeyError: If the key has no press mapping

        """
        try:
            remote_key = RemoteKey(key)
        except ValueError as e:
            raise UnsupportedRemoteKeyError(key) from e
        mapping = REMOTE_KEY_COMMANDS.get(remote_key)
        if mapping is None:
            raise UnsupportedRemoteKeyError(key)
        verb, token = mapping
        return self._dispatch(None, Zone.MAIN, verb, token)

    def refresh(self) -> asyncio.Task[list[CommandResult]]:
        """Query power, volume, mute and input; replies reach the snapshot through the reconciler."""
        return self._spawn(self._query_all(), f"onkyo-refresh-{self.zone.value}")

    async def _query_all(self) -> list[CommandResult]:
        results: list[CommandResult] = []
        # Sequential so each reply is matched before the next query goes out
        for field in StateField:
            verb = self.verbs.verb_for(field)
            results.append(await self._deliver(None, self.zone, verb, "query", relative=True))
        return results

    def _dispatch(
        self,
        field: StateField | None,
        zone: Zone,
        verb: str,
        argument: object,
        relative: bool = False,
    ) -> asyncio.Task[CommandResult]:
        command = build_command(zone.value, verb, argument, relative=relative)
        return self._spawn(self._deliver(field, zone, verb, argument, relative), f"onkyo-{command}")

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(
        self,
        field: StateField | None,
        zone: Zone,
        verb: str,
        argument: object,
        relative: bool = False,
    ) -> CommandResult:
        command = build_command(zone.value, verb, argument, relative=relative)
        correlation_id = str(cast(uuid.UUID, uuid7()))

        with correlation_context(correlation_id):
            logger.debug("→ Sending command", extra={"command": command, "zone": zone.value})
            try:
                reply = await self.transport.send_command(zone.value, verb, argument, relative=relative)
            except OnkyoError as e:
                logger.warning(
                    "✗ Command failed",
                    extra={"command": command, "error": str(e), "error_type": type(e).__name__},
                )
                if field is not None:
                    self._revert(field)
                return CommandResult(False, command, correlation_id, reason=str(e))

            logger.debug(
                "✓ Command delivered",
                extra={"command": command, "reply": reply.message if reply else None},
            )
            return CommandResult(True, command, correlation_id, reply=reply.message if reply else None)

    def _revert(self, field: StateField) -> None:
        safe_value = SAFE_DEFAULTS[field]
        logger.info(
            "Reverting optimistic update",
            extra={"zone": self.zone.value, "field": field.value, "value": safe_value},
        )
        _ = self.state.update(field, safe_value)
        registry.record_optimistic_revert(self.transport.device_id, field.value)
