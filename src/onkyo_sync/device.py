"""Device descriptors, the device configuration file and the per-device facade."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from onkyo_sync.catalog import Catalog, get_default_catalog
from onkyo_sync.const import EISCP_PORT
from onkyo_sync.dispatcher import CommandResult, ZoneCommandDispatcher
from onkyo_sync.exceptions import CatalogLoadError, DeviceConfigError
from onkyo_sync.inputs import InputTable, resolve_inputs
from onkyo_sync.logging_abstraction import get_logger
from onkyo_sync.reconciler import StateReconciler
from onkyo_sync.state import ReceiverState
from onkyo_sync.transport.events import ClosedEvent, ConnectedEvent, TransportErrorEvent, TransportEvent
from onkyo_sync.transport.receiver_transport import ConnectionFactory, ReceiverTransport
from onkyo_sync.transport.retry_policy import RetryPolicy, TimeoutConfig
from onkyo_sync.zones import ZONE_VERBS, StateField, Zone

__all__ = ["DeviceConfig", "DeviceDescriptor", "ReceiverDevice", "load_device_config"]

logger = get_logger(__name__)


class DeviceDescriptor(BaseModel):
    """One configured receiver zone."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    model: str = Field(min_length=1)
    ip_address: str = Field(min_length=1, alias="ip")
    zone: Zone = Zone.MAIN
    display_name: str = Field(default="", alias="name")
    port: int = Field(default=EISCP_PORT, ge=1, le=65535)

    @property
    def label(self) -> str:
        return self.display_name or f"{self.model} ({self.zone.value})"


class DeviceConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    devices: list[DeviceDescriptor] = []

    def find(self, name: str) -> DeviceDescriptor | None:
        """Look a device up by display name, then by address (case-insensitive)."""
        wanted = name.casefold()
        for descriptor in self.devices:
            if descriptor.display_name.casefold() == wanted:
                return descriptor
        for descriptor in self.devices:
            if descriptor.ip_address.casefold() == wanted:
                return descriptor
        return None


def load_device_config(path: str | Path) -> DeviceConfig:
    """Load the YAML device list.

    Example file::

        devices:
          - name: Living Room
            model: TX-NR686
            ip: 192.168.1.40
            zone: main

    Raises:
        DeviceConfigError: If the file is missing, not YAML, or fails validation

    """
    config_path = Path(path).expanduser()
    source = str(config_path)
    try:
        with config_path.open(encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise DeviceConfigError(source, "file not found") from e
    except OSError as e:
        raise DeviceConfigError(source, f"unreadable ({e.strerror})") from e
    except yaml.YAMLError as e:
        raise DeviceConfigError(source, f"invalid YAML: {e}") from e

    try:
        return DeviceConfig.model_validate(document or {})
    except ValidationError as e:
        raise DeviceConfigError(source, f"validation failed: {e.error_count()} error(s)") from e


class ReceiverDevice:
    """Wires catalog, input table, transport, reconciler and dispatcher for one descriptor.

    After every (re)connect the device queries power, volume, mute and input
    so the snapshot leaves Unknown without waiting for the receiver to push.
    """

    def __init__(
        self,
        descriptor: DeviceDescriptor,
        catalog: Catalog | None = None,
        timeout_config: TimeoutConfig | None = None,
        connection_factory: ConnectionFactory | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the device.

        Raises:
            CatalogLoadError: If the catalog lacks one of the zone's command verbs

        """
        self.descriptor: DeviceDescriptor = descriptor
        self.catalog: Catalog = catalog or get_default_catalog()
        self.zone: Zone = descriptor.zone
        _check_zone_commands(self.catalog, self.zone)

        self.input_table: InputTable = resolve_inputs(self.catalog, descriptor.model, self.zone)
        self.state: ReceiverState = ReceiverState()
        self.transport: ReceiverTransport = ReceiverTransport(
            self.catalog,
            port=descriptor.port,
            timeout_config=timeout_config,
            connection_factory=connection_factory,
            retry_policy=retry_policy,
        )
        self.reconciler: StateReconciler = StateReconciler(self.transport, self.state, self.input_table, self.zone)
        volume_code = ZONE_VERBS[self.zone].volume_code
        self.dispatcher: ZoneCommandDispatcher = ZoneCommandDispatcher(
            self.transport,
            self.state,
            self.input_table,
            self.zone,
            max_volume=self.catalog.maximum_for_model(self.zone.value, volume_code, descriptor.model),
        )
        self.refresh_task: asyncio.Task[list[CommandResult]] | None = None
        self._unsubscribe: Callable[[], None] = self.transport.subscribe(self._on_transport_event)

        logger.info(
            "Device initialized",
            extra={
                "device": descriptor.label,
                "model": descriptor.model,
                "zone": self.zone.value,
                "inputs": len(self.input_table),
                "max_volume": self.dispatcher.max_volume,
            },
        )

    def __repr__(self) -> str:
        return f"ReceiverDevice({self.descriptor.label!r}, {self.descriptor.ip_address}:{self.descriptor.port})"

    @property
    def name(self) -> str:
        return self.descriptor.label

    async def start(self, auto_reconnect: bool = True) -> bool:
        """Connect to the receiver; see ``ReceiverTransport.connect``."""
        return await self.transport.connect(self.descriptor.ip_address, self.descriptor.model, auto_reconnect)

    async def stop(self) -> None:
        if self.refresh_task is not None and not self.refresh_task.done():
            _ = self.refresh_task.cancel()
        self.refresh_task = None
        await self.transport.disconnect()
        self.reconciler.close()
        self._unsubscribe()

    def _on_transport_event(self, event: TransportEvent) -> None:
        if isinstance(event, ConnectedEvent):
            self.refresh_task = self.dispatcher.refresh()
        elif isinstance(event, ClosedEvent):
            logger.info(
                "Receiver connection closed",
                extra={"device": self.name, "reason": event.reason, "will_reconnect": event.will_reconnect},
            )
        elif isinstance(event, TransportErrorEvent):
            logger.warning(
                "Receiver transport error",
                extra={"device": self.name, "error": str(event.error), "error_type": type(event.error).__name__},
            )


def _check_zone_commands(catalog: Catalog, zone: Zone) -> None:
    verbs = ZONE_VERBS[zone]
    for field in StateField:
        verb = verbs.verb_for(field)
        if catalog.command_by_name(zone.value, verb) is None:
            raise CatalogLoadError(catalog.source, f"zone {zone.value!r} has no {verb!r} command")
