from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

import uvloop

from onkyo_sync.catalog import get_default_catalog, load_catalog
from onkyo_sync.const import ONKYO_CONFIG_FILE_PATH, ONKYO_DEBUG, ONKYO_METRICS_PORT, ONKYO_VERSION
from onkyo_sync.correlation import correlation_context, ensure_correlation_id
from onkyo_sync.device import DeviceDescriptor, ReceiverDevice, load_device_config
from onkyo_sync.dispatcher import CommandResult
from onkyo_sync.exceptions import OnkyoError
from onkyo_sync.inputs import resolve_inputs
from onkyo_sync.logging_abstraction import get_logger
from onkyo_sync.metrics import start_metrics_server
from onkyo_sync.state import StateObserver
from onkyo_sync.zones import RemoteKey, StateField, VolumeDirection, Zone

logger = get_logger(__name__)
# Transport modules log through plain stdlib loggers; give their package the same handlers
transport_logger = get_logger("onkyo_sync.transport")

INTENTS = ("power", "mute", "volume", "volume-up", "volume-down", "input", "key", "query")
_SWITCH_VALUES = {"on": True, "true": True, "1": True, "off": False, "false": False, "0": False, "standby": False}


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="onkyo-sync", description="Onkyo/Integra eISCP receiver client")
    _ = parser.add_argument("-D", "--debug", action="store_true", help="Enable debug mode")
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {ONKYO_VERSION}")
    _ = parser.add_argument("--catalog", type=Path, default=None, help="Command catalog YAML (default: bundled)")
    subparsers = parser.add_subparsers(dest="action", required=True)

    inputs_parser = subparsers.add_parser("inputs", help="Print the input table of a receiver model")
    _ = inputs_parser.add_argument("model", help="Receiver model, e.g. TX-NR686")
    _ = inputs_parser.add_argument("--zone", choices=[zone.value for zone in Zone], default=Zone.MAIN.value)

    monitor_parser = subparsers.add_parser("monitor", help="Connect to configured receivers and log state changes")
    _ = monitor_parser.add_argument("--config", type=Path, default=Path(ONKYO_CONFIG_FILE_PATH))
    _ = monitor_parser.add_argument(
        "--metrics-port",
        type=int,
        default=ONKYO_METRICS_PORT,
        help="Expose Prometheus metrics on this port",
    )

    command_parser = subparsers.add_parser("command", help="Send one intent to a configured receiver")
    _ = command_parser.add_argument("--config", type=Path, default=Path(ONKYO_CONFIG_FILE_PATH))
    _ = command_parser.add_argument("device", help="Device display name or IP address")
    _ = command_parser.add_argument("intent", choices=INTENTS)
    _ = command_parser.add_argument("value", nargs="?", default=None)

    args = parser.parse_args(argv)
    if args.debug or ONKYO_DEBUG:
        _enable_debug()
        logger.info("Debug mode enabled")
    return args


def _enable_debug() -> None:
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if name.startswith("onkyo_sync") and isinstance(candidate, logging.Logger):
            candidate.setLevel(logging.DEBUG)
            for handler in candidate.handlers:
                handler.setLevel(logging.DEBUG)


def print_inputs(args: argparse.Namespace) -> int:
    catalog = load_catalog(args.catalog) if args.catalog else get_default_catalog()
    table = resolve_inputs(catalog, args.model, Zone(args.zone))
    if not len(table):
        print(f"No inputs found for model {args.model!r}", file=sys.stderr)
        return 1
    for source in table:
        print(f"{source.index:>3}  {source.code:<4}  {source.label}")
    return 0


def _build_devices(args: argparse.Namespace, descriptors: list[DeviceDescriptor]) -> list[ReceiverDevice]:
    catalog = load_catalog(args.catalog) if args.catalog else get_default_catalog()
    return [ReceiverDevice(descriptor, catalog=catalog) for descriptor in descriptors]


async def monitor(args: argparse.Namespace) -> int:
    """Run until SIGINT/SIGTERM, logging every state change of every configured device."""
    _ = ensure_correlation_id()
    config = load_device_config(args.config)
    if not config.devices:
        logger.error("No devices configured", extra={"config_path": str(args.config)})
        return 1
    if args.metrics_port:
        start_metrics_server(args.metrics_port)
        logger.info("Metrics server started", extra={"port": args.metrics_port})

    devices = _build_devices(args, config.devices)
    for device in devices:
        _ = device.state.subscribe(_state_logger(device))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        _ = await asyncio.gather(*(device.start() for device in devices))
        logger.info("Monitoring receivers", extra={"devices": [device.name for device in devices]})
        _ = await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        _ = await asyncio.gather(*(device.stop() for device in devices), return_exceptions=True)
    return 0


def _state_logger(device: ReceiverDevice) -> StateObserver:
    def observer(field: StateField, value: bool | int) -> None:
        if field is StateField.INPUT and value:
            label = device.input_table.get(int(value)).label
            print(f"{device.name}: {field.value} = {value} ({label})")
        else:
            print(f"{device.name}: {field.value} = {value}")

    return observer


def _parse_switch(value: str | None) -> bool:
    if value is None or value.casefold() not in _SWITCH_VALUES:
        msg = f"expected on/off, got {value!r}"
        raise ValueError(msg)
    return _SWITCH_VALUES[value.casefold()]


def _parse_int(value: str | None, intent: str) -> int:
    try:
        return int(value or "")
    except ValueError:
        msg = f"{intent} expects an integer, got {value!r}"
        raise ValueError(msg) from None


def _parse_key(value: str | None) -> RemoteKey:
    if value is None:
        msg = "key expects a remote key name"
        raise ValueError(msg)
    if value.isdigit():
        return RemoteKey(int(value))
    try:
        return RemoteKey[value.upper().replace("-", "_")]
    except KeyError:
        msg = f"unknown remote key {value!r}"
        raise ValueError(msg) from None


async def run_command(args: argparse.Namespace) -> int:
    config = load_device_config(args.config)
    descriptor = config.find(args.device)
    if descriptor is None:
        print(f"Device {args.device!r} not found in {args.config}", file=sys.stderr)
        return 2

    device = _build_devices(args, [descriptor])[0]
    if not await device.start(auto_reconnect=False):
        print(f"Could not connect to {descriptor.ip_address}:{descriptor.port}", file=sys.stderr)
        return 1

    try:
        if device.refresh_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                _ = await device.refresh_task

        dispatcher = device.dispatcher
        results: list[CommandResult]
        match args.intent:
            case "power":
                results = [await dispatcher.set_power(_parse_switch(args.value))]
            case "mute":
                results = [await dispatcher.set_mute(_parse_switch(args.value))]
            case "volume":
                results = [await dispatcher.set_volume_absolute(_parse_int(args.value, "volume"))]
            case "volume-up":
                results = [await dispatcher.set_volume_relative(VolumeDirection.INCREMENT)]
            case "volume-down":
                results = [await dispatcher.set_volume_relative(VolumeDirection.DECREMENT)]
            case "input":
                results = [await dispatcher.set_input(_parse_int(args.value, "input"))]
            case "key":
                results = [await dispatcher.press_remote_key(_parse_key(args.value))]
            case _:
                results = await dispatcher.refresh()
    finally:
        await device.stop()

    for result in results:
        status = "ok" if result.success else f"failed: {result.reason}"
        print(f"{result.command}: {status}")
    print(f"state: {device.state.snapshot()}")
    return 0 if all(result.success for result in results) else 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the onkyo-sync CLI."""
    with correlation_context():
        args = parse_cli(argv)
        try:
            if args.action == "inputs":
                return print_inputs(args)
            if args.action == "monitor":
                return uvloop.run(monitor(args))
            return uvloop.run(run_command(args))
        except (OnkyoError, ValueError) as e:
            logger.error("Command failed", extra={"error": str(e), "error_type": type(e).__name__})
            print(f"error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
            return 130


if __name__ == "__main__":
    sys.exit(main())
