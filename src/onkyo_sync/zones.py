"""Zone, verb and remote-key tables.

Fixed enumerations replace string-keyed maps so an unknown zone or key fails
at the boundary instead of deep inside command building.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, StrEnum
from types import MappingProxyType
from typing import Final

__all__ = [
    "REMOTE_KEY_COMMANDS",
    "ZONE_VERBS",
    "RemoteKey",
    "StateField",
    "VolumeDirection",
    "Zone",
    "ZoneVerbs",
]


class Zone(StrEnum):
    """Independently controllable receiver output."""

    MAIN = "main"
    ZONE2 = "zone2"


class StateField(StrEnum):
    """Tracked receiver state fields; one command verb per field."""

    POWER = "power"
    MUTE = "mute"
    VOLUME = "volume"
    INPUT = "input"


class VolumeDirection(StrEnum):
    INCREMENT = "level-up"
    DECREMENT = "level-down"


@dataclass(frozen=True, slots=True)
class ZoneVerbs:
    """High-level command names (and their ISCP codes) for one zone."""

    power: str
    power_code: str
    volume: str
    volume_code: str
    muting: str
    muting_code: str
    input: str
    input_code: str

    def verb_for(self, field: StateField) -> str:
        return {
            StateField.POWER: self.power,
            StateField.MUTE: self.muting,
            StateField.VOLUME: self.volume,
            StateField.INPUT: self.input,
        }[field]

    def field_for(self, verb: str) -> StateField | None:
        """Inverse of ``verb_for``; None for verbs this zone does not track."""
        for field in StateField:
            if self.verb_for(field) == verb:
                return field
        return None


ZONE_VERBS: Final = MappingProxyType(
    {
        Zone.MAIN: ZoneVerbs(
            power="system-power",
            power_code="PWR",
            volume="master-volume",
            volume_code="MVL",
            muting="audio-muting",
            muting_code="AMT",
            input="input-selector",
            input_code="SLI",
        ),
        Zone.ZONE2: ZoneVerbs(
            power="power",
            power_code="ZPW",
            volume="volume",
            volume_code="ZVL",
            muting="muting",
            muting_code="ZMT",
            input="selector",
            input_code="SLZ",
        ),
    },
)


class RemoteKey(IntEnum):
    """Remote key identifiers as sent by HomeKit's RemoteKey characteristic."""

    REWIND = 0
    FAST_FORWARD = 1
    NEXT_TRACK = 2
    PREVIOUS_TRACK = 3
    ARROW_UP = 4
    ARROW_DOWN = 5
    ARROW_LEFT = 6
    ARROW_RIGHT = 7
    SELECT = 8
    BACK = 9
    EXIT = 10
    PLAY_PAUSE = 11
    INFORMATION = 15


# key -> (main-zone verb, press token); OSD and network transport keys only exist on main
REMOTE_KEY_COMMANDS: Final = MappingProxyType(
    {
        RemoteKey.REWIND: ("network-usb", "rew"),
        RemoteKey.FAST_FORWARD: ("network-usb", "ff"),
        RemoteKey.NEXT_TRACK: ("network-usb", "trup"),
        RemoteKey.PREVIOUS_TRACK: ("network-usb", "trdn"),
        RemoteKey.ARROW_UP: ("setup", "up"),
        RemoteKey.ARROW_DOWN: ("setup", "down"),
        RemoteKey.ARROW_LEFT: ("setup", "left"),
        RemoteKey.ARROW_RIGHT: ("setup", "right"),
        RemoteKey.SELECT: ("setup", "enter"),
        RemoteKey.BACK: ("setup", "exit"),
        RemoteKey.EXIT: ("setup", "home"),
        RemoteKey.PLAY_PAUSE: ("network-usb", "p/p"),
        RemoteKey.INFORMATION: ("setup", "menu"),
    },
)
