"""eISCP codec: frames, ISCP messages and high-level command strings.

Wire format (one frame per message):

    "ISCP" | header size (uint32 BE, 16) | data size (uint32 BE) |
    version (0x01) | 3 reserved bytes | "!1" + ISCP message + terminator

An ISCP message is a three-letter command code followed by a value token,
e.g. ``PWR01`` or ``MVL2A``. High-level command strings name the zone, the
command and the value (``main.system-power=on``); the catalog translates
between the two.
"""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass

from onkyo_sync.catalog import Catalog
from onkyo_sync.protocol.exceptions import CommandTranslationError, FrameDecodeError

__all__ = [
    "ISCP_HEADER_LENGTH",
    "ISCP_MAGIC",
    "NOT_AVAILABLE",
    "EiscpCodec",
    "ParsedCommand",
    "StatusMessage",
    "build_command",
    "decode_frame",
    "encode_frame",
    "parse_command",
]

ISCP_MAGIC = b"ISCP"
ISCP_HEADER_LENGTH = 16
ISCP_VERSION = 0x01
UNIT_TYPE_RECEIVER = "1"
MESSAGE_TERMINATOR = "\r\n"
NOT_AVAILABLE = "N/A"
QUERY_TOKEN = "QSTN"
DEFAULT_ZONE = "main"

_HEADER = struct.Struct(">4sIIB3x")
# Receivers terminate with EOF (0x1A), CR, LF or a mix of them
_TRAILING_CHARS = "\x1a\r\n\x00"
_COMMAND_PATTERN = re.compile(
    r"^(?:(?P<zone>[a-z0-9]+)\.)?(?P<verb>[a-z0-9-]+)\s*[=:\s]\s*(?P<argument>.+?)\s*$",
    re.IGNORECASE,
)


def encode_frame(message: str) -> bytes:
    """Wrap an ISCP message (``PWR01``) in an eISCP frame."""
    data = f"!{UNIT_TYPE_RECEIVER}{message}{MESSAGE_TERMINATOR}".encode()
    return _HEADER.pack(ISCP_MAGIC, ISCP_HEADER_LENGTH, len(data), ISCP_VERSION) + data


def decode_frame(frame: bytes) -> str:
    """Extract the ISCP message from one complete eISCP frame.

    Raises:
        FrameDecodeError: If the header or message start marker is invalid

    """
    if len(frame) < ISCP_HEADER_LENGTH:
        raise FrameDecodeError("too_short", frame)
    magic, header_size, data_size, _version = _HEADER.unpack_from(frame)
    if magic != ISCP_MAGIC:
        raise FrameDecodeError("bad_magic", frame)
    data = frame[header_size : header_size + data_size]
    if len(data) < data_size:
        raise FrameDecodeError("truncated_data", frame)

    # NLS/NJA payloads can carry UTF-8 metadata
    text = data.decode("utf-8", errors="replace").rstrip(_TRAILING_CHARS)
    if len(text) < 2 or text[0] != "!":
        raise FrameDecodeError("missing_start_char", frame)
    return text[2:]


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    zone: str
    verb: str
    argument: str


def build_command(zone: str, verb: str, argument: object, relative: bool = False) -> str:
    """``zone.verb=argument`` for absolute sets, ``zone.verb:argument`` for relative/query forms."""
    separator = ":" if relative else "="
    return f"{zone}.{verb}{separator}{argument}"


def parse_command(command: str) -> ParsedCommand:
    """Split a high-level command string; the zone defaults to ``main``.

    Raises:
        CommandTranslationError: If the string is not ``[zone.]verb(=|:| )argument``

    """
    match = _COMMAND_PATTERN.match(command.strip())
    if not match:
        raise CommandTranslationError(command, "malformed command string")
    return ParsedCommand(
        zone=(match.group("zone") or DEFAULT_ZONE).lower(),
        verb=match.group("verb").lower(),
        argument=match.group("argument"),
    )


@dataclass(frozen=True, slots=True)
class StatusMessage:
    """Decoded inbound ISCP message.

    ``zone`` and ``verb`` are None for commands the catalog does not know.
    ``value`` is the value's display name (aliases joined with ","), an
    integer for numeric ranges, or the raw token when neither applies.
    """

    message: str
    code: str
    raw_value: str
    zone: str | None = None
    verb: str | None = None
    value: str | int = ""

    @property
    def rejected(self) -> bool:
        return self.raw_value == NOT_AVAILABLE


class EiscpCodec:
    """Translates between command strings and ISCP messages using the catalog."""

    def __init__(self, catalog: Catalog) -> None:
        self.catalog: Catalog = catalog

    def command_to_iscp(self, command: str) -> str:
        """Translate ``main.system-power=on`` to ``PWR01``.

        The argument is matched, in order, against value names and aliases,
        the literal ``query``, numeric ranges (sent as two-digit hex) and raw
        value tokens.

        Raises:
            CommandTranslationError: For unknown verbs or unmatched arguments

        """
        parsed = parse_command(command)
        spec = self.catalog.command_by_name(parsed.zone, parsed.verb)
        if spec is None:
            raise CommandTranslationError(command, f"unknown command {parsed.verb!r} for zone {parsed.zone!r}")

        argument = parsed.argument
        entry = self.catalog.find_value(parsed.zone, spec.code, argument)
        if entry is not None:
            return spec.code + entry.code
        if argument.casefold() == "query":
            return spec.code + QUERY_TOKEN

        number = _parse_int(argument)
        if number is not None and spec.accepts(number):
            return f"{spec.code}{number:02X}"

        entry = self.catalog.find_token(parsed.zone, spec.code, argument)
        if entry is not None:
            return spec.code + entry.code

        raise CommandTranslationError(command, f"unknown argument {argument!r} for {spec.zone}.{spec.name}")

    def iscp_to_status(self, message: str) -> StatusMessage:
        """Decode ``MVL2A`` into zone ``main``, verb ``master-volume``, value 42.

        Raises:
            FrameDecodeError: If the message is shorter than a command code

        """
        if len(message) < 3:
            raise FrameDecodeError("message_too_short", message.encode(errors="replace"))
        code, raw_value = message[:3].upper(), message[3:]

        spec = self.catalog.command_for_code(code)
        if spec is None:
            return StatusMessage(message=message, code=code, raw_value=raw_value, value=raw_value)

        value: str | int = raw_value
        if raw_value != NOT_AVAILABLE:
            entry = self.catalog.find_token(spec.zone, code, raw_value)
            if entry is not None:
                value = entry.name
            elif spec.ranges:
                number = _parse_hex(raw_value)
                if number is not None and spec.accepts(number):
                    value = number

        return StatusMessage(
            message=message,
            code=code,
            raw_value=raw_value,
            zone=spec.zone,
            verb=spec.name,
            value=value,
        )


def _parse_int(text: str) -> int | None:
    try:
        return int(text)
    except ValueError:
        return None


def _parse_hex(text: str) -> int | None:
    try:
        return int(text, 16)
    except ValueError:
        return None
