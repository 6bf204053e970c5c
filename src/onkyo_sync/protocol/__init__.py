"""eISCP protocol package - frame encoding/decoding, stream framing and command translation.

Public API:
- Frame codec (encode_frame, decode_frame)
- Stream framing (FrameParser)
- Command/ISCP translation (EiscpCodec, StatusMessage)
"""

from onkyo_sync.protocol.eiscp import (
    ISCP_HEADER_LENGTH,
    ISCP_MAGIC,
    NOT_AVAILABLE,
    EiscpCodec,
    ParsedCommand,
    StatusMessage,
    build_command,
    decode_frame,
    encode_frame,
    parse_command,
)
from onkyo_sync.protocol.frame_parser import FrameParser

__all__ = [
    "ISCP_HEADER_LENGTH",
    "ISCP_MAGIC",
    "NOT_AVAILABLE",
    "EiscpCodec",
    "FrameParser",
    "ParsedCommand",
    "StatusMessage",
    "build_command",
    "decode_frame",
    "encode_frame",
    "parse_command",
]
