"""TCP stream framing for eISCP with buffer overflow protection."""

from __future__ import annotations

import logging
import struct

from onkyo_sync.protocol.eiscp import ISCP_HEADER_LENGTH, ISCP_MAGIC

logger = logging.getLogger(__name__)

_SIZES = struct.Struct(">II")


class FrameParser:
    r"""Extract complete eISCP frames from a TCP byte stream.

    TCP reads may return partial frames, several frames, or exact boundaries.
    The parser buffers incoming bytes, resynchronizes on the ``ISCP`` magic,
    and uses the header and data size fields to cut complete frames.

    Frames announcing more than ``MAX_FRAME_SIZE`` bytes are treated as
    corruption: the magic is skipped and scanning resumes at the next one.

    Example:
        parser = FrameParser()
        frames = parser.feed(frame[:10])
        assert frames == []  # Incomplete

        frames = parser.feed(frame[10:])
        assert len(frames) == 1

    """

    # NJA (jacket art) chunks are the largest messages receivers send
    MAX_FRAME_SIZE: int = 16384

    def __init__(self) -> None:
        self.buffer: bytearray = bytearray()

    def feed(self, data: bytes) -> list[bytes]:
        """Add data to buffer and return the complete frames it finishes."""
        self.buffer.extend(data)
        return self._extract_frames()

    def reset(self) -> None:
        """Drop buffered bytes (used when the connection is re-established)."""
        self.buffer = bytearray()

    def _extract_frames(self) -> list[bytes]:
        frames: list[bytes] = []

        while True:
            start = self.buffer.find(ISCP_MAGIC)
            if start < 0:
                # Keep a possible partial magic at the tail
                keep = len(ISCP_MAGIC) - 1
                if len(self.buffer) > keep:
                    logger.warning(
                        "Discarding %d bytes without frame magic",
                        len(self.buffer) - keep,
                        extra={"buffer_size": len(self.buffer)},
                    )
                    self.buffer = self.buffer[-keep:]
                break
            if start > 0:
                logger.warning(
                    "Discarding %d bytes before frame magic",
                    start,
                    extra={"buffer_size": len(self.buffer)},
                )
                self.buffer = self.buffer[start:]

            if len(self.buffer) < ISCP_HEADER_LENGTH:
                break

            header_size, data_size = _SIZES.unpack_from(self.buffer, len(ISCP_MAGIC))
            total_length = header_size + data_size
            if header_size < ISCP_HEADER_LENGTH or total_length > self.MAX_FRAME_SIZE:
                logger.warning(
                    "Invalid frame sizes (header=%d, data=%d), resynchronizing",
                    header_size,
                    data_size,
                    extra={"buffer_size": len(self.buffer)},
                )
                self.buffer = self.buffer[len(ISCP_MAGIC) :]
                continue

            if len(self.buffer) < total_length:
                break

            frames.append(bytes(self.buffer[:total_length]))
            self.buffer = self.buffer[total_length:]

        return frames
