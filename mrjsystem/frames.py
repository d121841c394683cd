"""Fixed-size 256-byte frames exchanged between the nodes."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass

FRAME_SIZE = 256
MAX_DATA_LENGTH = 247
_CHECKSUM_OFFSET = 250
_TIMESTAMP_OFFSET = 252


class FrameType(enum.IntEnum):
    """Frame type byte values."""

    CONNECT_FLECK_GOTHAM = 0x01
    CONNECT_WORKER_GOTHAM = 0x02
    START_DISTORT_FLECK_WORKER = 0x03
    START_DISTORT_WORKER_FLECK = 0x04
    END_DISTORT_FLECK_WORKER = 0x04
    FILE_DATA = 0x05
    DISCONNECTION = 0x07
    PRINCIPAL_WORKER = 0x08
    ERROR = 0x09
    DISTORT_FLECK_GOTHAM = 0x10
    RESUME_DISTORT_FLECK_GOTHAM = 0x11
    HEARTBEAT = 0x12


class FrameError(ValueError):
    """A frame could not be built or did not pass validation."""


@dataclass(frozen=True)
class Frame:
    """A decoded frame: its type, its data and its timestamp in seconds."""

    type: int
    data: str
    timestamp: int

    @property
    def ctime(self) -> str:
        """The timestamp as local time text."""
        return time.ctime(self.timestamp)

    def fields(self, separator: str = "&") -> list[str]:
        """Split the data on ``separator``, dropping empty pieces."""
        return [piece for piece in self.data.split(separator) if piece]


def compute_checksum(raw: bytes) -> int:
    """Sum bytes 0-249 and 252-255 of a frame, modulo 2**16."""
    return (sum(raw[:_CHECKSUM_OFFSET]) + sum(raw[_TIMESTAMP_OFFSET:FRAME_SIZE])) % 65536


def build_frame(frame_type: int, data: bytes | str = b"", timestamp: int | None = None) -> bytes:
    """Encode a frame of exactly 256 bytes.

    Layout: type (1), data length (2), data (247), checksum (2), timestamp (4),
    all big-endian. Raises ``FrameError`` when the data is longer than 247 bytes.
    """
    payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    if len(payload) > MAX_DATA_LENGTH:
        raise FrameError(f"data exceeds {MAX_DATA_LENGTH} bytes ({len(payload)})")
    if timestamp is None:
        timestamp = int(time.time())

    raw = bytearray(FRAME_SIZE)
    raw[0] = int(frame_type)
    raw[1:3] = len(payload).to_bytes(2, "big")
    raw[3 : 3 + len(payload)] = payload
    raw[_TIMESTAMP_OFFSET:FRAME_SIZE] = (timestamp & 0xFFFFFFFF).to_bytes(4, "big")
    raw[_CHECKSUM_OFFSET:_TIMESTAMP_OFFSET] = compute_checksum(raw).to_bytes(2, "big")
    return bytes(raw)


def parse_frame(raw: bytes) -> Frame:
    """Validate and decode a 256-byte frame.

    Raises ``FrameError`` on a short buffer, a bad checksum or a data length
    over 247. The data stops at the first NUL byte.
    """
    if len(raw) < FRAME_SIZE:
        raise FrameError(f"frame too short ({len(raw)} bytes)")
    sent = int.from_bytes(raw[_CHECKSUM_OFFSET:_TIMESTAMP_OFFSET], "big")
    if compute_checksum(raw) != sent:
        raise FrameError("invalid checksum")

    length = int.from_bytes(raw[1:3], "big")
    if length > MAX_DATA_LENGTH:
        raise FrameError(f"invalid data length {length}")

    payload = raw[3 : 3 + length].split(b"\x00", 1)[0]
    try:
        frame_type: int = FrameType(raw[0])
    except ValueError:
        frame_type = raw[0]
    timestamp = int.from_bytes(raw[_TIMESTAMP_OFFSET:FRAME_SIZE], "big")
    return Frame(frame_type, payload.decode("utf-8", errors="replace"), timestamp)