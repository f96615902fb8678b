"""Datagram header layout and the rolling checksum shared by frames and payloads."""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar, Union

from .errors import ProtocolError

Buffer = Union[bytes, bytearray, memoryview]

HEADER_SIZE: int = 0x38
MAGIC: bytes = bytes((0x5A, 0xA5, 0xAA, 0x55, 0x5A, 0xA5, 0xAA, 0x55))
CHECKSUM_SEED: int = 0xBEAF

OFFSET_CHECKSUM: int = 0x20
OFFSET_ERROR_CODE: int = 0x22
OFFSET_DEVICE_TYPE: int = 0x24
OFFSET_COMMAND: int = 0x26
OFFSET_SEQUENCE: int = 0x28
OFFSET_MAC: int = 0x2A
OFFSET_DEVICE_ID: int = 0x30
OFFSET_PAYLOAD_CHECKSUM: int = 0x34

CMD_AUTHENTICATE: int = 0x65
CMD_COMMAND: int = 0x6A
RESP_AUTHENTICATE: int = 0x3E9


def checksum(data: Buffer) -> int:
    """Return the 16-bit wrapping byte sum seeded with ``0xBEAF``."""

    return (CHECKSUM_SEED + sum(data)) & 0xFFFF


def validate_checksum(frame: Buffer, position: int = OFFSET_CHECKSUM) -> bool:
    """Check the little-endian checksum stored at ``position``.

    The field is zeroed while the sum is recomputed and then restored, so a
    mutable buffer is left byte-for-byte unchanged whatever the outcome.
    """

    if len(frame) < HEADER_SIZE or position + 2 > len(frame):
        return False
    buffer = frame if isinstance(frame, bytearray) else bytearray(frame)
    original = bytes(buffer[position : position + 2])
    stored = int.from_bytes(original, "little")
    try:
        buffer[position : position + 2] = b"\x00\x00"
        computed = checksum(buffer)
    finally:
        buffer[position : position + 2] = original
    return computed == stored


@dataclass(frozen=True, slots=True)
class FrameHeader:
    """Named view of the fixed 0x38-byte frame header."""

    device_type: int
    command: int
    sequence: int
    mac: bytes
    device_id: int
    payload_checksum: int = 0
    error_code: int = 0
    checksum: int = 0

    # checksum, error, type, command, sequence, mac, device id, payload checksum
    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<HHHHH6sIH2x")

    def pack_into(self, buffer: bytearray) -> None:
        self._LAYOUT.pack_into(
            buffer,
            OFFSET_CHECKSUM,
            self.checksum,
            self.error_code,
            self.device_type,
            self.command,
            self.sequence & 0xFFFF,
            bytes(self.mac),
            self.device_id & 0xFFFFFFFF,
            self.payload_checksum,
        )

    @classmethod
    def unpack(cls, frame: Buffer) -> "FrameHeader":
        if len(frame) < HEADER_SIZE:
            raise ProtocolError(f"Frame of {len(frame)} bytes is shorter than the header")
        (
            frame_checksum,
            error_code,
            device_type,
            command,
            sequence,
            mac,
            device_id,
            payload_checksum,
        ) = cls._LAYOUT.unpack_from(frame, OFFSET_CHECKSUM)
        return cls(
            device_type=device_type,
            command=command,
            sequence=sequence,
            mac=mac,
            device_id=device_id,
            payload_checksum=payload_checksum,
            error_code=error_code,
            checksum=frame_checksum,
        )


def build_frame(header: FrameHeader, encrypted_payload: bytes = b"") -> bytes:
    """Serialize ``header`` followed by ``encrypted_payload`` and stamp the frame checksum."""

    packet = bytearray(HEADER_SIZE)
    packet[0 : len(MAGIC)] = MAGIC
    header.pack_into(packet)
    struct.pack_into("<H", packet, OFFSET_CHECKSUM, 0)
    packet.extend(encrypted_payload)
    struct.pack_into("<H", packet, OFFSET_CHECKSUM, checksum(packet))
    return bytes(packet)


def response_type(frame: Buffer) -> int:
    """Return the command/response-type tag of a received frame."""

    if len(frame) < OFFSET_COMMAND + 2:
        raise ProtocolError("Frame too short to carry a response type")
    return struct.unpack_from("<H", frame, OFFSET_COMMAND)[0]


def error_code(frame: Buffer) -> int:
    """Return the device-reported error code of a reply frame."""

    if len(frame) < OFFSET_ERROR_CODE + 2:
        raise ProtocolError("Frame too short to carry an error code")
    return struct.unpack_from("<H", frame, OFFSET_ERROR_CODE)[0]


def frame_payload(frame: Buffer) -> bytes:
    """Return the encrypted payload that follows the header."""

    return bytes(frame[HEADER_SIZE:])


__all__ = [
    "CHECKSUM_SEED",
    "CMD_AUTHENTICATE",
    "CMD_COMMAND",
    "FrameHeader",
    "HEADER_SIZE",
    "MAGIC",
    "RESP_AUTHENTICATE",
    "build_frame",
    "checksum",
    "error_code",
    "frame_payload",
    "response_type",
    "validate_checksum",
]
