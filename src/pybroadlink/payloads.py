"""Fixed-offset payload layouts for every message kind the client speaks."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple, Union

from .errors import ProtocolError

FieldValue = Union[int, bytes]

UINT = "uint"
RAW = "bytes"


@dataclass(frozen=True, slots=True)
class Field:
    """A named field at a fixed byte offset.

    ``uint`` fields are little-endian unsigned integers of ``width`` bytes;
    ``bytes`` fields are truncated or zero-padded to ``width``.
    """

    name: str
    offset: int
    width: int = 1
    kind: str = UINT
    default: FieldValue = 0

    @property
    def end(self) -> int:
        return self.offset + self.width

    def encode(self, value: FieldValue) -> bytes:
        if self.kind == RAW:
            if not isinstance(value, (bytes, bytearray)):
                raise TypeError(f"Field '{self.name}' takes bytes, not {type(value).__name__}")
            raw = bytes(value)[: self.width]
            return raw + bytes(self.width - len(raw))
        try:
            return int(value).to_bytes(self.width, "little")  # type: ignore[arg-type]
        except OverflowError as exc:
            raise ValueError(f"Value {value!r} does not fit field '{self.name}'") from exc

    def decode(self, data: bytes) -> FieldValue:
        chunk = bytes(data[self.offset : self.end])
        if self.kind == RAW:
            return chunk
        return int.from_bytes(chunk, "little")


@dataclass(frozen=True, slots=True)
class PayloadSchema:
    """Layout of one plaintext payload: fixed constant bytes plus named fields."""

    name: str
    size: int
    fields: Tuple[Field, ...] = ()
    constants: Tuple[Tuple[int, bytes], ...] = ()

    def field(self, name: str) -> Field:
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        raise KeyError(name)

    def encode(self, **values: FieldValue) -> bytes:
        known = {field.name for field in self.fields}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown fields for {self.name}: {', '.join(sorted(unknown))}")
        buffer = bytearray(self.size)
        for offset, constant in self.constants:
            buffer[offset : offset + len(constant)] = constant
        for field in self.fields:
            buffer[field.offset : field.end] = field.encode(values.get(field.name, field.default))
        return bytes(buffer)

    def decode(self, data: bytes) -> Dict[str, FieldValue]:
        required = max((field.end for field in self.fields), default=0)
        if len(data) < required:
            raise ProtocolError(
                f"{self.name} payload of {len(data)} bytes is shorter than the {required} bytes required"
            )
        return {field.name: field.decode(data) for field in self.fields}


AUTH_REQUEST = PayloadSchema(
    name="auth-request",
    size=0x50,
    fields=(
        Field("flag", 0x2D, default=0x01),
        Field("hostname", 0x30, width=0x20, kind=RAW, default=b""),
    ),
)

AUTH_REPLY = PayloadSchema(
    name="auth-reply",
    size=0x14,
    fields=(
        Field("device_id", 0x00, width=4),
        Field("key", 0x04, width=16, kind=RAW),
    ),
)

SP_SET_POWER = PayloadSchema(
    name="sp-set-power",
    size=16,
    constants=((0x00, b"\x02"),),
    fields=(Field("state", 0x04),),
)

SP_QUERY_POWER = PayloadSchema(
    name="sp-query-power",
    size=16,
    constants=((0x00, b"\x01"),),
)

SP_POWER_STATUS = PayloadSchema(
    name="sp-power-status",
    size=16,
    fields=(Field("state", 0x04),),
)

_MP_PREFIX = bytes((0x00, 0xA5, 0xA5, 0x5A, 0x5A))

MP_SET_POWER = PayloadSchema(
    name="mp-set-power",
    size=16,
    constants=(
        (0x00, b"\x0d"),
        (0x01, _MP_PREFIX),
        (0x07, bytes((0xC0, 0x02, 0x00, 0x03, 0x00, 0x00))),
    ),
    fields=(
        Field("control", 0x06),
        Field("mask", 0x0D),
        Field("enabled", 0x0E),
    ),
)

MP_QUERY_POWER = PayloadSchema(
    name="mp-query-power",
    size=16,
    constants=(
        (0x00, b"\x0a"),
        (0x01, _MP_PREFIX),
        (0x06, bytes((0xAE, 0xC0, 0x01))),
    ),
)

MP_POWER_STATUS = PayloadSchema(
    name="mp-power-status",
    size=16,
    fields=(Field("mask", 0x0E),),
)

# States reported by single-relay devices that mean the relay is closed.
SP_ON_STATES = frozenset({0x01, 0x03, 0xFD})

MP_CONTROL_BIAS = 0xB2


def multi_relay_control(mask: int, on: bool) -> int:
    """Control byte for a multi-relay set command, with 8-bit wraparound."""

    shifted = (mask << 1) & 0xFF if on else mask & 0xFF
    return (shifted + MP_CONTROL_BIAS) & 0xFF


def encode_multi_relay_set(mask: int, on: bool) -> bytes:
    if not 0 <= mask <= 0xFF:
        raise ValueError(f"Relay mask {mask!r} must fit in one byte")
    return MP_SET_POWER.encode(
        control=multi_relay_control(mask, on),
        mask=mask,
        enabled=mask if on else 0,
    )


def encode_auth_request(hostname: str) -> bytes:
    return AUTH_REQUEST.encode(hostname=hostname.encode("utf-8"))


__all__ = [
    "AUTH_REPLY",
    "AUTH_REQUEST",
    "Field",
    "MP_POWER_STATUS",
    "MP_QUERY_POWER",
    "MP_SET_POWER",
    "PayloadSchema",
    "SP_ON_STATES",
    "SP_POWER_STATUS",
    "SP_QUERY_POWER",
    "SP_SET_POWER",
    "encode_auth_request",
    "encode_multi_relay_set",
    "multi_relay_control",
]
