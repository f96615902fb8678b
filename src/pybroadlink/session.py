"""Per-device session state: identity, configuration and framed request/response."""
from __future__ import annotations

import logging
import os
import re
import socket
import threading
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import psutil

from .cipher import DEFAULT_IV, DEFAULT_KEY, SessionCipher, pad
from .errors import ProtocolError, TransportError
from .frame import (
    HEADER_SIZE,
    FrameHeader,
    build_frame,
    checksum,
    error_code,
    frame_payload,
)
from .models import DeviceFamily, family_for
from .transport import (
    DEFAULT_PORT,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_RECEIVE_BUFFER,
    Address,
    UdpTransport,
)

_LOGGER = logging.getLogger(__name__)

HOSTNAME_ENV_VAR = "PYBROADLINK_HOSTNAME"

_MAC_SEPARATORS = re.compile(r"[:\-.]")


def interface_ipv4(interface: str) -> Optional[str]:
    """First IPv4 address assigned to ``interface``, or ``None``."""

    for addr in psutil.net_if_addrs().get(interface, ()):
        if addr.family == socket.AF_INET and addr.address:
            return addr.address
    return None


def parse_mac(value: Union[str, bytes]) -> bytes:
    """Parse a link-layer address given as text or as six raw bytes."""

    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        digits = _MAC_SEPARATORS.sub("", value.strip())
        try:
            raw = bytes.fromhex(digits)
        except ValueError as exc:
            raise ValueError(f"Invalid MAC address '{value}'") from exc
    if len(raw) != 6:
        raise ValueError(f"MAC address must be 6 bytes, got {len(raw)}")
    return raw


@dataclass(slots=True)
class SessionConfig:
    """Tunables for a device session."""

    port: int = DEFAULT_PORT
    auth_timeout: float = 10.0
    command_timeout: float = 1.0
    queue_size: int = DEFAULT_QUEUE_SIZE
    receive_buffer: int = DEFAULT_RECEIVE_BUFFER
    poll_interval: float = 0.5
    hostname: Optional[str] = None
    network_interface: Optional[str] = None

    def resolve_hostname(self) -> str:
        """Host name embedded in the authentication request."""

        if self.hostname is not None:
            return self.hostname
        return os.getenv(HOSTNAME_ENV_VAR) or socket.gethostname()

    def resolve_source_address(self) -> Optional[Tuple[str, int]]:
        """Local address to bind so traffic leaves through ``network_interface``."""

        if not self.network_interface:
            return None
        address = interface_ipv4(self.network_interface)
        if not address:
            _LOGGER.warning(
                "Interface '%s' has no IPv4 address; using the default route",
                self.network_interface,
            )
            return None
        return (address, 0)


@dataclass(slots=True)
class DeviceIdentity:
    """Addressing and credentials of one appliance."""

    address: Address
    mac: bytes
    model_code: int
    device_id: int = 0
    key: bytes = DEFAULT_KEY
    iv: bytes = DEFAULT_IV
    send_count: int = 0

    def __post_init__(self) -> None:
        # The header carries the model code in a 16-bit field.
        if not 0 <= self.model_code <= 0xFFFF:
            raise ValueError(f"Model code 0x{self.model_code:x} does not fit in 16 bits")

    @property
    def family(self) -> DeviceFamily:
        return family_for(self.model_code)

    @property
    def authenticated(self) -> bool:
        return self.device_id != 0

    def next_sequence(self) -> int:
        self.send_count = (self.send_count + 1) & 0xFFFF
        return self.send_count


class DeviceSession:
    """Single owner of a device's mutable state and its transport.

    Commands are serialized through :attr:`lock` so only one request is in
    flight per session; the unconditional receive assumes exactly that.
    """

    def __init__(
        self,
        identity: DeviceIdentity,
        config: Optional[SessionConfig] = None,
        transport: Optional[UdpTransport] = None,
    ) -> None:
        self.identity = identity
        self.config = config or SessionConfig(port=identity.address[1])
        self._transport = transport
        self.lock = threading.RLock()

    @property
    def transport(self) -> UdpTransport:
        if self._transport is None:
            raise TransportError("Session is not open")
        return self._transport

    @property
    def closed(self) -> bool:
        return self._transport is None or self._transport.closed

    @property
    def cipher(self) -> SessionCipher:
        return SessionCipher(self.identity.key, self.identity.iv)

    def open(self) -> None:
        if self._transport is None:
            self._transport = UdpTransport(
                self.identity.address,
                queue_size=self.config.queue_size,
                receive_buffer=self.config.receive_buffer,
                poll_interval=self.config.poll_interval,
                source_address=self.config.resolve_source_address(),
            )
        self._transport.open()

    def close(self) -> None:
        if self._transport is not None:
            _LOGGER.debug("Closing session for %s:%s", *self.identity.address)
            self._transport.close()

    def __enter__(self) -> "DeviceSession":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Framing
    # ------------------------------------------------------------------
    def build_packet(self, command: int, payload: Optional[bytes] = None) -> bytes:
        """Frame ``payload`` for ``command``, consuming the next sequence number."""

        identity = self.identity
        sequence = identity.next_sequence()
        payload_checksum = 0
        encrypted = b""
        if payload:
            padded = pad(payload)
            payload_checksum = checksum(padded)
            encrypted = self.cipher.encrypt(padded, padded=True)
            _LOGGER.debug("Payload %s", padded.hex(" "))
        header = FrameHeader(
            device_type=identity.model_code,
            command=command,
            sequence=sequence,
            mac=identity.mac,
            device_id=identity.device_id,
            payload_checksum=payload_checksum,
        )
        packet = build_frame(header, encrypted)
        _LOGGER.debug("Frame %s", packet.hex(" "))
        return packet

    def send_raw(self, command: int, payload: Optional[bytes] = None) -> None:
        """Send a command without waiting for a reply."""

        transport = self.transport
        if transport.closed:
            raise TransportError("Transport is closed")
        transport.send(self.build_packet(command, payload))

    def send_packet(
        self,
        command: int,
        payload: Optional[bytes] = None,
        timeout: Optional[float] = None,
    ) -> bytes:
        """Send a command and return the next frame received."""

        wait = self.config.command_timeout if timeout is None else timeout
        with self.lock:
            self.send_raw(command, payload)
            _LOGGER.debug("Waiting up to %.2fs for reply to command 0x%02x", wait, command)
            return self.transport.recv(wait)

    def decrypt_reply(self, frame: bytes) -> bytes:
        """Check the reply's error code, then decrypt its payload."""

        if len(frame) < HEADER_SIZE:
            raise ProtocolError(f"Reply of {len(frame)} bytes is shorter than the header")
        code = error_code(frame)
        if code != 0:
            raise ProtocolError(f"Response {code:x}", code=code)
        return self.cipher.decrypt(frame_payload(frame))

    def install_credentials(self, device_id: int, key: bytes) -> None:
        if len(key) != 16:
            raise ProtocolError(f"Session key must be 16 bytes, got {len(key)}")
        self.identity.device_id = device_id
        self.identity.key = bytes(key)


__all__ = [
    "DeviceIdentity",
    "DeviceSession",
    "HOSTNAME_ENV_VAR",
    "SessionConfig",
    "interface_ipv4",
    "parse_mac",
]
