"""PyBroadlink - a client for the UDP control protocol of networked power plugs and strips."""

from .cipher import DEFAULT_IV, DEFAULT_KEY, SessionCipher
from .device import BroadlinkDevice, create_device
from .errors import (
    BroadlinkError,
    NotSupportedError,
    ProtocolError,
    ResponseTimeout,
    TransportError,
)
from .frame import FrameHeader, build_frame, checksum, validate_checksum
from .handshake import HandshakePhase, HandshakeResult, HandshakeStep, authenticate, perform_handshake
from .models import DeviceFamily, describe_model, family_for
from .session import DeviceIdentity, DeviceSession, SessionConfig
from .transport import UdpTransport

__all__ = [
    "BroadlinkDevice",
    "BroadlinkError",
    "DEFAULT_IV",
    "DEFAULT_KEY",
    "DeviceFamily",
    "DeviceIdentity",
    "DeviceSession",
    "FrameHeader",
    "HandshakePhase",
    "HandshakeResult",
    "HandshakeStep",
    "NotSupportedError",
    "ProtocolError",
    "ResponseTimeout",
    "SessionCipher",
    "SessionConfig",
    "TransportError",
    "UdpTransport",
    "authenticate",
    "build_frame",
    "checksum",
    "create_device",
    "describe_model",
    "family_for",
    "perform_handshake",
    "validate_checksum",
]
