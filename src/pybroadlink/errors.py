"""Exception hierarchy for PyBroadlink."""
from __future__ import annotations

from typing import Optional


class BroadlinkError(RuntimeError):
    """Base class for all errors raised by this package."""


class TransportError(BroadlinkError):
    """Raised when socket operations fail or the transport is closed."""


class ResponseTimeout(TransportError):
    """Raised when no suitable frame arrives before the deadline."""

    def __init__(self, timeout: float, expected_type: Optional[int] = None) -> None:
        if expected_type is None:
            message = f"Timed out after {timeout:.2f}s waiting for a response"
        else:
            message = (
                f"Timed out after {timeout:.2f}s waiting for response type 0x{expected_type:04x}"
            )
        super().__init__(message)
        self.timeout = timeout
        self.expected_type = expected_type


class ProtocolError(BroadlinkError):
    """Raised for error codes reported by the device and for malformed replies."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class NotSupportedError(BroadlinkError):
    """Raised when a device family does not implement an operation."""

    def __init__(self, operation: Optional[str] = None) -> None:
        super().__init__("Not supported")
        self.operation = operation


__all__ = [
    "BroadlinkError",
    "NotSupportedError",
    "ProtocolError",
    "ResponseTimeout",
    "TransportError",
]
