"""Authentication handshake that assigns the device identifier and session key."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .errors import BroadlinkError
from .frame import CMD_AUTHENTICATE, RESP_AUTHENTICATE
from .payloads import AUTH_REPLY, encode_auth_request
from .session import DeviceSession

_LOGGER = logging.getLogger(__name__)


class HandshakePhase(str, Enum):
    """Phases of the authentication exchange."""

    SEND_REQUEST = "send_request"
    AWAIT_REPLY = "await_reply"
    INSTALL_KEY = "install_key"


@dataclass(slots=True)
class HandshakeStep:
    """Outcome of an individual handshake phase."""

    phase: HandshakePhase
    success: bool
    detail: str


@dataclass(slots=True)
class HandshakeResult:
    """Summary of the handshake attempt."""

    success: bool
    steps: List[HandshakeStep] = field(default_factory=list)
    error: Optional[str] = None
    duration_ms: float = 0.0
    device_id: Optional[int] = None
    exception: Optional[BroadlinkError] = None


def _parse_auth_reply(session: DeviceSession, frame: bytes) -> Tuple[int, bytes]:
    decrypted = session.decrypt_reply(frame)
    fields = AUTH_REPLY.decode(decrypted)
    return int(fields["device_id"]), bytes(fields["key"])  # type: ignore[arg-type]


def perform_handshake(
    session: DeviceSession,
    *,
    timeout: Optional[float] = None,
) -> HandshakeResult:
    """Run the authentication exchange, recording each phase.

    Device state is only changed once a reply has been fully decoded.
    """

    start = time.perf_counter()
    steps: List[HandshakeStep] = []
    wait = session.config.auth_timeout if timeout is None else timeout

    def _failed(phase: HandshakePhase, exc: BroadlinkError) -> HandshakeResult:
        detail = str(exc)
        steps.append(HandshakeStep(phase, False, detail))
        return HandshakeResult(
            False, steps, error=detail, duration_ms=_elapsed_ms(start), exception=exc
        )

    with session.lock:
        hostname = session.config.resolve_hostname()
        try:
            session.send_raw(CMD_AUTHENTICATE, encode_auth_request(hostname))
        except BroadlinkError as exc:
            return _failed(HandshakePhase.SEND_REQUEST, exc)
        steps.append(
            HandshakeStep(HandshakePhase.SEND_REQUEST, True, f"Sent auth request as '{hostname}'")
        )

        try:
            reply = session.transport.wait_for_type(RESP_AUTHENTICATE, wait)
        except BroadlinkError as exc:
            return _failed(HandshakePhase.AWAIT_REPLY, exc)
        steps.append(
            HandshakeStep(HandshakePhase.AWAIT_REPLY, True, f"Received {len(reply)} byte reply")
        )

        try:
            device_id, key = _parse_auth_reply(session, reply)
            session.install_credentials(device_id, key)
        except BroadlinkError as exc:
            return _failed(HandshakePhase.INSTALL_KEY, exc)
        steps.append(
            HandshakeStep(HandshakePhase.INSTALL_KEY, True, f"Device id {device_id}")
        )

    _LOGGER.info("Authenticated %s:%s, device id %d", *session.identity.address, device_id)
    return HandshakeResult(True, steps, duration_ms=_elapsed_ms(start), device_id=device_id)


def authenticate(session: DeviceSession, *, timeout: Optional[float] = None) -> int:
    """Authenticate and return the assigned device identifier.

    Raises the underlying error when any phase fails.
    """

    result = perform_handshake(session, timeout=timeout)
    if not result.success:
        assert result.exception is not None
        raise result.exception
    assert result.device_id is not None
    return result.device_id


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


__all__ = [
    "HandshakePhase",
    "HandshakeResult",
    "HandshakeStep",
    "authenticate",
    "perform_handshake",
]
