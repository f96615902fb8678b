"""Family command sets and the client-facing device object."""
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Optional, Union

from .errors import NotSupportedError, ProtocolError
from .frame import CMD_COMMAND, error_code
from .handshake import authenticate
from .models import DeviceFamily, describe_model
from .payloads import (
    MP_POWER_STATUS,
    MP_QUERY_POWER,
    SP_ON_STATES,
    SP_POWER_STATUS,
    SP_QUERY_POWER,
    SP_SET_POWER,
    encode_multi_relay_set,
)
from .session import DeviceIdentity, DeviceSession, SessionConfig, parse_mac
from .transport import resolve_address

_LOGGER = logging.getLogger(__name__)

MULTI_RELAY_OUTLETS = 4

SUPPORTED_OPERATIONS: Dict[DeviceFamily, FrozenSet[str]] = {
    DeviceFamily.BASE: frozenset(),
    DeviceFamily.SINGLE_RELAY: frozenset({"set_power", "query_power"}),
    DeviceFamily.MULTI_RELAY: frozenset(
        {"set_power_mask", "set_power_by_index", "query_power_raw", "query_power_states"}
    ),
}


def relay_mask(index: int) -> int:
    """Single-bit mask for a 1-based relay index."""

    if not 1 <= index <= 8:
        raise ValueError(f"Relay index {index} must be between 1 and 8")
    return 0x01 << (index - 1)


class BroadlinkDevice:
    """Client for one power-switching appliance.

    The device family, derived from the model code, decides which operations
    are available; the rest raise :class:`NotSupportedError`.
    """

    def __init__(self, session: DeviceSession) -> None:
        self._session = session

    @property
    def session(self) -> DeviceSession:
        return self._session

    @property
    def identity(self) -> DeviceIdentity:
        return self._session.identity

    @property
    def family(self) -> DeviceFamily:
        return self.identity.family

    def supports(self, operation: str) -> bool:
        return operation in SUPPORTED_OPERATIONS[self.family]

    def _require(self, operation: str) -> None:
        if not self.supports(operation):
            raise NotSupportedError(operation)

    def __repr__(self) -> str:
        host, port = self.identity.address
        return f"<BroadlinkDevice {describe_model(self.identity.model_code)} at {host}:{port}>"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def open(self) -> None:
        self._session.open()

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "BroadlinkDevice":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def authenticate(self, timeout: Optional[float] = None) -> int:
        return authenticate(self._session, timeout=timeout)

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------
    def _command(self, payload: bytes) -> bytes:
        reply = self._session.send_packet(CMD_COMMAND, payload)
        code = error_code(reply)
        if code != 0:
            raise ProtocolError(f"Response {code:x}", code=code)
        return reply

    def _query(self, payload: bytes) -> bytes:
        reply = self._session.send_packet(CMD_COMMAND, payload)
        return self._session.decrypt_reply(reply)

    # ------------------------------------------------------------------
    # Single-relay family
    # ------------------------------------------------------------------
    def set_power(self, on: bool) -> bool:
        self._require("set_power")
        _LOGGER.debug("Setting power %s on %r", "on" if on else "off", self)
        self._command(SP_SET_POWER.encode(state=1 if on else 0))
        return True

    def query_power(self) -> bool:
        self._require("query_power")
        decrypted = self._query(SP_QUERY_POWER.encode())
        state = SP_POWER_STATUS.decode(decrypted)["state"]
        return state in SP_ON_STATES

    # ------------------------------------------------------------------
    # Multi-relay family
    # ------------------------------------------------------------------
    def set_power_mask(self, mask: int, on: bool) -> bool:
        self._require("set_power_mask")
        _LOGGER.debug("Setting relay mask 0x%02x %s on %r", mask, "on" if on else "off", self)
        self._command(encode_multi_relay_set(mask, on))
        return True

    def set_power_by_index(self, index: int, on: bool) -> bool:
        self._require("set_power_by_index")
        return self.set_power_mask(relay_mask(index), on)

    def query_power_raw(self) -> int:
        self._require("query_power_raw")
        decrypted = self._query(MP_QUERY_POWER.encode())
        return int(MP_POWER_STATUS.decode(decrypted)["mask"])  # type: ignore[arg-type]

    def query_power_states(self) -> Dict[int, bool]:
        """Per-outlet power state keyed by 1-based outlet index."""

        self._require("query_power_states")
        mask = self.query_power_raw()
        return {index: bool(mask & relay_mask(index)) for index in range(1, MULTI_RELAY_OUTLETS + 1)}


def create_device(
    model_code: int,
    host: str,
    mac: Union[str, bytes],
    *,
    config: Optional[SessionConfig] = None,
    open_transport: bool = True,
) -> BroadlinkDevice:
    """Build a device for ``model_code`` at ``host`` and, by default, start its listener."""

    config = config or SessionConfig()
    identity = DeviceIdentity(
        address=resolve_address(host, config.port),
        mac=parse_mac(mac),
        model_code=model_code,
    )
    device = BroadlinkDevice(DeviceSession(identity, config))
    if open_transport:
        device.open()
    return device


__all__ = [
    "BroadlinkDevice",
    "MULTI_RELAY_OUTLETS",
    "SUPPORTED_OPERATIONS",
    "create_device",
    "relay_mask",
]
