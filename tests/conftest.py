from __future__ import annotations

import socket
import sys
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from pybroadlink.cipher import DEFAULT_KEY, SessionCipher
from pybroadlink.frame import HEADER_SIZE, FrameHeader, build_frame

MAC = "34:ea:34:01:02:03"
MAC_BYTES = bytes.fromhex("34ea34010203")

Handler = Callable[["FakeAppliance", bytes], Iterable[bytes]]


def make_reply(
    command: int,
    payload: Optional[bytes] = None,
    *,
    key: bytes = DEFAULT_KEY,
    error: int = 0,
    device_type: int = 0x2711,
    sequence: int = 1,
) -> bytes:
    """Build a checksum-valid reply frame with an optionally encrypted payload."""

    encrypted = SessionCipher(key).encrypt(payload) if payload else b""
    header = FrameHeader(
        device_type=device_type,
        command=command,
        sequence=sequence,
        mac=MAC_BYTES,
        device_id=0,
        error_code=error,
    )
    return build_frame(header, encrypted)


class FakeAppliance:
    """Loopback UDP peer that records requests and answers through a handler."""

    def __init__(self, handler: Optional[Handler] = None) -> None:
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(0.05)
        self.handler = handler
        self.key = DEFAULT_KEY
        self.requests: List[bytes] = []
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="fake-appliance", daemon=True)
        self._thread.start()

    @property
    def port(self) -> int:
        return self.sock.getsockname()[1]

    @property
    def address(self):
        return ("127.0.0.1", self.port)

    def decrypt_request(self, frame: bytes, key: Optional[bytes] = None) -> bytes:
        return SessionCipher(key or self.key).decrypt(frame[HEADER_SIZE:])

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                data, addr = self.sock.recvfrom(2048)
            except socket.timeout:
                continue
            except OSError:
                break
            self.requests.append(data)
            if self.handler is None:
                continue
            for reply in self.handler(self, data):
                self.sock.sendto(reply, addr)

    def close(self) -> None:
        self._stop.set()
        self._thread.join(timeout=1.0)
        self.sock.close()


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def ack_handler(appliance: FakeAppliance, frame: bytes) -> Iterable[bytes]:
    """Acknowledge every command with an empty reply of type 0x3ee."""

    yield make_reply(0x3EE)


@pytest.fixture
def appliance():
    fake = FakeAppliance()
    try:
        yield fake
    finally:
        fake.close()


@pytest.fixture
def make_device(appliance):
    """Factory for devices wired to the fake appliance."""

    from pybroadlink.device import create_device
    from pybroadlink.session import SessionConfig

    created = []

    def factory(model: int = 0x2711, handler: Optional[Handler] = ack_handler, **overrides):
        appliance.handler = handler
        options = dict(port=appliance.port, poll_interval=0.05, hostname="test-host")
        options.update(overrides)
        device = create_device(model, "127.0.0.1", MAC, config=SessionConfig(**options))
        created.append(device)
        return device

    try:
        yield factory
    finally:
        for device in created:
            device.close()
