from __future__ import annotations

import struct
from typing import Iterable

import pytest

from conftest import FakeAppliance, make_reply
from pybroadlink.cipher import DEFAULT_KEY
from pybroadlink.errors import ProtocolError, ResponseTimeout, TransportError
from pybroadlink.frame import checksum, response_type, validate_checksum
from pybroadlink.handshake import HandshakePhase, perform_handshake

DEVICE_ID = 0x0BADF00D
NEW_KEY = bytes(range(0xA0, 0xB0))
AUTH_REPLY_PAYLOAD = struct.pack("<I", DEVICE_ID) + NEW_KEY


def auth_handler(appliance: FakeAppliance, frame: bytes) -> Iterable[bytes]:
    if response_type(frame) == 0x65:
        yield make_reply(0x3E9, AUTH_REPLY_PAYLOAD)
        appliance.key = NEW_KEY
    else:
        yield make_reply(0x3EE)


def test_authentication_installs_device_id_and_key(make_device, appliance) -> None:
    device = make_device(handler=auth_handler)

    assert device.authenticate() == DEVICE_ID
    assert device.identity.device_id == DEVICE_ID
    assert device.identity.key == NEW_KEY


def test_auth_request_frame(make_device, appliance) -> None:
    device = make_device(handler=auth_handler)
    device.authenticate()

    request = appliance.requests[0]
    assert validate_checksum(request)
    assert response_type(request) == 0x65
    assert request[0x28:0x2A] == b"\x01\x00"
    assert request[0x30:0x34] == bytes(4)
    plaintext = appliance.decrypt_request(request, DEFAULT_KEY)
    assert len(plaintext) == 0x60
    assert plaintext[0x2D] == 0x01
    assert plaintext[0x30:0x39] == b"test-host"
    assert int.from_bytes(request[0x34:0x36], "little") == checksum(plaintext)


def test_commands_after_authentication_use_new_key(make_device, appliance) -> None:
    device = make_device(handler=auth_handler)
    device.authenticate()

    assert device.set_power(True)

    request = appliance.requests[-1]
    assert request[0x28:0x2A] == b"\x02\x00"
    assert request[0x30:0x34] == struct.pack("<I", DEVICE_ID)
    plaintext = appliance.decrypt_request(request, NEW_KEY)
    assert plaintext[0] == 0x02
    assert plaintext[4] == 0x01


def test_unrelated_frames_do_not_block_authentication(make_device) -> None:
    def noisy_handler(appliance: FakeAppliance, frame: bytes) -> Iterable[bytes]:
        yield make_reply(0x3EE)
        yield make_reply(0x3E9, AUTH_REPLY_PAYLOAD)

    device = make_device(handler=noisy_handler)

    assert device.authenticate() == DEVICE_ID
    assert device.session.transport.pending() == 1


def test_timeout_leaves_state_untouched(make_device) -> None:
    device = make_device(handler=None)

    with pytest.raises(ResponseTimeout):
        device.authenticate(timeout=0.3)
    assert device.identity.device_id == 0
    assert device.identity.key == DEFAULT_KEY


def test_reply_without_payload_is_malformed(make_device) -> None:
    device = make_device(handler=lambda appliance, frame: [make_reply(0x3E9)])

    with pytest.raises(ProtocolError, match="too short"):
        device.authenticate(timeout=2.0)
    assert device.identity.device_id == 0
    assert device.identity.key == DEFAULT_KEY


def test_reply_error_code_is_surfaced(make_device) -> None:
    device = make_device(
        handler=lambda appliance, frame: [make_reply(0x3E9, AUTH_REPLY_PAYLOAD, error=0xFFF9)]
    )

    with pytest.raises(ProtocolError) as excinfo:
        device.authenticate(timeout=2.0)
    assert excinfo.value.code == 0xFFF9
    assert device.identity.device_id == 0


def test_perform_handshake_records_phases(make_device) -> None:
    device = make_device(handler=auth_handler)
    result = perform_handshake(device.session)

    assert result.success
    assert result.device_id == DEVICE_ID
    assert [step.phase for step in result.steps] == [
        HandshakePhase.SEND_REQUEST,
        HandshakePhase.AWAIT_REPLY,
        HandshakePhase.INSTALL_KEY,
    ]


def test_perform_handshake_reports_timeout_phase(make_device) -> None:
    device = make_device(handler=None)
    result = perform_handshake(device.session, timeout=0.2)

    assert not result.success
    assert [step.phase for step in result.steps] == [
        HandshakePhase.SEND_REQUEST,
        HandshakePhase.AWAIT_REPLY,
    ]
    assert not result.steps[-1].success
    assert isinstance(result.exception, ResponseTimeout)
    assert result.error == str(result.exception)


def test_authenticate_after_close_fails_fast(make_device) -> None:
    device = make_device(handler=auth_handler)
    device.close()

    with pytest.raises(TransportError, match="closed"):
        device.authenticate(timeout=5.0)
