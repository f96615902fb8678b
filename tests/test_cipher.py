from __future__ import annotations

import pytest

from pybroadlink.cipher import (
    DEFAULT_IV,
    DEFAULT_KEY,
    SessionCipher,
    pad,
    unpad_by_value,
)
from pybroadlink.errors import ProtocolError

# NIST SP 800-38A, F.2.1 CBC-AES128.Encrypt, first block.
NIST_KEY = bytes.fromhex("2b7e151628aed2a6abf7158809cf4f3c")
NIST_IV = bytes.fromhex("000102030405060708090a0b0c0d0e0f")
NIST_PLAINTEXT = bytes.fromhex("6bc1bee22e409f96e93d7e117393172a")
NIST_CIPHERTEXT = bytes.fromhex("7649abac8119b246cee98e9b12e9197d")


def test_default_constants_match_vendor_values() -> None:
    assert DEFAULT_KEY.hex() == "097628343fe99e23765c1513accf8b02"
    assert DEFAULT_IV.hex() == "562e17996d093d28ddb3ba695a2e6f58"


@pytest.mark.parametrize(
    ("length", "padded_length"),
    [(0, 16), (1, 16), (15, 16), (16, 32), (17, 32), (0x50, 0x60)],
)
def test_pad_always_appends_zero_bytes(length: int, padded_length: int) -> None:
    data = b"\x07" * length
    padded = pad(data)

    assert len(padded) == padded_length
    assert padded[:length] == data
    assert set(padded[length:]) == {0}


def test_known_vector() -> None:
    cipher = SessionCipher(NIST_KEY, NIST_IV)

    assert cipher.encrypt(NIST_PLAINTEXT, padded=True) == NIST_CIPHERTEXT
    assert cipher.decrypt(NIST_CIPHERTEXT) == NIST_PLAINTEXT


@pytest.mark.parametrize("plaintext", [b"", b"\x02", b"hello plug", bytes(range(16)), bytes(80)])
def test_decrypt_of_encrypt_returns_padded_plaintext(plaintext: bytes) -> None:
    cipher = SessionCipher()

    assert cipher.decrypt(cipher.encrypt(plaintext)) == pad(plaintext)


def test_key_rotation_changes_ciphertext() -> None:
    cipher = SessionCipher()
    before = cipher.encrypt(b"payload")
    cipher.key = bytes(range(16))

    assert cipher.encrypt(b"payload") != before
    cipher.reset()
    assert cipher.encrypt(b"payload") == before


def test_decrypt_strip_padding_uses_last_byte_value() -> None:
    cipher = SessionCipher()
    plaintext = b"abc" + b"\x05" * 13
    ciphertext = cipher.encrypt(plaintext, padded=True)

    assert cipher.decrypt(ciphertext, strip_padding=True) == b"abc" + b"\x05" * 8


def test_unpad_by_value_does_not_undo_zero_padding() -> None:
    padded = pad(b"abc")

    assert unpad_by_value(padded) == padded
    assert unpad_by_value(b"abc\x02\x02") == b"abc"
    assert unpad_by_value(b"") == b""
    with pytest.raises(ProtocolError):
        unpad_by_value(b"\x09\x09")


def test_decrypt_rejects_bad_lengths() -> None:
    cipher = SessionCipher()

    with pytest.raises(ProtocolError, match="too short"):
        cipher.decrypt(b"\x00" * 8)
    with pytest.raises(ProtocolError, match="block aligned"):
        cipher.decrypt(b"\x00" * 20)


def test_key_and_iv_lengths_are_checked() -> None:
    with pytest.raises(ValueError):
        SessionCipher(key=b"short")
    with pytest.raises(ValueError):
        SessionCipher(iv=b"short")
