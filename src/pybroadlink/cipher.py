"""AES-128-CBC session cipher used for command payloads."""
from __future__ import annotations

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import ProtocolError

BLOCK_SIZE: int = 16

# Vendor defaults used for all traffic until authentication replaces the key.
DEFAULT_KEY: bytes = bytes(
    (0x09, 0x76, 0x28, 0x34, 0x3F, 0xE9, 0x9E, 0x23, 0x76, 0x5C, 0x15, 0x13, 0xAC, 0xCF, 0x8B, 0x02)
)
DEFAULT_IV: bytes = bytes(
    (0x56, 0x2E, 0x17, 0x99, 0x6D, 0x09, 0x3D, 0x28, 0xDD, 0xB3, 0xBA, 0x69, 0x5A, 0x2E, 0x6F, 0x58)
)


def pad(data: bytes, block_size: int = BLOCK_SIZE) -> bytes:
    """Append zero bytes up to the next block boundary.

    A block-aligned input still receives a full block of zeros, matching what
    the appliances have been observed to accept.
    """

    return bytes(data) + bytes(block_size - len(data) % block_size)


def unpad_by_value(data: bytes) -> bytes:
    """Strip as many trailing bytes as the value of the last byte.

    This does not invert :func:`pad`: zero padding carries no length, so the
    result is unchanged for zero-padded plaintext. Kept as a separate helper
    until the on-wire padding convention is confirmed against real devices.
    """

    if not data:
        return b""
    count = data[-1]
    if count > len(data):
        raise ProtocolError(f"Padding length {count} exceeds {len(data)} byte payload")
    return bytes(data[: len(data) - count])


class SessionCipher:
    """Encrypts and decrypts payloads with the current session key and fixed IV."""

    def __init__(self, key: bytes = DEFAULT_KEY, iv: bytes = DEFAULT_IV) -> None:
        if len(iv) != BLOCK_SIZE:
            raise ValueError("IV must be 16 bytes")
        self._iv = bytes(iv)
        self._key = b""
        self.key = key

    @property
    def key(self) -> bytes:
        return self._key

    @key.setter
    def key(self, value: bytes) -> None:
        if len(value) != BLOCK_SIZE:
            raise ValueError("Session key must be 16 bytes")
        self._key = bytes(value)

    @property
    def iv(self) -> bytes:
        return self._iv

    def reset(self) -> None:
        """Return to the vendor default key."""

        self.key = DEFAULT_KEY

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(self._iv))

    def encrypt(self, plaintext: bytes, *, padded: bool = False) -> bytes:
        """CBC-encrypt ``plaintext``, zero-padding it first unless ``padded`` is set."""

        data = plaintext if padded else pad(plaintext)
        if len(data) % BLOCK_SIZE:
            raise ValueError("Pre-padded plaintext is not block aligned")
        encryptor = self._cipher().encryptor()
        return encryptor.update(data) + encryptor.finalize()

    def decrypt(self, ciphertext: bytes, *, strip_padding: bool = False) -> bytes:
        """CBC-decrypt ``ciphertext``.

        Trailing padding is kept unless ``strip_padding`` is set, in which case
        :func:`unpad_by_value` is applied to the plaintext.
        """

        if len(ciphertext) < BLOCK_SIZE:
            raise ProtocolError("ciphertext too short")
        if len(ciphertext) % BLOCK_SIZE:
            raise ProtocolError(f"ciphertext length {len(ciphertext)} is not block aligned")
        decryptor = self._cipher().decryptor()
        plaintext = decryptor.update(bytes(ciphertext)) + decryptor.finalize()
        if strip_padding:
            return unpad_by_value(plaintext)
        return plaintext


__all__ = [
    "BLOCK_SIZE",
    "DEFAULT_IV",
    "DEFAULT_KEY",
    "SessionCipher",
    "pad",
    "unpad_by_value",
]
