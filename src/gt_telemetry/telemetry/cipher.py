"""Salsa20 deciphering of Gran Turismo telemetry datagrams.

The console enciphers every datagram with Salsa20/20 under a fixed key.  The
8 byte nonce is derived from a packet local IV stored in clear at offset
``0x40`` combined with a seed that depends on the requested packet format.
"""

from __future__ import annotations

import struct

from Crypto.Cipher import Salsa20

from ..errors import InvalidMagicError, ShortDataError

__all__ = ["MAGIC", "MAGIC_BYTES", "MIN_DATAGRAM_SIZE", "decode", "encode"]


MAGIC = 0x47375330
MAGIC_BYTES = struct.pack("<I", MAGIC)
MIN_DATAGRAM_SIZE = 32

_KEY = b"Simulator Interface Packet GT7 ver 0.0"[:32]
_IV_OFFSET = 0x40
_U32 = struct.Struct("<I")


def _nonce(iv_seed: int, iv: int) -> bytes:
    return _U32.pack((iv ^ iv_seed) & 0xFFFFFFFF) + _U32.pack(iv)


def _read_iv(data: bytes) -> int:
    if len(data) < _IV_OFFSET + _U32.size:
        raise ShortDataError(
            f"salsa20 data is too short to carry the IV: {len(data)} bytes",
            context={"length": len(data)},
        )
    return _U32.unpack_from(data, _IV_OFFSET)[0]


def decode(iv_seed: int, ciphertext: bytes) -> bytes:
    """Decipher ``ciphertext`` and return the plaintext including its magic."""

    if len(ciphertext) < MIN_DATAGRAM_SIZE:
        raise ShortDataError(
            f"salsa20 data is too short: {len(ciphertext)} < {MIN_DATAGRAM_SIZE}",
            context={"length": len(ciphertext)},
        )
    iv = _read_iv(ciphertext)
    cipher = Salsa20.new(key=_KEY, nonce=_nonce(iv_seed, iv))
    plaintext = cipher.decrypt(bytes(ciphertext))

    magic = _U32.unpack_from(plaintext)[0]
    if magic != MAGIC:
        raise InvalidMagicError(
            f"invalid magic value: {magic:#010x}",
            context={"magic": magic, "length": len(ciphertext)},
        )
    return plaintext


def encode(iv_seed: int, plaintext: bytes, iv: int) -> bytes:
    """Encipher ``plaintext`` the way the console does.

    The IV is written in clear at offset ``0x40`` after enciphering, so the
    plaintext bytes at that offset do not survive a round trip.
    """

    if len(plaintext) < _IV_OFFSET + _U32.size:
        raise ShortDataError(
            f"plaintext is too short to carry the IV: {len(plaintext)} bytes",
            context={"length": len(plaintext)},
        )
    cipher = Salsa20.new(key=_KEY, nonce=_nonce(iv_seed, iv))
    ciphertext = bytearray(cipher.encrypt(bytes(plaintext)))
    _U32.pack_into(ciphertext, _IV_OFFSET, iv & 0xFFFFFFFF)
    return bytes(ciphertext)
