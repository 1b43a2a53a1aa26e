"""Base32 and base64 codecs used to build safe cache file names.

The base32 variant uses the RFC 4648 alphabet without padding. Its output
has a single letter case, so names stay distinct on case-insensitive file
systems.
"""

from __future__ import annotations

import base64
import binascii

__all__ = ["base32_encode", "base32_decode", "base64_encode", "base64_decode"]

_BASE32_ALPHABET = b"ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_BASE32_VALUES = {char: value for value, char in enumerate(_BASE32_ALPHABET)}


def base32_encode(data: bytes) -> bytes:
    """Encode ``data`` in unpadded upper-case base32."""
    return base64.b32encode(bytes(data)).rstrip(b"=")


def base32_decode(data: bytes) -> bytes:
    """Decode unpadded base32 produced by :func:`base32_encode`.

    Raises ``ValueError`` on a character outside the alphabet.
    """
    output = bytearray()
    buffer = 0
    bits = 0
    for char in bytes(data):
        try:
            value = _BASE32_VALUES[char]
        except KeyError:
            raise ValueError(f"Invalid char: {char}") from None
        buffer = (buffer << 5) | value
        bits += 5
        if bits >= 8:
            bits -= 8
            output.append((buffer >> bits) & 0xFF)
            buffer &= (1 << bits) - 1
    return bytes(output)


def base64_encode(data: bytes) -> bytes:
    """Encode ``data`` in standard padded base64."""
    return base64.b64encode(bytes(data))


def base64_decode(data: bytes) -> bytes:
    """Decode standard padded base64.

    Raises ``ValueError`` on malformed input.
    """
    try:
        return base64.b64decode(bytes(data), validate=True)
    except binascii.Error as error:
        raise ValueError(f"Invalid base64 data: {error}") from error