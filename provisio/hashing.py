"""Hashing used to shorten long cache file names."""

from __future__ import annotations

__all__ = ["fnv"]

_FNV_OFFSET_BASIS = 0x6C62272E07BB014262B821756295C58D
_FNV_PRIME = 0x00000100000001B3
_MASK_128 = (1 << 128) - 1


def fnv(data: bytes) -> bytes:
    """Return the 128-bit FNV-1a style hash of ``data`` as 16 big-endian bytes."""
    value = _FNV_OFFSET_BASIS
    for byte in bytes(data):
        value ^= byte
        value = (value * _FNV_PRIME) & _MASK_128
    return value.to_bytes(16, "big")