"""CRC-32 (IEEE) and CRC-64 (Jones polynomial) checksums."""

from __future__ import annotations

import struct
from typing import Union

_CRC32_POLY = 0xEDB88320
_CRC64_POLY = 0x95AC9329AC4BC9B5
_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF

Data = Union[bytes, bytearray, memoryview, str]


def _reflected_table(poly: int) -> tuple[int, ...]:
    table = []
    for byte in range(256):
        value = byte
        for _ in range(8):
            value = (value >> 1) ^ poly if value & 1 else value >> 1
        table.append(value)
    return tuple(table)


_CRC32_TABLE = _reflected_table(_CRC32_POLY)
_CRC64_TABLE = _reflected_table(_CRC64_POLY)


def _as_bytes(data: Data) -> bytes:
    """Return the bytes to checksum; text is UTF-8 and ends at its first NUL."""
    if isinstance(data, str):
        return data.encode("utf-8").partition(b"\x00")[0]
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"cannot checksum {type(data).__name__}")


def _check_seed(crc: int, mask: int) -> int:
    crc = int(crc)
    if not 0 <= crc <= mask:
        raise ValueError(f"crc seed out of range: {crc}")
    return crc


def crc32(data: Data, crc: int = 0) -> int:
    """Return the CRC-32 of ``data``, continuing from ``crc``."""
    value = ~_check_seed(crc, _MASK32) & _MASK32
    for byte in _as_bytes(data):
        value = _CRC32_TABLE[(value ^ byte) & 0xFF] ^ (value >> 8)
    return ~value & _MASK32


def crc64(data: Data, crc: int = 0) -> int:
    """Return the CRC-64 of ``data``, continuing from ``crc``."""
    value = ~_check_seed(crc, _MASK64) & _MASK64
    for byte in _as_bytes(data):
        value = _CRC64_TABLE[(value ^ byte) & 0xFF] ^ (value >> 8)
    return ~value & _MASK64


def crc64_int(value: int, crc: int = 0) -> int:
    """Return the CRC-64 of a 64-bit integer stored little-endian."""
    value = int(value)
    if not 0 <= value <= _MASK64:
        raise ValueError(f"value out of 64-bit range: {value}")
    return crc64(struct.pack("<Q", value), crc)