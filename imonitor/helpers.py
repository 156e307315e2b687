"""Small conversions for numbers, identifiers and timestamps."""

from __future__ import annotations

import time
import uuid
from datetime import datetime
from typing import Optional, Union

# 100-nanosecond intervals between 1601-01-01 and 1970-01-01.
FILETIME_UNIX_EPOCH = 116444736000000000

_MASK32 = 0xFFFFFFFF


def make_ulonglong(low: int, high: int) -> int:
    """Combine two 32-bit halves into a 64-bit value."""
    for name, part in (("low", low), ("high", high)):
        if not 0 <= part <= _MASK32:
            raise ValueError(f"{name} part out of 32-bit range: {part}")
    return (high << 32) | low


def format_ulong(value: int) -> str:
    """Format a 32-bit value as a signed decimal, as ``%d`` does."""
    value = int(value) & _MASK32
    if value & 0x80000000:
        value -= 1 << 32
    return str(value)


def string_from_guid(guid: Union[uuid.UUID, str, bytes]) -> str:
    """Return a GUID in registry form: braces and upper-case hex digits.

    Raw bytes are taken in the little-endian GUID memory layout.
    """
    if isinstance(guid, uuid.UUID):
        value = guid
    elif isinstance(guid, (bytes, bytearray)):
        value = uuid.UUID(bytes_le=bytes(guid))
    elif isinstance(guid, str):
        value = uuid.UUID(guid)
    else:
        raise TypeError(f"not a GUID: {type(guid).__name__}")
    return "{" + str(value).upper() + "}"


def string_from_current_time(now: Optional[datetime] = None) -> str:
    """Format the local time (or ``now``) as ``YYYY-MM-DD HH:MM:SS``."""
    moment = now if now is not None else datetime.now()
    return (
        f"{moment.year}-{moment.month:02d}-{moment.day:02d} "
        f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )


def current_time64() -> int:
    """Return the local time as 100-nanosecond intervals since 1601-01-01."""
    now_ns = time.time_ns()
    offset = datetime.fromtimestamp(now_ns / 1e9).astimezone().utcoffset()
    offset_ticks = int(offset.total_seconds() * 10_000_000) if offset else 0
    return now_ns // 100 + FILETIME_UNIX_EPOCH + offset_ticks


def tick_count() -> int:
    """Return a monotonic millisecond counter."""
    return time.monotonic_ns() // 1_000_000