"""Synchronisation primitives: an atomic 32-bit counter and simple locks."""

from __future__ import annotations

import threading
import time
from typing import Any

_MASK32 = 0xFFFFFFFF


class AtomicCounter:
    """A 32-bit unsigned counter whose updates are atomic across threads."""

    def __init__(self, value: int = 0) -> None:
        self._lock = threading.Lock()
        self._value = self._check(value)

    @staticmethod
    def _check(value: int) -> int:
        value = int(value)
        if not 0 <= value <= _MASK32:
            raise ValueError(f"value out of 32-bit range: {value}")
        return value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    @value.setter
    def value(self, value: int) -> None:
        value = self._check(value)
        with self._lock:
            self._value = value

    def increment(self) -> int:
        """Add one, wrapping at 2**32, and return the new value."""
        with self._lock:
            self._value = (self._value + 1) & _MASK32
            return self._value

    def compare_and_set(self, expected: int, value: int) -> bool:
        """Store ``value`` if the counter holds ``expected``; report whether it did."""
        value = self._check(value)
        with self._lock:
            if self._value != expected:
                return False
            self._value = value
            return True

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"AtomicCounter({self.value})"


class SpinLock:
    """A non-recursive lock that yields the processor while it waits."""

    def __init__(self) -> None:
        self._flag = threading.Lock()

    def acquire(self) -> bool:
        """Spin until the lock is taken."""
        while not self._flag.acquire(blocking=False):
            time.sleep(0)
        return True

    def release(self) -> None:
        """Release the lock; raises RuntimeError if it is not held."""
        self._flag.release()

    def locked(self) -> bool:
        return self._flag.locked()

    def __enter__(self) -> SpinLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()


class NoLock:
    """A lock that never blocks, for code that needs no synchronisation.

    It only counts acquisitions so that an unbalanced release is reported.
    """

    def __init__(self) -> None:
        self._depth = 0

    def acquire(self) -> bool:
        self._depth += 1
        return True

    def release(self) -> None:
        if self._depth == 0:
            raise RuntimeError("release of an unacquired NoLock")
        self._depth -= 1

    def locked(self) -> bool:
        return False

    def __enter__(self) -> NoLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()