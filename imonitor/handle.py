"""An owning wrapper around an OS handle with a close function."""

from __future__ import annotations

from typing import Any, Callable, Optional

_INVALID = (None, 0, -1)


class Handle:
    """Owns a handle value and closes it with ``closer`` exactly once.

    ``None``, ``0`` and ``-1`` count as no handle. Ownership moves with
    ``detach``; copies of a handle that owns something are refused.
    """

    def __init__(self, closer: Callable[[Any], Any], value: Optional[Any] = None) -> None:
        self._closer = closer
        self._value = value

    @property
    def value(self) -> Optional[Any]:
        return self._value

    def __bool__(self) -> bool:
        return self._value not in _INVALID

    def attach(self, value: Any) -> None:
        """Close the current handle and take ownership of ``value``."""
        self.close()
        self._value = value

    def detach(self) -> Optional[Any]:
        """Give up ownership and return the handle without closing it."""
        value, self._value = self._value, None
        return value

    def close(self) -> None:
        """Close the handle if it is valid."""
        if self:
            value, self._value = self._value, None
            self._closer(value)

    def __enter__(self) -> Handle:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __copy__(self) -> Handle:
        if self:
            raise TypeError("a Handle cannot be copied; use detach() to move it")
        return Handle(self._closer)

    def __deepcopy__(self, memo: dict) -> Handle:
        duplicate = self.__copy__()
        memo[id(self)] = duplicate
        return duplicate

    def __del__(self) -> None:
        try:
            self.close()
        except Exception:
            pass

    def __repr__(self) -> str:
        return f"Handle({self._value!r})"