"""Callback interfaces for the rule engine and the traffic agent."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Set


class MatchStatus(IntEnum):
    """Whether rule matching stops or goes on after a match."""

    BREAK = 0
    CONTINUE = 1


@dataclass(frozen=True)
class MatchResult:
    """A rule that matched a message, with the action it asks for."""

    action: int
    action_param: Optional[str] = None
    group_name: Optional[str] = None
    rule_name: Optional[str] = None


class RuleCallback(ABC):
    """Receives the results of matching one message against the rules."""

    def _pending(self) -> Set[int]:
        return self.__dict__.setdefault("_matching", set())

    def is_matching(self, message: Any) -> bool:
        """Tell whether matching of ``message`` has begun and not yet finished."""
        return id(message) in self._pending()

    def on_begin_match(self, message: Any) -> None:
        """Called before matching starts; marks the message as in progress."""
        self._pending().add(id(message))

    def on_finish_match(self, message: Any) -> None:
        """Called after matching ends; clears the in-progress mark."""
        self._pending().discard(id(message))

    @abstractmethod
    def on_match(self, message: Any, result: MatchResult) -> MatchStatus:
        """Handle one matching rule and say whether to keep matching."""


@dataclass(frozen=True)
class Address:
    """An IPv4 address held as a 32-bit value, and a port."""

    ip: int
    port: int

    def __post_init__(self) -> None:
        if not 0 <= self.ip <= 0xFFFFFFFF:
            raise ValueError(f"ip out of range: {self.ip}")
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port out of range: {self.port}")


@dataclass
class ChannelState:
    """What the default hooks have seen of one channel."""

    local_connected: bool = False
    remote_connected: bool = False
    server_name: Optional[str] = None
    bytes_from_local: int = 0
    bytes_from_remote: int = 0
    local_error: Optional[str] = None
    remote_error: Optional[str] = None


class AgentCallback:
    """Events of a proxied connection; every hook has a permissive default.

    The default hooks keep a small record of each open channel, available
    through :meth:`channel_state` until the channel is closed.
    """

    def _states(self) -> Dict[int, ChannelState]:
        return self.__dict__.setdefault("_channel_states", {})

    def _state(self, channel: Any) -> ChannelState:
        return self._states().setdefault(id(channel), ChannelState())

    def channel_state(self, channel: Any) -> Optional[ChannelState]:
        """Return the record kept for ``channel``, or None if none is open."""
        return self._states().get(id(channel))

    def on_create(self, channel: Any) -> None:
        """A channel was created."""
        self._states()[id(channel)] = ChannelState()

    def on_local_connect(self, channel: Any) -> None:
        """The local side connected."""
        self._state(channel).local_connected = True

    def on_local_ssl_hello(self, channel: Any, server_name: str) -> bool:
        """The local side sent a TLS hello; return False to refuse it."""
        self._state(channel).server_name = server_name
        return True

    def on_local_receive(self, channel: Any, data: bytes) -> None:
        """Data arrived from the local side."""
        self._state(channel).bytes_from_local += len(data)

    def on_local_error(self, channel: Any, error: str) -> None:
        """The local side reported an error."""
        self._state(channel).local_error = error

    def on_local_disconnect(self, channel: Any) -> None:
        """The local side disconnected."""
        self._state(channel).local_connected = False

    def on_remote_pre_connect(self, channel: Any) -> bool:
        """About to connect to the remote side; return False to cancel."""
        self._state(channel)
        return True

    def on_remote_ssl_verify(self, channel: Any, pre_verified: bool) -> bool:
        """Decide on the remote certificate; defaults to the prior verdict."""
        self._state(channel)
        return pre_verified

    def on_remote_connect(self, channel: Any) -> None:
        """The remote side connected."""
        self._state(channel).remote_connected = True

    def on_remote_receive(self, channel: Any, data: bytes) -> None:
        """Data arrived from the remote side."""
        self._state(channel).bytes_from_remote += len(data)

    def on_remote_error(self, channel: Any, error: str) -> None:
        """The remote side reported an error."""
        self._state(channel).remote_error = error

    def on_remote_disconnect(self, channel: Any) -> None:
        """The remote side disconnected."""
        self._state(channel).remote_connected = False

    def on_close(self, channel: Any) -> None:
        """The channel was closed; its record is dropped."""
        self._states().pop(id(channel), None)