"""Wire formats and constants shared between the monitor driver and user space."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import ClassVar, Union

MONITOR_VERSION = 2000
MONITOR_LICENSE_VERSION = 1
MONITOR_MAX_BUFFER = 260

STATUS_ENUM_BEGIN = 0x10000000
STATUS_ENUM_END = STATUS_ENUM_BEGIN + 1

USER_BASE = 0
USER_CONTROL = 100
USER_RULE = 200

_ULONG_MASK = 0xFFFFFFFF

BytesLike = Union[bytes, bytearray, memoryview]


class MsgType(IntEnum):
    """Message types reported by the driver."""

    INTERNAL = 0
    PROCESS = 100
    FILE = 200
    REGISTRY = 300
    SOCKET = 400
    WFP = 500
    HTTP = 600
    MAX = 1000

    INTERNAL_ENUM_PROCESS = 1
    INTERNAL_ENUM_PROTECT_RULE = 2
    INTERNAL_END = 3

    PROCESS_CREATE = 101
    PROCESS_EXIT = 102
    PROCESS_OPEN = 103
    THREAD_CREATE = 104
    THREAD_EXIT = 105
    THREAD_OPEN = 106
    IMAGE_LOAD = 107
    PROCESS_START = 108
    THREAD_START = 109

    FILE_CREATE = 201
    FILE_POST_CREATE = 202
    FILE_QUERY_OPEN = 203
    FILE_POST_QUERY_OPEN = 204
    FILE_CLEANUP = 205
    FILE_POST_CLEANUP_NOSUPPORT = 206
    FILE_CREATE_SECTION = 207
    FILE_POST_CREATE_SECTION = 208
    FILE_READ = 209
    FILE_POST_READ = 210
    FILE_WRITE = 211
    FILE_POST_WRITE = 212
    FILE_CREATE_HARD_LINK = 213
    FILE_POST_CREATE_HARD_LINK = 214
    FILE_RENAME = 215
    FILE_POST_RENAME = 216
    FILE_DELETE = 217
    FILE_POST_DELETE = 218
    FILE_SET_SIZE = 219
    FILE_POST_SET_SIZE = 220
    FILE_SET_BASIC_INFO = 221
    FILE_POST_SET_BASIC_INFO = 222
    FILE_FIND_FILE = 223
    FILE_POST_FIND_FILE = 224

    REG_CREATE_KEY = 301
    REG_POST_CREATE_KEY = 302
    REG_OPEN_KEY = 303
    REG_POST_OPEN_KEY = 304
    REG_DELETE_KEY = 305
    REG_POST_DELETE_KEY = 306
    REG_RENAME_KEY = 307
    REG_POST_RENAME_KEY = 308
    REG_ENUM_KEY = 309
    REG_POST_ENUM_KEY = 310
    REG_LOAD_KEY = 311
    REG_POST_LOAD_KEY = 312
    REG_REPLACE_KEY = 313
    REG_POST_REPLACE_KEY = 314
    REG_DELETE_VALUE = 315
    REG_POST_DELETE_VALUE = 316
    REG_SET_VALUE = 317
    REG_POST_SET_VALUE = 318
    REG_QUERY_VALUE = 319
    REG_POST_QUERY_VALUE = 320

    SOCKET_CREATE = 401
    SOCKET_POST_CREATE_NOSUPPORT = 402
    SOCKET_CONTROL = 403
    SOCKET_POST_CONTROL = 404
    SOCKET_CONNECT = 405
    SOCKET_POST_CONNECT = 406
    SOCKET_SEND = 407
    SOCKET_POST_SEND_NOSUPPORT = 408
    SOCKET_RECV = 409
    SOCKET_POST_RECV = 410
    SOCKET_SEND_TO = 411
    SOCKET_POST_SEND_TO = 412
    SOCKET_RECV_FROM = 413
    SOCKET_POST_RECV_FROM = 414
    SOCKET_LISTEN = 415
    SOCKET_POST_LISTEN = 416
    SOCKET_ACCEPT = 417
    SOCKET_POST_ACCEPT = 418

    WFP_TCP_CONNECT = 501
    WFP_UDP_CONNECT = 502
    WFP_TCP_ACCEPT = 503
    WFP_UDP_ACCEPT = 504

    HTTP_REQUEST = 601
    HTTP_REQUEST_END = 701


class MsgGroup(IntEnum):
    """Coarse category of a message type."""

    INTERNAL = 0
    PROCESS = 1
    FILE = 2
    REGISTRY = 3
    SOCKET = 4
    WFP = 5
    HTTP = 6
    MAX = 7


class DataType(IntEnum):
    """Type tag of a data record; the high 16 bits give the base type."""

    UNKNOWN = 0
    ULONG = 0x10000
    ULONGLONG = 0x20000
    STRING = 0x30000
    PATH = 0x40000
    BINARY = 0x50000
    CALLSTACK = 0x60000

    BOOL = 0x10001
    HEX = 0x10002
    PROCESS_ACCESS = 0x10003
    THREAD_ACCESS = 0x10004
    FILE_ACCESS = 0x10005
    FILE_SHARE_ACCESS = 0x10006
    FILE_ATTRIBUTES = 0x10007
    FILE_DISPOSITION = 0x10008
    FILE_OPTIONS = 0x10009
    FILE_PAGE_PROTECTION = 0x1000A
    REG_ACCESS = 0x1000B
    REG_OPTIONS = 0x1000C
    REG_TYPE = 0x1000D
    SOCKET_IP = 0x1000E
    SOCKET_PORT = 0x1000F

    TIME = 0x20001


class Field(IntEnum):
    """Field indices and the default field masks."""

    INVALID = -1
    CALLSTACK = 0
    CURRENT_PROCESS_CREATE_TIME = 1
    CURRENT_PROCESS_NAME = 2
    CURRENT_PROCESS_PATH = 3
    CURRENT_PROCESS_COMMANDLINE = 4
    PRIVATE_BEGIN = 5
    PATH = 5

    DEFAULT = ~(1 << 0)
    INTERNAL = -1 << 5

    EXTENSION = 32
    TYPE = 33
    SEQ_ID = 34
    STATUS = 35
    CURRENT_PROCESS_ID = 36
    CURRENT_THREAD_ID = 37
    TIME = 38
    DETAIL = 39
    MODIFIABLE = 40
    MODIFIED = 41

    CUSTOM_EXTENSION = 1000


class MsgConfig(IntFlag):
    """Per-message delivery configuration."""

    DEFAULT = 0
    POST = 1 << 0
    SEND = 1 << 1
    RULE = 1 << 2
    ENABLE = POST | SEND | RULE
    INCLUDE_KERNEL_EVENT = 1 << 10


class ActionFlag(IntFlag):
    """Verdict a client returns for a waiting message."""

    PASS = 0
    DEFAULT = 0
    BLOCK = 1 << 0
    REDIRECT = 1 << 1
    GRANTED_ACCESS = 1 << 2
    TERMINATE_PROCESS = 1 << 3
    TERMINATE_THREAD = 1 << 4
    LOAD_LIBRARY = 1 << 5
    RECORD = 1 << 20


class UserCommand(IntEnum):
    """Commands sent from user space to the driver."""

    CONNECT = USER_BASE + 1
    SET_GLOBAL_CONFIG = USER_CONTROL + 1
    GET_GLOBAL_CONFIG = USER_CONTROL + 2
    SET_SESSION_CONFIG = USER_CONTROL + 3
    GET_SESSION_CONFIG = USER_CONTROL + 4
    SET_MSG_CONFIG = USER_CONTROL + 5
    GET_MSG_CONFIG = USER_CONTROL + 6
    ENABLE_PROTECT = USER_CONTROL + 7
    DISABLE_PROTECT = USER_CONTROL + 8
    ADD_PROTECT_RULE = USER_CONTROL + 9
    REMOVE_PROTECT_RULE = USER_CONTROL + 10
    REMOVE_ALL_PROTECT_RULE = USER_CONTROL + 11
    ENUM_PROTECT_RULE = USER_CONTROL + 12


class ProtectType(IntFlag):
    """Kinds of protection rule."""

    TRUST_PROCESS = 1 << 0
    PROCESS_PATH = 1 << 1
    FILE_PATH = 1 << 2
    REG_PATH = 1 << 3


def group_of(msg_type: int) -> MsgGroup:
    """Return the group a message type belongs to."""
    value = int(msg_type)
    if value < 0:
        raise ValueError(f"invalid message type: {value}")
    return MsgGroup(value // 100)


def base_data_type(data_type: int) -> DataType:
    """Return the base type of an extended data type."""
    return DataType(int(data_type) & 0xFFFF0000)


def _unpack(layout: struct.Struct, data: BytesLike, what: str) -> tuple:
    if len(data) < layout.size:
        raise ValueError(f"{what} needs {layout.size} bytes, got {len(data)}")
    return layout.unpack_from(data, 0)


def _pack(layout: struct.Struct, *values: int) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ValueError(str(exc)) from exc


_HEADER = struct.Struct("<10IQ")


@dataclass
class MsgHeader:
    """Header that starts every message from the driver."""

    type: int = 0
    length: int = 0
    status: int = 0
    config: int = 0
    seq_id: int = 0
    fields: int = 0
    current_process_id: int = 0
    current_thread_id: int = 0
    modifiable: bool = False
    modified: bool = False
    time: int = 0

    SIZE: ClassVar[int] = _HEADER.size

    def pack(self) -> bytes:
        flags = int(bool(self.modifiable)) | int(bool(self.modified)) << 1
        return _pack(
            _HEADER,
            self.type,
            self.length,
            self.status,
            self.config,
            self.seq_id,
            self.fields,
            self.current_process_id,
            self.current_thread_id,
            flags,
            0,
            self.time,
        )

    @classmethod
    def unpack(cls, data: BytesLike) -> MsgHeader:
        (
            msg_type,
            length,
            status,
            config,
            seq_id,
            fields,
            process_id,
            thread_id,
            flags,
            _reserved,
            time,
        ) = _unpack(_HEADER, data, "message header")
        return cls(
            type=msg_type,
            length=length,
            status=status,
            config=config,
            seq_id=seq_id,
            fields=fields,
            current_process_id=process_id,
            current_thread_id=thread_id,
            modifiable=bool(flags & 1),
            modified=bool(flags & 2),
            time=time,
        )


_RECORD_HEAD = struct.Struct("<2I")


@dataclass(frozen=True)
class DataRecord:
    """One typed data item following a message header."""

    type: int
    payload: bytes


def iter_records(data: BytesLike, offset: int = MsgHeader.SIZE) -> Iterator[DataRecord]:
    """Yield the data records stored in ``data`` from ``offset`` to its end."""
    view = memoryview(data)
    end = len(view)
    while offset < end:
        if end - offset < _RECORD_HEAD.size:
            raise ValueError(f"truncated record header at offset {offset}")
        record_type, length = _RECORD_HEAD.unpack_from(view, offset)
        if length < _RECORD_HEAD.size or offset + length > end:
            raise ValueError(f"invalid record length {length} at offset {offset}")
        yield DataRecord(record_type, bytes(view[offset + _RECORD_HEAD.size : offset + length]))
        offset += length


_ACTION = struct.Struct("<4I")


@dataclass
class MsgAction:
    """Verdict and its parameters for a waiting message."""

    action: int = ActionFlag.PASS
    params: tuple[int, int, int] = (0, 0, 0)

    SIZE: ClassVar[int] = _ACTION.size

    def __post_init__(self) -> None:
        self.params = tuple(self.params)
        if len(self.params) != 3:
            raise ValueError("an action carries exactly three parameters")

    @property
    def access(self) -> int:
        return self.params[0]

    @property
    def process_id(self) -> int:
        return self.params[0]

    @property
    def ip(self) -> int:
        return self.params[1]

    @property
    def port(self) -> int:
        return self.params[2]

    def pack(self) -> bytes:
        return _pack(_ACTION, self.action, *self.params)

    @classmethod
    def unpack(cls, data: BytesLike) -> MsgAction:
        action, *params = _unpack(_ACTION, data, "action")
        return cls(ActionFlag(action), tuple(params))


_CONFIG_WORDS = 32
_CONFIG = struct.Struct(f"<{_CONFIG_WORDS}I")


def _pack_words(*head: int) -> bytes:
    return _pack(_CONFIG, *head, *([0] * (_CONFIG_WORDS - len(head))))


@dataclass
class GlobalConfig:
    """Driver-wide settings."""

    switch_include_vs: bool = True
    switch_include_self: bool = False
    switch_other: int = 0
    log_level: int = 0
    max_callstack: int = 64
    max_binary_data: int = 4096

    SIZE: ClassVar[int] = _CONFIG.size

    def pack(self) -> bytes:
        flags = (
            int(bool(self.switch_include_vs))
            | int(bool(self.switch_include_self)) << 1
            | (self.switch_other & 0x3FFFFFFF) << 2
        )
        return _pack_words(flags, self.log_level, self.max_callstack, self.max_binary_data)

    @classmethod
    def unpack(cls, data: BytesLike) -> GlobalConfig:
        words = _unpack(_CONFIG, data, "global config")
        flags = words[0]
        return cls(
            switch_include_vs=bool(flags & 1),
            switch_include_self=bool(flags & 2),
            switch_other=flags >> 2,
            log_level=words[1],
            max_callstack=words[2],
            max_binary_data=words[3],
        )


@dataclass
class SessionConfig:
    """Settings of one client session."""

    msg_timeout_ms: int = 5000
    msg_timeout_protect_count: int = 0
    msg_timeout_protect_time_ms: int = 0
    msg_post_timeout_ms: int = 50000
    filter_process_open_only_modifiable: bool = False
    filter_thread_open_only_modifiable: bool = False
    filter_file_create_only_modifiable: bool = False
    filter_file_close_only_modified: bool = False
    filter_reg_open_only_modifiable: bool = False
    filter_other: int = 0

    SIZE: ClassVar[int] = _CONFIG.size

    def pack(self) -> bytes:
        flags = (
            int(bool(self.filter_process_open_only_modifiable))
            | int(bool(self.filter_thread_open_only_modifiable)) << 1
            | int(bool(self.filter_file_create_only_modifiable)) << 2
            | int(bool(self.filter_file_close_only_modified)) << 3
            | int(bool(self.filter_reg_open_only_modifiable)) << 4
            | (self.filter_other & 0x7FFFFFF) << 5
        )
        return _pack_words(
            self.msg_timeout_ms,
            self.msg_timeout_protect_count,
            self.msg_timeout_protect_time_ms,
            self.msg_post_timeout_ms,
            flags,
        )

    @classmethod
    def unpack(cls, data: BytesLike) -> SessionConfig:
        words = _unpack(_CONFIG, data, "session config")
        flags = words[4]
        return cls(
            msg_timeout_ms=words[0],
            msg_timeout_protect_count=words[1],
            msg_timeout_protect_time_ms=words[2],
            msg_post_timeout_ms=words[3],
            filter_process_open_only_modifiable=bool(flags & 1),
            filter_thread_open_only_modifiable=bool(flags & 2),
            filter_file_create_only_modifiable=bool(flags & 4),
            filter_file_close_only_modified=bool(flags & 8),
            filter_reg_open_only_modifiable=bool(flags & 16),
            filter_other=flags >> 5,
        )


_MSG_SLOTS = int(MsgType.MAX)
_MSG_CONFIG = struct.Struct(f"<{2 * _MSG_SLOTS}I")


def _default_configs() -> list[int]:
    return [int(MsgConfig.DEFAULT)] * _MSG_SLOTS


def _default_fields() -> list[int]:
    return [int(Field.DEFAULT) & _ULONG_MASK] * _MSG_SLOTS


@dataclass
class MessageConfig:
    """Per-message-type configuration and field masks."""

    config: list[int] = field(default_factory=_default_configs)
    fields: list[int] = field(default_factory=_default_fields)

    SIZE: ClassVar[int] = _MSG_CONFIG.size

    def pack(self) -> bytes:
        if len(self.config) != _MSG_SLOTS or len(self.fields) != _MSG_SLOTS:
            raise ValueError(f"message config needs {_MSG_SLOTS} entries in each table")
        return _pack(_MSG_CONFIG, *self.config, *self.fields)

    @classmethod
    def unpack(cls, data: BytesLike) -> MessageConfig:
        words = _unpack(_MSG_CONFIG, data, "message config")
        return cls(list(words[:_MSG_SLOTS]), list(words[_MSG_SLOTS:]))


_PATH_BYTES = MONITOR_MAX_BUFFER * 2
_PROTECT_ITEM = struct.Struct(f"<I{_PATH_BYTES}s")


@dataclass
class ProtectItem:
    """A protection rule: a kind and a path."""

    protect_type: int
    path: str

    SIZE: ClassVar[int] = _PROTECT_ITEM.size

    def pack(self) -> bytes:
        if "\x00" in self.path:
            raise ValueError("path must not contain NUL characters")
        encoded = self.path.encode("utf-16-le")
        if len(encoded) >= _PATH_BYTES:
            raise ValueError(f"path longer than {MONITOR_MAX_BUFFER - 1} characters")
        return _pack(_PROTECT_ITEM, self.protect_type, encoded)

    @classmethod
    def unpack(cls, data: BytesLike) -> ProtectItem:
        protect_type, raw = _unpack(_PROTECT_ITEM, data, "protect item")
        path = raw.decode("utf-16-le", errors="surrogatepass").partition("\x00")[0]
        return cls(ProtectType(protect_type), path)


_USER_HEADER = struct.Struct("<2I")
_ULONG = struct.Struct("<I")

_PAYLOAD_TYPES: dict[UserCommand, type] = {
    UserCommand.SET_GLOBAL_CONFIG: GlobalConfig,
    UserCommand.GET_GLOBAL_CONFIG: GlobalConfig,
    UserCommand.SET_SESSION_CONFIG: SessionConfig,
    UserCommand.GET_SESSION_CONFIG: SessionConfig,
    UserCommand.SET_MSG_CONFIG: MessageConfig,
    UserCommand.GET_MSG_CONFIG: MessageConfig,
    UserCommand.ADD_PROTECT_RULE: ProtectItem,
    UserCommand.REMOVE_PROTECT_RULE: ProtectItem,
}


def encode_user_message(command: int, payload=None) -> bytes:
    """Build a user-to-driver message: header followed by the command's payload.

    Commands that carry a structure default to its default values; commands
    without one refuse a payload.
    """
    command = UserCommand(command)
    head = _pack(_USER_HEADER, command, MONITOR_LICENSE_VERSION)

    if command is UserCommand.CONNECT:
        if payload is None:
            return head + _ULONG.pack(MONITOR_VERSION)
        body = bytes(payload)
        if len(body) != _ULONG.size:
            raise ValueError("connect payload must be a single version word")
        return head + body

    expected = _PAYLOAD_TYPES.get(command)
    if expected is None:
        if payload:
            raise ValueError(f"{command.name} carries no payload")
        return head

    if payload is None:
        payload = expected()
    if isinstance(payload, (bytes, bytearray, memoryview)):
        body = bytes(payload)
        if len(body) != expected.SIZE:
            raise ValueError(f"{command.name} payload must be {expected.SIZE} bytes")
        return head + body
    if not isinstance(payload, expected):
        raise TypeError(f"{command.name} expects {expected.__name__}")
    return head + payload.pack()


def decode_user_header(data: BytesLike) -> tuple[UserCommand, int, bytes]:
    """Split a user message into its command, license version and payload."""
    command, license_version = _unpack(_USER_HEADER, data, "user header")
    return UserCommand(command), license_version, bytes(data[_USER_HEADER.size :])