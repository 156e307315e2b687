# imonitor

Building blocks for a system event monitor client.

## Modules

- **`imonitor.protocol`**: the constants and binary layouts exchanged with
  the monitor.
  - Enumerations: `MsgType`, `MsgGroup`, `DataType`, `Field`, `MsgConfig`,
    `ActionFlag`, `UserCommand` and `ProtectType`.
  - `group_of(msg_type)` gives a message type's group, and
    `base_data_type(data_type)` gives the base type of an extended data type.
  - Structures with `pack()` / `unpack(data)`: `MsgHeader`, `MsgAction`,
    `GlobalConfig`, `SessionConfig`, `MessageConfig` and `ProtectItem`.
    Each has a `SIZE` in bytes.
  - `iter_records(data, offset)` yields the `DataRecord`s (`type`,
    `payload`) that follow a header. It raises `ValueError` on truncated or
    malformed records.
  - `encode_user_message(command, payload)` builds a control message: a
    header followed by the command's structure. Structures are filled with
    their defaults when no payload is given. `decode_user_header(data)`
    splits such a message into its command, its license version and its
    payload bytes.
- **`imonitor.extension`**: callback interfaces.
  - `RuleCallback` is an abstract base with `on_begin_match`,
    `on_finish_match`, `is_matching` and the abstract `on_match`. `on_match`
    receives a `MatchResult` and returns a `MatchStatus`.
  - `AgentCallback` has permissive defaults for every connection event. By
    default it records each channel's state in a `ChannelState`, which you
    read back with `channel_state(channel)` until `on_close`.
  - `Address` holds an IPv4 value and a port, both range-checked.
- **`imonitor.crc`**: table-driven checksums.
  - `crc32(data, crc)` is CRC-32 (IEEE) and `crc64(data, crc)` is CRC-64
    (Jones). Both accept bytes or text; text is UTF-8 and stops at its first
    NUL.
  - `crc64_int(value, crc)` checksums a 64-bit integer stored little-endian.
- **`imonitor.helpers`**: `make_ulonglong`, `format_ulong` (signed `%d`
  style), `string_from_guid` (`{UPPER-CASE}` form), `string_from_current_time`,
  `current_time64` (local time in 100 ns units since 1601) and `tick_count`
  (monotonic milliseconds).
- **`imonitor.handle`**: `Handle(closer, value)` owns a value and closes it
  exactly once. It supports `attach`, `detach`, `close` and use as a context
  manager. `None`, `0` and `-1` count as no handle.
- **`imonitor.sync`**: `AtomicCounter` (32-bit, wrapping `increment`,
  `compare_and_set`), `SpinLock` and `NoLock`.
- **`imonitor.looper`**: task loopers.
  - A `Looper` keeps delayed tasks (`post_runnable`) and repeating timers
    (`set_timer`, `reset_timer`), which you can cancel with `cancel` and
    `cancel_all`. It also provides `next_delay_time`, `dispatch_tasks`,
    `terminate` and `run`.
  - `EventLooper` sleeps on an event between due tasks.
  - `MainLooper` is pumped by its own thread through `process_pending`.
  - `LooperThread` runs a looper on a dedicated thread.
  - `LooperManager`, from `get_manager()`, creates loopers with
    `create_looper` and tracks the current looper of each thread.

## Examples

Checksums:

```python
from imonitor.crc import crc32, crc64

crc32(b"hello")
crc64("hello")
```

Reading a message:

```python
from imonitor.protocol import MsgHeader, group_of, iter_records

header = MsgHeader.unpack(raw)
print(group_of(header.type))
for record in iter_records(raw, MsgHeader.SIZE):
    print(record.type, record.payload)
```

Building a control message:

```python
from imonitor.protocol import SessionConfig, UserCommand, encode_user_message

message = encode_user_message(
    UserCommand.SET_SESSION_CONFIG, SessionConfig(msg_timeout_ms=2000)
)
```

Running tasks on a background looper:

```python
from imonitor.looper import LooperType, get_manager

looper = get_manager().create_looper(LooperType.EVENT, "worker")
looper.post_runnable(lambda: print("later"), 100)
timer_id = looper.set_timer(lambda: print("tick"), 1000)
looper.cancel(timer_id)
looper.thread.stop()
```

## What this package does not do

The package does not connect to the monitor. It does not load a driver and
does not receive or answer messages. It only builds and parses the bytes of
the protocol. It also has no rule engine and no connection agent, only the
callback interfaces they would call. There is no command-line tool.

## Installation and tests

```
pip install .
pip install .[test]
pytest
```