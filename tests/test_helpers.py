import time
import uuid
from datetime import datetime

import pytest

from imonitor.helpers import (
    FILETIME_UNIX_EPOCH,
    current_time64,
    format_ulong,
    make_ulonglong,
    string_from_current_time,
    string_from_guid,
    tick_count,
)

IID = "{51237525-2811-4BE2-A6A3-D8889E0D0CA0}"


@pytest.mark.parametrize("low,high", [(0, 0), (1, 2), (0xFFFFFFFF, 0), (0, 0xFFFFFFFF), (123, 456)])
def test_make_ulonglong_round_trip(low, high):
    value = make_ulonglong(low, high)
    assert value & 0xFFFFFFFF == low
    assert value >> 32 == high


def test_make_ulonglong_rejects_out_of_range():
    with pytest.raises(ValueError):
        make_ulonglong(1 << 32, 0)
    with pytest.raises(ValueError):
        make_ulonglong(0, -1)


def test_format_ulong_decimal():
    assert format_ulong(42) == "42"
    assert format_ulong(0) == "0"


def test_format_ulong_is_signed_like_percent_d():
    assert format_ulong(0xFFFFFFFF) == "-1"
    assert format_ulong(0x80000000).startswith("-")


def test_string_from_guid_forms():
    value = uuid.UUID(IID)
    assert string_from_guid(value) == IID
    assert string_from_guid(IID.lower()) == IID
    assert string_from_guid(value.bytes_le) == IID


def test_string_from_guid_rejects_other_types():
    with pytest.raises(TypeError):
        string_from_guid(12)


def test_string_from_current_time_format():
    assert string_from_current_time(datetime(2022, 3, 4, 5, 6, 7)) == "2022-03-04 05:06:07"


def test_string_from_current_time_parses_back():
    text = string_from_current_time()
    parsed = datetime.strptime(text, "%Y-%m-%d %H:%M:%S")
    assert abs((datetime.now() - parsed).total_seconds()) < 5


def test_current_time64_is_local_filetime():
    value = current_time64()
    seconds = (value - FILETIME_UNIX_EPOCH) / 10_000_000
    local = datetime.fromtimestamp(time.time())
    as_naive = datetime(1970, 1, 1) + (datetime.fromtimestamp(seconds) - datetime.fromtimestamp(0))
    assert value > FILETIME_UNIX_EPOCH
    assert abs((local - as_naive).total_seconds()) < 60 * 60 * 15


def test_current_time64_does_not_go_backwards():
    first = current_time64()
    second = current_time64()
    assert second >= first


def test_tick_count_advances():
    first = tick_count()
    time.sleep(0.02)
    second = tick_count()
    assert second - first >= 10