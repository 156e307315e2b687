import dataclasses

import pytest

from imonitor.extension import (
    Address,
    AgentCallback,
    MatchResult,
    MatchStatus,
    RuleCallback,
)


class _Recorder(RuleCallback):
    def __init__(self, stop_on):
        self.events = []
        self.stop_on = stop_on

    def on_begin_match(self, message):
        self.events.append(("begin", message))

    def on_match(self, message, result):
        self.events.append(("match", result.rule_name))
        return MatchStatus.BREAK if result.rule_name == self.stop_on else MatchStatus.CONTINUE


def test_match_status_values():
    assert MatchStatus.BREAK < MatchStatus.CONTINUE
    assert MatchStatus(0) is MatchStatus.BREAK


def test_rule_callback_is_abstract():
    with pytest.raises(TypeError):
        RuleCallback()


def test_rule_callback_subclass():
    callback = _Recorder(stop_on="second")
    callback.on_begin_match("msg")
    first = callback.on_match("msg", MatchResult(action=1, rule_name="first"))
    second = callback.on_match("msg", MatchResult(action=1, rule_name="second"))
    assert first is MatchStatus.CONTINUE
    assert second is MatchStatus.BREAK
    assert callback.events == [("begin", "msg"), ("match", "first"), ("match", "second")]
    assert callback.on_finish_match("msg") is None
    assert len(callback.events) == 3


def test_match_result_is_frozen():
    result = MatchResult(action=2, action_param="p", group_name="g", rule_name="r")
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.action = 3
    assert (result.group_name, result.rule_name) == ("g", "r")


def test_address_valid_and_equal():
    assert Address(0x7F000001, 443) == Address(0x7F000001, 443)
    assert Address(0, 0).port == 0


@pytest.mark.parametrize("ip, port", [(-1, 80), (1 << 32, 80), (1, -1), (1, 1 << 16)])
def test_address_rejects_out_of_range(ip, port):
    with pytest.raises(ValueError):
        Address(ip, port)


def test_agent_callback_defaults():
    callback = AgentCallback()
    assert callback.on_local_ssl_hello(None, "example.com") is True
    assert callback.on_remote_pre_connect(None) is True
    assert callback.on_remote_ssl_verify(None, False) is False
    assert callback.on_remote_ssl_verify(None, True) is True
    assert callback.on_local_receive(None, b"data") is None


def test_agent_callback_override():
    class Blocking(AgentCallback):
        def __init__(self):
            self.received = []

        def on_remote_pre_connect(self, channel):
            return False

        def on_remote_receive(self, channel, data):
            self.received.append(data)

    callback = Blocking()
    callback.on_remote_receive("chan", b"abc")
    assert callback.on_remote_pre_connect("chan") is False
    assert AgentCallback().on_remote_pre_connect("chan") is True
    assert callback.received == [b"abc"]
    assert callback.on_local_ssl_hello("chan", "example.com") is True
    assert callback.on_remote_ssl_verify("chan", False) is False