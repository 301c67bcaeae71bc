import subprocess
from unittest.mock import patch

import pytest

from bridge.integrations.imessage_sender import IMessageSender, error_message, escape_for_applescript


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sender(clock):
    return IMessageSender("+15551234567", ttl=30, clock=clock)


def test_escape_for_applescript():
    assert escape_for_applescript('say "hi"\n\tback\\slash') == 'say \\"hi\\"\\n\\tback\\\\slash'


def test_error_message():
    assert error_message("TIMEOUT") == "Sorry, couldn't complete request. Error: TIMEOUT"
    assert error_message() == "Sorry, try again."


class TestSend:
    def test_runs_osascript_with_escaped_text(self, sender):
        with patch("bridge.integrations.imessage_sender.subprocess.run") as run:
            assert sender.send('He said "ok"\nthen left') is True

        args = run.call_args.args[0]
        assert args[:2] == ["osascript", "-e"]
        assert 'send "He said \\"ok\\"\\nthen left" to theBuddy' in args[2]
        assert 'set targetBuddy to "+15551234567"' in args[2]

    def test_failure_returns_false_and_forgets_text(self, sender):
        error = subprocess.CalledProcessError(1, ["osascript"], stderr="not authorized")
        with patch("bridge.integrations.imessage_sender.subprocess.run", side_effect=error):
            assert sender.send("hello") is False
        assert not sender.was_sent_by_us("hello")

    def test_no_target_phone(self):
        with patch("bridge.integrations.imessage_sender.subprocess.run") as run:
            assert IMessageSender("").send("hello") is False
        run.assert_not_called()


class TestSelfEcho:
    def test_sent_text_is_recognized_once(self, sender):
        with patch("bridge.integrations.imessage_sender.subprocess.run"):
            sender.send("  the answer is 42 ")

        assert sender.was_sent_by_us("the answer is 42")
        assert not sender.was_sent_by_us("the answer is 42")

    def test_sent_text_expires_after_ttl(self, sender, clock):
        with patch("bridge.integrations.imessage_sender.subprocess.run"):
            sender.send("old reply")
        clock.now += 31
        assert not sender.was_sent_by_us("old reply")

    def test_sent_text_within_ttl(self, sender, clock):
        with patch("bridge.integrations.imessage_sender.subprocess.run"):
            sender.send("recent reply")
        clock.now += 29
        assert sender.was_sent_by_us("recent reply")

    @pytest.mark.parametrize(
        "text",
        [
            "Sorry, couldn't complete request. Error: TIMEOUT",
            "Sorry, try again.",
            "[GROK] Session expired. Please log in again.",
            "All conversations have been reset.",
            "Active AIs: gemini, grok. Use . for thinking, .. for max.",
            "CHATGPT is not configured. Available: gemini",
        ],
    )
    def test_system_messages_always_ours(self, sender, text):
        assert sender.was_sent_by_us(text)

    @pytest.mark.parametrize("text", [None, "", "what is the weather", "sorry, try again"])
    def test_user_text_is_not_ours(self, sender, text):
        assert not sender.was_sent_by_us(text)
