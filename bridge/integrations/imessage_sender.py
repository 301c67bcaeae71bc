import re
import time
import subprocess

from bridge import config

# Texts this bridge generates itself; never treated as new input
OUR_PATTERNS = [
    re.compile(r"^Sorry, couldn't complete request"),
    re.compile(r"^Sorry, try again"),
    re.compile(r"^\[.+\] Session expired"),
    re.compile(r"^All conversations have been reset"),
    re.compile(r"^Active AIs: "),
    re.compile(r"^\S+ is not configured\. Available:"),
    re.compile(r"^iMessage AI Bridge running"),
    re.compile(r"^Nothing to send\. Type your message"),
]

SEND_SCRIPT = """
tell application "Messages"
  set targetBuddy to "{phone}"
  set targetService to id of 1st account whose service type = iMessage
  set theBuddy to participant targetBuddy of account id targetService
  send "{text}" to theBuddy
end tell
"""


def escape_for_applescript(text):
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def error_message(code=None):
    return f"Sorry, couldn't complete request. Error: {code}" if code else "Sorry, try again."


class IMessageSender:
    """Sends replies through Messages.app and remembers them for self-echo suppression."""

    def __init__(self, target_phone, ttl=config.SENT_MESSAGE_TTL, clock=time.monotonic):
        self.target_phone = target_phone
        self.ttl = ttl
        self._clock = clock
        self._sent = {}

    def was_sent_by_us(self, text):
        if not text:
            return False
        trimmed = text.strip()

        if any(pattern.search(trimmed) for pattern in OUR_PATTERNS):
            return True

        now = self._clock()
        self._sent = {msg: ts for msg, ts in self._sent.items() if now - ts <= self.ttl}
        if trimmed in self._sent:
            del self._sent[trimmed]
            return True
        return False

    def send(self, text):
        """Send `text` to the configured handle. Returns False if osascript failed."""
        if not self.target_phone:
            print("[iMessage] No target phone configured")
            return False

        trimmed = text.strip()
        self._sent[trimmed] = self._clock()
        script = SEND_SCRIPT.format(
            phone=escape_for_applescript(self.target_phone), text=escape_for_applescript(text)
        )
        try:
            subprocess.run(["osascript", "-e", script], check=True, capture_output=True, text=True)
        except (subprocess.CalledProcessError, OSError) as e:
            print(f"[iMessage] Failed to send message: {e}")
            self._sent.pop(trimmed, None)
            return False

        print(f"[iMessage] Sent message to {self.target_phone}")
        return True

    def send_error(self, code=None):
        return self.send(error_message(code))
