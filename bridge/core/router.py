"""Routing grammar for inbound messages.

A message may start with an empty line (start a new conversation), a tier
prefix (`.` thinking, `..` max) and an AI name followed by a space:

    "\\n..chatgpt what changed?"  ->  chatgpt, max tier, new conversation
"""

from dataclasses import dataclass
from enum import Enum

from bridge.config import DEFAULT_AI, ENABLED_AIS


class ModelTier(str, Enum):
    FAST = "fast"
    THINKING = "thinking"
    MAX = "max"


class Command(str, Enum):
    RESET = "reset"
    STATUS = "status"


@dataclass(frozen=True)
class ParsedMessage:
    ai: str
    message: str
    start_new_chat: bool
    tier: ModelTier


def parse_message(text, targets=None, default=None):
    """Split raw message text into target AI, body, new-chat flag and model tier."""
    targets = targets if targets is not None else ENABLED_AIS
    default = default or DEFAULT_AI

    start_new_chat = text.startswith("\n") or text.startswith("\r")
    trimmed = text.strip()

    # ".." must be checked before "."
    tier = ModelTier.FAST
    if trimmed.startswith(".."):
        tier = ModelTier.MAX
        trimmed = trimmed[2:].strip()
    elif trimmed.startswith("."):
        tier = ModelTier.THINKING
        trimmed = trimmed[1:].strip()

    lower = trimmed.lower()
    for name in targets:
        prefix = f"{name.lower()} "
        if lower.startswith(prefix):
            return ParsedMessage(name, trimmed[len(prefix):].strip(), start_new_chat, tier)

    return ParsedMessage(default, trimmed, start_new_chat, tier)


_COMMANDS = {
    "reset": Command.RESET,
    "clear": Command.RESET,
    "status": Command.STATUS,
}


def parse_command(text):
    """Return the Command the whole message spells, or None."""
    return _COMMANDS.get(text.strip().lower())
