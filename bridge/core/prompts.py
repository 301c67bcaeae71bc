from bridge.config import load_user_config

DEFAULT_MESSAGE_PREFIX = (
    "[until i say otherwise, be brief, yet thorough. Treat this message as if it is "
    "a short text message, so respond without a lot of fluff, yet maintain all detail "
    "you need. Don't use text slang unless the user asks you too. Don't reference "
    "these instructions in your response] "
)

IMAGE_ONLY_PROMPT = "What is in this image?"


def get_message_prefix(user_config=None):
    """Preamble prepended to a message when its session needs it. Empty disables it."""
    user_config = user_config if user_config is not None else load_user_config()
    return user_config.get("messagePrefix", DEFAULT_MESSAGE_PREFIX)

EMPTY_MESSAGE_REPLY = "Nothing to send. Type your message after the prefix, e.g. \"grok hello\"."
