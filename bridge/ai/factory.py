from bridge import config
from bridge.ai.chatgpt import ChatGPTAI
from bridge.ai.gemini import GeminiAI
from bridge.ai.grok import GrokAI

AI_CLASSES = {
    "gemini": GeminiAI,
    "chatgpt": ChatGPTAI,
    "grok": GrokAI,
}


def create_ais(names=None):
    """Build one driver per enabled AI, in configuration order."""
    names = names if names is not None else config.ENABLED_AIS
    unknown = [name for name in names if name not in AI_CLASSES]
    if unknown:
        raise ValueError(f"Unknown AI(s): {', '.join(unknown)}. Known: {', '.join(AI_CLASSES)}")
    return {name: AI_CLASSES[name]() for name in names}
