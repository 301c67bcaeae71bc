"""Configuration loaded from environment variables and the user config file."""

import os
import re
import json
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


# Paths
PROJECT_ROOT = Path(os.getenv("BRIDGE_HOME", Path.home() / "imessage-ai-bridge")).expanduser()
CONFIG_FILE = PROJECT_ROOT / "config.json"
BROWSER_DATA_DIR = PROJECT_ROOT / "browser-data"
LAST_MESSAGE_ID_FILE = PROJECT_ROOT / "state" / "last-message-id.txt"
CHAT_DB_PATH = Path(
    os.getenv("CHAT_DB_PATH", Path.home() / "Library" / "Messages" / "chat.db")
).expanduser()

# AI targets
ENABLED_AIS = [
    name.strip().lower()
    for name in os.getenv("ENABLED_AIS", "gemini,chatgpt,grok").split(",")
    if name.strip()
]
DEFAULT_AI = os.getenv("DEFAULT_AI", "gemini").strip().lower()
AI_URLS = {
    "gemini": os.getenv("GEMINI_URL", "https://gemini.google.com/app"),
    "chatgpt": os.getenv("CHATGPT_URL", "https://chatgpt.com"),
    "grok": os.getenv("GROK_URL", "https://grok.com"),
}

# Browser
_DEFAULT_CHROME = "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"
CHROME_PATH = os.getenv("CHROME_PATH", _DEFAULT_CHROME)
if not Path(CHROME_PATH).exists():
    CHROME_PATH = None  # fall back to Playwright's bundled Chromium
HEADLESS = _env_bool("HEADLESS")

# Timing (seconds)
RESPONSE_TIMEOUT = float(os.getenv("RESPONSE_TIMEOUT", "60"))
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "1"))
STABILIZATION_TIME = float(os.getenv("STABILIZATION_TIME", "1.5"))
LOGIN_POLL_INTERVAL = float(os.getenv("LOGIN_POLL_INTERVAL", "2"))
INIT_TIMEOUT = float(os.getenv("INIT_TIMEOUT", "60"))
INPUT_TIMEOUT = float(os.getenv("INPUT_TIMEOUT", "10"))
SENT_MESSAGE_TTL = float(os.getenv("SENT_MESSAGE_TTL", "30"))

# Shutdown: let an in-flight exchange finish (default) or cancel it
CANCEL_ON_SHUTDOWN = _env_bool("CANCEL_ON_SHUTDOWN")


# ─────────────────────────────────────────────
# User config (first-run setup)
# ─────────────────────────────────────────────
def load_user_config(path=None):
    """Read config.json; missing or unreadable files yield empty phone fields."""
    path = Path(path or CONFIG_FILE)
    if path.exists():
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            print(f"[Config] Could not read {path}: {e}")
    return {"targetPhone": "", "targetPhoneFull": ""}


def normalize_phone(phone):
    """Return (short, full) forms of a phone number or iMessage address."""
    if "@" in phone:
        return phone.strip(), phone.strip()
    cleaned = re.sub(r"[^0-9+]", "", phone)
    if cleaned.startswith("+1"):
        return cleaned[2:], cleaned
    if cleaned.startswith("1") and len(cleaned) == 11:
        return cleaned[1:], "+" + cleaned
    if len(cleaned) == 10:
        return cleaned, "+1" + cleaned
    return cleaned, cleaned if cleaned.startswith("+") else "+" + cleaned


def save_user_config(phone, path=None):
    path = Path(path or CONFIG_FILE)
    existing = load_user_config(path)
    short, full = normalize_phone(phone)
    new_config = {"targetPhone": short, "targetPhoneFull": full}
    if "messagePrefix" in existing:
        new_config["messagePrefix"] = existing["messagePrefix"]

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(new_config, indent=2), encoding="utf-8")
    print(f"Config saved. Target: {full}")
    return new_config


def needs_setup(user_config=None):
    user_config = user_config if user_config is not None else load_user_config()
    return not user_config.get("targetPhone") or not user_config.get("targetPhoneFull")
