from pathlib import Path

from bridge import config


class Checkpoint:
    """Last processed chat.db ROWID, kept in a one-line text file. Never moves backwards."""

    def __init__(self, path=None):
        self.path = Path(path or config.LAST_MESSAGE_ID_FILE)
        self._value = None

    def load(self):
        if self._value is None:
            self._value = 0
            try:
                if self.path.exists():
                    self._value = int(self.path.read_text(encoding="utf-8").strip() or 0)
            except (OSError, ValueError) as e:
                print(f"[Checkpoint] Error reading last message ID: {e}")
        return self._value

    def save(self, rowid):
        if rowid <= self.load():
            return
        self._value = rowid
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(str(rowid), encoding="utf-8")
        except OSError as e:
            print(f"[Checkpoint] Error saving last message ID: {e}")
