"""Reads new inbound messages from the local iMessage database (chat.db).

The database is opened read-only on every poll; Messages.app keeps writing to
it, so a locked/busy database is an expected, temporary condition.
"""

import os
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

from bridge import config

# chat.db stores dates relative to 2001-01-01 (seconds, or nanoseconds since High Sierra)
APPLE_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)

NEW_MESSAGES_SQL = """
    SELECT
        m.ROWID AS rowid,
        m.text,
        m.date,
        m.is_from_me,
        m.cache_has_attachments
    FROM message m
    JOIN handle h ON m.handle_id = h.ROWID
    WHERE h.id LIKE ?
      AND m.is_from_me = 0
      AND m.ROWID > ?
      AND (m.text IS NOT NULL OR m.cache_has_attachments = 1)
    ORDER BY m.ROWID ASC
"""

ATTACHMENTS_SQL = """
    SELECT a.filename, a.mime_type
    FROM attachment a
    JOIN message_attachment_join maj ON a.ROWID = maj.attachment_id
    WHERE maj.message_id = ?
"""

HIGH_WATER_MARK_SQL = """
    SELECT MAX(m.ROWID)
    FROM message m
    JOIN handle h ON m.handle_id = h.ROWID
    WHERE h.id LIKE ?
"""


@dataclass(frozen=True)
class InboundMessage:
    id: int
    text: str = None
    attachments: tuple = field(default_factory=tuple)
    date: datetime = None
    is_from_me: bool = False


def apple_timestamp(value):
    if not value:
        return None
    seconds = value / 1e9 if value > 1e11 else value
    return APPLE_EPOCH + timedelta(seconds=seconds)


def _is_locked(error):
    message = str(error).lower()
    return "locked" in message or "busy" in message


class IMessageReader:
    def __init__(self, target_phone, db_path=None):
        self.target_phone = target_phone
        self.db_path = Path(db_path or config.CHAT_DB_PATH)

    def _connect(self):
        return sqlite3.connect(f"file:{self.db_path}?mode=ro", uri=True)

    @property
    def _handle_pattern(self):
        return f"%{self.target_phone}%"

    def list_new_messages(self, since_id=0):
        """Messages from the target handle with ROWID > since_id, oldest first."""
        if not self.target_phone:
            return []

        try:
            db = self._connect()
        except sqlite3.OperationalError as e:
            if _is_locked(e):
                print("[iMessage] Database is locked, will retry...")
                return []
            raise

        try:
            rows = db.execute(NEW_MESSAGES_SQL, (self._handle_pattern, since_id)).fetchall()
            return [
                InboundMessage(
                    id=rowid,
                    text=text,
                    attachments=tuple(self._attachments(db, rowid)) if has_attachments else (),
                    date=apple_timestamp(date),
                    is_from_me=bool(is_from_me),
                )
                for rowid, text, date, is_from_me, has_attachments in rows
            ]
        except sqlite3.OperationalError as e:
            if _is_locked(e):
                print("[iMessage] Database is locked, will retry...")
                return []
            raise
        finally:
            db.close()

    def _attachments(self, db, rowid):
        """Image attachment paths that exist on disk."""
        paths = []
        try:
            rows = db.execute(ATTACHMENTS_SQL, (rowid,)).fetchall()
        except sqlite3.Error as e:
            print(f"[iMessage] Error getting attachments: {e}")
            return paths

        for filename, mime_type in rows:
            if not filename or not (mime_type or "").startswith("image/"):
                continue
            path = os.path.expanduser(filename)
            if os.path.exists(path):
                paths.append(path)
        return paths

    def find_high_water_mark(self):
        """Newest ROWID for the target handle, used to skip history on first run."""
        if not self.target_phone:
            return 0
        try:
            db = self._connect()
            try:
                row = db.execute(HIGH_WATER_MARK_SQL, (self._handle_pattern,)).fetchone()
            finally:
                db.close()
        except sqlite3.Error as e:
            print(f"[iMessage] Error initializing message reader: {e}")
            return 0
        return (row[0] if row else None) or 0
