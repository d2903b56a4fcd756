"""Convert sessions, messages and file history to JSON-friendly data."""

import json
from datetime import datetime
from typing import Iterable, Optional

from .core import FileHistoryEntry, Message, Session

UNKNOWN_TIME = "(unknown)"


def format_timestamp(value: Optional[datetime]) -> str:
    """Local "YYYY-MM-DD HH:MM", or "(unknown)"."""
    if value is None:
        return UNKNOWN_TIME
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def session_to_dict(session: Session) -> dict:
    return {
        "id": session.id,
        "title": session.title,
        "modified": _isoformat(session.modified),
        "message_count": session.message_count,
    }


def message_to_dict(msg: Message) -> dict:
    return {
        "id": msg.id,
        "hash": msg.hash,
        "timestamp": _isoformat(msg.timestamp),
        "has_snapshot": msg.has_snapshot,
    }


def history_entry_to_dict(entry: FileHistoryEntry) -> dict:
    return {
        "message_id": entry.message_id,
        "session_id": entry.session_id,
        "session_title": entry.session_title,
        "timestamp": _isoformat(entry.timestamp),
        "hash": entry.hash,
    }


def to_json(items: Iterable[Session | Message | FileHistoryEntry]) -> str:
    """Serialize a list of sessions, messages or history entries."""
    converters = {
        Session: session_to_dict,
        Message: message_to_dict,
        FileHistoryEntry: history_entry_to_dict,
    }
    data = [converters[type(item)](item) for item in items]
    return json.dumps(data, indent=2, ensure_ascii=False)
