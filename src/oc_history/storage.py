"""Read-side accessors over OpenCode's storage tree.

Layout::

    storage/message/<session_id>/<message_id>.json
    storage/part/<message_id>/<part_id>.json
    storage/session/<project_id>/<session_id>.json

Nothing here is cached: every call goes back to the filesystem, and a
missing or unreadable directory is treated as empty.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .config import HistoryConfig
from .core import NO_TITLE, is_valid_message_id, is_valid_session_id

logger = logging.getLogger(__name__)


@dataclass
class Entry:
    """A directory entry together with its modification time."""

    name: str
    path: Path
    mtime: float

    @property
    def stem(self) -> str:
        return self.path.stem

    @property
    def modified(self) -> datetime:
        return datetime.fromtimestamp(self.mtime, tz=timezone.utc)


def _list_entries(directory: Path, want_dirs: bool) -> list[Entry]:
    try:
        children = list(directory.iterdir())
    except OSError:
        return []

    entries = []
    for child in children:
        try:
            if (child.is_dir() if want_dirs else child.is_file()):
                entries.append(Entry(name=child.name, path=child, mtime=child.stat().st_mtime))
        except OSError:
            # Vanished between listing and stat
            continue
    return entries


def list_directories(directory: Path) -> list[Entry]:
    return _list_entries(directory, want_dirs=True)


def list_files(directory: Path) -> list[Entry]:
    return _list_entries(directory, want_dirs=False)


def json_files(directory: Path) -> list[Entry]:
    return [e for e in list_files(directory) if e.name.endswith(".json")]


def sort_by_mtime_desc(entries: list[Entry]) -> list[Entry]:
    """Newest first; equal mtimes keep enumeration order."""
    return sorted(entries, key=lambda e: e.mtime, reverse=True)


def safe_read_json(path: Path) -> dict | None:
    """Parse a JSON object from ``path``, or return None."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        logger.debug("Skipping unreadable JSON file %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


class StorageIndex:
    """Accessors over the message, part and session trees."""

    def __init__(self, config: HistoryConfig):
        self.config = config

    # ── Sessions and messages ────────────────────────────────────

    def list_session_dirs(self) -> list[Entry]:
        """Return ``ses_*`` message directories, most recently modified first."""
        dirs = [d for d in list_directories(self.config.message_root) if d.name.startswith("ses_")]
        return sort_by_mtime_desc(dirs)

    def list_sessions_sorted_by_recency(self) -> list[Entry]:
        return self.list_session_dirs()

    def session_message_dir(self, session_id: str) -> Path | None:
        if not is_valid_session_id(session_id):
            return None
        return self.config.message_root / session_id

    def list_messages_sorted_by_recency(self, session_id: str) -> list[Entry]:
        msg_dir = self.session_message_dir(session_id)
        if msg_dir is None:
            return []
        return sort_by_mtime_desc(json_files(msg_dir))

    def read_message(self, path: Path) -> dict | None:
        return safe_read_json(path)

    # ── Parts ────────────────────────────────────────────────────

    def list_part_files(self, message_id: str) -> list[Entry]:
        """Part files in filesystem enumeration order (not authoring order)."""
        if not is_valid_message_id(message_id):
            return []
        return json_files(self.config.part_root / message_id)

    # ── Session metadata ─────────────────────────────────────────

    def list_project_dirs(self) -> list[Entry]:
        return list_directories(self.config.session_root)

    def session_metadata_files(self, project_id: str | None = None) -> list[Entry]:
        """Session metadata files under one project, or under every project."""
        if project_id is not None:
            if not is_valid_message_id(project_id):
                return []
            return json_files(self.config.session_root / project_id)

        files = []
        for project_dir in self.list_project_dirs():
            files.extend(json_files(project_dir.path))
        return files

    def find_session_metadata(self, session_id: str) -> list[dict]:
        """Every readable ``session/*/<session_id>.json``, in project enumeration order."""
        if not is_valid_session_id(session_id):
            return []

        found = []
        for project_dir in self.list_project_dirs():
            session_file = project_dir.path / f"{session_id}.json"
            if not session_file.is_file():
                continue
            data = safe_read_json(session_file)
            if data is not None:
                found.append(data)
        return found

    def session_title(self, session_id: str) -> str:
        """Title from session metadata; a real title beats a "(no title)" placeholder."""
        title = NO_TITLE
        for data in self.find_session_metadata(session_id):
            if isinstance(data.get("title"), str):
                title = data["title"]
                if title != NO_TITLE:
                    return title
        return title
