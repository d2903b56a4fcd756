"""Session listing, per-message diffs and file history over OpenCode storage.

This is the entry point the CLI and the API talk to. It ties together the
storage index, the resolver, the patch locator and the snapshot differ.
"""

import logging
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path

from .config import HistoryConfig
from .core import (
    FileHistoryEntry,
    Message,
    Session,
    is_valid_message_id,
    is_valid_session_id,
)
from .parts import PatchLocator
from .resolver import Resolver
from .snapshot import SnapshotDiffer
from .storage import Entry, StorageIndex

logger = logging.getLogger(__name__)

DEFAULT_SESSION_LIMIT = 10


class HistorySearch:
    """Read-only view of the agent's edits, backed by snapshot git repos."""

    def __init__(self, config: HistoryConfig):
        self.config = config
        self.index = StorageIndex(config)
        self.resolver = Resolver(self.index)
        self.patches = PatchLocator(self.index)
        self.differ = SnapshotDiffer(config.git_executable)

    # ── Sessions ─────────────────────────────────────────────────

    def list_recent_sessions(self, limit: int = DEFAULT_SESSION_LIMIT) -> list[Session]:
        sessions = []
        for session_dir in self.index.list_session_dirs()[:max(limit, 0)]:
            sessions.append(Session(
                id=session_dir.name,
                title=self.index.session_title(session_dir.name),
                modified=session_dir.modified,
                message_count=len(self.index.list_messages_sorted_by_recency(session_dir.name)),
            ))
        return sessions

    def iter_session_messages(self, session_id: str) -> Iterator[Message]:
        """Yield the session's messages that carry a patch, newest first.

        The project (and so the snapshot repository) is resolved once for the
        whole session rather than per message.
        """
        if not is_valid_session_id(session_id):
            logger.warning("Invalid session ID format: %r", session_id)
            return

        msg_dir = self.index.session_message_dir(session_id)
        if msg_dir is None or not msg_dir.is_dir():
            return

        project_id = self.resolver.project_id_from_session(session_id)
        snapshot_dir = self.config.snapshot_dir(project_id) if project_id else None

        for msg_file in self.index.list_messages_sorted_by_recency(session_id):
            message_id = msg_file.stem
            hash = self.patches.patch_hash(message_id)
            if not hash:
                continue

            yield Message(
                id=message_id,
                hash=hash,
                timestamp=self._message_timestamp(msg_file),
                has_snapshot=self.differ.hash_exists(snapshot_dir, hash) if snapshot_dir else False,
            )

    def get_session_messages(self, session_id: str) -> list[Message]:
        return list(self.iter_session_messages(session_id))

    # ── Diffs ────────────────────────────────────────────────────

    def get_message_diff(self, message_id: str, file_path: str | None = None) -> str | None:
        """Diff for the edit recorded in ``message_id``, optionally for one path.

        Returns None when the message is invalid, has no patch, cannot be tied
        to a project, or its snapshot is gone. An empty string means the diff
        ran and found no differences.
        """
        if not is_valid_message_id(message_id):
            logger.warning("Invalid message ID format: %r", message_id)
            return None

        hash = self.patches.patch_hash(message_id)
        if not hash:
            return None

        project_id = self.resolver.project_id_from_message(message_id)
        if not project_id:
            return None

        snapshot_dir = self.config.snapshot_dir(project_id)
        if not snapshot_dir.exists():
            logger.info("Snapshot directory not found: %s", snapshot_dir)
            return None

        if not self.differ.hash_exists(snapshot_dir, hash):
            logger.info("Snapshot not available for hash %s", hash)
            return None

        project_dir = self.resolver.project_directory(project_id)
        result = self.differ.diff(snapshot_dir, hash, work_tree=project_dir, path_filter=file_path)
        if not result.ok:
            return None
        return result.stdout

    def tools_used(self, message_id: str) -> list[str]:
        if not is_valid_message_id(message_id):
            return []
        return self.patches.tools_used(message_id)

    def latest_session_id(self) -> str | None:
        session_dirs = self.index.list_session_dirs()
        return session_dirs[0].name if session_dirs else None

    def latest_message_id(self, session_id: str) -> str | None:
        messages = self.index.list_messages_sorted_by_recency(session_id)
        return messages[0].stem if messages else None

    def get_session_diff(self, session_id: str, file_path: str | None = None) -> tuple[str, str | None] | None:
        """Diff of the most recent message in a session, as ``(message_id, diff)``."""
        message_id = self.latest_message_id(session_id)
        if message_id is None:
            return None
        return message_id, self.get_message_diff(message_id, file_path)

    def get_latest_diff(self, file_path: str | None = None) -> tuple[str, str, str | None] | None:
        """Diff of the newest message in the newest session."""
        session_id = self.latest_session_id()
        if session_id is None:
            return None
        found = self.get_session_diff(session_id, file_path)
        if found is None:
            return None
        return (session_id, *found)

    # ── File history ─────────────────────────────────────────────

    def iter_file_history(
        self, file_path: str, session_limit: int = DEFAULT_SESSION_LIMIT
    ) -> Iterator[FileHistoryEntry]:
        """Yield edits whose changed-path set contains exactly ``file_path``.

        Walks the ``session_limit`` newest sessions and, inside each, messages
        newest first. Each candidate costs at least one git call.
        """
        if not file_path:
            return

        project_dirs: dict[str, str | None] = {}

        for session_dir in self.index.list_session_dirs()[:max(session_limit, 0)]:
            session_id = session_dir.name
            title = self.index.session_title(session_id)

            for msg_file in self.index.list_messages_sorted_by_recency(session_id):
                message_id = msg_file.stem
                hash = self.patches.patch_hash(message_id)
                if not hash:
                    continue

                project_id = self.resolver.project_id_from_message(message_id)
                if not project_id:
                    continue

                snapshot_dir = self.config.snapshot_dir(project_id)
                if not self.differ.hash_exists(snapshot_dir, hash):
                    continue

                if project_id not in project_dirs:
                    project_dirs[project_id] = self.resolver.project_directory(project_id)

                changed = self.differ.changed_paths(snapshot_dir, hash, work_tree=project_dirs[project_id])
                if file_path not in changed:
                    continue

                yield FileHistoryEntry(
                    message_id=message_id,
                    session_id=session_id,
                    session_title=title,
                    timestamp=self._message_timestamp(msg_file),
                    hash=hash,
                )

    def file_history(self, file_path: str, session_limit: int = DEFAULT_SESSION_LIMIT) -> list[FileHistoryEntry]:
        return list(self.iter_file_history(file_path, session_limit))

    # ── Helpers ──────────────────────────────────────────────────

    def snapshot_location(self, message_id: str) -> tuple[str, Path, str | None] | None:
        """Project id, snapshot dir and project directory for a message."""
        project_id = self.resolver.project_id_from_message(message_id)
        if not project_id:
            return None
        return project_id, self.config.snapshot_dir(project_id), self.resolver.project_directory(project_id)

    def _message_timestamp(self, msg_file: Entry) -> datetime | None:
        data = self.index.read_message(msg_file.path) or {}
        time_data = data.get("time")
        if not isinstance(time_data, dict):
            return None
        return _ms_to_datetime(time_data.get("created"))


def _ms_to_datetime(ms: object) -> datetime | None:
    """Convert millisecond timestamp to datetime, or None."""
    if ms is None or isinstance(ms, bool):
        return None
    try:
        return datetime.fromtimestamp(float(ms) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OSError, OverflowError):
        return None
