"""Derive project identity and working directory from session/message ids.

Storage only records session -> project (inside each session metadata file),
so every lookup here is a scan over the relevant index.
"""

import logging
from pathlib import Path

from .core import is_valid_message_id, is_valid_session_id
from .storage import StorageIndex, safe_read_json

logger = logging.getLogger(__name__)


class Resolver:
    def __init__(self, index: StorageIndex):
        self.index = index

    def project_id_from_session(self, session_id: str) -> str | None:
        if not session_id or not is_valid_session_id(session_id):
            return None

        for data in self.index.find_session_metadata(session_id):
            project_id = data.get("projectID")
            if isinstance(project_id, str) and project_id:
                if not is_valid_message_id(project_id):
                    logger.warning("Ignoring unsafe projectID %r for %s", project_id, session_id)
                    continue
                return project_id

        logger.debug("No project found for session %s", session_id)
        return None

    def find_message_file(self, message_id: str) -> tuple[Path, str] | None:
        """Locate ``<message_id>.json`` and the session it belongs to.

        The session id comes from the file's ``sessionID`` field when present,
        otherwise from the name of the directory holding it.
        """
        if not is_valid_message_id(message_id):
            return None

        for session_dir in self.index.list_session_dirs():
            msg_path = session_dir.path / f"{message_id}.json"
            if not msg_path.is_file():
                continue

            data = safe_read_json(msg_path) or {}
            session_id = data.get("sessionID")
            if not isinstance(session_id, str):
                session_id = session_dir.name
            return msg_path, session_id

        return None

    def project_id_from_message(self, message_id: str) -> str | None:
        if not message_id:
            return None

        found = self.find_message_file(message_id)
        if found is None:
            logger.debug("Message file not found for %s", message_id)
            return None
        return self.project_id_from_session(found[1])

    def project_directory(self, project_id: str) -> str | None:
        """Working-tree path recorded for ``project_id`` in any session file.

        Files filed under ``session/<project_id>/`` are preferred; only when
        there are none is every project's metadata scanned.
        """
        if not project_id or not is_valid_message_id(project_id):
            return None

        candidates = self.index.session_metadata_files(project_id)
        if not candidates:
            candidates = self.index.session_metadata_files()

        for entry in candidates:
            data = safe_read_json(entry.path)
            if data is None or data.get("projectID") != project_id:
                continue
            directory = data.get("directory")
            if isinstance(directory, str) and directory:
                return directory

        return None
