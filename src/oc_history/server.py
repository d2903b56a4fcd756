"""FastAPI web server for oc-history (read-only).

Routes are plain functions so their git and filesystem work runs in the
threadpool, not on the event loop.
"""

import logging

from fastapi import FastAPI, HTTPException, Query

from .config import load_config
from .core import InvalidIdentifierError, validate_message_id, validate_session_id
from .export import history_entry_to_dict, message_to_dict, session_to_dict
from .history import HistorySearch

logger = logging.getLogger(__name__)

app = FastAPI(title="oc-history", version="0.1.0")

# History service cache (populated on first request)
_history: HistorySearch | None = None


def configure(history: HistorySearch | None) -> None:
    """Use an explicitly configured history service (None resets to lazy)."""
    global _history
    _history = history


def _get_history() -> HistorySearch:
    """Lazily build and cache the history service from the environment."""
    global _history
    if _history is None:
        config = load_config()
        _history = HistorySearch(config)
        logger.info("Reading OpenCode storage from %s", config.storage_root)
    return _history


def _require_session_id(session_id: str) -> str:
    try:
        return validate_session_id(session_id)
    except InvalidIdentifierError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _require_message_id(message_id: str) -> str:
    try:
        return validate_message_id(message_id)
    except InvalidIdentifierError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/sessions")
def get_sessions(limit: int = Query(10, ge=1, le=1000)):
    """Return the most recently modified sessions."""
    sessions = _get_history().list_recent_sessions(limit)
    return {
        "total": len(sessions),
        "sessions": [session_to_dict(s) for s in sessions],
    }


@app.get("/api/sessions/{session_id}/messages")
def get_session_messages(session_id: str):
    """Return messages with file changes, newest first."""
    _require_session_id(session_id)
    messages = _get_history().get_session_messages(session_id)
    return {
        "session_id": session_id,
        "messages": [message_to_dict(m) for m in messages],
    }


@app.get("/api/messages/{message_id}/diff")
def get_message_diff(
    message_id: str,
    path: str | None = Query(None, description="Limit the diff to one file"),
):
    """Return the diff recorded for a message."""
    _require_message_id(message_id)
    diff = _get_history().get_message_diff(message_id, path)
    if diff is None:
        raise HTTPException(status_code=404, detail="No diff available for this message")
    return {"message_id": message_id, "path": path, "diff": diff}


@app.get("/api/messages/{message_id}/tools")
def get_message_tools(message_id: str):
    """Return the tools a message called."""
    _require_message_id(message_id)
    return {"message_id": message_id, "tools": _get_history().tools_used(message_id)}


@app.get("/api/file-history")
def get_file_history(
    path: str = Query(..., min_length=1, description="Project-relative file path"),
    limit: int = Query(10, ge=1, le=1000, description="Number of recent sessions to search"),
):
    """Return every recent message that changed ``path``."""
    entries = _get_history().file_history(path, limit)
    return {
        "path": path,
        "entries": [history_entry_to_dict(e) for e in entries],
    }
