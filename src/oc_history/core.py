"""Core data models for oc-history."""

import enum
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

NO_TITLE = "(no title)"

SESSION_ID_RE = re.compile(r"ses_[A-Za-z0-9_-]+")
MESSAGE_ID_RE = re.compile(r"[A-Za-z0-9._-]+")
HASH_RE = re.compile(r"[0-9A-Fa-f]{4,64}")


class InvalidIdentifierError(ValueError):
    """Raised when a session or message id is not safe to use."""


@dataclass
class Session:
    """A single agent session, keyed by its message directory."""

    id: str  # "ses_..."
    title: str = NO_TITLE
    modified: Optional[datetime] = None
    message_count: int = 0


@dataclass
class Message:
    """A message that produced a file patch."""

    id: str
    hash: str
    timestamp: Optional[datetime] = None
    has_snapshot: bool = False


@dataclass
class FileHistoryEntry:
    """One edit to a file, found by searching recent sessions."""

    message_id: str
    session_id: str
    session_title: str
    timestamp: Optional[datetime]
    hash: str


# ── Parts ────────────────────────────────────────────────────────


@dataclass
class PatchPart:
    hash: str
    type: str = "patch"


@dataclass
class ToolPart:
    tool: str
    type: str = "tool"


@dataclass
class OtherPart:
    """Any part kind we do not interpret (text, step-start, ...)."""

    type: str


Part = Union[PatchPart, ToolPart, OtherPart]


def parse_part(data: object) -> Optional[Part]:
    """Turn a raw part record into its variant, keyed by ``type``.

    Payload fields are only read under their own tag; a patch without a
    string hash or a tool without a string name degrades to ``OtherPart``.
    """
    if not isinstance(data, dict):
        return None

    part_type = data.get("type")
    if part_type == "patch" and isinstance(data.get("hash"), str):
        return PatchPart(hash=data["hash"])
    if part_type == "tool" and isinstance(data.get("tool"), str):
        return ToolPart(tool=data["tool"])
    return OtherPart(type=part_type if isinstance(part_type, str) else "")


# ── Git / revert results ─────────────────────────────────────────


@dataclass
class GitResult:
    status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.status == 0


class RevertState(enum.Enum):
    LOCATED = "located"
    VALIDATED = "validated"
    CONFIRMED = "confirmed"
    APPLIED = "applied"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class RevertOutcome:
    state: RevertState
    message: str
    diff: str = ""
    stderr: str = ""
    remediation: list[str] = field(default_factory=list)
    # Step that did not complete: LOCATED, VALIDATED, CONFIRMED or APPLIED
    failed_at: Optional[RevertState] = None

    @property
    def succeeded(self) -> bool:
        return self.state is RevertState.APPLIED


# ── Identifier validation ────────────────────────────────────────


def is_valid_session_id(session_id: object) -> bool:
    return isinstance(session_id, str) and bool(SESSION_ID_RE.fullmatch(session_id))


def is_valid_message_id(message_id: object) -> bool:
    if not isinstance(message_id, str) or message_id in (".", ".."):
        return False
    return bool(MESSAGE_ID_RE.fullmatch(message_id))


def is_valid_hash(value: object) -> bool:
    return isinstance(value, str) and bool(HASH_RE.fullmatch(value))


def validate_session_id(session_id: str) -> str:
    if not is_valid_session_id(session_id):
        raise InvalidIdentifierError(f"Invalid session ID format: {session_id!r}")
    return session_id


def validate_message_id(message_id: str) -> str:
    if not is_valid_message_id(message_id):
        raise InvalidIdentifierError(f"Invalid message ID format: {message_id!r}")
    return message_id
