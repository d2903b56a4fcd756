"""Platform-aware path resolution for OpenCode's data directories."""

import os
import sys
from dataclasses import dataclass
from pathlib import Path


def get_opencode_data_path() -> Path:
    """Return OpenCode's data directory (holds storage/ and snapshot/)."""
    env = os.environ.get("OC_HISTORY_DATA_PATH")
    if env:
        return Path(env)

    if sys.platform == "win32":
        return Path(os.environ.get("USERPROFILE", "")) / ".local" / "share" / "opencode"
    else:  # macOS and Linux
        return Path.home() / ".local" / "share" / "opencode"


def get_storage_path() -> Path:
    """Return the path to OpenCode's storage directory (message/, part/, session/)."""
    env = os.environ.get("OC_HISTORY_STORAGE_PATH")
    if env:
        return Path(env)

    return get_opencode_data_path() / "storage"


def get_snapshot_path() -> Path:
    """Return the directory holding one snapshot git dir per project."""
    env = os.environ.get("OC_HISTORY_SNAPSHOT_PATH")
    if env:
        return Path(env)

    return get_opencode_data_path() / "snapshot"


def get_git_executable() -> str:
    return os.environ.get("OC_HISTORY_GIT") or "git"


@dataclass(frozen=True)
class HistoryConfig:
    """Storage roots handed to every index, resolver and differ."""

    storage_root: Path
    snapshot_root: Path
    git_executable: str = "git"

    @property
    def message_root(self) -> Path:
        return self.storage_root / "message"

    @property
    def part_root(self) -> Path:
        return self.storage_root / "part"

    @property
    def session_root(self) -> Path:
        return self.storage_root / "session"

    def snapshot_dir(self, project_id: str) -> Path:
        return self.snapshot_root / project_id


def load_config(
    storage_root: Path | None = None,
    snapshot_root: Path | None = None,
    git_executable: str | None = None,
) -> HistoryConfig:
    """Build a config from explicit values, falling back to the environment."""
    return HistoryConfig(
        storage_root=Path(storage_root) if storage_root else get_storage_path(),
        snapshot_root=Path(snapshot_root) if snapshot_root else get_snapshot_path(),
        git_executable=git_executable or get_git_executable(),
    )
