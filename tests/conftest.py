"""Shared test fixtures for oc-history."""

import json
import os
import shutil
import subprocess
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from oc_history.config import HistoryConfig
from oc_history.history import HistorySearch

PROJECT_ID = "proj_abc"
MISSING_HASH = "0123456789abcdef0123456789abcdef01234567"

BASE_TIME = datetime(2025, 1, 22, 8, 0, 0, tzinfo=timezone.utc).timestamp()


def _ms(minutes: int) -> int:
    return int((BASE_TIME + minutes * 60) * 1000)


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def set_mtime(path, minutes: int):
    ts = BASE_TIME + minutes * 60
    os.utime(path, (ts, ts))


def populate_storage(storage, directory: str, hash_111: str, hash_333: str):
    """Write three sessions worth of messages, parts and session metadata.

    ses_AAA (newest): msg_111 patch, msg_222 tools only, msg_999 patch whose
    hash is not in any snapshot.
    ses_BBB: msg_333 patch; its message file has no sessionID.
    ses_CCC (oldest): msg_555 patch, but no session metadata at all.
    """
    write_json(storage / "session" / PROJECT_ID / "ses_AAA.json", {
        "id": "ses_AAA", "title": "Fix a.ts", "projectID": PROJECT_ID, "directory": directory,
    })
    write_json(storage / "session" / PROJECT_ID / "ses_BBB.json", {
        "id": "ses_BBB", "title": "Older work", "projectID": PROJECT_ID, "directory": directory,
    })
    write_json(storage / "session" / "proj_other" / "ses_BBB.json", {
        "id": "ses_BBB", "title": "(no title)", "projectID": PROJECT_ID,
    })

    msg = storage / "message"
    write_json(msg / "ses_AAA" / "msg_111.json", {"id": "msg_111", "sessionID": "ses_AAA", "time": {"created": _ms(30)}})
    write_json(msg / "ses_AAA" / "msg_222.json", {"id": "msg_222", "sessionID": "ses_AAA", "time": {"created": _ms(20)}})
    write_json(msg / "ses_AAA" / "msg_999.json", {"id": "msg_999", "sessionID": "ses_AAA", "time": {"created": _ms(10)}})
    write_json(msg / "ses_BBB" / "msg_333.json", {"id": "msg_333", "time": {"created": _ms(5)}})
    write_json(msg / "ses_CCC" / "msg_555.json", {"id": "msg_555", "sessionID": "ses_CCC", "time": {}})
    write_json(msg / "not_a_session" / "msg_x.json", {"id": "msg_x"})

    part = storage / "part"
    write_json(part / "msg_111" / "prt_001.json", {"type": "step-start", "snapshot": "abc123"})
    write_json(part / "msg_111" / "prt_002.json", {"type": "patch", "hash": hash_111, "files": ["src/a.ts"]})
    write_json(part / "msg_222" / "prt_001.json", {"type": "tool", "tool": "edit"})
    write_json(part / "msg_222" / "prt_002.json", {"type": "tool", "tool": "bash"})
    write_json(part / "msg_222" / "prt_003.json", {"type": "text", "text": "done"})
    write_json(part / "msg_999" / "prt_001.json", {"type": "patch", "hash": MISSING_HASH})
    write_json(part / "msg_333" / "prt_001.json", {"type": "patch", "hash": hash_333})
    (part / "msg_333" / "prt_002.json").write_text("{not json", encoding="utf-8")
    write_json(part / "msg_555" / "prt_001.json", {"type": "patch", "hash": "cccc3333"})

    set_mtime(msg / "ses_AAA" / "msg_111.json", 30)
    set_mtime(msg / "ses_AAA" / "msg_222.json", 20)
    set_mtime(msg / "ses_AAA" / "msg_999.json", 10)
    set_mtime(msg / "ses_AAA", 60)
    set_mtime(msg / "ses_BBB", 40)
    set_mtime(msg / "ses_CCC", 20)
    set_mtime(msg / "not_a_session", 90)


@pytest.fixture
def tmp_opencode_storage(tmp_path):
    """Storage tree with fake hashes and no snapshot repository."""
    storage = tmp_path / "storage"
    populate_storage(storage, "/nonexistent/project", "aaaa1111", "bbbb2222")
    config = HistoryConfig(storage_root=storage, snapshot_root=tmp_path / "snapshot")
    return SimpleNamespace(storage=storage, config=config)


def git(*args, cwd=None):
    return subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True).stdout.strip()


@pytest.fixture
def git_snapshot(tmp_path):
    """A project checkout plus an OpenCode-style snapshot git dir.

    The snapshot records src/a.ts = "one" and src/b.ts = "bee"; the checkout
    has since had a.ts edited to "two", which is the change msg_111 made.
    """
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    (project / "src" / "a.ts").write_text("one\n", encoding="utf-8")
    (project / "src" / "b.ts").write_text("bee\n", encoding="utf-8")

    snapshot_root = tmp_path / "snapshot"
    snapshot_dir = snapshot_root / PROJECT_ID
    snapshot_root.mkdir()
    git("--git-dir", str(snapshot_dir), "init", "--quiet")
    git("--git-dir", str(snapshot_dir), "--work-tree", str(project), "add", "-A")
    tree = git("--git-dir", str(snapshot_dir), "--work-tree", str(project), "write-tree")

    (project / "src" / "a.ts").write_text("two\n", encoding="utf-8")

    storage = tmp_path / "storage"
    populate_storage(storage, str(project), tree, tree)
    config = HistoryConfig(storage_root=storage, snapshot_root=snapshot_root)
    return SimpleNamespace(
        storage=storage,
        snapshot_dir=snapshot_dir,
        project=project,
        tree=tree,
        config=config,
        history=HistorySearch(config),
    )
