"""Tests for reverting one file from one message."""

from unittest.mock import patch

from oc_history.core import GitResult, RevertState
from oc_history.history import HistorySearch
from oc_history.revert import RevertExecutor, RevertPlan


def _read(path):
    return path.read_text(encoding="utf-8")


class TestRejected:
    def test_missing_arguments(self, tmp_opencode_storage):
        executor = RevertExecutor(HistorySearch(tmp_opencode_storage.config))
        assert executor.revert_file("", "src/a.ts", lambda d: True).state is RevertState.REJECTED
        assert executor.revert_file("msg_111", "", lambda d: True).state is RevertState.REJECTED

    def test_invalid_message_id(self, tmp_opencode_storage):
        history = HistorySearch(tmp_opencode_storage.config)
        with patch.object(history.differ, "run_git") as run_git:
            outcome = RevertExecutor(history).revert_file("../msg", "src/a.ts", lambda d: True)
        assert outcome.state is RevertState.REJECTED
        assert "Invalid message ID" in outcome.message
        assert outcome.failed_at is RevertState.LOCATED
        run_git.assert_not_called()

    def test_no_patch(self, tmp_opencode_storage):
        outcome = RevertExecutor(HistorySearch(tmp_opencode_storage.config)).revert_file("msg_222", "a", lambda d: True)
        assert outcome.state is RevertState.REJECTED
        assert "No file changes" in outcome.message

    def test_no_project(self, tmp_opencode_storage):
        outcome = RevertExecutor(HistorySearch(tmp_opencode_storage.config)).revert_file("msg_555", "a", lambda d: True)
        assert outcome.state is RevertState.REJECTED
        assert "project ID" in outcome.message

    def test_no_snapshot_dir(self, tmp_opencode_storage):
        outcome = RevertExecutor(HistorySearch(tmp_opencode_storage.config)).revert_file("msg_111", "a", lambda d: True)
        assert outcome.state is RevertState.REJECTED
        assert "Snapshot directory not found" in outcome.message
        assert outcome.failed_at is RevertState.LOCATED

    def test_file_not_modified_in_message(self, git_snapshot):
        confirm_calls = []
        outcome = RevertExecutor(git_snapshot.history).revert_file(
            "msg_111", "src/b.ts", lambda d: confirm_calls.append(d) or True,
        )
        assert outcome.state is RevertState.REJECTED
        assert outcome.message == "File 'src/b.ts' was not modified in message msg_111"
        assert outcome.failed_at is RevertState.VALIDATED
        assert confirm_calls == []

    def test_hash_missing_from_snapshot(self, git_snapshot):
        outcome = RevertExecutor(git_snapshot.history).revert_file("msg_999", "src/a.ts", lambda d: True)
        assert outcome.state is RevertState.REJECTED
        assert "does not contain hash" in outcome.message


class TestApply:
    def test_locate_returns_plan(self, git_snapshot):
        plan = RevertExecutor(git_snapshot.history).locate("msg_111", "src/a.ts")
        assert isinstance(plan, RevertPlan)
        assert plan.hash == git_snapshot.tree
        assert "+two" in plan.diff

    def test_confirmed_revert_restores_pre_edit_content(self, git_snapshot):
        target = git_snapshot.project / "src" / "a.ts"
        shown = []
        outcome = RevertExecutor(git_snapshot.history).revert_file(
            "msg_111", "src/a.ts", lambda d: shown.append(d) or True,
        )
        assert outcome.state is RevertState.APPLIED
        assert outcome.succeeded
        assert outcome.failed_at is None
        assert shown == [outcome.diff]
        assert _read(target) == "one\n"
        assert _read(git_snapshot.project / "src" / "b.ts") == "bee\n"

    def test_declined_revert_changes_nothing(self, git_snapshot):
        target = git_snapshot.project / "src" / "a.ts"
        outcome = RevertExecutor(git_snapshot.history).revert_file("msg_111", "src/a.ts", lambda d: False)
        assert outcome.state is RevertState.CANCELLED
        assert outcome.failed_at is RevertState.CONFIRMED
        assert outcome.diff
        assert _read(target) == "two\n"

    def test_conflicting_edit_fails_without_partial_apply(self, git_snapshot):
        target = git_snapshot.project / "src" / "a.ts"

        def confirm_after_drift(diff_text):
            # The file changes between showing the diff and applying it
            target.write_text("independent\n", encoding="utf-8")
            return True

        outcome = RevertExecutor(git_snapshot.history).revert_file("msg_111", "src/a.ts", confirm_after_drift)
        assert outcome.state is RevertState.FAILED
        assert not outcome.succeeded
        assert outcome.failed_at is RevertState.APPLIED
        assert outcome.remediation
        assert any("git apply -R --reject" in step for step in outcome.remediation)
        assert _read(target) == "independent\n"

    def test_diff_failure_is_reported(self, git_snapshot):
        history = git_snapshot.history
        with patch.object(history.differ, "diff", return_value=GitResult(status=128, stderr="fatal: bad object")):
            outcome = RevertExecutor(history).revert_file("msg_111", "src/a.ts", lambda d: True)
        assert outcome.state is RevertState.FAILED
        assert "fatal: bad object" in outcome.stderr
        assert outcome.failed_at is RevertState.VALIDATED
        assert _read(git_snapshot.project / "src" / "a.ts") == "two\n"
