"""Undo one message's edit to one file in the live working tree.

Flow: locate the patch and project, check the file was touched by the
message, compute the path-scoped diff once, ask for confirmation, then
reverse-apply that exact diff. Nothing is written before confirmation.
A failed apply is not rolled back; git apply itself applies all hunks or none.
"""

import logging
import shlex
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .core import RevertOutcome, RevertState, is_valid_message_id
from .history import HistorySearch

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


@dataclass
class RevertPlan:
    """Everything resolved for a revert, up to and including the diff."""

    message_id: str
    file_path: str
    hash: str
    snapshot_dir: Path
    project_dir: str
    diff: str


class RevertExecutor:
    def __init__(self, history: HistorySearch):
        self.history = history

    def locate(self, message_id: str, file_path: str) -> RevertPlan | RevertOutcome:
        """Run the LOCATED and VALIDATED steps; returns a plan or the outcome that stopped them."""
        if not message_id or not file_path:
            return _rejected("A message ID and a file path are both required", RevertState.LOCATED)
        if not is_valid_message_id(message_id):
            return _rejected("Invalid message ID format", RevertState.LOCATED)

        hash = self.history.patches.patch_hash(message_id)
        if not hash:
            return _rejected(f"No file changes in message: {message_id}", RevertState.LOCATED)

        location = self.history.snapshot_location(message_id)
        if location is None:
            return _rejected("Could not determine project ID for message", RevertState.LOCATED)
        project_id, snapshot_dir, project_dir = location

        if not snapshot_dir.exists():
            return _rejected(f"Snapshot directory not found for project: {project_id}", RevertState.LOCATED)
        if not project_dir or not Path(project_dir).is_dir():
            return _rejected("Could not find project directory", RevertState.LOCATED)

        differ = self.history.differ
        if not differ.hash_exists(snapshot_dir, hash):
            return _rejected(f"Snapshot does not contain hash: {hash}", RevertState.LOCATED)
        logger.debug("Located %s in %s (project %s)", hash, message_id, project_id)

        if file_path not in differ.changed_paths(snapshot_dir, hash, work_tree=project_dir):
            return _rejected(f"File '{file_path}' was not modified in message {message_id}", RevertState.VALIDATED)

        result = differ.diff(snapshot_dir, hash, work_tree=project_dir, path_filter=file_path)
        if not result.ok:
            return RevertOutcome(
                state=RevertState.FAILED,
                message="Failed to compute diff for file revert",
                stderr=result.stderr,
                failed_at=RevertState.VALIDATED,
            )
        if not result.stdout.strip():
            return _rejected("No changes found to revert for this file", RevertState.VALIDATED)

        return RevertPlan(
            message_id=message_id,
            file_path=file_path,
            hash=hash,
            snapshot_dir=snapshot_dir,
            project_dir=project_dir,
            diff=result.stdout,
        )

    def revert_file(self, message_id: str, file_path: str, confirm: Confirm) -> RevertOutcome:
        """Revert ``file_path`` to its state before ``message_id``.

        ``confirm`` receives the diff about to be reversed and must return
        True for anything to be written.
        """
        plan = self.locate(message_id, file_path)
        if isinstance(plan, RevertOutcome):
            logger.info("Revert of %s in %s rejected: %s", file_path, message_id, plan.message)
            return plan

        if not confirm(plan.diff):
            return RevertOutcome(
                state=RevertState.CANCELLED,
                message="Cancelled",
                diff=plan.diff,
                failed_at=RevertState.CONFIRMED,
            )

        result = self.history.differ.apply_reverse(plan.project_dir, plan.diff)
        if result.ok:
            logger.info("Reverted %s from message %s", file_path, message_id)
            return RevertOutcome(
                state=RevertState.APPLIED,
                message=f"Successfully reverted changes to {file_path}",
                diff=plan.diff,
            )

        logger.warning("Reverse patch for %s did not apply: %s", file_path, result.stderr.strip())
        return RevertOutcome(
            state=RevertState.FAILED,
            message="Failed to apply reverse patch cleanly",
            diff=plan.diff,
            stderr=result.stderr,
            remediation=_remediation(plan),
            failed_at=RevertState.APPLIED,
        )


def _rejected(message: str, failed_at: RevertState) -> RevertOutcome:
    return RevertOutcome(state=RevertState.REJECTED, message=message, failed_at=failed_at)


def _remediation(plan: RevertPlan) -> list[str]:
    diff_cmd = " ".join(shlex.quote(arg) for arg in [
        "git", "--git-dir", str(plan.snapshot_dir), "--work-tree", plan.project_dir,
        "diff", plan.hash, "--", plan.file_path,
    ])
    return [
        "Resolve conflicts manually",
        f"Use: {diff_cmd} | git apply -R --reject",
        "(Creates .rej files for conflicts)",
    ]
