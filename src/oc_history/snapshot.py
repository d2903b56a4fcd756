"""Thin wrapper over git for reading OpenCode snapshot repositories.

Snapshot repositories are bare object stores; their work tree is the
project checkout. Every call names the repository with ``--git-dir`` (and
the checkout with ``--work-tree`` when known) instead of relying on cwd.
"""

import logging
import subprocess
from pathlib import Path

from .core import GitResult, is_valid_hash

logger = logging.getLogger(__name__)


class SnapshotDiffer:
    def __init__(self, git_executable: str = "git"):
        self.git_executable = git_executable

    def run_git(self, args: list[str], cwd: Path | None = None, input: str | None = None) -> GitResult:
        """Run git synchronously and capture its output. Never raises."""
        cmd = [self.git_executable, *args]
        try:
            result = subprocess.run(  # noqa: S603
                cmd,
                cwd=cwd,
                input=input,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except OSError as e:
            logger.error("Could not run %s: %s", self.git_executable, e)
            return GitResult(status=127, stderr=str(e))

        if result.returncode != 0:
            logger.debug("git %s exited %d: %s", " ".join(args), result.returncode, result.stderr.strip())
        return GitResult(status=result.returncode, stdout=result.stdout or "", stderr=result.stderr or "")

    def _repo_args(self, snapshot_dir: Path, work_tree: str | Path | None = None) -> list[str]:
        # Paths after "--" name one file exactly, never a glob or pathspec magic
        args = ["--literal-pathspecs", "--git-dir", str(snapshot_dir)]
        if work_tree and Path(work_tree).exists():
            args.extend(["--work-tree", str(work_tree)])
        return args

    def hash_exists(self, snapshot_dir: Path, hash: str) -> bool:
        if not is_valid_hash(hash):
            return False
        return self.run_git(["--git-dir", str(snapshot_dir), "cat-file", "-e", hash]).ok

    def diff(
        self,
        snapshot_dir: Path,
        hash: str,
        work_tree: str | Path | None = None,
        path_filter: str | None = None,
    ) -> GitResult:
        """Unified diff of ``hash`` against the work tree.

        An empty stdout with status 0 means "no differences"; a non-zero
        status is a failed command and is logged, not raised.
        """
        if not is_valid_hash(hash):
            return GitResult(status=128, stderr=f"invalid snapshot hash: {hash!r}")

        args = self._repo_args(snapshot_dir, work_tree)
        args.extend(["diff", hash])
        if path_filter:
            args.extend(["--", path_filter])

        result = self.run_git(args)
        if not result.ok:
            logger.warning("git diff %s failed in %s: %s", hash, snapshot_dir, result.stderr.strip())
        return result

    def changed_paths(self, snapshot_dir: Path, hash: str, work_tree: str | Path | None = None) -> set[str]:
        if not is_valid_hash(hash):
            return set()

        args = self._repo_args(snapshot_dir, work_tree)
        args.extend(["diff", "--name-only", hash])

        result = self.run_git(args)
        if not result.ok:
            logger.warning("git diff --name-only %s failed in %s: %s", hash, snapshot_dir, result.stderr.strip())
            return set()
        return {line for line in result.stdout.splitlines() if line}

    def apply_reverse(self, work_tree: str | Path, patch: str) -> GitResult:
        """Reverse-apply ``patch`` inside ``work_tree``; git apply is all-or-nothing."""
        return self.run_git(["apply", "-R"], cwd=Path(work_tree), input=patch)
