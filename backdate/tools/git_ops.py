"""Git operations tooling.

``GitBackend`` implements ``VcsBackend`` on top of the ``git`` executable:
- is_usable / get_status: repository checks
- create_commit: append a line, stage it, commit with an explicit date
- rollback: hard reset of the last N commits
- push: push the current branch to the remote
- recent_commits / commit_count: history queries
"""

from __future__ import annotations

import logging
import os
import subprocess
from datetime import datetime

from backdate.config import get_settings
from backdate.errors import InvalidConfigError, NetworkError, VcsOperationError
from backdate.schemas import CommitInfo, RepoStatus
from backdate.tools.base import VcsBackend


logger = logging.getLogger(__name__)

# Separator for `git log` fields; cannot appear in a one-line subject
LOG_FIELD_SEPARATOR = "\x1f"


def is_safe_path(repo_path: str, file_path: str) -> bool:
    """Check if file_path is safely within repo_path."""
    repo_abs = os.path.abspath(repo_path)
    file_abs = os.path.abspath(os.path.join(repo_path, file_path))
    return file_abs.startswith(repo_abs + os.sep)


def format_git_date(timestamp: datetime) -> str:
    """Second-resolution ISO 8601 date accepted by --date and GIT_*_DATE."""
    return timestamp.strftime("%Y-%m-%dT%H:%M:%S")


class GitBackend(VcsBackend):
    """Git repository driven through subprocess calls."""

    def __init__(
        self,
        repo_path: str | None = None,
        remote: str | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self._repo_path = os.path.abspath(repo_path or settings.repo_path)
        self.remote = remote or settings.remote_name
        self.timeout = timeout or settings.git_timeout_seconds
        self.remote_check_timeout = settings.remote_check_timeout_seconds
        self.user_name = settings.git_user_name
        self.user_email = settings.git_user_email

    @property
    def repo_path(self) -> str:
        return self._repo_path

    # =========================================================================
    # Helpers
    # =========================================================================

    def _run(
        self,
        args: list[str],
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command in the repository.

        Raises:
            VcsOperationError: If git is missing or the command times out
        """
        cmd = ["git"]
        if self.user_name:
            cmd += ["-c", f"user.name={self.user_name}"]
        if self.user_email:
            cmd += ["-c", f"user.email={self.user_email}"]
        cmd += args

        run_env = None
        if env:
            run_env = os.environ.copy()
            run_env.update(env)

        logger.debug(f"Running {' '.join(args[:2])} in {self._repo_path}")
        try:
            return subprocess.run(
                cmd,
                cwd=self._repo_path,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
                env=run_env,
            )
        except subprocess.TimeoutExpired as e:
            raise VcsOperationError(
                f"git {args[0]} timed out after {e.timeout} seconds",
                retryable=True,
            ) from e
        except OSError as e:
            raise VcsOperationError(f"Could not run git: {e}") from e

    @staticmethod
    def _stderr(result: subprocess.CompletedProcess[str]) -> str:
        return result.stderr.strip() or result.stdout.strip()

    # =========================================================================
    # Queries
    # =========================================================================

    async def is_usable(self) -> bool:
        if not os.path.isdir(self._repo_path):
            return False
        try:
            result = self._run(["rev-parse", "--git-dir"])
        except VcsOperationError:
            return False
        return result.returncode == 0

    async def current_branch(self) -> str | None:
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        if result.returncode != 0:
            # Unborn branch: HEAD has no commit yet
            result = self._run(["symbolic-ref", "--short", "HEAD"])
            if result.returncode != 0:
                return None
        return result.stdout.strip() or None

    async def commit_count(self) -> int:
        result = self._run(["rev-list", "--count", "HEAD"])
        if result.returncode != 0:
            return 0
        try:
            return int(result.stdout.strip())
        except ValueError:
            return 0

    async def recent_commits(self, limit: int = 10) -> list[CommitInfo]:
        result = self._run([
            "log",
            f"-{limit}",
            f"--format=%h{LOG_FIELD_SEPARATOR}%aI{LOG_FIELD_SEPARATOR}%s",
        ])
        if result.returncode != 0:
            return []

        commits = []
        for line in result.stdout.strip().split("\n"):
            if not line:
                continue
            parts = line.split(LOG_FIELD_SEPARATOR, 2)
            if len(parts) == 3:
                commits.append(CommitInfo(
                    id=parts[0],
                    timestamp=datetime.fromisoformat(parts[1]),
                    message=parts[2],
                ))
        return commits

    async def remote_url(self) -> str | None:
        result = self._run(["remote", "get-url", self.remote])
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    async def get_status(self) -> RepoStatus:
        if not await self.is_usable():
            return RepoStatus(is_repo=False)

        status_result = self._run(["status", "--porcelain"])
        if status_result.returncode != 0:
            raise VcsOperationError(f"Failed to get repository status: {self._stderr(status_result)}")

        remote_url = await self.remote_url()
        is_connected = False
        if remote_url:
            try:
                ls_result = self._run(
                    ["ls-remote", "--heads", self.remote],
                    timeout=self.remote_check_timeout,
                )
                is_connected = ls_result.returncode == 0
            except VcsOperationError:
                is_connected = False

        return RepoStatus(
            is_repo=True,
            current_branch=await self.current_branch(),
            has_uncommitted_changes=bool(status_result.stdout.strip()),
            remote_url=remote_url,
            is_connected=is_connected,
            commit_count=await self.commit_count(),
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    async def create_commit(
        self,
        message: str,
        timestamp: datetime,
        path: str,
        content: str,
    ) -> str:
        if not is_safe_path(self._repo_path, path):
            raise InvalidConfigError(f'Target path "{path}" is outside the repository')

        full_path = os.path.join(self._repo_path, path)
        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            with open(full_path, "a", encoding="utf-8") as f:
                f.write(content + "\n")
        except OSError as e:
            raise VcsOperationError(f"Failed to write {path}: {e}") from e

        add_result = self._run(["add", "--", path])
        if add_result.returncode != 0:
            raise VcsOperationError(f"Failed to stage {path}: {self._stderr(add_result)}")

        git_date = format_git_date(timestamp)
        commit_result = self._run(
            ["commit", "-m", message, "--date", git_date],
            env={"GIT_AUTHOR_DATE": git_date, "GIT_COMMITTER_DATE": git_date},
        )
        if commit_result.returncode != 0:
            raise VcsOperationError(f"Failed to create commit: {self._stderr(commit_result)}")

        hash_result = self._run(["rev-parse", "--short", "HEAD"])
        commit_id = hash_result.stdout.strip()
        logger.debug(f"Created commit {commit_id} at {git_date}")
        return commit_id

    async def rollback(self, count: int) -> None:
        if count <= 0:
            raise InvalidConfigError("Rollback count must be greater than 0")

        total = await self.commit_count()
        if count > total:
            raise VcsOperationError(
                f"Cannot roll back {count} commits: the repository only has {total}"
            )
        if count == total:
            raise VcsOperationError(
                f"Cannot roll back all {total} commits: the root commit cannot be discarded with a reset",
                suggestion="Delete and re-create the branch to discard its entire history.",
            )

        result = self._run(["reset", "--hard", f"HEAD~{count}"])
        if result.returncode != 0:
            raise VcsOperationError(f"Failed to roll back {count} commits: {self._stderr(result)}")
        logger.info(f"Rolled back {count} commits in {self._repo_path}")

    async def push(self, branch: str | None = None) -> None:
        target = branch or await self.current_branch()
        if not target:
            raise NetworkError("Cannot push: no current branch")

        try:
            result = self._run(["push", self.remote, target, "--set-upstream"])
        except VcsOperationError as e:
            raise NetworkError(f"Failed to push to {self.remote}: {e}", retryable=True) from e
        if result.returncode != 0:
            raise NetworkError(f"Failed to push to {self.remote}: {self._stderr(result)}")
        logger.info(f"Pushed {target} to {self.remote}")
