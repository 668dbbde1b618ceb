"""Abstract base class for version-control backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from backdate.schemas import CommitInfo, RepoStatus


class VcsBackend(ABC):
    """Interface the commit engine drives.

    Implementations must serialize their own mutating operations: at most one
    commit, reset or push is in flight against a repository at any time.
    """

    @property
    @abstractmethod
    def repo_path(self) -> str:
        """Return the absolute path of the repository."""
        ...

    @abstractmethod
    async def is_usable(self) -> bool:
        """Check that the repository exists and can be operated on."""
        ...

    @abstractmethod
    async def create_commit(
        self,
        message: str,
        timestamp: datetime,
        path: str,
        content: str,
    ) -> str:
        """Append ``content`` to ``path`` and commit it.

        Args:
            message: Commit message
            timestamp: Author and committer date of the new commit
            path: Repository-relative file to append to
            content: Line written before staging

        Returns:
            Identifier of the new commit

        Raises:
            VcsOperationError: On any underlying failure
        """
        ...

    @abstractmethod
    async def rollback(self, count: int) -> None:
        """Discard the ``count`` most recent commits on the current branch.

        Raises:
            InvalidConfigError: If count <= 0
            VcsOperationError: If count exceeds what can be discarded
        """
        ...

    @abstractmethod
    async def push(self, branch: str | None = None) -> None:
        """Push the current (or named) branch to the configured remote.

        Raises:
            NetworkError: On network or authentication failures
        """
        ...

    @abstractmethod
    async def recent_commits(self, limit: int = 10) -> list[CommitInfo]:
        """Return up to ``limit`` commits, newest first."""
        ...

    @abstractmethod
    async def commit_count(self) -> int:
        """Return the number of commits reachable from HEAD."""
        ...

    @abstractmethod
    async def get_status(self) -> RepoStatus:
        """Return a snapshot of the repository state."""
        ...
