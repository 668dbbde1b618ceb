"""Shared fixtures for the backdate test suite.

``FakeBackend`` is an in-memory ``VcsBackend`` with failure injection, used by
the engine and preflight tests. ``git_repo`` builds a real throwaway
repository for the git backend and CLI tests.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import subprocess
from datetime import date, datetime
from pathlib import Path
from typing import Callable

import pytest

from backdate.config import get_settings
from backdate.errors import InvalidConfigError, NetworkError, VcsOperationError
from backdate.schemas import CommitInfo, GenerationConfig, RepoStatus
from backdate.tools.base import VcsBackend


class FakeBackend(VcsBackend):
    """In-memory repository.

    Args:
        usable: Whether is_usable() reports a working repository
        initial_commits: Commits present before any generation
        fail_on: 1-based create_commit call numbers that raise
        push_error: Raise NetworkError from push()
    """

    def __init__(
        self,
        usable: bool = True,
        initial_commits: int = 1,
        fail_on: set[int] | None = None,
        push_error: bool = False,
        remote_url: str | None = "git@example.com:me/repo.git",
        is_connected: bool = True,
        dirty: bool = False,
    ):
        self.usable = usable
        self.fail_on = fail_on or set()
        self.push_error = push_error
        self.remote_url = remote_url
        self.is_connected = is_connected
        self.dirty = dirty
        self.commits: list[CommitInfo] = [
            CommitInfo(id=f"init{i}", timestamp=datetime(2020, 1, 1, 12, 0, i), message=f"initial {i}")
            for i in range(initial_commits)
        ]
        self.files: dict[str, list[str]] = {}
        self.create_calls = 0
        self.rollback_calls: list[int] = []
        self.pushed: list[str | None] = []
        self.on_commit: Callable[[int], None] | None = None
        self.gate: asyncio.Event | None = None

    @property
    def repo_path(self) -> str:
        return "/fake/repo"

    async def is_usable(self) -> bool:
        return self.usable

    async def create_commit(self, message, timestamp, path, content) -> str:
        self.create_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.create_calls in self.fail_on:
            raise VcsOperationError("simulated commit failure")

        self.files.setdefault(path, []).append(content)
        commit = CommitInfo(id=f"c{len(self.commits)}", timestamp=timestamp, message=message)
        self.commits.append(commit)
        if self.on_commit:
            self.on_commit(self.create_calls)
        return commit.id

    async def rollback(self, count: int) -> None:
        self.rollback_calls.append(count)
        if count <= 0:
            raise InvalidConfigError("Rollback count must be greater than 0")
        if count >= len(self.commits):
            raise VcsOperationError(f"Cannot roll back {count} commits")
        del self.commits[-count:]

    async def push(self, branch: str | None = None) -> None:
        if self.push_error:
            raise NetworkError("remote rejected")
        self.pushed.append(branch)

    async def recent_commits(self, limit: int = 10) -> list[CommitInfo]:
        return list(reversed(self.commits))[:limit]

    async def commit_count(self) -> int:
        return len(self.commits)

    async def get_status(self) -> RepoStatus:
        if not self.usable:
            return RepoStatus(is_repo=False)
        return RepoStatus(
            is_repo=True,
            current_branch="main",
            has_uncommitted_changes=self.dirty,
            remote_url=self.remote_url,
            is_connected=self.is_connected,
            commit_count=len(self.commits),
        )


def make_config(**overrides) -> GenerationConfig:
    """A one-week config with one commit per day unless overridden."""
    values = {
        "start_date": date(2024, 1, 1),
        "end_date": date(2024, 1, 7),
        "commits_per_day": {"min": 1, "max": 1},
        "message_template": "commit #{{index}} on {{date}}",
        "target_path": ".backdate-log",
    }
    values.update(overrides)
    return GenerationConfig.model_validate(values)


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    """Isolate tests from BACKDATE_* variables in the caller's environment."""
    for key in list(os.environ):
        if key.startswith("BACKDATE_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


def run_git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A git repository with one initial commit."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")

    repo = tmp_path / "repo"
    repo.mkdir()
    run_git(repo, "init")
    run_git(repo, "config", "user.name", "Test User")
    run_git(repo, "config", "user.email", "test@example.com")
    run_git(repo, "config", "commit.gpgsign", "false")
    (repo / "README.md").write_text("# test\n", encoding="utf-8")
    run_git(repo, "add", "README.md")
    run_git(repo, "commit", "-m", "initial commit")
    return repo
