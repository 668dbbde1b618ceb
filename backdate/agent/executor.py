"""Commit execution engine.

Applies a freshly built plan to a repository one commit at a time:

    preflight (is_usable) -> build plan -> commit loop -> optional push -> result

Per-entry failures are recorded and the loop moves on. Cancellation is a
thread-safe flag checked before each entry, so ``cancel()`` can be called from
a signal handler; at most the in-flight commit completes after it. Rollback
undoes exactly the commits the last run applied.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field

from backdate.agent.planner import build_plan, date_stats, estimate_commits
from backdate.errors import BackdateError, GenerationCancelled, InvalidConfigError, NotARepositoryError
from backdate.schemas import (
    CommitEstimate,
    DateStats,
    GenerationConfig,
    GenerationResult,
    PlanEntry,
    ProgressCallback,
)
from backdate.tools.base import VcsBackend


logger = logging.getLogger(__name__)

EMPTY_PLAN_NOTE = "No commits to generate based on the configuration"


# =============================================================================
# State Definition
# =============================================================================

@dataclass
class ExecutionState:
    """Mutable bookkeeping for a single generation run.

    Attributes:
        applied_count: Plan entries committed so far in this run
        cancelled: Set once when cancellation is requested, never cleared
        errors: Per-entry failure descriptions, append-only
    """
    applied_count: int = 0
    cancelled: threading.Event = field(default_factory=threading.Event)
    errors: list[str] = field(default_factory=list)


def render_content(entry: PlanEntry) -> str:
    """One-line record appended to the target file for an entry."""
    return f"[{entry.timestamp:%Y-%m-%d %H:%M:%S}] Commit #{entry.sequence_index + 1}: {entry.message}"


# =============================================================================
# Engine
# =============================================================================

class CommitEngine:
    """Builds plans and applies them to a repository through a ``VcsBackend``."""

    def __init__(self, backend: VcsBackend, rng: random.Random | None = None):
        self.backend = backend
        self._rng = rng
        self._state: ExecutionState | None = None
        self._run_lock = threading.Lock()

    @property
    def applied_count(self) -> int:
        """Commits applied by the current or last run."""
        return self._state.applied_count if self._state else 0

    @property
    def is_cancelled(self) -> bool:
        return bool(self._state and self._state.cancelled.is_set())

    def plan(self, config: GenerationConfig) -> list[PlanEntry]:
        return build_plan(config, self._rng)

    def estimate(self, config: GenerationConfig) -> CommitEstimate:
        return estimate_commits(config)

    def stats(self, config: GenerationConfig) -> DateStats:
        return date_stats(config)

    def cancel(self) -> None:
        """Request that the running generation stop before its next commit.

        Idempotent and non-blocking; safe to call from a signal handler.
        """
        state = self._state
        if state is not None:
            state.cancelled.set()

    async def generate(
        self,
        config: GenerationConfig,
        on_progress: ProgressCallback | None = None,
        plan: list[PlanEntry] | None = None,
    ) -> GenerationResult:
        """Run one generation.

        Args:
            config: Generation parameters
            on_progress: Called with (attempted, total, message) after each entry
            plan: Previously built plan to apply (built fresh if None)

        Returns:
            GenerationResult with counts, duration and per-entry errors

        Raises:
            NotARepositoryError: If the backend is not usable (nothing changed)
            InvalidRangeError: If the date range is invalid (nothing changed)
            GenerationCancelled: If cancel() stopped the run
            RuntimeError: If another run is already active on this engine
        """
        if not self._run_lock.acquire(blocking=False):
            raise RuntimeError("A generation run is already in progress on this engine")

        try:
            return await self._generate(config, on_progress, plan)
        finally:
            self._run_lock.release()

    async def _generate(
        self,
        config: GenerationConfig,
        on_progress: ProgressCallback | None,
        plan: list[PlanEntry] | None,
    ) -> GenerationResult:
        start = time.perf_counter()
        state = ExecutionState()
        self._state = state

        if not await self.backend.is_usable():
            raise NotARepositoryError(f'"{self.backend.repo_path}" is not a Git repository')

        if plan is None:
            plan = self.plan(config)
        total = len(plan)

        if not plan:
            logger.info("Plan is empty, nothing to commit")
            return GenerationResult(
                total_planned=0,
                applied_count=0,
                duration_seconds=time.perf_counter() - start,
                start_date=config.start_date,
                end_date=config.end_date,
                notes=[EMPTY_PLAN_NOTE],
            )

        logger.info(f"Generating {total} commits in {self.backend.repo_path}")

        for position, entry in enumerate(plan, 1):
            if state.cancelled.is_set():
                logger.warning(f"Cancelled after {state.applied_count} of {total} commits")
                raise GenerationCancelled(state.applied_count, total, state.errors)

            try:
                await self.backend.create_commit(
                    entry.message,
                    entry.timestamp,
                    config.target_path,
                    render_content(entry),
                )
            except BackdateError as e:
                state.errors.append(f"Failed to create commit {position}: {e}")
                logger.warning(f"Commit {position}/{total} failed: {e}")
                if on_progress:
                    on_progress(position, total, f"Error: {e}")
                continue

            state.applied_count += 1
            logger.debug(f"Committed {position}/{total}: {entry.message}")
            if on_progress:
                on_progress(
                    position,
                    total,
                    f"Committed: {entry.message} ({entry.timestamp:%Y-%m-%d %H:%M:%S})",
                )

        pushed = False
        if config.auto_push and state.applied_count > 0:
            try:
                await self.backend.push(config.branch)
                pushed = True
            except BackdateError as e:
                state.errors.append(f"Failed to push: {e}")
                logger.warning(f"Push failed: {e}")

        result = GenerationResult(
            total_planned=total,
            applied_count=state.applied_count,
            duration_seconds=time.perf_counter() - start,
            start_date=config.start_date,
            end_date=config.end_date,
            errors=list(state.errors),
            pushed=pushed,
        )
        logger.info(
            f"Generation finished: {result.applied_count}/{total} commits, "
            f"{len(result.errors)} errors, outcome={result.outcome.value}"
        )
        return result

    async def rollback(self, count: int | None = None) -> int:
        """Discard commits from the repository history.

        Args:
            count: Commits to discard (defaults to the last run's applied count)

        Returns:
            The number of commits discarded

        Raises:
            InvalidConfigError: If the count is zero or negative
            VcsOperationError: If the backend cannot discard that many commits
        """
        if count is None:
            count = self.applied_count
        if count <= 0:
            raise InvalidConfigError(f"Rollback count must be greater than 0 (got {count})")

        await self.backend.rollback(count)
        if self._state is not None:
            self._state.applied_count = 0
        logger.info(f"Rolled back {count} commits")
        return count
