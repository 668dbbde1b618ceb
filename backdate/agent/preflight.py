"""Checks run before a generation touches the repository."""

from __future__ import annotations

import logging
from datetime import date

from backdate.agent.planner import validate_date_range
from backdate.errors import BackdateError
from backdate.schemas import GenerationConfig, PreflightResult
from backdate.tools.base import VcsBackend
from backdate.tools.git_ops import is_safe_path


logger = logging.getLogger(__name__)


async def run_preflight(
    backend: VcsBackend,
    config: GenerationConfig,
    today: date | None = None,
) -> PreflightResult:
    """Validate the repository and configuration before generating.

    Args:
        backend: Repository to check
        config: Generation parameters
        today: Reference date for the future-date warning (defaults to today)

    Returns:
        PreflightResult; ``passed`` is False when any blocking error was found
    """
    today = today or date.today()
    checks: dict[str, bool] = {}
    errors: list[str] = []
    warnings: list[str] = []

    status = await backend.get_status()
    checks["repository"] = status.is_repo
    if not status.is_repo:
        errors.append(f'"{backend.repo_path}" is not a Git repository')
        return PreflightResult(passed=False, checks=checks, errors=errors, warnings=warnings)

    try:
        validate_date_range(config.start_date, config.end_date)
        checks["date_range"] = True
    except BackdateError as e:
        checks["date_range"] = False
        errors.append(str(e))

    checks["target_path"] = is_safe_path(backend.repo_path, config.target_path)
    if not checks["target_path"]:
        errors.append(f'Target path "{config.target_path}" is outside the repository')

    checks["clean_worktree"] = not status.has_uncommitted_changes
    if status.has_uncommitted_changes:
        warnings.append("Repository has uncommitted changes. A rollback will discard them.")

    checks["history"] = status.commit_count > 0
    if status.commit_count == 0:
        warnings.append(
            "Repository has no commits yet. Generated commits could not all be rolled back."
        )

    checks["remote"] = status.remote_url is not None
    if not status.remote_url:
        if config.auto_push:
            errors.append("Push requested but no remote is configured")
        else:
            warnings.append("No remote configured. Commits will only be local.")
    elif not status.is_connected:
        warnings.append("Cannot connect to remote. Push may fail.")

    if config.end_date > today:
        warnings.append("End date is in the future. Future-dated commits may look suspicious.")

    passed = not errors
    logger.debug(f"Preflight {'passed' if passed else 'failed'}: {checks}")
    return PreflightResult(passed=passed, checks=checks, errors=errors, warnings=warnings)
