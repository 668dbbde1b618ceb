"""Tests for preflight checks."""

from datetime import date

import pytest

from backdate.agent.preflight import run_preflight

from conftest import FakeBackend, make_config


TODAY = date(2025, 6, 1)


@pytest.mark.asyncio
async def test_healthy_repository_passes(fake_backend):
    result = await run_preflight(fake_backend, make_config(), today=TODAY)

    assert result.passed
    assert result.errors == []
    assert result.warnings == []
    assert all(result.checks.values())


@pytest.mark.asyncio
async def test_not_a_repository_stops_early():
    result = await run_preflight(FakeBackend(usable=False), make_config(), today=TODAY)

    assert not result.passed
    assert result.checks == {"repository": False}
    assert "is not a Git repository" in result.errors[0]


@pytest.mark.asyncio
async def test_inverted_range_is_an_error(fake_backend):
    config = make_config(start_date=date(2024, 3, 1), end_date=date(2024, 2, 1))
    result = await run_preflight(fake_backend, config, today=TODAY)

    assert not result.passed
    assert not result.checks["date_range"]
    assert "must be before or equal" in result.errors[0]


@pytest.mark.asyncio
@pytest.mark.parametrize("target", ["../outside.log", "/tmp/elsewhere.log"])
async def test_target_outside_repository_is_an_error(fake_backend, target):
    result = await run_preflight(fake_backend, make_config(target_path=target), today=TODAY)

    assert not result.passed
    assert not result.checks["target_path"]


@pytest.mark.asyncio
async def test_push_without_remote_is_an_error():
    backend = FakeBackend(remote_url=None, is_connected=False)
    result = await run_preflight(backend, make_config(auto_push=True), today=TODAY)

    assert not result.passed
    assert result.errors == ["Push requested but no remote is configured"]


@pytest.mark.asyncio
async def test_no_remote_is_a_warning_without_push():
    backend = FakeBackend(remote_url=None, is_connected=False)
    result = await run_preflight(backend, make_config(), today=TODAY)

    assert result.passed
    assert not result.checks["remote"]
    assert any("No remote configured" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_unreachable_remote_is_a_warning():
    result = await run_preflight(FakeBackend(is_connected=False), make_config(), today=TODAY)

    assert result.passed
    assert any("Cannot connect to remote" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_uncommitted_changes_are_a_warning():
    result = await run_preflight(FakeBackend(dirty=True), make_config(), today=TODAY)

    assert result.passed
    assert not result.checks["clean_worktree"]
    assert any("uncommitted changes" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_empty_history_is_a_warning():
    result = await run_preflight(FakeBackend(initial_commits=0), make_config(), today=TODAY)

    assert result.passed
    assert not result.checks["history"]
    assert any("no commits yet" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_future_end_date_is_a_warning(fake_backend):
    config = make_config(end_date=date(2025, 6, 2))
    result = await run_preflight(fake_backend, config, today=TODAY)

    assert result.passed
    assert any("in the future" in w for w in result.warnings)
