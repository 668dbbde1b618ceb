"""Commit plan builder.

Turns a ``GenerationConfig`` into an ordered list of ``PlanEntry`` objects:
1. validate and enumerate the inclusive date range
2. drop days whose weekday is skipped
3. drop each remaining day with probability ``skip_probability``
4. draw a commit count per surviving day and a time for every commit
5. render messages, then sort by (timestamp, sequence_index)

Everything here is pure. Randomness comes from an injected ``random.Random``
so that a seeded generator replays the same plan.
"""

from __future__ import annotations

import logging
import math
import random
import re
from datetime import date, datetime, timedelta
from typing import Iterator

from backdate.errors import InvalidRangeError
from backdate.schemas import CommitEstimate, DateStats, GenerationConfig, PlanEntry


logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")

# Sunday-based weekday indices
SUNDAY = 0
SATURDAY = 6
WEEKEND = frozenset({SUNDAY, SATURDAY})


# =============================================================================
# Dates
# =============================================================================

def parse_date(value: date | str, label: str = "date") -> date:
    """Parse a ``YYYY-MM-DD`` string (or pass a ``date`` through).

    Raises:
        InvalidRangeError: If the value is not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise InvalidRangeError(f'Invalid {label}: "{value}"')
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise InvalidRangeError(f'Invalid {label}: "{value}" ({e})') from e


def validate_date_range(start: date | str, end: date | str) -> tuple[date, date]:
    """Parse both bounds and check ``start <= end``."""
    start_date = parse_date(start, "start date")
    end_date = parse_date(end, "end date")
    if start_date > end_date:
        raise InvalidRangeError(
            f"Start date ({start_date}) must be before or equal to end date ({end_date})"
        )
    return start_date, end_date


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in ``[start, end]``."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def weekday_index(day: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def get_active_days(
    start: date | str,
    end: date | str,
    skip_weekdays: list[int] | None = None,
) -> list[date]:
    """All days in the range whose weekday is not skipped."""
    start_date, end_date = validate_date_range(start, end)
    skipped = set(skip_weekdays or [])
    return [day for day in iter_days(start_date, end_date) if weekday_index(day) not in skipped]


# =============================================================================
# Messages
# =============================================================================

def render_message(template: str, timestamp: datetime, sequence_index: int) -> str:
    """Substitute ``{{placeholder}}`` tokens in a message template.

    ``{{index}}`` is 1-based across the whole plan. Unknown placeholders are
    left untouched.
    """
    values = {
        "date": timestamp.strftime("%Y-%m-%d"),
        "datetime": timestamp.strftime("%Y-%m-%d %H:%M:%S"),
        "time": timestamp.strftime("%H:%M:%S"),
        "index": str(sequence_index + 1),
        "year": timestamp.strftime("%Y"),
        "month": timestamp.strftime("%m"),
        "day": timestamp.strftime("%d"),
    }

    def _replace(match: re.Match[str]) -> str:
        return values.get(match.group(1), match.group(0))

    return PLACEHOLDER_PATTERN.sub(_replace, template)


# =============================================================================
# Plan
# =============================================================================

def _random_timestamp(day: date, config: GenerationConfig, rng: random.Random) -> datetime:
    window = config.time_window
    minute_of_day = rng.randint(window.start_minute, window.end_minute)
    return datetime(
        day.year,
        day.month,
        day.day,
        minute_of_day // 60,
        minute_of_day % 60,
        rng.randint(0, 59),
        rng.randint(0, 999_999),
    )


def build_plan(config: GenerationConfig, rng: random.Random | None = None) -> list[PlanEntry]:
    """Build the ordered commit plan for a configuration.

    Args:
        config: Generation parameters
        rng: Random source (a fresh system-seeded generator if None)

    Returns:
        Entries sorted by timestamp, ties broken by sequence_index. Empty when
        no day survives the filters or every day draws zero commits.

    Raises:
        InvalidRangeError: If the date range is malformed or inverted
    """
    rng = rng or random.Random()
    days = get_active_days(config.start_date, config.end_date, config.skip_weekdays)
    bounds = config.commits_per_day

    entries: list[PlanEntry] = []
    for day in days:
        if rng.random() < config.skip_probability:
            continue

        count = rng.randint(bounds.min, bounds.max)
        for _ in range(count):
            timestamp = _random_timestamp(day, config, rng)
            sequence_index = len(entries)
            entries.append(
                PlanEntry(
                    timestamp=timestamp,
                    sequence_index=sequence_index,
                    message=render_message(config.message_template, timestamp, sequence_index),
                )
            )

    entries.sort(key=PlanEntry.sort_key)
    logger.debug(f"Built plan with {len(entries)} entries over {len(days)} candidate days")
    return entries


# =============================================================================
# Previews
# =============================================================================

def estimate_commits(config: GenerationConfig) -> CommitEstimate:
    """Expected/min/max commit totals without sampling.

    Random skipping is applied as an expectation over the active days.
    """
    active = len(get_active_days(config.start_date, config.end_date, config.skip_weekdays))
    effective_days = active * (1 - config.skip_probability)
    bounds = config.commits_per_day

    return CommitEstimate(
        min=math.floor(effective_days * bounds.min),
        expected=math.floor(effective_days * (bounds.min + bounds.max) / 2),
        max=math.floor(effective_days * bounds.max),
    )


def date_stats(config: GenerationConfig) -> DateStats:
    """Day counts for the configured range."""
    all_days = get_active_days(config.start_date, config.end_date)
    skipped = set(config.skip_weekdays)

    weekends = sum(1 for day in all_days if weekday_index(day) in WEEKEND)
    active = sum(1 for day in all_days if weekday_index(day) not in skipped)

    return DateStats(
        total_days=len(all_days),
        weekdays=len(all_days) - weekends,
        weekends=weekends,
        active_days=active,
        expected_active_days=active * (1 - config.skip_probability),
    )
