"""Tests for the commit plan builder.

Tests cover:
- Date parsing and range validation
- Weekday filtering (0 = Sunday) and probabilistic skipping
- Ordering by (timestamp, sequence_index), including ties
- Entry bounds (day range, time window, skipped weekdays)
- Message placeholders
- Estimate and statistics previews
"""

import random
from datetime import date, datetime, time

import pytest

from backdate.agent.planner import (
    build_plan,
    date_stats,
    estimate_commits,
    get_active_days,
    parse_date,
    render_message,
    validate_date_range,
    weekday_index,
)
from backdate.errors import InvalidRangeError

from conftest import make_config


class FixedRandom(random.Random):
    """Always keeps days and returns the lower bound of every range."""

    def random(self) -> float:
        return 0.99

    def randint(self, a: int, b: int) -> int:
        return a


# =============================================================================
# Dates
# =============================================================================

class TestDateRange:
    def test_accepts_valid_range(self):
        assert validate_date_range("2024-01-01", "2024-12-31") == (date(2024, 1, 1), date(2024, 12, 31))

    def test_accepts_single_day(self):
        assert validate_date_range("2024-06-15", "2024-06-15") == (date(2024, 6, 15), date(2024, 6, 15))

    @pytest.mark.parametrize("value", ["invalid", "2024-13-01", "2024-02-30", "2024/01/01", "24-01-01"])
    def test_rejects_malformed_dates(self, value):
        with pytest.raises(InvalidRangeError):
            parse_date(value)

    def test_rejects_inverted_range(self):
        with pytest.raises(InvalidRangeError, match="must be before or equal"):
            validate_date_range("2024-12-31", "2024-01-01")

    def test_weekday_index_is_sunday_based(self):
        # 2024-01-07 was a Sunday, 2024-01-06 a Saturday
        assert weekday_index(date(2024, 1, 7)) == 0
        assert weekday_index(date(2024, 1, 1)) == 1
        assert weekday_index(date(2024, 1, 6)) == 6

    def test_active_days_skip_weekends(self):
        days = get_active_days("2024-01-01", "2024-01-07", [0, 6])
        assert days == [date(2024, 1, d) for d in range(1, 6)]


# =============================================================================
# Plan
# =============================================================================

class TestBuildPlan:
    def test_one_week_without_weekends(self):
        config = make_config(skip_weekdays=[0, 6], skip_probability=0)
        plan = build_plan(config, random.Random(1))

        assert len(plan) == 5
        assert [entry.timestamp.date() for entry in plan] == [date(2024, 1, d) for d in range(1, 6)]

    def test_inverted_range_raises(self):
        config = make_config(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))
        with pytest.raises(InvalidRangeError):
            build_plan(config, random.Random(0))

    @pytest.mark.parametrize("seed", range(15))
    def test_plan_is_sorted_with_index_tiebreak(self, seed):
        config = make_config(
            end_date=date(2024, 2, 15),
            commits_per_day={"min": 0, "max": 6},
            skip_probability=0.2,
        )
        plan = build_plan(config, random.Random(seed))

        keys = [(entry.timestamp, entry.sequence_index) for entry in plan]
        assert keys == sorted(keys)
        assert sorted(entry.sequence_index for entry in plan) == list(range(len(plan)))

    @pytest.mark.parametrize("seed", range(10))
    def test_entries_respect_range_window_and_skipped_weekdays(self, seed):
        config = make_config(
            start_date=date(2024, 3, 1),
            end_date=date(2024, 3, 31),
            commits_per_day={"min": 1, "max": 4},
            skip_weekdays=[0, 3],
            time_window={"start": "10:30", "end": "11:15"},
        )
        plan = build_plan(config, random.Random(seed))

        assert plan
        for entry in plan:
            assert date(2024, 3, 1) <= entry.timestamp.date() <= date(2024, 3, 31)
            minute = entry.timestamp.time().replace(second=0, microsecond=0)
            assert time(10, 30) <= minute <= time(11, 15)
            assert weekday_index(entry.timestamp.date()) not in (0, 3)

    def test_fixed_count_per_day(self):
        config = make_config(end_date=date(2024, 1, 10), commits_per_day={"min": 3, "max": 3})
        assert len(build_plan(config, random.Random(5))) == 10 * 3

    def test_zero_commits_per_day_gives_empty_plan(self):
        config = make_config(end_date=date(2024, 12, 31), commits_per_day={"min": 0, "max": 0})
        assert build_plan(config, random.Random(5)) == []

    def test_all_days_skipped_gives_empty_plan(self):
        config = make_config(skip_probability=1.0)
        assert build_plan(config, random.Random(5)) == []

    def test_weekday_filter_can_remove_every_day(self):
        config = make_config(start_date=date(2024, 1, 6), end_date=date(2024, 1, 7), skip_weekdays=[0, 6])
        assert build_plan(config) == []

    def test_same_seed_replays_same_plan(self):
        config = make_config(end_date=date(2024, 1, 31), commits_per_day={"min": 0, "max": 5}, skip_probability=0.3)
        assert build_plan(config, random.Random(42)) == build_plan(config, random.Random(42))

    def test_equal_timestamps_keep_generation_order(self):
        config = make_config(
            end_date=date(2024, 1, 2),
            commits_per_day={"min": 3, "max": 3},
            time_window={"start": "12:00", "end": "12:00"},
        )
        plan = build_plan(config, FixedRandom())

        assert [entry.sequence_index for entry in plan] == [0, 1, 2, 3, 4, 5]
        assert plan[0].timestamp == plan[2].timestamp == datetime(2024, 1, 1, 12, 0, 0)

    def test_first_entry_message_uses_one_based_index(self):
        config = make_config(end_date=date(2024, 1, 1), message_template="commit #{{index}}")
        plan = build_plan(config, random.Random(3))

        assert plan[0].sequence_index == 0
        assert plan[0].message == "commit #1"

    def test_index_runs_across_the_whole_plan(self):
        config = make_config(
            end_date=date(2024, 1, 3),
            commits_per_day={"min": 2, "max": 2},
            message_template="{{index}}",
        )
        plan = build_plan(config, random.Random(9))

        assert sorted(int(entry.message) for entry in plan) == [1, 2, 3, 4, 5, 6]
        for entry in plan:
            assert entry.message == str(entry.sequence_index + 1)


# =============================================================================
# Messages
# =============================================================================

class TestRenderMessage:
    timestamp = datetime(2024, 6, 5, 14, 30, 45)

    def test_index_placeholder(self):
        assert render_message("commit #{{index}}", self.timestamp, 41) == "commit #42"

    def test_all_placeholders(self):
        template = "{{date}}|{{datetime}}|{{time}}|{{year}}|{{month}}|{{day}}"
        assert render_message(template, self.timestamp, 0) == (
            "2024-06-05|2024-06-05 14:30:45|14:30:45|2024|06|05"
        )

    def test_repeated_and_unknown_placeholders(self):
        assert render_message("{{date}} {{date}} {{author}}", self.timestamp, 0) == (
            "2024-06-05 2024-06-05 {{author}}"
        )


# =============================================================================
# Previews
# =============================================================================

class TestPreviews:
    def test_estimate_without_skipping(self):
        config = make_config(skip_weekdays=[0, 6], commits_per_day={"min": 1, "max": 5})
        estimate = estimate_commits(config)

        assert (estimate.min, estimate.expected, estimate.max) == (5, 15, 25)

    def test_estimate_applies_skip_probability_as_expectation(self):
        config = make_config(skip_weekdays=[0, 6], commits_per_day={"min": 1, "max": 5}, skip_probability=0.5)
        estimate = estimate_commits(config)

        assert (estimate.min, estimate.expected, estimate.max) == (2, 7, 12)

    @pytest.mark.parametrize(
        "bounds, probability",
        [((0, 0), 0.0), ((0, 50), 0.33), ((3, 7), 0.9), ((7, 7), 0.1), ((1, 2), 1.0)],
    )
    def test_estimate_is_ordered(self, bounds, probability):
        config = make_config(
            end_date=date(2024, 4, 30),
            commits_per_day={"min": bounds[0], "max": bounds[1]},
            skip_probability=probability,
        )
        estimate = estimate_commits(config)
        assert estimate.min <= estimate.expected <= estimate.max

    def test_date_stats(self):
        stats = date_stats(make_config(skip_weekdays=[0, 6], skip_probability=0.2))

        assert stats.total_days == 7
        assert stats.weekdays == 5
        assert stats.weekends == 2
        assert stats.active_days == 5
        assert stats.expected_active_days == pytest.approx(4.0)

    def test_stats_use_same_weekday_filter_as_plan(self):
        config = make_config(end_date=date(2024, 1, 31), skip_weekdays=[1, 2])
        plan = build_plan(config, random.Random(0))
        assert len(plan) == date_stats(config).active_days
