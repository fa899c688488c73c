from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from cgm_insights.config import GlucoseThresholds
from cgm_insights.hypos import (
    HypoStats,
    calculate_hypo_stats,
    detect_hypo_periods,
    format_hypo_duration,
)
from cgm_insights.model import GlucoseReading

START = datetime(2024, 1, 1, 2, 0)


def _series(values: list[float], step_minutes: int = 5) -> list[GlucoseReading]:
    return [
        GlucoseReading(START + timedelta(minutes=i * step_minutes), v)
        for i, v in enumerate(values)
    ]


def test_too_few_readings() -> None:
    assert detect_hypo_periods(_series([3.0, 3.0]), 3.9) == []


def test_two_low_readings_are_not_a_period() -> None:
    assert detect_hypo_periods(_series([5.0, 3.5, 3.5, 5.0, 3.5, 5.0]), 3.9) == []


def test_period_from_first_low_to_first_recovery() -> None:
    readings = _series([6.0, 3.8, 3.5, 3.2, 3.4, 4.5, 4.6, 4.7, 6.0])
    [period] = detect_hypo_periods(readings, 3.9)
    assert period.start == START + timedelta(minutes=5)
    assert period.end == START + timedelta(minutes=25)
    assert period.duration_minutes == 20
    assert period.nadir == 3.2
    assert period.nadir_index == 3
    assert period.nadir_time == START + timedelta(minutes=15)
    assert period.nadir_time_decimal == pytest.approx(2.25)
    assert period.is_severe is False


def test_recovery_needs_offset_above_nadir() -> None:
    # 3.9 is at the threshold but below nadir + 0.6, so it is not a recovery.
    readings = _series([3.5, 3.4, 3.5, 3.9, 3.9, 3.9, 4.1, 4.2, 4.3])
    [period] = detect_hypo_periods(readings, 3.9)
    assert period.end == START + timedelta(minutes=30)


def test_recovery_streak_resets_on_low_reading() -> None:
    readings = _series([3.0, 3.0, 3.0, 5.0, 5.0, 3.5, 5.0, 5.0, 5.0])
    [period] = detect_hypo_periods(readings, 3.9)
    assert period.end == START + timedelta(minutes=30)
    assert period.nadir_index == 2


def test_open_period_ends_at_last_reading() -> None:
    readings = _series([5.0, 3.5, 3.4, 3.3, 3.6])
    [period] = detect_hypo_periods(readings, 3.9, is_severe=True)
    assert period.end == readings[-1].timestamp
    assert period.duration_minutes == 15
    assert period.is_severe is True


def test_two_separate_periods() -> None:
    values = [3.5, 3.5, 3.5, 5.0, 5.0, 5.0, 6.0, 3.0, 3.1, 3.2, 5.0, 5.0, 5.0]
    periods = detect_hypo_periods(_series(values), 3.9)
    assert [p.nadir for p in periods] == [3.5, 3.0]
    assert [p.nadir_index for p in periods] == [2, 7]


def test_hypo_stats_split_severe_by_nadir() -> None:
    values = [3.5, 3.5, 3.5, 5.0, 5.0, 5.0, 6.0, 3.0, 2.8, 3.2, 5.0, 5.0, 5.0]
    stats = calculate_hypo_stats(_series(values), GlucoseThresholds())
    assert stats.total_count == 2
    assert stats.severe_count == 1
    assert stats.non_severe_count == 1
    assert stats.lowest_value == 2.8
    assert stats.longest_duration_minutes == 15
    assert stats.total_duration_minutes == 30
    assert [p.is_severe for p in stats.periods] == [False, True]


def test_hypo_stats_without_hypos() -> None:
    stats = calculate_hypo_stats(_series([6.0] * 10), GlucoseThresholds())
    assert stats == HypoStats()
    assert stats.lowest_value is None


@pytest.mark.parametrize(
    ("minutes", "expected"),
    [
        (0.5, "< 1m"),
        (45, "45m"),
        (120, "2h"),
        (90, "1h 30m"),
        (75.4, "1h 15m"),
    ],
)
def test_format_hypo_duration(minutes: float, expected: str) -> None:
    assert format_hypo_duration(minutes) == expected
