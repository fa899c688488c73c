from __future__ import annotations

from datetime import date, datetime

import pytest

from cgm_insights.config import GlucoseThresholds
from cgm_insights.daily import (
    DAILY_COLUMNS,
    daily_glucose_summary,
    filter_readings_by_date,
    filter_readings_to_last_n_days,
    readings_to_frame,
    unique_dates,
)
from cgm_insights.model import GlucoseReading

THRESHOLDS = GlucoseThresholds()


def _readings() -> list[GlucoseReading]:
    return [
        GlucoseReading(datetime(2024, 1, 2, 9, 15, 30), 7.0),
        GlucoseReading(datetime(2024, 1, 1, 8, 0), 3.5),
        GlucoseReading(datetime(2024, 1, 1, 20, 0), 9.0),
        GlucoseReading(datetime(2024, 1, 1, 22, 0), 11.5),
        GlucoseReading(datetime(2024, 1, 5, 8, 0), 6.0),
    ]


def test_readings_to_frame_sorted_with_categories() -> None:
    df = readings_to_frame(_readings(), THRESHOLDS)
    assert list(df["glucose_mmol"]) == [3.5, 9.0, 11.5, 7.0, 6.0]
    assert list(df["category"]) == ["low", "inRange", "high", "inRange", "inRange"]
    assert df.iloc[0]["date"] == date(2024, 1, 1)
    assert readings_to_frame([], THRESHOLDS).empty


def test_daily_glucose_summary() -> None:
    summary = daily_glucose_summary(_readings(), THRESHOLDS)
    assert list(summary.columns) == DAILY_COLUMNS
    assert list(summary["date"]) == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 5)]
    first = summary.iloc[0]
    assert first["readings"] == 3
    assert first["min_mmol"] == 3.5
    assert first["max_mmol"] == 11.5
    assert first["mean_mmol"] == 8.0
    assert first["sd_mmol"] == pytest.approx(3.34, abs=0.01)
    assert first["low_pct"] == 33.3
    assert first["in_range_pct"] == 33.3
    assert first["high_pct"] == 33.3
    single = summary.iloc[1]
    assert single["sd_mmol"] == 0.0
    assert single["in_range_pct"] == 100.0


def test_daily_glucose_summary_uses_thresholds() -> None:
    tight = GlucoseThresholds(very_low=3.0, low=4.0, high=8.0, very_high=13.9)
    summary = daily_glucose_summary(_readings(), tight)
    assert summary.iloc[0]["high_pct"] == 66.7
    assert summary.iloc[0]["in_range_pct"] == 0.0


def test_daily_glucose_summary_empty() -> None:
    summary = daily_glucose_summary([], THRESHOLDS)
    assert summary.empty
    assert list(summary.columns) == DAILY_COLUMNS


def test_date_helpers() -> None:
    readings = _readings()
    assert unique_dates(readings) == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 5)]
    assert len(filter_readings_by_date(readings, date(2024, 1, 1))) == 3


def test_filter_to_last_n_days() -> None:
    kept = filter_readings_to_last_n_days(_readings(), 3)
    assert [r.timestamp.day for r in kept] == [2, 5]
    assert filter_readings_to_last_n_days([], 3) == []
    with pytest.raises(ValueError):
        filter_readings_to_last_n_days(_readings(), 0)
