"""Resumen diario de lecturas (tabla por fecha con tiempo en rango) y filtros de calendario."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timedelta

import pandas as pd

from cgm_insights.config import CategoryMode, GlucoseThresholds
from cgm_insights.model import GlucoseReading
from cgm_insights.ranges import RangeCategory, categorize_glucose

DAILY_COLUMNS = [
    "date",
    "readings",
    "min_mmol",
    "max_mmol",
    "mean_mmol",
    "sd_mmol",
    "low_pct",
    "in_range_pct",
    "high_pct",
]


def readings_to_frame(
    readings: Sequence[GlucoseReading], thresholds: GlucoseThresholds
) -> pd.DataFrame:
    """One row per reading with its date and 3-way range category, oldest first."""
    df = pd.DataFrame(
        {
            "timestamp": [r.timestamp for r in readings],
            "date": [r.timestamp.date() for r in readings],
            "glucose_mmol": [r.value for r in readings],
            "category": [
                categorize_glucose(r.value, thresholds, CategoryMode.THREE).value
                for r in readings
            ],
        }
    )
    if df.empty:
        return df
    return df.sort_values("timestamp", kind="stable").reset_index(drop=True)


def daily_glucose_summary(
    readings: Sequence[GlucoseReading], thresholds: GlucoseThresholds
) -> pd.DataFrame:
    """Per-date count, min/max/mean/SD (mmol/L) and low/in-range/high shares.

    SD is the population SD. Shares are percentages with one decimal.
    Dates without readings are absent.
    """
    frame = readings_to_frame(readings, thresholds)
    if frame.empty:
        return pd.DataFrame(columns=DAILY_COLUMNS)
    for category, column in (
        (RangeCategory.LOW, "low_pct"),
        (RangeCategory.IN_RANGE, "in_range_pct"),
        (RangeCategory.HIGH, "high_pct"),
    ):
        frame[column] = (frame["category"] == category.value) * 100.0
    g = frame.groupby("date", as_index=False).agg(
        readings=("glucose_mmol", "count"),
        min_mmol=("glucose_mmol", "min"),
        max_mmol=("glucose_mmol", "max"),
        mean_mmol=("glucose_mmol", "mean"),
        sd_mmol=("glucose_mmol", lambda s: s.std(ddof=0)),
        low_pct=("low_pct", "mean"),
        in_range_pct=("in_range_pct", "mean"),
        high_pct=("high_pct", "mean"),
    )
    g[["mean_mmol", "sd_mmol"]] = g[["mean_mmol", "sd_mmol"]].round(2)
    shares = ["low_pct", "in_range_pct", "high_pct"]
    g[shares] = g[shares].round(1)
    return g[DAILY_COLUMNS].sort_values("date").reset_index(drop=True)


def unique_dates(readings: Sequence[GlucoseReading]) -> list[date]:
    """Calendar dates with at least one reading, ascending."""
    return sorted({r.timestamp.date() for r in readings})


def filter_readings_by_date(
    readings: Sequence[GlucoseReading], day: date
) -> list[GlucoseReading]:
    return [r for r in readings if r.timestamp.date() == day]


def filter_readings_to_last_n_days(
    readings: Sequence[GlucoseReading],
    days: int,
    reference: datetime | None = None,
) -> list[GlucoseReading]:
    """Keep readings from the ``days`` days ending at the latest reading.

    Args:
        readings: Glucose readings.
        days: Window length; must be positive.
        reference: End of the window (default: latest timestamp).

    Returns:
        Readings with ``reference - days <= timestamp <= reference``.

    Raises:
        ValueError: If ``days`` is not positive.
    """
    if days <= 0:
        raise ValueError(f"days must be positive: {days}")
    if not readings:
        return []
    end = reference or max(r.timestamp for r in readings)
    start = end - timedelta(days=days)
    return [r for r in readings if start <= r.timestamp <= end]
