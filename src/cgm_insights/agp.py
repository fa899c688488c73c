"""Perfil ambulatorio de glucosa (AGP): percentiles por franja horaria."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import pandas as pd

from cgm_insights.config import MINUTES_PER_DAY
from cgm_insights.model import AGPTimeSlotStats, GlucoseReading

AGP_PERCENTILES: tuple[int, ...] = (10, 25, 50, 75, 90)

_WEEKDAYS: dict[str, int] = {
    "Monday": 0,
    "Tuesday": 1,
    "Wednesday": 2,
    "Thursday": 3,
    "Friday": 4,
    "Saturday": 5,
    "Sunday": 6,
}


def calculate_percentile(values: Sequence[float], percentile: float) -> float:
    """Percentile with linear interpolation between closest ranks.

    Args:
        values: Sample (any order).
        percentile: 0-100.

    Returns:
        The interpolated value; 0.0 for an empty sample.
    """
    if len(values) == 0:
        return 0.0
    return float(pd.Series(values, dtype="float64").quantile(percentile / 100))


def format_time_slot(hours: int, minutes: int) -> str:
    return f"{hours:02d}:{minutes:02d}"


def time_slot_index(timestamp: datetime, resolution_minutes: int = 5) -> int:
    """Index of the slot containing the timestamp's time of day."""
    return (timestamp.hour * 60 + timestamp.minute) // resolution_minutes


def time_slot_key(timestamp: datetime, resolution_minutes: int = 5) -> str:
    """``HH:MM`` label of the slot, time of day rounded down."""
    start = time_slot_index(timestamp, resolution_minutes) * resolution_minutes
    return format_time_slot(*divmod(start, 60))


def time_slot_labels(resolution_minutes: int = 5) -> list[str]:
    return [
        format_time_slot(*divmod(start, 60))
        for start in range(0, MINUTES_PER_DAY, resolution_minutes)
    ]


def calculate_agp_stats(
    readings: Sequence[GlucoseReading], resolution_minutes: int = 5
) -> list[AGPTimeSlotStats]:
    """Percentile bands per time-of-day slot, ignoring the calendar date.

    Every slot of the day is returned (288 at 5 minutes); slots without
    readings have ``count=0`` and zero values.

    Args:
        readings: Glucose readings in mmol/L.
        resolution_minutes: Slot width; must divide a day evenly.

    Returns:
        One entry per slot, in time-of-day order.
    """
    if resolution_minutes <= 0 or MINUTES_PER_DAY % resolution_minutes:
        raise ValueError(f"AGP resolution must divide a day evenly: {resolution_minutes}")

    labels = time_slot_labels(resolution_minutes)
    if not readings:
        return [AGPTimeSlotStats(time_slot=label, count=0) for label in labels]

    df = pd.DataFrame(
        {
            "slot": [time_slot_index(r.timestamp, resolution_minutes) for r in readings],
            "value": [r.value for r in readings],
        }
    )
    grouped = df.groupby("slot")["value"]
    summary = grouped.agg(["count", "min", "max"])
    bands = grouped.quantile([p / 100 for p in AGP_PERCENTILES]).unstack()

    out: list[AGPTimeSlotStats] = []
    for idx, label in enumerate(labels):
        if idx not in summary.index:
            out.append(AGPTimeSlotStats(time_slot=label, count=0))
            continue
        row = summary.loc[idx]
        p10, p25, p50, p75, p90 = (float(v) for v in bands.loc[idx].to_list())
        out.append(
            AGPTimeSlotStats(
                time_slot=label,
                count=int(row["count"]),
                p10=p10,
                p25=p25,
                p50=p50,
                p75=p75,
                p90=p90,
                min=float(row["min"]),
                max=float(row["max"]),
            )
        )
    return out


def filter_readings_by_day_of_week(
    readings: Sequence[GlucoseReading], day_filter: str
) -> list[GlucoseReading]:
    """Keep readings of ``All Days``, ``Workday``, ``Weekend`` or one weekday name."""
    if day_filter == "All Days":
        return list(readings)
    if day_filter == "Workday":
        return [r for r in readings if r.timestamp.weekday() < 5]
    if day_filter == "Weekend":
        return [r for r in readings if r.timestamp.weekday() >= 5]
    if day_filter not in _WEEKDAYS:
        raise ValueError(f"Unknown day filter: {day_filter}")
    wanted = _WEEKDAYS[day_filter]
    return [r for r in readings if r.timestamp.weekday() == wanted]


def filter_readings_by_time_range(
    readings: Sequence[GlucoseReading], start_time: str, end_time: str
) -> list[GlucoseReading]:
    """Keep readings between two ``HH:MM`` times (inclusive).

    A range whose start is after its end wraps around midnight. Empty
    bounds disable the filter.
    """
    if not start_time or not end_time:
        return list(readings)
    start = _minutes_of_day(start_time)
    end = _minutes_of_day(end_time)

    def keep(r: GlucoseReading) -> bool:
        minute = r.timestamp.hour * 60 + r.timestamp.minute
        if start <= end:
            return start <= minute <= end
        return minute >= start or minute <= end

    return [r for r in readings if keep(r)]


def _minutes_of_day(text: str) -> int:
    hours, minutes = text.split(":")
    return int(hours) * 60 + int(minutes)
