"""Velocidad de cambio (RoC) de la glucosa, suavizado y rachas de estabilidad.

Umbrales en mmol/L por minuto:

- good:   <= 0.06 (aprox. 1 mg/dL/min)
- medium: 0.06 a 0.11 (aprox. 1-2 mg/dL/min)
- bad:    > 0.11
"""

from __future__ import annotations

import math
from bisect import bisect_left, bisect_right
from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from itertools import accumulate

from cgm_insights.model import GlucoseReading, RoCCategory, RoCDataPoint, RoCStats
from cgm_insights.ranges import calculate_percentage

ROC_GOOD_MAX = 0.06
ROC_MEDIUM_MAX = 0.11

MIN_GAP_MINUTES = 1.0
MAX_GAP_MINUTES = 30.0
DEFAULT_SMOOTHING_MINUTES = 15


def categorize_roc(abs_roc: float) -> RoCCategory:
    if abs_roc <= ROC_GOOD_MAX:
        return RoCCategory.GOOD
    if abs_roc <= ROC_MEDIUM_MAX:
        return RoCCategory.MEDIUM
    return RoCCategory.BAD


def calculate_roc(readings: Sequence[GlucoseReading]) -> list[RoCDataPoint]:
    """Rate of change between consecutive readings.

    Readings are sorted by timestamp first. A pair closer than 1 minute or
    further apart than 30 minutes yields no point.

    Args:
        readings: Glucose readings in mmol/L.

    Returns:
        One point per valid pair, stamped with the later reading.
    """
    ordered = sorted(readings, key=lambda r: r.timestamp)
    points: list[RoCDataPoint] = []
    for previous, current in zip(ordered, ordered[1:]):
        minutes = (current.timestamp - previous.timestamp).total_seconds() / 60
        if minutes < MIN_GAP_MINUTES or minutes > MAX_GAP_MINUTES:
            continue
        roc_raw = (current.value - previous.value) / minutes
        abs_roc = abs(roc_raw)
        points.append(
            RoCDataPoint(
                timestamp=current.timestamp,
                time_of_day_hours=current.timestamp.hour + current.timestamp.minute / 60,
                roc=abs_roc,
                roc_raw=roc_raw,
                glucose_value=current.value,
                category=categorize_roc(abs_roc),
            )
        )
    return points


def smooth_roc(
    points: Sequence[RoCDataPoint], window_minutes: float = DEFAULT_SMOOTHING_MINUTES
) -> list[RoCDataPoint]:
    """Moving average over every point within ``window_minutes`` of each point.

    The window slides over the points in time order, using running sums, so
    the cost stays close to linear for months of readings. Output keeps the
    input order. The smoothed magnitude is clamped to >= 0 and re-categorized.
    """
    if not points:
        return []
    window_seconds = window_minutes * 60
    ordered = sorted(points, key=lambda p: p.timestamp)
    origin = ordered[0].timestamp
    seconds = [(p.timestamp - origin).total_seconds() for p in ordered]
    roc_sums = list(accumulate((p.roc for p in ordered), initial=0.0))
    raw_sums = list(accumulate((p.roc_raw for p in ordered), initial=0.0))

    out: list[RoCDataPoint] = []
    for point in points:
        at = (point.timestamp - origin).total_seconds()
        lo = bisect_left(seconds, at - window_seconds)
        hi = bisect_right(seconds, at + window_seconds)
        count = hi - lo
        roc = max(0.0, (roc_sums[hi] - roc_sums[lo]) / count)
        roc_raw = (raw_sums[hi] - raw_sums[lo]) / count
        out.append(replace(point, roc=roc, roc_raw=roc_raw, category=categorize_roc(roc)))
    return out


def longest_category_period(
    points: Sequence[RoCDataPoint], category: RoCCategory
) -> float:
    """Longest run of consecutive ``category`` points, in minutes.

    A run lasts from its first to its last point, so a lone point counts 0.
    """
    longest = 0.0
    run_start: RoCDataPoint | None = None
    run_end: RoCDataPoint | None = None
    for point in points:
        if point.category is category:
            if run_start is None:
                run_start = point
            run_end = point
            continue
        longest = max(longest, _run_minutes(run_start, run_end))
        run_start = run_end = None
    return max(longest, _run_minutes(run_start, run_end))


def _run_minutes(start: RoCDataPoint | None, end: RoCDataPoint | None) -> float:
    if start is None or end is None:
        return 0.0
    return (end.timestamp - start.timestamp).total_seconds() / 60


def calculate_roc_stats(points: Sequence[RoCDataPoint]) -> RoCStats:
    """Min, max, population SD and category shares of a RoC series."""
    if not points:
        return RoCStats()
    values = [p.roc for p in points]
    total = len(values)
    mean = sum(values) / total
    sd = math.sqrt(sum((v - mean) ** 2 for v in values) / total)
    good = sum(1 for p in points if p.category is RoCCategory.GOOD)
    medium = sum(1 for p in points if p.category is RoCCategory.MEDIUM)
    bad = total - good - medium
    return RoCStats(
        min_roc=min(values),
        max_roc=max(values),
        sd_roc=sd,
        good_count=good,
        medium_count=medium,
        bad_count=bad,
        good_percentage=calculate_percentage(good, total),
        medium_percentage=calculate_percentage(medium, total),
        bad_percentage=calculate_percentage(bad, total),
        total_count=total,
    )


def filter_roc_by_date(points: Sequence[RoCDataPoint], day: date) -> list[RoCDataPoint]:
    return [p for p in points if p.timestamp.date() == day]


def unique_roc_dates(points: Sequence[RoCDataPoint]) -> list[date]:
    return sorted({p.timestamp.date() for p in points})


def format_roc_value(roc: float) -> str:
    return f"{roc:.3f}"


def format_duration(minutes: float) -> str:
    """Minutes as ``"45m"``, ``"2h"`` or ``"1h 30m"``."""
    hours, mins = divmod(int(round(minutes)), 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"
