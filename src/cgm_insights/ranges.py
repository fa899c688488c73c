"""Clasificación de glucosa por rangos y tiempo en rango (TIR)."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from cgm_insights.config import CategoryMode, GlucoseThresholds
from cgm_insights.model import GlucoseReading

TIR_PERIOD_DAYS: tuple[int, ...] = (90, 28, 14, 7, 3)


class RangeCategory(str, Enum):
    VERY_LOW = "veryLow"
    LOW = "low"
    IN_RANGE = "inRange"
    HIGH = "high"
    VERY_HIGH = "veryHigh"


@dataclass(frozen=True)
class RangeStats:
    """Reading counts per range category."""

    low: int = 0
    in_range: int = 0
    high: int = 0
    total: int = 0
    very_low: int | None = None
    very_high: int | None = None

    def percentages(self) -> dict[str, float]:
        """Percentage per category, one decimal."""
        out = {
            RangeCategory.LOW.value: calculate_percentage(self.low, self.total),
            RangeCategory.IN_RANGE.value: calculate_percentage(self.in_range, self.total),
            RangeCategory.HIGH.value: calculate_percentage(self.high, self.total),
        }
        if self.very_low is not None:
            out[RangeCategory.VERY_LOW.value] = calculate_percentage(
                self.very_low, self.total
            )
        if self.very_high is not None:
            out[RangeCategory.VERY_HIGH.value] = calculate_percentage(
                self.very_high, self.total
            )
        return out


@dataclass(frozen=True)
class HourlyRangeStats:
    hour: int
    hour_label: str
    stats: RangeStats


@dataclass(frozen=True)
class PeriodRangeStats:
    period: str
    days: int
    stats: RangeStats


def categorize_glucose(
    value: float,
    thresholds: GlucoseThresholds,
    mode: CategoryMode = CategoryMode.THREE,
) -> RangeCategory:
    """Range category of one value (mmol/L).

    Args:
        value: Glucose value in mmol/L.
        thresholds: Range limits in mmol/L.
        mode: 3 or 5 categories.

    Returns:
        The category; the in-range band includes both limits.
    """
    if mode == CategoryMode.FIVE:
        if value < thresholds.very_low:
            return RangeCategory.VERY_LOW
        if value < thresholds.low:
            return RangeCategory.LOW
        if value <= thresholds.high:
            return RangeCategory.IN_RANGE
        if value <= thresholds.very_high:
            return RangeCategory.HIGH
        return RangeCategory.VERY_HIGH

    if value < thresholds.low:
        return RangeCategory.LOW
    if value <= thresholds.high:
        return RangeCategory.IN_RANGE
    return RangeCategory.HIGH


def calculate_percentage(count: int, total: int) -> float:
    """``count / total`` as a percentage with one decimal (0 if total is 0)."""
    if total == 0:
        return 0.0
    return round(count / total * 100, 1)


def calculate_range_stats(
    readings: Sequence[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: CategoryMode = CategoryMode.THREE,
) -> RangeStats:
    """Count readings per category."""
    counts = Counter(categorize_glucose(r.value, thresholds, mode) for r in readings)
    five = mode == CategoryMode.FIVE
    return RangeStats(
        low=counts[RangeCategory.LOW],
        in_range=counts[RangeCategory.IN_RANGE],
        high=counts[RangeCategory.HIGH],
        total=len(readings),
        very_low=counts[RangeCategory.VERY_LOW] if five else None,
        very_high=counts[RangeCategory.VERY_HIGH] if five else None,
    )


def calculate_hourly_tir(
    readings: Sequence[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: CategoryMode = CategoryMode.THREE,
) -> list[HourlyRangeStats]:
    """Range stats for each hour of the day (24 buckets)."""
    buckets: list[list[GlucoseReading]] = [[] for _ in range(24)]
    for reading in readings:
        buckets[reading.timestamp.hour].append(reading)
    return [
        HourlyRangeStats(
            hour=hour,
            hour_label=f"{hour:02d}:00",
            stats=calculate_range_stats(bucket, thresholds, mode),
        )
        for hour, bucket in enumerate(buckets)
    ]


def calculate_tir_by_periods(
    readings: Sequence[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: CategoryMode = CategoryMode.THREE,
    reference: datetime | None = None,
) -> list[PeriodRangeStats]:
    """Range stats over the last 90/28/14/7/3 days that fit in the data span."""
    if not readings:
        return []
    first = min(r.timestamp for r in readings)
    last = reference or max(r.timestamp for r in readings)
    span = last - first
    total_days = span.days + (1 if span - timedelta(days=span.days) else 0)

    out: list[PeriodRangeStats] = []
    for days in TIR_PERIOD_DAYS:
        if days > total_days:
            continue
        cutoff = last - timedelta(days=days)
        window = [r for r in readings if cutoff <= r.timestamp <= last]
        out.append(
            PeriodRangeStats(
                period=f"{days} days",
                days=days,
                stats=calculate_range_stats(window, thresholds, mode),
            )
        )
    return out


def convert_percentage_to_time(total_readings: int, actual_readings: int) -> str:
    """Share of a day as ``"6h"``, ``"45m"`` or ``"1h 10m"`` (5-minute steps)."""
    if total_readings == 0:
        return "0m"
    minutes_per_reading = 24 * 60 / total_readings
    total_minutes = round(actual_readings * minutes_per_reading / 5) * 5
    hours, minutes = divmod(total_minutes, 60)
    if hours == 0:
        return f"{minutes}m"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


WEEKDAY_NAMES: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
WORKDAY = "Workday"
WEEKEND = "Weekend"

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class DayOfWeekRangeStats:
    day: str
    stats: RangeStats


@dataclass(frozen=True)
class DateRangeStats:
    day: date
    stats: RangeStats


@dataclass(frozen=True)
class WeeklyRangeStats:
    """Range stats of one Monday-to-Sunday week."""

    week_label: str
    week_start: date
    week_end: date
    stats: RangeStats


def group_by_day_of_week(
    readings: Sequence[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: CategoryMode = CategoryMode.THREE,
) -> list[DayOfWeekRangeStats]:
    """Range stats for Monday..Sunday, then the Workday and Weekend totals.

    Days without readings are still listed, with zero counts.
    """
    by_day: list[list[GlucoseReading]] = [[] for _ in WEEKDAY_NAMES]
    for reading in readings:
        by_day[reading.timestamp.weekday()].append(reading)
    out = [
        DayOfWeekRangeStats(day=name, stats=calculate_range_stats(bucket, thresholds, mode))
        for name, bucket in zip(WEEKDAY_NAMES, by_day)
    ]
    workdays = [r for bucket in by_day[:5] for r in bucket]
    weekend = [r for bucket in by_day[5:] for r in bucket]
    out.append(DayOfWeekRangeStats(WORKDAY, calculate_range_stats(workdays, thresholds, mode)))
    out.append(DayOfWeekRangeStats(WEEKEND, calculate_range_stats(weekend, thresholds, mode)))
    return out


def group_by_date(
    readings: Sequence[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: CategoryMode = CategoryMode.THREE,
) -> list[DateRangeStats]:
    """Range stats per calendar date with readings, oldest first."""
    by_date: dict[date, list[GlucoseReading]] = {}
    for reading in readings:
        by_date.setdefault(reading.timestamp.date(), []).append(reading)
    return [
        DateRangeStats(day=day, stats=calculate_range_stats(by_date[day], thresholds, mode))
        for day in sorted(by_date)
    ]


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def format_week_range(start: date, end: date) -> str:
    """``"Oct 6-12"``, or ``"Sep 29-Oct 5"`` when the week spans two months."""
    start_month = _MONTHS[start.month - 1]
    if start.month == end.month:
        return f"{start_month} {start.day}-{end.day}"
    return f"{start_month} {start.day}-{_MONTHS[end.month - 1]} {end.day}"


def group_by_week(
    readings: Sequence[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: CategoryMode = CategoryMode.THREE,
) -> list[WeeklyRangeStats]:
    """Range stats per Monday-started week with readings, oldest first."""
    by_week: dict[date, list[GlucoseReading]] = {}
    for reading in readings:
        by_week.setdefault(week_start(reading.timestamp.date()), []).append(reading)
    out: list[WeeklyRangeStats] = []
    for start in sorted(by_week):
        end = start + timedelta(days=6)
        out.append(
            WeeklyRangeStats(
                week_label=format_week_range(start, end),
                week_start=start,
                week_end=end,
                stats=calculate_range_stats(by_week[start], thresholds, mode),
            )
        )
    return out
