"""Detección de hipoglucemias y resumen de episodios.

Un episodio empieza con 3 lecturas seguidas bajo el umbral y termina con
3 lecturas seguidas de recuperación: al menos el umbral y al menos 0.6
mmol/L por encima del nadir del episodio.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime

from cgm_insights.config import GlucoseThresholds
from cgm_insights.model import GlucoseReading

logger = logging.getLogger(__name__)

HYPO_RECOVERY_OFFSET = 0.6
CONSECUTIVE_READINGS_REQUIRED = 3


@dataclass(frozen=True)
class HypoPeriod:
    """One hypoglycaemia episode; ``nadir_index`` points into the input."""

    start: datetime
    end: datetime
    duration_minutes: float
    nadir: float
    nadir_time: datetime
    is_severe: bool
    nadir_index: int
    nadir_time_decimal: float


@dataclass(frozen=True)
class HypoStats:
    """Episode counts and durations (minutes) for one reading sequence."""

    severe_count: int = 0
    non_severe_count: int = 0
    total_count: int = 0
    lowest_value: float | None = None
    longest_duration_minutes: float = 0.0
    total_duration_minutes: float = 0.0
    periods: tuple[HypoPeriod, ...] = field(default_factory=tuple)


def _period(
    readings: Sequence[GlucoseReading],
    start_index: int,
    end_index: int,
    nadir_index: int,
    is_severe: bool,
) -> HypoPeriod:
    start = readings[start_index].timestamp
    end = readings[end_index].timestamp
    nadir_time = readings[nadir_index].timestamp
    return HypoPeriod(
        start=start,
        end=end,
        duration_minutes=(end - start).total_seconds() / 60,
        nadir=readings[nadir_index].value,
        nadir_time=nadir_time,
        is_severe=is_severe,
        nadir_index=nadir_index,
        nadir_time_decimal=nadir_time.hour + nadir_time.minute / 60,
    )


def detect_hypo_periods(
    readings: Sequence[GlucoseReading], threshold: float, is_severe: bool = False
) -> list[HypoPeriod]:
    """Scan readings (sorted by timestamp) for hypoglycaemia episodes.

    Args:
        readings: Glucose readings in mmol/L, oldest first.
        threshold: Value below which a reading counts as low.
        is_severe: Flag stamped on every detected period.

    Returns:
        Episodes in time order. An episode still open at the last reading
        ends there.
    """
    required = CONSECUTIVE_READINGS_REQUIRED
    if len(readings) < required:
        return []

    periods: list[HypoPeriod] = []
    start_index: int | None = None
    nadir_index = -1
    below = 0
    recovered = 0
    for i, reading in enumerate(readings):
        if start_index is None:
            below = below + 1 if reading.value < threshold else 0
            if below >= required:
                start_index = i - (required - 1)
                nadir_index = i
                for j in range(start_index, i):
                    if readings[j].value < readings[nadir_index].value:
                        nadir_index = j
                recovered = 0
            continue

        if reading.value < readings[nadir_index].value:
            nadir_index = i
        recovery = max(threshold, readings[nadir_index].value + HYPO_RECOVERY_OFFSET)
        recovered = recovered + 1 if reading.value >= recovery else 0
        if recovered >= required:
            end_index = i - (required - 1)
            periods.append(_period(readings, start_index, end_index, nadir_index, is_severe))
            start_index = None
            below = recovered = 0

    if start_index is not None:
        periods.append(
            _period(readings, start_index, len(readings) - 1, nadir_index, is_severe)
        )
    logger.debug(f"Detected {len(periods)} hypo period(s) below {threshold}")
    return periods


def calculate_hypo_stats(
    readings: Sequence[GlucoseReading], thresholds: GlucoseThresholds
) -> HypoStats:
    """Episodes below ``thresholds.low``; severe when the nadir is below ``very_low``."""
    periods = tuple(
        replace(p, is_severe=p.nadir < thresholds.very_low)
        for p in detect_hypo_periods(readings, thresholds.low)
    )
    if not periods:
        return HypoStats()
    severe = sum(1 for p in periods if p.is_severe)
    return HypoStats(
        severe_count=severe,
        non_severe_count=len(periods) - severe,
        total_count=len(periods),
        lowest_value=min(p.nadir for p in periods),
        longest_duration_minutes=max(p.duration_minutes for p in periods),
        total_duration_minutes=sum(p.duration_minutes for p in periods),
        periods=periods,
    )


def format_hypo_duration(minutes: float) -> str:
    """``"< 1m"``, ``"45m"``, ``"2h"`` or ``"1h 30m"``."""
    if minutes < 1:
        return "< 1m"
    hours = math.floor(minutes / 60)
    mins = round(minutes % 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"
