"""Estadísticas de glucosa: tendencia central, dispersión, variabilidad e incidentes."""

from __future__ import annotations

import math
from collections.abc import Sequence

from cgm_insights.agp import calculate_percentile
from cgm_insights.config import (
    DEFAULT_FLUX_GRADES,
    AnalysisSettings,
    CategoryMode,
    FluxGradeBand,
    GlucoseThresholds,
)
from cgm_insights.daily import unique_dates
from cgm_insights.model import (
    BGRIResult,
    FluxResult,
    GlucoseReading,
    GlucoseSummary,
    HighLowIncidents,
    QuartileStats,
)
from cgm_insights.ranges import RangeCategory, categorize_glucose
from cgm_insights.units import MMOL_TO_MGDL, mgdl_to_mmol, mmol_to_mgdl

UNICORN_MMOL = 5.0
UNICORN_TOLERANCE_MMOL = 0.05
UNICORN_100_MGDL_IN_MMOL = mgdl_to_mmol(100)
UNICORN_TOLERANCE_100_MGDL = mgdl_to_mmol(0.5)


def _values(readings: Sequence[GlucoseReading]) -> list[float]:
    return [r.value for r in readings]


def calculate_mean(readings: Sequence[GlucoseReading]) -> float | None:
    if not readings:
        return None
    return sum(_values(readings)) / len(readings)


def calculate_median(readings: Sequence[GlucoseReading]) -> float | None:
    if not readings:
        return None
    values = sorted(_values(readings))
    mid = len(values) // 2
    if len(values) % 2 == 0:
        return (values[mid - 1] + values[mid]) / 2
    return values[mid]


def calculate_standard_deviation(readings: Sequence[GlucoseReading]) -> float | None:
    """Population standard deviation (divides by N)."""
    mean = calculate_mean(readings)
    if mean is None:
        return None
    return math.sqrt(sum((v - mean) ** 2 for v in _values(readings)) / len(readings))


def calculate_quartiles(readings: Sequence[GlucoseReading]) -> QuartileStats | None:
    """Min, quartiles and max with the AGP percentile method."""
    if not readings:
        return None
    values = sorted(_values(readings))
    return QuartileStats(
        min=values[0],
        q25=calculate_percentile(values, 25),
        q50=calculate_percentile(values, 50),
        q75=calculate_percentile(values, 75),
        max=values[-1],
    )


def calculate_cv(readings: Sequence[GlucoseReading]) -> float | None:
    """Coefficient of variation, ``100 * SD / mean``.

    Returns:
        CV in percent, or None with fewer than two readings or a zero mean.
    """
    if len(readings) < 2:
        return None
    mean = calculate_mean(readings)
    sd = calculate_standard_deviation(readings)
    if not mean or sd is None:
        return None
    return sd / mean * 100


def grade_cv(
    cv: float, grades: Sequence[FluxGradeBand] = DEFAULT_FLUX_GRADES
) -> FluxResult:
    """Map a CV onto the first band whose upper bound it does not exceed."""
    for band in grades:
        if cv <= band.max_cv:
            return FluxResult(grade=band.grade, score=cv, description=band.description)
    last = grades[-1]
    return FluxResult(grade=last.grade, score=cv, description=last.description)


def calculate_flux(
    readings: Sequence[GlucoseReading],
    grades: Sequence[FluxGradeBand] = DEFAULT_FLUX_GRADES,
) -> FluxResult | None:
    cv = calculate_cv(readings)
    if cv is None:
        return None
    return grade_cv(cv, grades)


def count_high_low_incidents(
    readings: Sequence[GlucoseReading], thresholds: GlucoseThresholds
) -> HighLowIncidents:
    """Count entries into each out-of-range zone.

    Readings are sorted by time and classified with 5 categories. Moving
    from veryHigh down to high (or veryLow up to low) is not a new incident.
    """
    counts = {category: 0 for category in RangeCategory}
    previous: RangeCategory | None = None
    for reading in sorted(readings, key=lambda r: r.timestamp):
        current = categorize_glucose(reading.value, thresholds, CategoryMode.FIVE)
        if previous is not None and current is not previous:
            if current is RangeCategory.HIGH and previous is not RangeCategory.VERY_HIGH:
                counts[current] += 1
            elif current is RangeCategory.LOW and previous is not RangeCategory.VERY_LOW:
                counts[current] += 1
            elif current in (RangeCategory.VERY_HIGH, RangeCategory.VERY_LOW):
                counts[current] += 1
        previous = current
    return HighLowIncidents(
        low_count=counts[RangeCategory.LOW],
        very_low_count=counts[RangeCategory.VERY_LOW],
        high_count=counts[RangeCategory.HIGH],
        very_high_count=counts[RangeCategory.VERY_HIGH],
    )


def count_unicorns(readings: Sequence[GlucoseReading]) -> int:
    """Readings at 5.0 mmol/L (+/- 0.05) or 100 mg/dL (+/- 0.5 mg/dL)."""
    return sum(
        1
        for r in readings
        if abs(r.value - UNICORN_MMOL) < UNICORN_TOLERANCE_MMOL
        or abs(r.value - UNICORN_100_MGDL_IN_MMOL) < UNICORN_TOLERANCE_100_MGDL
    )


def calculate_estimated_hba1c(mean_mmol: float) -> float:
    """ADA estimate: ``HbA1c % = (mean mmol/L + 2.59) / 1.59``."""
    return (mean_mmol + 2.59) / 1.59


def convert_hba1c_to_mmol_mol(hba1c_percent: float) -> float:
    """NGSP % to IFCC mmol/mol."""
    return (hba1c_percent - 2.15) * 10.929


def calculate_days_with_data(readings: Sequence[GlucoseReading]) -> int:
    return len(unique_dates(readings))


def _risk(glucose_mgdl: float) -> float:
    return (math.log(glucose_mgdl) ** 1.084 - 5.381) * 1.509


def calculate_bgri(readings: Sequence[GlucoseReading]) -> BGRIResult | None:
    """Low/high blood glucose indices (Kovatchev) and their sum."""
    lbgi = hbgi = 0.0
    valid = 0
    for reading in readings:
        mgdl = reading.value * MMOL_TO_MGDL
        if mgdl <= 0:
            continue
        risk = _risk(mgdl)
        if risk < 0:
            lbgi += 10 * risk**2
        else:
            hbgi += 10 * risk**2
        valid += 1
    if valid == 0:
        return None
    lbgi /= valid
    hbgi /= valid
    return BGRIResult(lbgi=lbgi, hbgi=hbgi, bgri=lbgi + hbgi)


def calculate_j_index(readings: Sequence[GlucoseReading]) -> float | None:
    """``0.001 * (mean + SD)^2`` in mg/dL; None with fewer than two readings."""
    if len(readings) < 2:
        return None
    mean = calculate_mean(readings)
    sd = calculate_standard_deviation(readings)
    if not mean or sd is None:
        return None
    return 0.001 * (mmol_to_mgdl(mean) + mmol_to_mgdl(sd)) ** 2


def _average_between_hours(
    readings: Sequence[GlucoseReading], start_hour: int, end_hour: int
) -> float | None:
    window = [r for r in readings if start_hour <= r.timestamp.hour < end_hour]
    return calculate_mean(window)


def calculate_wakeup_average(readings: Sequence[GlucoseReading]) -> float | None:
    """Mean between 06:00 and 09:00."""
    return _average_between_hours(readings, 6, 9)


def calculate_bedtime_average(readings: Sequence[GlucoseReading]) -> float | None:
    """Mean between 21:00 and midnight."""
    return _average_between_hours(readings, 21, 24)


def summarize_glucose(
    readings: Sequence[GlucoseReading], settings: AnalysisSettings
) -> GlucoseSummary:
    """All glucose statistics for one reading sequence."""
    mean = calculate_mean(readings)
    return GlucoseSummary(
        count=len(readings),
        days_with_data=calculate_days_with_data(readings),
        mean=mean,
        median=calculate_median(readings),
        sd=calculate_standard_deviation(readings),
        cv=calculate_cv(readings),
        quartiles=calculate_quartiles(readings),
        flux=calculate_flux(readings, settings.flux_grades),
        incidents=count_high_low_incidents(readings, settings.thresholds),
        unicorns=count_unicorns(readings),
        estimated_hba1c=calculate_estimated_hba1c(mean) if mean is not None else None,
        bgri=calculate_bgri(readings),
        j_index=calculate_j_index(readings),
    )
