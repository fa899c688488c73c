"""Conversión de filas CSV en lecturas tipadas de glucosa e insulina."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import lru_cache

import pandas as pd
from dateutil import parser as date_parser

from cgm_insights.errors import DegradationReason
from cgm_insights.model import (
    CsvEntry,
    DailyInsulinSummary,
    GlucoseReading,
    InsulinKind,
    InsulinReading,
)
from cgm_insights.results import Degraded, Ok
from cgm_insights.units import GlucoseUnit, to_mmol

logger = logging.getLogger(__name__)


class ColumnField(str, Enum):
    TIMESTAMP = "timestamp"
    GLUCOSE = "glucose"
    INSULIN_DOSE = "insulin_dose"
    TOTAL_BOLUS = "total_bolus"
    TOTAL_BASAL = "total_basal"
    TOTAL_INSULIN = "total_insulin"


# Ordered lower-case header fragments accepted for each field.
COLUMN_ALIASES: dict[ColumnField, tuple[str, ...]] = {
    ColumnField.TIMESTAMP: ("timestamp", "zeitstempel"),
    ColumnField.GLUCOSE: ("glucose", "glukosewert"),
    ColumnField.INSULIN_DOSE: (
        "dose",
        "units",
        "rate",
        "delivered",
        "abgegebenes insulin",
    ),
    ColumnField.TOTAL_BOLUS: ("total bolus", "bolus gesamt"),
    ColumnField.TOTAL_BASAL: ("total basal", "basal gesamt"),
    ColumnField.TOTAL_INSULIN: ("total insulin", "insulin gesamt"),
}


class ReadingType(str, Enum):
    GLUCOSE = "glucose"
    INSULIN = "insulin"


@dataclass(frozen=True)
class ColumnMapping:
    """Resolved column positions for one schema (None when absent)."""

    timestamp_index: int | None
    value_index: int | None

    @property
    def missing(self) -> list[str]:
        out = []
        if self.timestamp_index is None:
            out.append("timestamp")
        if self.value_index is None:
            out.append("value")
        return out


def detect_delimiter(header_line: str) -> str:
    """Tab or comma, whichever appears more on the column header line.

    Ties (including no delimiter at all) resolve to tab.
    """
    return "," if header_line.count(",") > header_line.count("\t") else "\t"


def find_column_index(columns: Sequence[str], field: ColumnField) -> int | None:
    """First column, in source order, whose name contains an alias of ``field``."""
    aliases = COLUMN_ALIASES[field]
    for idx, column in enumerate(columns):
        lowered = column.lower().strip()
        if any(alias in lowered for alias in aliases):
            return idx
    return None


@lru_cache(maxsize=128)
def resolve_columns(columns: tuple[str, ...], reading_type: ReadingType) -> ColumnMapping:
    """Resolve timestamp and value columns once per schema."""
    value_field = (
        ColumnField.GLUCOSE
        if reading_type is ReadingType.GLUCOSE
        else ColumnField.INSULIN_DOSE
    )
    return ColumnMapping(
        timestamp_index=find_column_index(columns, ColumnField.TIMESTAMP),
        value_index=find_column_index(columns, value_field),
    )


def parse_timestamp(text: str) -> datetime | None:
    """Parse a timestamp cell; None if it is not a date."""
    try:
        return date_parser.parse(text)
    except (ValueError, OverflowError):
        return None


def _text_column(frame: pd.DataFrame, idx: int | None) -> pd.Series | None:
    if idx is None or idx >= frame.shape[1]:
        return None
    return frame.iloc[:, idx].astype(str).str.strip()


def _numeric_column(frame: pd.DataFrame, idx: int | None) -> pd.Series | None:
    text = _text_column(frame, idx)
    if text is None:
        return None
    return pd.to_numeric(text, errors="coerce")


def parse_glucose_rows(
    frame: pd.DataFrame, unit: GlucoseUnit | None = None
) -> Ok[list[GlucoseReading]] | Degraded[list[GlucoseReading]]:
    """Parse glucose readings, converting mg/dL sources to mmol/L.

    Rows with an unparseable timestamp or a non-numeric or non-positive
    value are dropped.

    Args:
        frame: Table of one file, text cells under its column names.
        unit: Source unit of the glucose column (None means mmol/L).

    Returns:
        ``Ok(readings)``, or ``Degraded`` when a required column is missing
        (empty readings) or some rows were dropped.
    """
    mapping = resolve_columns(tuple(frame.columns), ReadingType.GLUCOSE)
    if mapping.timestamp_index is None or mapping.value_index is None:
        return _missing_columns(mapping)

    timestamps = _text_column(frame, mapping.timestamp_index)
    values = _numeric_column(frame, mapping.value_index)
    readings: list[GlucoseReading] = []
    dropped = 0
    for ts_text, value in zip(timestamps, values):
        timestamp = parse_timestamp(ts_text)
        if timestamp is None or pd.isna(value) or value <= 0:
            dropped += 1
            logger.debug(f"Dropping unparsable glucose row: {ts_text!r}")
            continue
        readings.append(GlucoseReading(timestamp=timestamp, value=to_mmol(float(value), unit)))
    return _with_drops(readings, dropped)


def parse_insulin_rows(
    frame: pd.DataFrame, kind: InsulinKind
) -> Ok[list[InsulinReading]] | Degraded[list[InsulinReading]]:
    """Parse insulin doses (or basal rates) tagged with ``kind``.

    Rows with an unparseable timestamp or a non-numeric or negative dose
    are dropped.
    """
    mapping = resolve_columns(tuple(frame.columns), ReadingType.INSULIN)
    if mapping.timestamp_index is None or mapping.value_index is None:
        return _missing_columns(mapping)

    timestamps = _text_column(frame, mapping.timestamp_index)
    doses = _numeric_column(frame, mapping.value_index)
    readings: list[InsulinReading] = []
    dropped = 0
    for ts_text, dose in zip(timestamps, doses):
        timestamp = parse_timestamp(ts_text)
        if timestamp is None or pd.isna(dose) or dose < 0:
            dropped += 1
            logger.debug(f"Dropping unparsable insulin row: {ts_text!r}")
            continue
        readings.append(InsulinReading(timestamp=timestamp, dose=float(dose), kind=kind))
    return _with_drops(readings, dropped)


def parse_daily_insulin_totals(
    frame: pd.DataFrame,
) -> Ok[list[DailyInsulinSummary]] | Degraded[list[DailyInsulinSummary]]:
    """Parse the combined insulin export (one row of totals per day).

    A missing bolus/basal column counts as 0; a missing total column is
    replaced by basal + bolus. Totals are rounded to one decimal.
    """
    columns = tuple(frame.columns)
    ts_idx = find_column_index(columns, ColumnField.TIMESTAMP)
    if ts_idx is None:
        return Degraded([], DegradationReason.MISSING_COLUMN, "timestamp")
    zeros = pd.Series(0.0, index=frame.index)
    bolus = _totals_column(frame, find_column_index(columns, ColumnField.TOTAL_BOLUS), zeros)
    basal = _totals_column(frame, find_column_index(columns, ColumnField.TOTAL_BASAL), zeros)
    total = _totals_column(
        frame, find_column_index(columns, ColumnField.TOTAL_INSULIN), basal + bolus
    )

    out: list[DailyInsulinSummary] = []
    dropped = 0
    for ts_text, bo, ba, to in zip(_text_column(frame, ts_idx), bolus, basal, total):
        timestamp = parse_timestamp(ts_text)
        if timestamp is None:
            dropped += 1
            continue
        out.append(
            DailyInsulinSummary(
                day=timestamp.date(),
                basal_total=round(float(ba), 1),
                bolus_total=round(float(bo), 1),
                total_insulin=round(float(to), 1),
            )
        )
    return _with_drops(out, dropped)


def _totals_column(frame: pd.DataFrame, idx: int | None, default: pd.Series) -> pd.Series:
    numbers = _numeric_column(frame, idx)
    if numbers is None:
        return default
    return numbers.fillna(0.0)


def parse_dataset_glucose(
    entries: Sequence[CsvEntry],
) -> Ok[list[GlucoseReading]] | Degraded[list[GlucoseReading]]:
    """Parse every source file of a dataset in order and concatenate."""
    return _concat(parse_glucose_rows(e.frame, e.glucose_unit) for e in entries)


def parse_dataset_insulin(
    entries: Sequence[CsvEntry], kind: InsulinKind
) -> Ok[list[InsulinReading]] | Degraded[list[InsulinReading]]:
    """Insulin counterpart of :func:`parse_dataset_glucose`."""
    return _concat(parse_insulin_rows(e.frame, kind) for e in entries)


def _concat(outcomes: Iterable[Ok[list] | Degraded[list]]) -> Ok[list] | Degraded[list]:
    values: list = []
    worst: Degraded[list] | None = None
    for outcome in outcomes:
        values.extend(outcome.value)
        if isinstance(outcome, Degraded) and (
            worst is None or outcome.reason is DegradationReason.MISSING_COLUMN
        ):
            worst = outcome
    if worst is None:
        return Ok(values)
    return Degraded(values, worst.reason, worst.detail)


def _missing_columns(mapping: ColumnMapping) -> Degraded[list]:
    detail = ", ".join(mapping.missing)
    logger.warning(f"Required column(s) not found: {detail}")
    return Degraded([], DegradationReason.MISSING_COLUMN, detail)


def _with_drops(values: list, dropped: int) -> Ok[list] | Degraded[list]:
    if not dropped:
        return Ok(values)
    logger.info(f"Dropped {dropped} unparsable row(s), kept {len(values)}")
    return Degraded(values, DegradationReason.UNPARSABLE_ROW, f"{dropped} rows dropped")
