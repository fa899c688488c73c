"""Modelos tipados para lecturas, datasets del ZIP y resultados estadísticos."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

import pandas as pd

from cgm_insights.units import GlucoseUnit


@dataclass(frozen=True)
class GlucoseReading:
    """One glucose measurement, value always in mmol/L."""

    timestamp: datetime
    value: float


class InsulinKind(str, Enum):
    """Insulin delivery kind."""

    BASAL = "basal"
    BOLUS = "bolus"


@dataclass(frozen=True)
class InsulinReading:
    """One insulin delivery event (dose in units, or units/h for basal rates)."""

    timestamp: datetime
    dose: float
    kind: InsulinKind


@dataclass(frozen=True)
class DailyInsulinSummary:
    """Daily totals read from the combined insulin export."""

    day: date
    basal_total: float
    bolus_total: float
    total_insulin: float


@dataclass(frozen=True)
class CsvEntry:
    """One CSV member of an export archive.

    Line 1 is the header/metadata line; from line 2 on the file is a
    regular CSV table, kept as text cells in ``frame``.
    """

    path: str
    name: str
    header_line: str
    columns: tuple[str, ...]
    delimiter: str
    frame: pd.DataFrame = field(default_factory=pd.DataFrame, compare=False, repr=False)
    glucose_unit: GlucoseUnit | None = None

    @property
    def row_count(self) -> int:
        return len(self.frame)


@dataclass(frozen=True)
class Dataset:
    """One logical CSV table after merging same-schema entries."""

    name: str
    rows: int
    columns: tuple[str, ...]
    source_files: tuple[str, ...]
    file_count: int | None = None
    glucose_unit: GlucoseUnit | None = None


@dataclass(frozen=True)
class ParsedHeader:
    """Structured fields found in the archive's metadata line."""

    name: str | None = None
    date_range: str | None = None
    date_range_start: date | None = None
    date_range_end: date | None = None


@dataclass(frozen=True)
class ArchiveMetadata:
    """Validation result and dataset catalog of one archive."""

    is_valid: bool
    datasets: tuple[Dataset, ...] = ()
    header_line: str | None = None
    parsed_header: ParsedHeader = field(default_factory=ParsedHeader)
    error: str | None = None


class RoCCategory(str, Enum):
    """Stability category of a glucose rate of change."""

    GOOD = "good"
    MEDIUM = "medium"
    BAD = "bad"


@dataclass(frozen=True)
class RoCDataPoint:
    """Rate of change at one reading, in mmol/L per minute."""

    timestamp: datetime
    time_of_day_hours: float
    roc: float
    roc_raw: float
    glucose_value: float
    category: RoCCategory

    @property
    def time_label(self) -> str:
        return f"{self.timestamp.hour:02d}:{self.timestamp.minute:02d}"


@dataclass(frozen=True)
class RoCStats:
    """Summary of a RoC series."""

    min_roc: float = 0.0
    max_roc: float = 0.0
    sd_roc: float = 0.0
    good_count: int = 0
    medium_count: int = 0
    bad_count: int = 0
    good_percentage: float = 0.0
    medium_percentage: float = 0.0
    bad_percentage: float = 0.0
    total_count: int = 0


@dataclass(frozen=True)
class AGPTimeSlotStats:
    """Percentile bands of one time-of-day slot across all days."""

    time_slot: str
    count: int
    p10: float = 0.0
    p25: float = 0.0
    p50: float = 0.0
    p75: float = 0.0
    p90: float = 0.0
    min: float = 0.0
    max: float = 0.0


@dataclass(frozen=True)
class QuartileStats:
    min: float
    q25: float
    q50: float
    q75: float
    max: float


class FluxGrade(str, Enum):
    """Letter grade for glucose stability (lower CV is better)."""

    A_PLUS = "A+"
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


@dataclass(frozen=True)
class FluxResult:
    grade: FluxGrade
    score: float
    description: str


@dataclass(frozen=True)
class HighLowIncidents:
    """Number of transitions into each out-of-range zone."""

    low_count: int = 0
    very_low_count: int = 0
    high_count: int = 0
    very_high_count: int = 0


@dataclass(frozen=True)
class BGRIResult:
    """Kovatchev blood glucose risk indices."""

    lbgi: float
    hbgi: float
    bgri: float


@dataclass(frozen=True)
class GlucoseSummary:
    """Every StatsEngine output for one reading sequence."""

    count: int
    days_with_data: int
    mean: float | None
    median: float | None
    sd: float | None
    cv: float | None
    quartiles: QuartileStats | None
    flux: FluxResult | None
    incidents: HighLowIncidents
    unicorns: int
    estimated_hba1c: float | None
    bgri: BGRIResult | None
    j_index: float | None
