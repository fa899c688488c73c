"""Configuración explícita del análisis (umbrales, unidad, modo de categorías)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from cgm_insights.errors import InvalidThresholdsError
from cgm_insights.model import FluxGrade
from cgm_insights.units import GlucoseUnit, to_mmol

MINUTES_PER_DAY = 24 * 60


class CategoryMode(IntEnum):
    """Number of glucose range categories."""

    THREE = 3
    FIVE = 5


@dataclass(frozen=True)
class GlucoseThresholds:
    """Glucose range limits in mmol/L."""

    very_low: float = 3.0
    low: float = 3.9
    high: float = 10.0
    very_high: float = 13.9

    @classmethod
    def from_unit(
        cls,
        very_low: float,
        low: float,
        high: float,
        very_high: float,
        unit: GlucoseUnit,
    ) -> GlucoseThresholds:
        """Build thresholds from values typed in the display unit."""
        return cls(
            very_low=to_mmol(very_low, unit),
            low=to_mmol(low, unit),
            high=to_mmol(high, unit),
            very_high=to_mmol(very_high, unit),
        )

    def validate(self) -> None:
        """Check ``0 < very_low < low < high < very_high``.

        Raises:
            InvalidThresholdsError: With the first rule that is violated.
        """
        if self.very_low <= 0:
            raise InvalidThresholdsError("Very low threshold must be greater than zero")
        if self.low <= self.very_low:
            raise InvalidThresholdsError(
                "Low threshold must be greater than very low threshold"
            )
        if self.high <= self.low:
            raise InvalidThresholdsError("High threshold must be greater than low threshold")
        if self.very_high <= self.high:
            raise InvalidThresholdsError(
                "Very high threshold must be greater than high threshold"
            )


@dataclass(frozen=True)
class FluxGradeBand:
    """CV upper bound (inclusive) for one flux grade."""

    max_cv: float
    grade: FluxGrade
    description: str


DEFAULT_FLUX_GRADES: tuple[FluxGradeBand, ...] = (
    FluxGradeBand(20.0, FluxGrade.A_PLUS, "Extremely steady glucose values"),
    FluxGradeBand(26.0, FluxGrade.A, "Very steady glucose values"),
    FluxGradeBand(33.0, FluxGrade.B, "Reasonably steady glucose values"),
    FluxGradeBand(40.0, FluxGrade.C, "Moderate glucose variability"),
    FluxGradeBand(50.0, FluxGrade.D, "High glucose variability"),
    FluxGradeBand(float("inf"), FluxGrade.F, "Very high glucose variability"),
)


@dataclass(frozen=True)
class AnalysisSettings:
    """Everything the analytics need besides the readings themselves."""

    thresholds: GlucoseThresholds = field(default_factory=GlucoseThresholds)
    unit: GlucoseUnit = GlucoseUnit.MMOL_L
    category_mode: CategoryMode = CategoryMode.THREE
    agp_resolution_minutes: int = 5
    roc_smoothing_minutes: int = 15
    flux_grades: tuple[FluxGradeBand, ...] = DEFAULT_FLUX_GRADES

    def validate(self) -> None:
        """Validate thresholds and grid/window sizes.

        Raises:
            InvalidThresholdsError: If thresholds are inconsistent.
            ValueError: If the AGP resolution does not split a day evenly or
                the smoothing window is not positive.
        """
        self.thresholds.validate()
        res = self.agp_resolution_minutes
        if res <= 0 or MINUTES_PER_DAY % res != 0:
            raise ValueError(f"AGP resolution must divide a day evenly: {res}")
        if self.roc_smoothing_minutes <= 0:
            raise ValueError("RoC smoothing window must be positive")
