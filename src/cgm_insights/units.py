"""Conversión de glucosa entre mmol/L (almacenamiento) y mg/dL (visualización)."""

from __future__ import annotations

import re
from collections.abc import Sequence
from enum import Enum

MMOL_TO_MGDL = 18.018

_UNIT_IN_PARENS = re.compile(r"\(([^)]+)\)")
_GLUCOSE_HEADER_ALIASES: tuple[str, ...] = ("glucose", "glukosewert")


class GlucoseUnit(str, Enum):
    """Glucose unit; values are stored in mmol/L."""

    MMOL_L = "mmol/L"
    MG_DL = "mg/dL"


def mmol_to_mgdl(mmol_value: float) -> float:
    """Convert mmol/L to mg/dL (unrounded)."""
    return mmol_value * MMOL_TO_MGDL


def mgdl_to_mmol(mgdl_value: float) -> float:
    """Convert mg/dL to mmol/L (unrounded)."""
    return mgdl_value / MMOL_TO_MGDL


def to_mmol(value: float, unit: GlucoseUnit | None) -> float:
    """Canonicalise a source value given its unit (None means mmol/L)."""
    if unit is GlucoseUnit.MG_DL:
        return mgdl_to_mmol(value)
    return value


def convert_glucose_value(mmol_value: float, target_unit: GlucoseUnit) -> float:
    """Convert a stored mmol/L value into the display unit."""
    if target_unit is GlucoseUnit.MG_DL:
        return mmol_to_mgdl(mmol_value)
    return mmol_value


def format_glucose_value(value: float, unit: GlucoseUnit) -> str:
    """Format a value already expressed in ``unit``."""
    if unit is GlucoseUnit.MG_DL:
        return str(round(value))
    return f"{value:.1f}"


def display_glucose_value(mmol_value: float, target_unit: GlucoseUnit) -> str:
    """Convert and format a stored value in one step."""
    return format_glucose_value(convert_glucose_value(mmol_value, target_unit), target_unit)


def detect_glucose_unit(columns: Sequence[str]) -> GlucoseUnit | None:
    """Detect the unit written in parentheses on the glucose column header.

    Args:
        columns: Column names of one CSV file.

    Returns:
        The detected unit, or None when there is no glucose column or no
        recognisable unit in its header.
    """
    header = next(
        (
            c
            for c in columns
            if any(alias in c.lower() for alias in _GLUCOSE_HEADER_ALIASES)
        ),
        None,
    )
    if header is None:
        return None
    match = _UNIT_IN_PARENS.search(header)
    if not match:
        return None
    unit_text = match.group(1).lower().strip()
    if "mg" in unit_text and "dl" in unit_text:
        return GlucoseUnit.MG_DL
    if "mmol" in unit_text:
        return GlucoseUnit.MMOL_L
    return None
