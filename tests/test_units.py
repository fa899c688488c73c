from __future__ import annotations

import pytest

from cgm_insights.units import (
    GlucoseUnit,
    convert_glucose_value,
    detect_glucose_unit,
    display_glucose_value,
    format_glucose_value,
    mgdl_to_mmol,
    mmol_to_mgdl,
    to_mmol,
)


@pytest.mark.parametrize("mmol", [float(x) for x in range(1, 31)])
def test_unit_round_trip(mmol: float) -> None:
    assert mgdl_to_mmol(mmol_to_mgdl(mmol)) == pytest.approx(mmol)


def test_conversion_factor() -> None:
    assert mmol_to_mgdl(5.0) == pytest.approx(90.09)
    assert mgdl_to_mmol(180) == pytest.approx(9.99)


def test_to_mmol_and_display_unit() -> None:
    assert to_mmol(90.09, GlucoseUnit.MG_DL) == pytest.approx(5.0)
    assert to_mmol(5.0, GlucoseUnit.MMOL_L) == 5.0
    assert to_mmol(5.0, None) == 5.0
    assert convert_glucose_value(5.0, GlucoseUnit.MMOL_L) == 5.0
    assert convert_glucose_value(5.0, GlucoseUnit.MG_DL) == pytest.approx(90.09)


def test_formatting() -> None:
    assert format_glucose_value(90.09, GlucoseUnit.MG_DL) == "90"
    assert format_glucose_value(5.0, GlucoseUnit.MMOL_L) == "5.0"
    assert display_glucose_value(10.0, GlucoseUnit.MG_DL) == "180"
    assert display_glucose_value(7.25, GlucoseUnit.MMOL_L) in ("7.2", "7.3")


@pytest.mark.parametrize(
    ("columns", "expected"),
    [
        (("Timestamp", "Glucose Value (mg/dL)"), GlucoseUnit.MG_DL),
        (("Timestamp", "Glucose Value (mmol/L)"), GlucoseUnit.MMOL_L),
        (("Zeitstempel", "Glukosewert (mmol/l)"), GlucoseUnit.MMOL_L),
        (("Timestamp", "Glucose Value"), None),
        (("Timestamp", "Insulin (U)"), None),
    ],
)
def test_detect_glucose_unit(
    columns: tuple[str, ...], expected: GlucoseUnit | None
) -> None:
    assert detect_glucose_unit(columns) is expected
