"""CLI para validar una exportación ZIP de glucosa y resumir sus estadísticas."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

from cgm_insights.archive import load_archive
from cgm_insights.config import AnalysisSettings, CategoryMode
from cgm_insights.daily import daily_glucose_summary
from cgm_insights.excel_writer import ExcelLayout, write_archive_xlsx
from cgm_insights.hypos import calculate_hypo_stats, format_hypo_duration
from cgm_insights.model import GlucoseReading, GlucoseSummary, RoCCategory
from cgm_insights.ranges import (
    RangeStats,
    calculate_range_stats,
    group_by_day_of_week,
    group_by_week,
)
from cgm_insights.results import Fail
from cgm_insights.roc import (
    calculate_roc,
    calculate_roc_stats,
    format_duration,
    longest_category_period,
    smooth_roc,
)
from cgm_insights.stats import summarize_glucose
from cgm_insights.storage import SettingsStore
from cgm_insights.units import GlucoseUnit, display_glucose_value

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID_ARCHIVE = 1
EXIT_NO_READINGS = 2


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        description="Validación y estadísticas de una exportación ZIP de glucosa."
    )
    parser.add_argument("archive", help="Archivo ZIP exportado.")
    parser.add_argument(
        "--dataset",
        default="cgm",
        help="Dataset de glucosa a analizar (default: cgm).",
    )
    parser.add_argument(
        "--unit",
        choices=[u.value for u in GlucoseUnit],
        default=None,
        help="Unidad de visualización (default: la guardada o mmol/L).",
    )
    parser.add_argument(
        "--mode",
        type=int,
        choices=[int(m) for m in CategoryMode],
        default=None,
        help="Número de categorías de rango (3 o 5).",
    )
    parser.add_argument(
        "--settings-db",
        default=None,
        help="Base SQLite con la configuración persistida.",
    )
    parser.add_argument("--xlsx", default=None, help="Exportar el ZIP a este XLSX.")
    parser.add_argument(
        "--daily", action="store_true", help="Resumen por fecha (media, SD, TIR)."
    )
    parser.add_argument(
        "--weekly",
        action="store_true",
        help="Tiempo en rango por semana y por día de la semana.",
    )
    parser.add_argument("--verbose", action="store_true", help="Logging DEBUG.")
    return parser.parse_args(argv)


def load_settings(ns: argparse.Namespace) -> AnalysisSettings:
    """Stored settings (or defaults) with command-line overrides applied."""
    if ns.settings_db:
        settings = SettingsStore(Path(ns.settings_db).expanduser()).load_settings()
    else:
        settings = AnalysisSettings()
    if ns.unit is not None:
        settings = replace(settings, unit=GlucoseUnit(ns.unit))
    if ns.mode is not None:
        settings = replace(settings, category_mode=CategoryMode(ns.mode))
    settings.validate()
    return settings


def _print_summary(summary: GlucoseSummary, unit: GlucoseUnit) -> None:
    def show(value: float | None) -> str:
        return "-" if value is None else display_glucose_value(value, unit)

    print(f"OK: Readings: {summary.count} over {summary.days_with_data} days")
    print(f"OK: Mean: {show(summary.mean)} {unit.value}")
    print(f"OK: Median: {show(summary.median)} {unit.value}")
    print(f"OK: SD: {show(summary.sd)} {unit.value}")
    if summary.cv is not None:
        print(f"OK: CV: {summary.cv:.1f}%")
    if summary.flux is not None:
        print(f"OK: Flux grade: {summary.flux.grade.value} ({summary.flux.description})")
    if summary.estimated_hba1c is not None:
        print(f"OK: Estimated HbA1c: {summary.estimated_hba1c:.1f}%")
    incidents = summary.incidents
    print(
        "OK: Incidents: "
        f"very low {incidents.very_low_count}, low {incidents.low_count}, "
        f"high {incidents.high_count}, very high {incidents.very_high_count}"
    )
    print(f"OK: Unicorns: {summary.unicorns}")


def _shares(stats: RangeStats) -> str:
    return ", ".join(f"{k} {v}%" for k, v in stats.percentages().items())


def _print_hypos(readings: Sequence[GlucoseReading], settings: AnalysisSettings) -> None:
    hypos = calculate_hypo_stats(readings, settings.thresholds)
    line = f"OK: Hypos: {hypos.total_count} (severe {hypos.severe_count})"
    if hypos.total_count:
        lowest = display_glucose_value(hypos.lowest_value, settings.unit)
        line += (
            f", lowest {lowest} {settings.unit.value}, "
            f"longest {format_hypo_duration(hypos.longest_duration_minutes)}"
        )
    print(line)


def _print_daily(readings: Sequence[GlucoseReading], settings: AnalysisSettings) -> None:
    unit = settings.unit
    for row in daily_glucose_summary(readings, settings.thresholds).itertuples(index=False):
        print(
            f"OK: Day {row.date.isoformat()}: {row.readings} readings, "
            f"mean {display_glucose_value(row.mean_mmol, unit)} {unit.value}, "
            f"SD {display_glucose_value(row.sd_mmol, unit)}, "
            f"in range {row.in_range_pct}%"
        )


def _print_weekly(readings: Sequence[GlucoseReading], settings: AnalysisSettings) -> None:
    args = (readings, settings.thresholds, settings.category_mode)
    for week in group_by_week(*args):
        print(f"OK: Week {week.week_label}: {_shares(week.stats)}")
    for day in group_by_day_of_week(*args):
        if day.stats.total:
            print(f"OK: {day.day}: {_shares(day.stats)}")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the archive CLI.

    Returns:
        Exit code: 0 on success, 1 for an invalid archive, 2 when the
        selected dataset has no readings.
    """
    ns = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(ns)

    archive_path = Path(ns.archive).expanduser().resolve()
    loaded = load_archive(archive_path.read_bytes())
    if isinstance(loaded, Fail):
        print(f"ERROR: {loaded.error}")
        return EXIT_INVALID_ARCHIVE
    archive = loaded.unwrap()

    print(f"OK: Archive: {archive_path}")
    header = archive.metadata.parsed_header
    if header.name:
        print(f"OK: Name: {header.name}")
    if header.date_range:
        print(f"OK: Date range: {header.date_range}")
    for dataset in archive.datasets:
        files = f" ({dataset.file_count} files)" if dataset.file_count else ""
        print(f"OK: Dataset {dataset.name}: {dataset.rows} rows{files}")

    if ns.xlsx:
        out_path = Path(ns.xlsx).expanduser()
        write_archive_xlsx(archive, out_path, ExcelLayout())
        print(f"OK: Output: {out_path}")

    try:
        outcome = archive.glucose_readings(ns.dataset)
    except KeyError as exc:
        print(f"ERROR: {exc.args[0]}")
        return EXIT_NO_READINGS
    if outcome.is_degraded:
        print(f"WARN: {ns.dataset}: {outcome.reason.value} {outcome.detail}".rstrip())
    readings = outcome.unwrap()
    if not readings:
        print(f"ERROR: No readings in dataset {ns.dataset}")
        return EXIT_NO_READINGS

    _print_summary(summarize_glucose(readings, settings), settings.unit)

    ranges = calculate_range_stats(readings, settings.thresholds, settings.category_mode)
    print(f"OK: Time in range: {_shares(ranges)}")
    _print_hypos(sorted(readings, key=lambda r: r.timestamp), settings)

    points = smooth_roc(calculate_roc(readings), settings.roc_smoothing_minutes)
    roc_stats = calculate_roc_stats(points)
    print(
        "OK: RoC: "
        f"good {roc_stats.good_percentage}%, medium {roc_stats.medium_percentage}%, "
        f"bad {roc_stats.bad_percentage}%"
    )
    stable = longest_category_period(points, RoCCategory.GOOD)
    print(f"OK: Longest stable period: {format_duration(stable)}")

    if ns.daily:
        _print_daily(readings, settings)
    if ns.weekly:
        _print_weekly(readings, settings)
    return EXIT_OK
