from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime

import pytest
from conftest import CGM_COLUMNS, HEADER_LINE, csv_text, glucose_rows

from cgm_insights.archive import (
    GlucoseArchive,
    load_archive,
    parse_csv_content,
    parse_header_line,
    read_entries,
    validate_archive,
)
from cgm_insights.errors import CorruptArchiveError, EmptyArchiveError
from cgm_insights.model import InsulinKind, RoCCategory
from cgm_insights.results import Fail, Ok
from cgm_insights.roc import calculate_roc
from cgm_insights.units import GlucoseUnit

MakeZip = Callable[[dict[str, str | bytes]], bytes]


def test_archive_without_csv_is_invalid(make_zip: MakeZip) -> None:
    data = make_zip({"readme.txt": "hello"})
    meta = validate_archive(data)
    assert meta.is_valid is False
    assert meta.error == "No CSV files found in ZIP archive"
    assert meta.datasets == ()


def test_read_entries_raises_on_empty_archive(make_zip: MakeZip) -> None:
    with pytest.raises(EmptyArchiveError):
        read_entries(make_zip({"readme.txt": "hello"}))


def test_metadata_line_mismatch_is_invalid(make_zip: MakeZip) -> None:
    data = make_zip(
        {
            "cgm_data_1.csv": csv_text(CGM_COLUMNS, glucose_rows(2)),
            "bg_data_1.csv": csv_text(
                CGM_COLUMNS, glucose_rows(2), header_line="Name:Someone Else"
            ),
        }
    )
    meta = validate_archive(data)
    assert meta.is_valid is False
    assert meta.error == "Not all CSV files have the same metadata line"


def test_not_a_zip_is_corrupt() -> None:
    with pytest.raises(CorruptArchiveError):
        read_entries(b"definitely not a zip file")
    meta = validate_archive(b"definitely not a zip file")
    assert meta.is_valid is False
    assert meta.error


def test_split_cgm_files_merge_into_one_dataset(two_part_cgm_zip: bytes) -> None:
    meta = validate_archive(two_part_cgm_zip)
    assert meta.is_valid is True
    names = [d.name for d in meta.datasets]
    assert names == ["bg", "cgm"]

    cgm = meta.datasets[1]
    assert cgm.rows == 25
    assert cgm.file_count == 2
    assert cgm.source_files == ("cgm_data_1.csv", "cgm_data_2.csv")
    assert cgm.glucose_unit is GlucoseUnit.MMOL_L

    bg = meta.datasets[0]
    assert bg.rows == 2
    assert bg.file_count is None


def test_parsed_header_fields(two_part_cgm_zip: bytes) -> None:
    meta = validate_archive(two_part_cgm_zip)
    assert meta.header_line == HEADER_LINE
    assert meta.parsed_header.name == "Jane Doe"
    assert meta.parsed_header.date_range == "2024-01-01 - 2024-01-14"
    assert meta.parsed_header.date_range_start == date(2024, 1, 1)
    assert meta.parsed_header.date_range_end == date(2024, 1, 14)


def test_parse_header_line_comma_separated() -> None:
    parsed = parse_header_line("Name:John,Date Range:not a range")
    assert parsed.name == "John"
    assert parsed.date_range == "not a range"
    assert parsed.date_range_start is None
    assert parse_header_line("").name is None


def test_inconsistent_glucose_units_between_cgm_and_bg(make_zip: MakeZip) -> None:
    data = make_zip(
        {
            "cgm_data_1.csv": csv_text(
                "Timestamp\tGlucose Value (mg/dL)", ["2024-01-01T00:00:00\t100"]
            ),
            "bg_data_1.csv": csv_text(
                "Timestamp\tGlucose Value (mmol/L)", ["2024-01-01T00:00:00\t5.5"]
            ),
        }
    )
    meta = validate_archive(data)
    assert meta.is_valid is False
    assert meta.error is not None
    assert meta.error.startswith("Inconsistent glucose units: CGM uses mg/dL")


def test_directories_skipped_and_nested_paths_kept(make_zip: MakeZip) -> None:
    data = make_zip(
        {
            "export/": "",
            "export/cgm_data_1.csv": csv_text(CGM_COLUMNS, glucose_rows(3)),
        }
    )
    entries = read_entries(data)
    assert [e.path for e in entries] == ["export/cgm_data_1.csv"]
    assert entries[0].name == "cgm_data_1.csv"
    meta = validate_archive(data)
    assert [d.name for d in meta.datasets] == ["cgm"]


def test_utf8_bom_is_ignored(make_zip: MakeZip) -> None:
    content = csv_text(CGM_COLUMNS, glucose_rows(1)).encode("utf-8-sig")
    entries = read_entries(make_zip({"cgm_data_1.csv": content}))
    assert entries[0].header_line == HEADER_LINE


def test_parse_csv_content_counts_body_lines_only() -> None:
    entry = parse_csv_content(
        "cgm_data_1.csv",
        f"{HEADER_LINE}\n{CGM_COLUMNS}\n2024-01-01T00:00:00\t5.0\n\n2024-01-01T00:05:00\t5.2\n",
    )
    assert entry.columns == ("Timestamp", "Glucose Value (mmol/L)")
    assert entry.delimiter == "\t"
    assert entry.row_count == 2


def test_parse_csv_content_header_only() -> None:
    only_header = parse_csv_content("x.csv", HEADER_LINE)
    assert only_header.columns == ()
    assert only_header.row_count == 0

    no_rows = parse_csv_content("x.csv", f"{HEADER_LINE}\n{CGM_COLUMNS}")
    assert no_rows.columns == ("Timestamp", "Glucose Value (mmol/L)")
    assert no_rows.row_count == 0


def test_glucose_readings_concatenate_source_files(two_part_cgm_zip: bytes) -> None:
    archive = GlucoseArchive(two_part_cgm_zip)
    outcome = archive.glucose_readings()
    assert outcome.is_degraded is False
    readings = outcome.unwrap()
    assert len(readings) == 25
    assert readings[0].timestamp == datetime(2024, 1, 1, 0, 0)
    assert readings[-1].timestamp == datetime(2024, 1, 1, 2, 0)


def test_glucose_readings_missing_dataset(two_part_cgm_zip: bytes) -> None:
    archive = GlucoseArchive(two_part_cgm_zip)
    with pytest.raises(KeyError, match="No insulin data found"):
        archive.glucose_readings("insulin")


def test_invalid_archive_refuses_parsing(make_zip: MakeZip) -> None:
    archive = GlucoseArchive(make_zip({"readme.txt": "x"}))
    assert archive.is_valid is False
    with pytest.raises(ValueError, match="No CSV files found"):
        archive.glucose_readings()


def test_dataset_frame_converts_numeric_cells(make_zip: MakeZip) -> None:
    data = make_zip(
        {
            "bolus_data_1.csv": csv_text(
                "Timestamp,Insulin Delivered (U),Note",
                ["2024-01-01T08:00:00,4,pre meal", "2024-01-01T12:00:00,2.5"],
            )
        }
    )
    archive = GlucoseArchive(data)
    ds = archive.dataset("bolus")
    assert ds is not None
    frame = archive.dataset_frame(ds)
    assert list(frame.columns) == ["Timestamp", "Insulin Delivered (U)", "Note"]
    assert frame.iloc[0]["Insulin Delivered (U)"] == 4
    assert frame.iloc[1]["Insulin Delivered (U)"] == 2.5
    assert frame.iloc[0]["Timestamp"] == "2024-01-01T08:00:00"
    assert frame.iloc[1]["Note"] == ""


def test_quoted_cells_are_read_as_single_fields(make_zip: MakeZip) -> None:
    data = make_zip(
        {
            "cgm_data_1.csv": csv_text(
                "Timestamp,Glucose Value (mmol/L),Note",
                ['"2024-01-01 10:00","5.0","ok, fine"', '"2024-01-01 10:05","5.6",""'],
            )
        }
    )
    archive = GlucoseArchive(data)
    cgm = archive.dataset("cgm")
    assert cgm is not None
    assert cgm.columns == ("Timestamp", "Glucose Value (mmol/L)", "Note")
    assert cgm.rows == 2

    readings = archive.glucose_readings().unwrap()
    assert [(r.timestamp, r.value) for r in readings] == [
        (datetime(2024, 1, 1, 10, 0), 5.0),
        (datetime(2024, 1, 1, 10, 5), 5.6),
    ]
    frame = archive.dataset_frame(cgm)
    assert frame.iloc[0]["Note"] == "ok, fine"
    assert frame.iloc[1]["Glucose Value (mmol/L)"] == 5.6


def test_comma_export_to_rate_of_change(make_zip: MakeZip) -> None:
    data = make_zip(
        {
            "cgm_data_1.csv": csv_text(
                "Timestamp,Glucose",
                ["2024-01-01T08:00:00,5.0", "2024-01-01T08:05:00,5.5"],
                header_line="Name:Jane Doe,Date Range:2024-01-01 - 2024-01-01",
            )
        }
    )
    archive = GlucoseArchive(data)
    assert archive.is_valid is True
    assert archive.metadata.parsed_header.name == "Jane Doe"

    [point] = calculate_roc(archive.glucose_readings().unwrap())
    assert point.roc_raw == pytest.approx(0.1)
    assert point.category is RoCCategory.MEDIUM


def test_insulin_readings_through_archive(make_zip: MakeZip) -> None:
    data = make_zip(
        {
            "bolus_data_1.csv": csv_text(
                "Timestamp\tInsulin Delivered (U)",
                [
                    "2024-01-01T08:00:00\t4.5",
                    "2024-01-01T12:30:00\t-1",
                    "2024-01-01T18:00:00\t3",
                ],
            ),
            "basal_data_1.csv": csv_text(
                "Timestamp\tBasal Rate (U/h)",
                ["2024-01-01T00:00:00\t0.8", "2024-01-01T06:00:00\t1.1"],
            ),
        }
    )
    archive = GlucoseArchive(data)

    bolus = archive.insulin_readings("bolus", InsulinKind.BOLUS)
    assert bolus.is_degraded is True
    assert [(r.timestamp.hour, r.dose) for r in bolus.value] == [(8, 4.5), (18, 3.0)]
    assert all(r.kind is InsulinKind.BOLUS for r in bolus.value)

    basal = archive.insulin_readings("basal", InsulinKind.BASAL)
    assert isinstance(basal, Ok)
    assert [r.dose for r in basal.value] == [0.8, 1.1]

    with pytest.raises(KeyError, match="No insulin data found"):
        archive.insulin_readings("insulin", InsulinKind.BOLUS)


def test_daily_insulin_totals_through_archive(make_zip: MakeZip) -> None:
    data = make_zip(
        {
            "insulin_data_1.csv": csv_text(
                "Timestamp,Total Bolus (U),Total Basal (U),Total Insulin (U)",
                ["2024-01-01T00:00:00,20.04,15.5,35.54", "2024-01-02T00:00:00,18,,18"],
            )
        }
    )
    totals = GlucoseArchive(data).daily_insulin_totals()
    assert isinstance(totals, Ok)
    first, second = totals.value
    assert first.day == date(2024, 1, 1)
    assert (first.bolus_total, first.basal_total, first.total_insulin) == (20.0, 15.5, 35.5)
    assert (second.bolus_total, second.basal_total, second.total_insulin) == (18.0, 0.0, 18.0)


def test_load_archive_returns_ok_or_fail(
    two_part_cgm_zip: bytes, make_zip: MakeZip
) -> None:
    loaded = load_archive(two_part_cgm_zip)
    assert isinstance(loaded, Ok)
    assert loaded.unwrap().is_valid is True

    failed = load_archive(make_zip({"readme.txt": "x"}))
    assert isinstance(failed, Fail)
    assert isinstance(failed.error, EmptyArchiveError)
    with pytest.raises(EmptyArchiveError):
        failed.unwrap()

    assert isinstance(load_archive(b"not a zip").error, CorruptArchiveError)
