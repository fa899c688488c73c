from __future__ import annotations

import io
import zipfile
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

import pytest

HEADER_LINE = "Name:Jane Doe\tDate Range:2024-01-01 - 2024-01-14"
CGM_COLUMNS = "Timestamp\tGlucose Value (mmol/L)"


def csv_text(
    columns: str, rows: Sequence[str], header_line: str = HEADER_LINE
) -> str:
    """Two-header CSV text: metadata line, column line, body."""
    return "\n".join([header_line, columns, *rows]) + "\n"


def glucose_rows(
    count: int,
    start: datetime = datetime(2024, 1, 1, 0, 0),
    step_minutes: int = 5,
    value: float = 6.0,
) -> list[str]:
    return [
        f"{(start + timedelta(minutes=i * step_minutes)).isoformat()}\t{value}"
        for i in range(count)
    ]


def build_zip(files: dict[str, str | bytes]) -> bytes:
    """ZIP archive bytes with one member per item, in insertion order."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buf.getvalue()


@pytest.fixture
def make_zip() -> Callable[[dict[str, str | bytes]], bytes]:
    return build_zip


@pytest.fixture
def two_part_cgm_zip() -> bytes:
    """cgm split in two files (10 + 15 rows) plus a bg file."""
    first = glucose_rows(10)
    second = glucose_rows(15, start=datetime(2024, 1, 1, 0, 50))
    return build_zip(
        {
            "cgm_data_1.csv": csv_text(CGM_COLUMNS, first),
            "cgm_data_2.csv": csv_text(CGM_COLUMNS, second),
            "bg_data_1.csv": csv_text(
                "Timestamp\tGlucose Value (mmol/L)",
                ["2024-01-01T07:00:00\t5.0", "2024-01-01T12:00:00\t7.2"],
            ),
        }
    )
