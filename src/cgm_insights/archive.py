"""Validación y lectura de exportaciones ZIP con CSV de dos cabeceras."""

from __future__ import annotations

import io
import logging
import re
import zipfile
import zlib
from collections.abc import Sequence
from datetime import date, datetime
from typing import BinaryIO

import pandas as pd

from cgm_insights.errors import (
    CorruptArchiveError,
    EmptyArchiveError,
    InconsistentMetadataError,
    IngestError,
)
from cgm_insights.merge import merge_entries
from cgm_insights.model import (
    ArchiveMetadata,
    CsvEntry,
    Dataset,
    DailyInsulinSummary,
    GlucoseReading,
    InsulinKind,
    InsulinReading,
    ParsedHeader,
)
from cgm_insights.parser import (
    detect_delimiter,
    parse_daily_insulin_totals,
    parse_dataset_glucose,
    parse_dataset_insulin,
)
from cgm_insights.results import Degraded, Fail, Ok
from cgm_insights.units import detect_glucose_unit

logger = logging.getLogger(__name__)

_DATE_RANGE = re.compile(r"^(\d{4}-\d{2}-\d{2})\s*-\s*(\d{4}-\d{2}-\d{2})$")


def parse_header_line(header_line: str) -> ParsedHeader:
    """Parse ``Name:...`` / ``Date Range:...`` pairs from the metadata line.

    Pairs are split on tab when the line has more tabs than commas,
    otherwise on comma.
    """
    if not header_line or not header_line.strip():
        return ParsedHeader()

    sep = "\t" if header_line.count("\t") > header_line.count(",") else ","
    name: str | None = None
    date_range: str | None = None
    start: date | None = None
    end: date | None = None
    for part in header_line.split(sep):
        key, colon, value = part.strip().partition(":")
        value = value.strip()
        if not colon or not value:
            continue
        key = key.strip().lower()
        if key == "name":
            name = value
        elif key == "date range":
            date_range = value
            match = _DATE_RANGE.match(value)
            if match:
                start = _iso_date(match.group(1))
                end = _iso_date(match.group(2))
    return ParsedHeader(
        name=name, date_range=date_range, date_range_start=start, date_range_end=end
    )


def _iso_date(text: str) -> date | None:
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        return None


def read_csv_table(table: str, delimiter: str) -> pd.DataFrame:
    """Read the column line and body of one file as stripped text cells.

    Quoted fields are honoured, blank lines skipped, rows with extra
    fields dropped and missing trailing fields read as empty text.
    """
    frame = pd.read_csv(
        io.StringIO(table),
        sep=delimiter,
        dtype=str,
        keep_default_na=False,
        index_col=False,
        skip_blank_lines=True,
        on_bad_lines="skip",
    )
    frame.columns = [str(c).strip() for c in frame.columns]
    return frame.fillna("").map(str.strip)


def parse_csv_content(path: str, content: str) -> CsvEntry:
    """Split one CSV text into its metadata line and its table."""
    header_line, _, table = content.strip().partition("\n")
    column_line = table.split("\n", 1)[0].strip()
    delimiter = detect_delimiter(column_line)
    frame = read_csv_table(table, delimiter) if column_line else pd.DataFrame()
    columns = tuple(frame.columns)
    return CsvEntry(
        path=path,
        name=path.rsplit("/", 1)[-1],
        header_line=header_line.strip(),
        columns=columns,
        delimiter=delimiter,
        frame=frame,
        glucose_unit=detect_glucose_unit(columns),
    )


def read_entries(data: bytes | BinaryIO) -> list[CsvEntry]:
    """Read every CSV entry of a ZIP archive.

    Args:
        data: Archive bytes or a binary file object.

    Returns:
        Entries in archive order.

    Raises:
        EmptyArchiveError: If the archive has no ``.csv`` entries.
        InconsistentMetadataError: If entries disagree on line 1.
        CorruptArchiveError: If the archive or a CSV table cannot be read.
    """
    stream = io.BytesIO(data) if isinstance(data, bytes | bytearray) else data
    try:
        with zipfile.ZipFile(stream) as zf:
            names = [
                info.filename
                for info in zf.infolist()
                if not info.is_dir() and info.filename.lower().endswith(".csv")
            ]
            if not names:
                raise EmptyArchiveError()
            entries: list[CsvEntry] = []
            for name in names:
                content = zf.read(name).decode("utf-8-sig").replace("\r\n", "\n")
                entry = parse_csv_content(name, content)
                if entries and entry.header_line != entries[0].header_line:
                    raise InconsistentMetadataError()
                entries.append(entry)
    except (
        zipfile.BadZipFile,
        zlib.error,
        UnicodeDecodeError,
        pd.errors.ParserError,
        EOFError,
        OSError,
        NotImplementedError,
        RuntimeError,
    ) as exc:
        raise CorruptArchiveError(str(exc)) from exc
    return entries


def _check_glucose_units(datasets: Sequence[Dataset]) -> None:
    by_name = {d.name: d for d in datasets}
    cgm, bg = by_name.get("cgm"), by_name.get("bg")
    if cgm is None or bg is None:
        return
    if cgm.glucose_unit and bg.glucose_unit and cgm.glucose_unit != bg.glucose_unit:
        raise InconsistentMetadataError(
            f"Inconsistent glucose units: CGM uses {cgm.glucose_unit.value} but BG "
            f"uses {bg.glucose_unit.value}. All datasets must use the same unit."
        )


def build_metadata(entries: Sequence[CsvEntry]) -> ArchiveMetadata:
    """Merge entries into datasets and describe the archive."""
    outcome = merge_entries(entries)
    _check_glucose_units(outcome.datasets)
    header_line = entries[0].header_line if entries else None
    return ArchiveMetadata(
        is_valid=True,
        datasets=outcome.datasets,
        header_line=header_line,
        parsed_header=parse_header_line(header_line or ""),
    )


def validate_archive(data: bytes | BinaryIO) -> ArchiveMetadata:
    """Validate an archive; archive-level failures become ``is_valid=False``."""
    return GlucoseArchive(data).metadata


def load_archive(data: bytes | BinaryIO) -> Ok[GlucoseArchive] | Fail:
    """Read an archive, or the archive-level error that rejected it.

    Returns:
        ``Ok(archive)`` for a valid archive, otherwise ``Fail`` carrying the
        ``IngestError`` (``unwrap`` re-raises it).
    """
    archive = GlucoseArchive(data)
    if archive.error is not None:
        return Fail(archive.error)
    return Ok(archive)


class GlucoseArchive:
    """An uploaded export archive, read once and kept read-only in memory."""

    def __init__(self, data: bytes | BinaryIO) -> None:
        """Read and validate the archive.

        Args:
            data: Archive bytes or a binary file object.
        """
        self._entries: dict[str, CsvEntry] = {}
        self._error: IngestError | None = None
        try:
            entries = read_entries(data)
            self._metadata = build_metadata(entries)
            self._entries = {e.path: e for e in entries}
        except IngestError as exc:
            logger.warning(f"Archive rejected: {exc}")
            self._error = exc
            self._metadata = ArchiveMetadata(is_valid=False, error=str(exc))

    @property
    def metadata(self) -> ArchiveMetadata:
        return self._metadata

    @property
    def error(self) -> IngestError | None:
        return self._error

    @property
    def is_valid(self) -> bool:
        return self._metadata.is_valid

    @property
    def datasets(self) -> tuple[Dataset, ...]:
        return self._metadata.datasets

    @property
    def entries(self) -> list[CsvEntry]:
        return list(self._entries.values())

    def dataset(self, name: str) -> Dataset | None:
        """Dataset by exact name, or None."""
        return next((d for d in self.datasets if d.name == name), None)

    def dataset_entries(self, dataset: Dataset) -> list[CsvEntry]:
        """Source entries of a dataset, in ``source_files`` order."""
        return [self._entries[p] for p in dataset.source_files if p in self._entries]

    def _require(self, name: str) -> Dataset:
        if not self.is_valid:
            raise ValueError(f"Invalid ZIP file: {self._metadata.error}")
        ds = self.dataset(name)
        if ds is None:
            raise KeyError(f"No {name} data found in the ZIP file")
        return ds

    def glucose_readings(
        self, name: str = "cgm"
    ) -> Ok[list[GlucoseReading]] | Degraded[list[GlucoseReading]]:
        """Glucose readings of one dataset (``cgm`` or ``bg``).

        Raises:
            ValueError: If the archive is invalid.
            KeyError: If there is no dataset with that name.
        """
        return parse_dataset_glucose(self.dataset_entries(self._require(name)))

    def insulin_readings(
        self, name: str, kind: InsulinKind
    ) -> Ok[list[InsulinReading]] | Degraded[list[InsulinReading]]:
        """Insulin readings of one dataset (``bolus``, ``basal``, ...)."""
        return parse_dataset_insulin(self.dataset_entries(self._require(name)), kind)

    def daily_insulin_totals(
        self, name: str = "insulin"
    ) -> Ok[list[DailyInsulinSummary]] | Degraded[list[DailyInsulinSummary]]:
        """Daily totals from the combined insulin dataset (first source file)."""
        entries = self.dataset_entries(self._require(name))
        if not entries:
            return Ok([])
        return parse_daily_insulin_totals(entries[0].frame)

    def dataset_frame(self, dataset: Dataset) -> pd.DataFrame:
        """Merged rows of a dataset with its column headers verbatim.

        Numeric cells become numbers, everything else stays text.
        """
        frames = [e.frame for e in self.dataset_entries(dataset)]
        if not frames:
            return pd.DataFrame(columns=list(dataset.columns))
        frame = pd.concat(frames, ignore_index=True)
        for idx in range(frame.shape[1]):
            text = frame.iloc[:, idx]
            numbers = pd.to_numeric(text, errors="coerce")
            frame.isetitem(idx, numbers.astype(object).where(numbers.notna(), text))
        return frame
