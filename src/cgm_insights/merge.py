"""Agrupación y fusión de CSV del ZIP en datasets lógicos."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from cgm_insights.errors import DegradationReason
from cgm_insights.model import CsvEntry, Dataset

logger = logging.getLogger(__name__)

_DATA_SUFFIX = re.compile(r"^(.+?)_data_(\d+)$")


@dataclass(frozen=True)
class SchemaMismatch:
    """A name group left unmerged because its files disagree on columns."""

    dataset_name: str
    source_files: tuple[str, ...]
    reason: DegradationReason = DegradationReason.SCHEMA_MISMATCH


@dataclass(frozen=True)
class MergeOutcome:
    datasets: tuple[Dataset, ...]
    mismatches: tuple[SchemaMismatch, ...] = ()


def file_stem(file_name: str) -> str:
    """Basename without directories and without a ``.csv`` extension."""
    base = file_name.rsplit("/", 1)[-1]
    return re.sub(r"\.csv$", "", base, flags=re.IGNORECASE)


def extract_dataset_name(file_name: str) -> str:
    """Dataset name of a CSV file: ``cgm_data_1.csv`` -> ``cgm``.

    Files that do not follow the ``<name>_data_<n>`` convention keep their
    full stem.
    """
    stem = file_stem(file_name)
    match = _DATA_SUFFIX.match(stem)
    if match:
        return match.group(1)
    return stem


def merge_entries(entries: Sequence[CsvEntry]) -> MergeOutcome:
    """Group entries by dataset name and merge those sharing one schema.

    Args:
        entries: CSV entries in upload (archive) order.

    Returns:
        Datasets sorted by name (case-insensitive) plus the groups that were
        kept apart because of differing column sequences.
    """
    groups: dict[str, list[CsvEntry]] = {}
    for entry in entries:
        groups.setdefault(extract_dataset_name(entry.name), []).append(entry)

    datasets: list[Dataset] = []
    mismatches: list[SchemaMismatch] = []
    for name, group in groups.items():
        schemas = {entry.columns for entry in group}
        if len(schemas) == 1:
            datasets.append(_merge_group(name, group))
            continue

        sources = tuple(entry.path for entry in group)
        logger.warning(
            f"Dataset '{name}': {len(schemas)} distinct column layouts, "
            f"keeping {len(group)} files unmerged"
        )
        mismatches.append(SchemaMismatch(dataset_name=name, source_files=sources))
        datasets.extend(_single_entry_dataset(file_stem(e.name), e) for e in group)

    datasets.sort(key=lambda d: d.name.casefold())
    return MergeOutcome(datasets=tuple(datasets), mismatches=tuple(mismatches))


def merge_datasets(entries: Sequence[CsvEntry]) -> list[Dataset]:
    """Convenience wrapper returning only the datasets."""
    return list(merge_entries(entries).datasets)


def _merge_group(name: str, group: list[CsvEntry]) -> Dataset:
    if len(group) == 1:
        return _single_entry_dataset(name, group[0])
    first = group[0]
    return Dataset(
        name=name,
        rows=sum(entry.row_count for entry in group),
        columns=first.columns,
        source_files=tuple(entry.path for entry in group),
        file_count=len(group),
        glucose_unit=first.glucose_unit,
    )


def _single_entry_dataset(name: str, entry: CsvEntry) -> Dataset:
    return Dataset(
        name=name,
        rows=entry.row_count,
        columns=entry.columns,
        source_files=(entry.path,),
        glucose_unit=entry.glucose_unit,
    )
