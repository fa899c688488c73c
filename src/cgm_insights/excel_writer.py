"""Exportación del ZIP a un libro Excel: hoja Summary y una hoja por dataset."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, Side
from openpyxl.utils import get_column_letter

from cgm_insights.archive import GlucoseArchive

logger = logging.getLogger(__name__)

_INVALID_SHEET_CHARS = re.compile(r"[\\/*?\[\]:]")
MAX_SHEET_NAME = 31


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the exported workbook."""

    summary_sheet_name: str = "Summary"
    min_column_width: int = 10
    max_column_width: int = 40


def sanitize_sheet_name(name: str) -> str:
    """Replace characters Excel rejects in sheet names and cut to 31 chars."""
    return _INVALID_SHEET_CHARS.sub("_", name)[:MAX_SHEET_NAME]


def _unique_sheet_name(name: str, used: set[str]) -> str:
    """Sufijo numérico si dos datasets colisionan tras sanitizar."""
    candidate = sanitize_sheet_name(name)
    n = 2
    while candidate.lower() in used:
        suffix = f"_{n}"
        candidate = sanitize_sheet_name(name)[: MAX_SHEET_NAME - len(suffix)] + suffix
        n += 1
    used.add(candidate.lower())
    return candidate


def write_archive_xlsx(
    archive: GlucoseArchive, out_path: Path, layout: ExcelLayout
) -> None:
    """Write every dataset of an archive to a formatted Excel file.

    Args:
        archive: A validated archive.
        out_path: Output path for the XLSX file.
        layout: Excel layout parameters.

    Raises:
        ValueError: If the archive is invalid.
    """
    if not archive.is_valid:
        raise ValueError("Cannot convert invalid ZIP file to XLSX")
    out_path.parent.mkdir(parents=True, exist_ok=True)

    summary = pd.DataFrame(
        {
            "Dataset Name": [d.name for d in archive.datasets],
            "Number of Records": [d.rows for d in archive.datasets],
        }
    )
    used = {layout.summary_sheet_name.lower()}
    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        summary.to_excel(writer, index=False, sheet_name=layout.summary_sheet_name)
        _format_sheet(writer.book[layout.summary_sheet_name], layout)
        for dataset in archive.datasets:
            sheet_name = _unique_sheet_name(dataset.name, used)
            frame = archive.dataset_frame(dataset)
            frame.to_excel(writer, index=False, sheet_name=sheet_name)
            _format_sheet(writer.book[sheet_name], layout)
            logger.debug(f"Sheet {sheet_name}: {len(frame)} rows")
    logger.info(f"Workbook written: {out_path}")


def _style_header_row(ws: Any) -> None:
    """Aplica fuente negrita, alineación y borde a la fila de cabecera."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    header_font = Font(bold=True)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[1]:
        cell.font = header_font
        cell.alignment = center
        cell.border = border


def _style_body_rows(ws: Any) -> None:
    """Aplica alineación y borde a las filas de datos."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center")
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = center
            cell.border = border


def _apply_column_widths(ws: Any, layout: ExcelLayout) -> None:
    """Ancho por el texto más largo de cada columna, acotado al layout."""
    for idx, column in enumerate(ws.iter_cols(), start=1):
        longest = max((len(str(c.value)) for c in column if c.value is not None), default=0)
        width = min(max(longest + 2, layout.min_column_width), layout.max_column_width)
        ws.column_dimensions[get_column_letter(idx)].width = width


def _format_sheet(ws: Any, layout: ExcelLayout | None = None) -> None:
    """Apply borders, header style and widths to a worksheet.

    Args:
        ws: openpyxl worksheet.
        layout: Width limits (defaults when omitted).
    """
    _style_header_row(ws)
    _style_body_rows(ws)
    _apply_column_widths(ws, layout or ExcelLayout())
