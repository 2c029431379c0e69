"""
Render a capability matrix to an .xlsx workbook.

Layout (1-indexed rows):
    1        title; legend (score + description) in D1:E4
    5-7      Company Name / Date / Version (label in A, value in C)
    8        spacer
    9        column headers
    10..     one row per requirement, sorted by requirement number

The score column gets a direct fill plus cell-value conditional formatting so
colours follow edits made in Excel later.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import xlsxwriter
from xlsxwriter.utility import xl_rowcol_to_cell

from cmm_common import numbering
from cmm_common.schema import (
    EXPORT_COLUMN_WIDTHS,
    EXPORT_FIRST_DATA_ROW,
    EXPORT_HEADER_FILL,
    EXPORT_HEADER_ROW,
    EXPORT_HEADERS,
    EXPORT_SHEET_NAME,
    EXPORT_TITLE,
    SCORE_CONFIG,
    MatrixRow,
    MatrixWithRows,
    Score,
)

LOGGER = logging.getLogger(__name__)

WORKBOOK_AUTHOR = "Capability Matrix Management"
SCORE_COL = 2  # column C, 0-based
LEGEND_SCORES: Sequence[int] = (3, 2, 1, 0)
BORDER = 1


@dataclass
class ExportMetadata:
    company_name: str
    date: str
    version: str


def sorted_rows(rows: Sequence[MatrixRow]) -> List[MatrixRow]:
    """Natural requirement-number order; ties keep their stored order."""

    ordered = sorted(rows, key=lambda r: r.row_order)
    return sorted(ordered, key=lambda r: numbering.sort_key(r.requirement_number))


def _font_color(score: int) -> str:
    return "#FFFFFF" if SCORE_CONFIG[score].light_text else "#000000"


def _score_style(score: int) -> Dict[str, Any]:
    return {
        "bg_color": SCORE_CONFIG[score].color,
        "font_color": _font_color(score),
        "bold": True,
    }


class _Formats:
    """Workbook-bound cell formats, created once per export."""

    def __init__(self, workbook: xlsxwriter.Workbook) -> None:
        self.title = workbook.add_format({"bold": True, "font_size": 14})
        self.label = workbook.add_format({"bold": True})
        self.header = workbook.add_format(
            {
                "bold": True,
                "bg_color": EXPORT_HEADER_FILL,
                "border": BORDER,
                "align": "center",
                "valign": "vcenter",
            }
        )
        self.legend_text = workbook.add_format({"text_wrap": True, "valign": "top"})
        self.req_number = workbook.add_format({"align": "left", "valign": "vcenter", "border": BORDER})
        self.wrapped = workbook.add_format({"text_wrap": True, "valign": "top", "border": BORDER})
        self.score_blank = workbook.add_format({"align": "center", "valign": "vcenter", "border": BORDER})
        self.scores = {
            score: workbook.add_format(
                {**_score_style(score), "align": "center", "valign": "vcenter", "border": BORDER}
            )
            for score in SCORE_CONFIG
        }
        # Conditional formats only carry fill/font (dxf).
        self.conditional = {score: workbook.add_format(_score_style(score)) for score in SCORE_CONFIG}


def _write_preamble(ws: Any, fmt: _Formats, metadata: ExportMetadata, title: str) -> None:
    ws.write_string(0, 0, title, fmt.title)

    for offset, score in enumerate(LEGEND_SCORES):
        ws.write_number(offset, 3, score, fmt.scores[score])
        ws.write_string(offset, 4, SCORE_CONFIG[score].description, fmt.legend_text)

    for row, (label, value) in enumerate(
        (("Company Name", metadata.company_name), ("Date", metadata.date), ("Version", metadata.version)),
        start=4,
    ):
        ws.write_string(row, 0, label, fmt.label)
        ws.write_string(row, 2, value or "")

    header_row = EXPORT_HEADER_ROW - 1
    for col, header in enumerate(EXPORT_HEADERS):
        ws.write_string(header_row, col, header, fmt.header)


def _write_score(ws: Any, fmt: _Formats, row: int, score: Score) -> None:
    if score is None:
        ws.write_blank(row, SCORE_COL, None, fmt.score_blank)
    else:
        ws.write_number(row, SCORE_COL, score, fmt.scores[score])


def _add_score_rules(ws: Any, fmt: _Formats, first_row: int, last_row: int) -> None:
    cell_range = f"{xl_rowcol_to_cell(first_row, SCORE_COL)}:{xl_rowcol_to_cell(last_row, SCORE_COL)}"
    # Rule order is priority order: 3, 2, 1, 0.
    for score in LEGEND_SCORES:
        ws.conditional_format(
            cell_range,
            {"type": "cell", "criteria": "==", "value": score, "format": fmt.conditional[score]},
        )


def render_matrix(
    matrix: MatrixWithRows,
    metadata: ExportMetadata,
    *,
    title: str = EXPORT_TITLE,
    sheet_name: str = EXPORT_SHEET_NAME,
) -> bytes:
    """Build the export workbook in memory and return the .xlsx bytes."""

    buffer = BytesIO()
    workbook = xlsxwriter.Workbook(buffer, {"in_memory": True})
    workbook.set_properties({"author": WORKBOOK_AUTHOR, "title": title, "created": datetime.now()})

    ws = workbook.add_worksheet(sheet_name)
    for col, width in enumerate(EXPORT_COLUMN_WIDTHS):
        ws.set_column(col, col, width)

    fmt = _Formats(workbook)
    _write_preamble(ws, fmt, metadata, title)

    rows = sorted_rows(matrix.rows)
    first_row = EXPORT_FIRST_DATA_ROW - 1
    for offset, row in enumerate(rows):
        excel_row = first_row + offset
        # write_string keeps user text like "=SUM(...)" from becoming a formula.
        ws.write_string(excel_row, 0, row.requirement_number, fmt.req_number)
        ws.write_string(excel_row, 1, row.requirements, fmt.wrapped)
        _write_score(ws, fmt, excel_row, row.experience_and_capability)
        ws.write_string(excel_row, 3, row.past_performance, fmt.wrapped)
        ws.write_string(excel_row, 4, row.comments, fmt.wrapped)

    if rows:
        _add_score_rules(ws, fmt, first_row, first_row + len(rows) - 1)

    workbook.close()
    LOGGER.debug("Rendered matrix %s with %d row(s)", matrix.id, len(rows))
    return buffer.getvalue()


def generate_export_filename(company_name: str, export_date: str) -> str:
    """``Capability_Matrix_<Company_Name>_<date>.xlsx`` with unsafe characters removed."""

    sanitized = re.sub(r"[^a-zA-Z0-9\s-]", "", company_name).strip()
    sanitized = re.sub(r"\s+", "_", sanitized)
    return f"Capability_Matrix_{sanitized}_{export_date}.xlsx"


def format_date_for_filename(value: Optional[date] = None) -> str:
    value = value or date.today()
    return value.strftime("%Y-%m-%d")


def write_matrix(matrix: MatrixWithRows, metadata: ExportMetadata, output_dir: Path, **render_options: Any) -> Path:
    """Render and save under the generated filename; returns the written path."""

    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / generate_export_filename(metadata.company_name, metadata.date)
    path.write_bytes(render_matrix(matrix, metadata, **render_options))
    LOGGER.info("Wrote %s", path)
    return path


__all__ = [
    "ExportMetadata",
    "render_matrix",
    "write_matrix",
    "generate_export_filename",
    "format_date_for_filename",
    "sorted_rows",
]
