"""
Capability-matrix spreadsheet ingestion.

Turns a workbook (one matrix per sheet) into ``ParsedMatrix`` objects. Two
layouts are accepted, with the header row anywhere in the first 30 rows:

    Req # | Requirements | Score | Past Performance | Comments
            Requirements | Score | Past Performance | Comments

Row-level problems are normalized silently (blank score -> unrated); sheet- and
file-level problems are collected into ``ParseResult.errors`` so the rest of a
batch still imports.

Only OOXML workbooks (.xlsx / .xlsm) are readable; legacy .xls files come back
as a "Failed to parse" error.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple, Union

import openpyxl

from cmm_common.schema import (
    COMPANY_EXACT,
    COMPANY_KEYWORDS,
    COMPANY_SCAN_COLS,
    COMPANY_SCAN_ROWS,
    DEFAULT_SHEET_NAME,
    HEADER_SCAN_ROWS,
    REQ_NUMBER_KEYWORDS,
    REQUIREMENT_KEYWORD,
    ParsedMatrix,
    ParsedRow,
    ParseResult,
)

from .cells import SheetGrid

LOGGER = logging.getLogger(__name__)

_EXCEL_SUFFIX = re.compile(r"\.(xlsx|xlsm)$", re.IGNORECASE)

Source = Union[bytes, bytearray, BytesIO, str, Path]


@dataclass(frozen=True)
class HeaderInfo:
    """Detected header row and column positions (all 0-based)."""

    row: int
    requirements_col: int
    req_number_col: Optional[int] = None

    @property
    def has_req_number_column(self) -> bool:
        return self.req_number_col is not None

    @property
    def score_col(self) -> int:
        return self.requirements_col + 1

    @property
    def past_perf_col(self) -> int:
        return self.requirements_col + 2

    @property
    def comments_col(self) -> int:
        return self.requirements_col + 3


DEFAULT_HEADER = HeaderInfo(row=0, requirements_col=0)


def _is_req_number_header(value: str) -> bool:
    return any(keyword in value for keyword in REQ_NUMBER_KEYWORDS)


def find_header_info(grid: SheetGrid) -> HeaderInfo:
    """
    Locate the header row: the first row (top-down, first 30 rows) with a
    "requirement" cell. Later rows are never preferred.

    Within that row the rightmost matching column wins for each role. Without a
    match the sheet is read as Requirements in column A starting at row 0.
    """

    last_row = min(grid.max_row, HEADER_SCAN_ROWS - 1)
    for row in range(last_row + 1):
        found_req_number: Optional[int] = None
        found_requirements: Optional[int] = None

        for col in range(grid.max_col + 1):
            value = grid.text(row, col).lower()
            if not value:
                continue
            if _is_req_number_header(value):
                found_req_number = col
            elif REQUIREMENT_KEYWORD in value and "#" not in value:
                found_requirements = col

        if found_requirements is not None:
            return HeaderInfo(row=row, requirements_col=found_requirements, req_number_col=found_req_number)

    return DEFAULT_HEADER


def strip_excel_extension(filename: str) -> str:
    return _EXCEL_SUFFIX.sub("", filename)


def extract_company_name(grid: SheetGrid, filename: str, sheet_name: Optional[str] = None) -> str:
    """
    Display name for a sheet.

    Looks in the first 20 rows / 4 columns for a "Company Name" (or exactly
    "Company") label and takes the value in the cell directly to its right.
    Falls back to the filename, suffixed with the sheet name for multi-sheet
    workbooks.
    """

    last_row = min(grid.max_row, COMPANY_SCAN_ROWS - 1)
    last_col = min(grid.max_col, COMPANY_SCAN_COLS - 1)
    for row in range(last_row + 1):
        for col in range(last_col + 1):
            value = grid.text(row, col).lower()
            if not value:
                continue
            if any(keyword in value for keyword in COMPANY_KEYWORDS) or value == COMPANY_EXACT:
                company = grid.text(row, col + 1)
                if company:
                    return company

    base_name = strip_excel_extension(filename)
    if sheet_name and sheet_name != DEFAULT_SHEET_NAME:
        return f"{base_name} - {sheet_name}"
    return base_name


def parse_rows(grid: SheetGrid, header: HeaderInfo) -> List[ParsedRow]:
    """Extract data rows below the header; rows without requirement text are skipped."""

    rows: List[ParsedRow] = []
    auto_number = 1

    for row in range(header.row + 1, grid.max_row + 1):
        requirements = grid.text(row, header.requirements_col)
        if not requirements:
            continue

        requirement_number = ""
        if header.has_req_number_column:
            requirement_number = grid.text(row, header.req_number_col)
        if not requirement_number:
            requirement_number = str(auto_number)
            auto_number += 1

        rows.append(
            ParsedRow(
                requirement_number=requirement_number,
                requirements=requirements,
                experience_and_capability=grid.cell(row, header.score_col).score(),
                past_performance=grid.text(row, header.past_perf_col),
                comments=grid.text(row, header.comments_col),
            )
        )
    return rows


def parse_worksheet(grid: SheetGrid, filename: str, sheet_name: Optional[str] = None) -> Optional[ParsedMatrix]:
    """Parse one sheet; returns None when it holds no requirement rows."""

    header = find_header_info(grid)
    LOGGER.debug(
        "Sheet %s of %s: header row %d, requirements col %d, req # col %s",
        sheet_name or DEFAULT_SHEET_NAME,
        filename,
        header.row,
        header.requirements_col,
        header.req_number_col,
    )
    name = extract_company_name(grid, filename, sheet_name)
    rows = parse_rows(grid, header)
    if not rows:
        return None
    return ParsedMatrix(name=name, source_file=filename, rows=rows, sheet_name=sheet_name)


def _excel_source(data: Source) -> Any:
    """Return something openpyxl can open; byte buffers are rewound first."""

    if isinstance(data, BytesIO):
        data.seek(0)
        return data
    if isinstance(data, (bytes, bytearray)):
        return BytesIO(bytes(data))
    return data


def _load_grids(data: Source) -> List[Tuple[str, SheetGrid]]:
    workbook = openpyxl.load_workbook(_excel_source(data), data_only=True)
    try:
        return [(ws.title, SheetGrid(ws.iter_rows(values_only=True))) for ws in workbook.worksheets]
    finally:
        workbook.close()


def parse_excel_file(data: Source, filename: str) -> ParseResult:
    """
    Parse a workbook into matrices plus human-readable errors.

    Never raises for bad input: an unreadable workbook, a failing sheet, or a
    workbook without any requirement rows each become one entry in ``errors``.
    """

    result = ParseResult()
    try:
        sheets = _load_grids(data)
    except Exception as exc:
        message = f"Failed to parse {filename}: {str(exc) or type(exc).__name__}"
        LOGGER.warning(message)
        result.errors.append(message)
        return result

    multi_sheet = len(sheets) > 1
    for sheet_name, grid in sheets:
        try:
            parsed = parse_worksheet(grid, filename, sheet_name if multi_sheet else None)
        except Exception as exc:
            message = f'Error parsing sheet "{sheet_name}" in {filename}: {str(exc) or type(exc).__name__}'
            LOGGER.warning(message)
            result.errors.append(message)
            continue
        if parsed is None:
            LOGGER.info("Sheet %s in %s has no requirement rows; skipped.", sheet_name, filename)
            continue
        result.matrices.append(parsed)

    if not result.matrices and not result.errors:
        message = f"No valid data found in {filename}"
        LOGGER.warning(message)
        result.errors.append(message)
    return result


def parse_excel_files(files: Iterable[Tuple[Source, str]]) -> ParseResult:
    """Parse several (data, filename) pairs; one file's failure never stops the others."""

    combined = ParseResult()
    for data, filename in files:
        combined.extend(parse_excel_file(data, filename))
    return combined


def filename_from_path(path: str) -> str:
    """Last component of a Windows or POSIX path."""

    parts = re.split(r"[/\\]", path)
    return parts[-1] or path


def parse_excel_paths(paths: Iterable[Union[str, Path]]) -> ParseResult:
    """Read each path from disk and parse it; unreadable files become errors."""

    combined = ParseResult()
    for path in paths:
        filename = filename_from_path(str(path))
        try:
            payload = Path(path).read_bytes()
        except OSError as exc:
            message = f"Failed to parse {filename}: {exc}"
            LOGGER.warning(message)
            combined.errors.append(message)
            continue
        combined.extend(parse_excel_file(payload, filename))
    return combined


__all__ = [
    "HeaderInfo",
    "find_header_info",
    "extract_company_name",
    "parse_rows",
    "parse_worksheet",
    "parse_excel_file",
    "parse_excel_files",
    "parse_excel_paths",
    "filename_from_path",
    "strip_excel_extension",
]
