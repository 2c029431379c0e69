"""
Typed view over raw spreadsheet cells.

openpyxl hands back whatever the cell holds (str, int, float, datetime, None).
The importer wraps every read in one of these three variants and converts to
``ParsedRow`` fields straight away, so untyped values never escape ingestion.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence, Union

from cmm_common.normalize import normalize_score, number_to_text, value_to_text
from cmm_common.schema import Score


@dataclass(frozen=True)
class EmptyCell:
    def text(self) -> str:
        return ""

    def score(self) -> Score:
        return None


@dataclass(frozen=True)
class TextCell:
    value: str

    def text(self) -> str:
        return self.value.strip()

    def score(self) -> Score:
        return normalize_score(self.value)


@dataclass(frozen=True)
class NumberCell:
    value: float

    def text(self) -> str:
        return number_to_text(self.value)

    def score(self) -> Score:
        return normalize_score(self.value)


Cell = Union[EmptyCell, TextCell, NumberCell]
EMPTY = EmptyCell()


def to_cell(raw: Any) -> Cell:
    if raw is None:
        return EMPTY
    if isinstance(raw, bool):
        return TextCell(value_to_text(raw))
    if isinstance(raw, (int, float)):
        return NumberCell(raw)
    text = value_to_text(raw)
    if not text:
        return EMPTY
    return TextCell(text)


class SheetGrid:
    """Rectangular-ish grid of raw sheet values addressed by 0-based (row, col)."""

    def __init__(self, rows: Sequence[Sequence[Any]]) -> None:
        self._rows = [tuple(r) for r in rows]

    @property
    def max_row(self) -> int:
        """Index of the last row (0-based), -1 when the sheet is empty."""

        return len(self._rows) - 1

    @property
    def max_col(self) -> int:
        if not self._rows:
            return -1
        return max(len(r) for r in self._rows) - 1

    def cell(self, row: int, col: int) -> Cell:
        if row < 0 or col < 0 or row >= len(self._rows):
            return EMPTY
        values = self._rows[row]
        if col >= len(values):
            return EMPTY
        return to_cell(values[col])

    def text(self, row: int, col: int) -> str:
        return self.cell(row, col).text()
