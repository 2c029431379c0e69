"""
Side-by-side comparison of several matrices.

Rows from every matrix are grouped by normalized requirement text (trim +
case-fold). Output order is first-seen order while scanning the matrices in the
order the caller passes them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import polars as pl

from cmm_common.normalize import normalize_requirement
from cmm_common.schema import MatrixWithRows, Score

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparisonCell:
    """One matrix's answer for one requirement."""

    score: Score
    past_performance: str
    comments: str
    row_id: str

    def has_data(self) -> bool:
        return self.score is not None or bool(self.past_performance.strip()) or bool(self.comments.strip())


@dataclass
class ComparisonRow:
    requirement: str  # casing of the first occurrence
    normalized_requirement: str
    cells: Dict[str, ComparisonCell] = field(default_factory=dict)


@dataclass(frozen=True)
class MatrixRef:
    id: str
    name: str


@dataclass
class ComparisonData:
    rows: List[ComparisonRow]
    matrices: List[MatrixRef]

    def find_row(self, requirement: str) -> Optional[ComparisonRow]:
        key = normalize_requirement(requirement)
        for row in self.rows:
            if row.normalized_requirement == key:
                return row
        return None

    def cell(self, requirement: str, matrix_id: str) -> Optional[ComparisonCell]:
        """Cell lookup by (requirement, matrix) pair."""

        row = self.find_row(requirement)
        if row is None:
            return None
        return row.cells.get(matrix_id)


@dataclass(frozen=True)
class CompanyData:
    matrix_id: str
    matrix_name: str
    score: Score
    has_comments: bool
    has_past_performance: bool


@dataclass
class RequirementDeleteInfo:
    requirement: str
    companies_with_data: List[CompanyData]


def build_comparison_data(matrices: Sequence[MatrixWithRows]) -> ComparisonData:
    """
    Merge matrices into one row per distinct normalized requirement.

    Empty requirements are skipped. If one matrix holds the same requirement twice
    the later row's cell replaces the earlier one.
    """

    by_key: Dict[str, ComparisonRow] = {}
    first_seen: Dict[str, int] = {}
    order = 0

    for matrix in matrices:
        for row in matrix.rows:
            key = normalize_requirement(row.requirements)
            if not key:
                continue

            comp_row = by_key.get(key)
            if comp_row is None:
                comp_row = ComparisonRow(requirement=row.requirements.strip(), normalized_requirement=key)
                by_key[key] = comp_row
                first_seen[key] = order
                order += 1

            comp_row.cells[matrix.id] = ComparisonCell(
                score=row.experience_and_capability,
                past_performance=row.past_performance,
                comments=row.comments,
                row_id=row.id,
            )

    rows = sorted(by_key.values(), key=lambda r: first_seen[r.normalized_requirement])
    LOGGER.debug("Built comparison of %d requirement(s) across %d matrices", len(rows), len(matrices))
    return ComparisonData(rows=rows, matrices=[MatrixRef(m.id, m.name) for m in matrices])


def get_requirement_delete_info(data: ComparisonData, requirement: str) -> RequirementDeleteInfo:
    """List the matrices that would lose real data if ``requirement`` were deleted everywhere."""

    companies: List[CompanyData] = []
    row = data.find_row(requirement)
    if row is not None:
        for matrix in data.matrices:
            cell = row.cells.get(matrix.id)
            if cell is None or not cell.has_data():
                continue
            companies.append(
                CompanyData(
                    matrix_id=matrix.id,
                    matrix_name=matrix.name,
                    score=cell.score,
                    has_comments=bool(cell.comments.strip()),
                    has_past_performance=bool(cell.past_performance.strip()),
                )
            )
    return RequirementDeleteInfo(requirement=requirement, companies_with_data=companies)


def cell_has_tooltip_content(cell: Optional[ComparisonCell]) -> bool:
    if cell is None:
        return False
    return bool(cell.past_performance.strip()) or bool(cell.comments.strip())


def comparison_to_frame(data: ComparisonData) -> pl.DataFrame:
    """
    Flatten to a Polars frame: one row per requirement, three columns per matrix
    (``<name> score``, ``<name> past performance``, ``<name> comments``).

    Matrix names are not unique, so duplicate names get their id appended.
    """

    name_counts: Dict[str, int] = {}
    for ref in data.matrices:
        name_counts[ref.name] = name_counts.get(ref.name, 0) + 1

    columns: Dict[str, list] = {"Requirement": [row.requirement for row in data.rows]}
    schema: Dict[str, pl.DataType] = {"Requirement": pl.Utf8}
    for ref in data.matrices:
        label = ref.name if name_counts[ref.name] == 1 else f"{ref.name} ({ref.id})"
        cells = [row.cells.get(ref.id) for row in data.rows]
        columns[f"{label} score"] = [c.score if c else None for c in cells]
        columns[f"{label} past performance"] = [c.past_performance if c else None for c in cells]
        columns[f"{label} comments"] = [c.comments if c else None for c in cells]
        schema[f"{label} score"] = pl.Int64
        schema[f"{label} past performance"] = pl.Utf8
        schema[f"{label} comments"] = pl.Utf8

    return pl.DataFrame(columns, schema=schema)


__all__ = [
    "ComparisonCell",
    "ComparisonRow",
    "ComparisonData",
    "MatrixRef",
    "CompanyData",
    "RequirementDeleteInfo",
    "build_comparison_data",
    "get_requirement_delete_info",
    "cell_has_tooltip_content",
    "comparison_to_frame",
]
