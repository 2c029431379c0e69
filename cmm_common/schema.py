from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

# Score is an int in 0..3, or None when the requirement is unrated.
Score = Optional[int]
SCORE_VALUES: Sequence[int] = (0, 1, 2, 3)


@dataclass(frozen=True)
class ScoreInfo:
    """Display/export metadata for a single score value."""

    value: int
    color: str
    label: str
    description: str
    light_text: bool


SCORE_CONFIG: Dict[int, ScoreInfo] = {
    3: ScoreInfo(
        3,
        "#4472C4",
        "Excellent",
        "Excellent capability - significant experience and past performance inputs; applicable to NITE SOW",
        light_text=True,
    ),
    2: ScoreInfo(
        2,
        "#70AD47",
        "Good",
        "Good capability - significant experience and past performance inputs; applicable to NITE SOW "
        "and executed on other than Training programs but on related platforms",
        light_text=True,
    ),
    1: ScoreInfo(1, "#FFC000", "Some", "Some capability - minor or scattered experience", light_text=False),
    0: ScoreInfo(0, "#E5E5E5", "None", "No capability", light_text=False),
}


def score_info(score: Score) -> Optional[ScoreInfo]:
    if score is None:
        return None
    return SCORE_CONFIG.get(score)


########################
# SPREADSHEET LAYOUT
########################

HEADER_SCAN_ROWS = 30
COMPANY_SCAN_ROWS = 20
COMPANY_SCAN_COLS = 4
DEFAULT_SHEET_NAME = "Sheet1"

REQ_NUMBER_KEYWORDS: Sequence[str] = ("req #", "req#", "requirement number", "req number")
REQUIREMENT_KEYWORD = "requirement"
COMPANY_KEYWORDS: Sequence[str] = ("company name",)
COMPANY_EXACT = "company"

EXPORT_TITLE = "Draft PWS - Capability Matrix"
EXPORT_SHEET_NAME = "Capability Matrix"
EXPORT_HEADERS: Sequence[str] = (
    "Req #",
    "Requirements",
    "Experience and Capability",
    "Past Performance",
    "Comments",
)
EXPORT_COLUMN_WIDTHS: Sequence[int] = (12, 50, 25, 30, 80)
EXPORT_HEADER_ROW = 9  # 1-indexed
EXPORT_FIRST_DATA_ROW = 10  # 1-indexed
EXPORT_HEADER_FILL = "#D9D9D9"


########################
# INGESTED DATA
########################


@dataclass(frozen=True)
class ParsedRow:
    """One ingested spreadsheet line, already normalized."""

    requirement_number: str
    requirements: str
    experience_and_capability: Score
    past_performance: str
    comments: str


@dataclass
class ParsedMatrix:
    name: str
    source_file: str
    rows: List[ParsedRow]
    sheet_name: Optional[str] = None


@dataclass
class ParseResult:
    matrices: List[ParsedMatrix] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def extend(self, other: "ParseResult") -> None:
        self.matrices.extend(other.matrices)
        self.errors.extend(other.errors)


########################
# PERSISTED DATA
########################


@dataclass
class MatrixRow:
    """A persisted (canonical) requirement row."""

    id: str
    matrix_id: str
    requirement_number: str = ""
    requirements: str = ""
    experience_and_capability: Score = None
    past_performance: str = ""
    comments: str = ""
    row_order: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "matrix_id": self.matrix_id,
            "requirement_number": self.requirement_number,
            "requirements": self.requirements,
            "experience_and_capability": self.experience_and_capability,
            "past_performance": self.past_performance,
            "comments": self.comments,
            "row_order": self.row_order,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "MatrixRow":
        score = data.get("experience_and_capability")
        return MatrixRow(
            id=str(data["id"]),
            matrix_id=str(data["matrix_id"]),
            requirement_number=str(data.get("requirement_number") or ""),
            requirements=str(data.get("requirements") or ""),
            experience_and_capability=int(score) if score is not None else None,
            past_performance=str(data.get("past_performance") or ""),
            comments=str(data.get("comments") or ""),
            row_order=int(data.get("row_order") or 0),
        )


@dataclass
class Matrix:
    id: str
    name: str
    is_imported: bool = False
    source_file: Optional[str] = None
    parent_matrix_id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class MatrixWithRows(Matrix):
    rows: List[MatrixRow] = field(default_factory=list)

    @classmethod
    def from_matrix(cls, matrix: Matrix, rows: List[MatrixRow]) -> "MatrixWithRows":
        return cls(
            id=matrix.id,
            name=matrix.name,
            is_imported=matrix.is_imported,
            source_file=matrix.source_file,
            parent_matrix_id=matrix.parent_matrix_id,
            created_at=matrix.created_at,
            updated_at=matrix.updated_at,
            rows=list(rows),
        )


# Row attributes that may be changed through a partial update, mapped to column names.
ROW_UPDATE_FIELDS: Dict[str, str] = {
    "requirement_number": "requirement_number",
    "requirements": "requirements",
    "experience_and_capability": "experience_and_capability",
    "past_performance": "past_performance",
    "comments": "comments",
    "row_order": "row_order",
}
