"""
Shared capability-matrix schema, normalization and numbering helpers used by the
importer, exporter, comparison view and store.
"""

from .schema import (  # noqa: F401
    SCORE_CONFIG,
    SCORE_VALUES,
    Matrix,
    MatrixRow,
    MatrixWithRows,
    ParsedMatrix,
    ParsedRow,
    ParseResult,
    Score,
    ScoreInfo,
    score_info,
)

from .normalize import (  # noqa: F401
    normalize_requirement,
    normalize_score,
    value_to_text,
)

from . import numbering  # noqa: F401

__all__ = [
    "SCORE_CONFIG",
    "SCORE_VALUES",
    "Matrix",
    "MatrixRow",
    "MatrixWithRows",
    "ParsedMatrix",
    "ParsedRow",
    "ParseResult",
    "Score",
    "ScoreInfo",
    "score_info",
    "normalize_requirement",
    "normalize_score",
    "value_to_text",
    "numbering",
]
