"""
Capability-matrix tooling: spreadsheet import/export, SQLite store, side-by-side
comparison and reversible bulk requirement deletes.
"""

from .comparison import (  # noqa: F401
    ComparisonData,
    build_comparison_data,
    get_requirement_delete_info,
)
from .exporter import ExportMetadata, render_matrix, write_matrix  # noqa: F401
from .importer import parse_excel_file, parse_excel_files, parse_excel_paths  # noqa: F401
from .ledger import BulkDeleteResult, RequirementLedger, UndoJournal  # noqa: F401
from .session import PendingSaveQueue  # noqa: F401
from .store import MatrixStore  # noqa: F401

__all__ = [
    "ComparisonData",
    "build_comparison_data",
    "get_requirement_delete_info",
    "ExportMetadata",
    "render_matrix",
    "write_matrix",
    "parse_excel_file",
    "parse_excel_files",
    "parse_excel_paths",
    "BulkDeleteResult",
    "RequirementLedger",
    "UndoJournal",
    "PendingSaveQueue",
    "MatrixStore",
]
