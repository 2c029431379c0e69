"""Reversible "delete this requirement everywhere" operations."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from cmm_common.schema import MatrixRow

from .store import MatrixStore

LOGGER = logging.getLogger(__name__)


@dataclass
class BulkDeleteResult:
    requirement: str
    deleted_count: int = 0
    affected_matrix_ids: List[str] = field(default_factory=list)
    deleted_rows: List[MatrixRow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requirement": self.requirement,
            "deleted_count": self.deleted_count,
            "affected_matrix_ids": list(self.affected_matrix_ids),
            "deleted_rows": [row.to_dict() for row in self.deleted_rows],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BulkDeleteResult":
        rows = [MatrixRow.from_dict(row) for row in data.get("deleted_rows", [])]
        return cls(
            requirement=str(data.get("requirement", "")),
            deleted_count=int(data.get("deleted_count", len(rows))),
            affected_matrix_ids=[str(m) for m in data.get("affected_matrix_ids", [])],
            deleted_rows=rows,
        )


class UndoJournal:
    """The last bulk delete, kept on disk so an undo survives a restart."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Optional[BulkDeleteResult]:
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            if not data:
                return None
            return BulkDeleteResult.from_dict(data)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            LOGGER.warning("Ignoring unreadable undo journal %s: %s", self.path, exc)
            return None

    def save(self, result: BulkDeleteResult) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


class RequirementLedger:
    """
    Deletes rows by requirement across every matrix and puts them back.

    Holds a single level of undo: each delete that removes rows replaces the
    previous undo entry. When a journal is given the entry is also written to
    disk.
    """

    def __init__(self, store: MatrixStore, journal: Optional[UndoJournal] = None) -> None:
        self.store = store
        self.journal = journal
        self._last: Optional[BulkDeleteResult] = journal.load() if journal else None

    @property
    def last_delete(self) -> Optional[BulkDeleteResult]:
        return self._last

    def can_undo(self) -> bool:
        return self._last is not None and bool(self._last.deleted_rows)

    def delete_by_requirement(self, requirement: str) -> BulkDeleteResult:
        deleted_rows, affected = self.store.delete_rows_by_requirement(requirement)
        result = BulkDeleteResult(
            requirement=requirement,
            deleted_count=len(deleted_rows),
            affected_matrix_ids=affected,
            deleted_rows=deleted_rows,
        )
        if not deleted_rows:
            LOGGER.info('No rows match requirement "%s"', requirement)
            return result

        LOGGER.info(
            'Deleted %d row(s) for "%s" from %d matrix(es)',
            result.deleted_count,
            requirement,
            len(affected),
        )
        self._last = result
        if self.journal:
            self.journal.save(result)
        return result

    def restore(self, rows: List[MatrixRow]) -> List[str]:
        touched = self.store.restore_rows(rows)
        LOGGER.info("Restored %d row(s) into %d matrix(es)", len(rows), len(touched))
        return touched

    def undo(self) -> Optional[BulkDeleteResult]:
        """Restore the most recent delete; returns it, or None if there is nothing to undo."""

        if not self.can_undo():
            return None
        result = self._last
        self.restore(result.deleted_rows)
        self._last = None
        if self.journal:
            self.journal.clear()
        return result


__all__ = ["BulkDeleteResult", "RequirementLedger", "UndoJournal"]
