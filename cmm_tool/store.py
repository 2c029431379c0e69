"""
SQLite-backed persistence for matrices, rows and app settings.

Each public method is one transaction. Lookups that can miss return None rather
than raising. Requirement matching for bulk delete goes through the same Python
``normalize_requirement`` used by the comparison view (registered as a SQL
function) so both always select the same rows.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from cmm_common import numbering
from cmm_common.normalize import normalize_requirement, normalize_score
from cmm_common.schema import ROW_UPDATE_FIELDS, Matrix, MatrixRow, MatrixWithRows, ParsedMatrix, Score

LOGGER = logging.getLogger(__name__)

ACTIVE_MATRIX_KEY = "activeMatrixId"
DEFAULT_EMPTY_ROWS = 10

_SCHEMA = """
CREATE TABLE IF NOT EXISTS matrices (
    id TEXT PRIMARY KEY NOT NULL,
    name TEXT NOT NULL,
    is_imported INTEGER NOT NULL DEFAULT 0,
    source_file TEXT,
    parent_matrix_id TEXT REFERENCES matrices(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS matrix_rows (
    id TEXT PRIMARY KEY NOT NULL,
    matrix_id TEXT NOT NULL,
    requirement_number TEXT NOT NULL DEFAULT '',
    requirements TEXT NOT NULL DEFAULT '',
    experience_and_capability INTEGER,
    past_performance TEXT NOT NULL DEFAULT '',
    comments TEXT NOT NULL DEFAULT '',
    row_order INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (matrix_id) REFERENCES matrices(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS app_settings (
    key TEXT PRIMARY KEY NOT NULL,
    value TEXT
);
"""

_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_matrix_rows_matrix_id ON matrix_rows(matrix_id);
CREATE INDEX IF NOT EXISTS idx_matrix_rows_order ON matrix_rows(matrix_id, row_order);
CREATE INDEX IF NOT EXISTS idx_matrices_parent ON matrices(parent_matrix_id);
"""

# Columns added after the first schema version; (table, column, definition).
_LATE_COLUMNS: Sequence[Tuple[str, str, str]] = (
    ("matrices", "parent_matrix_id", "TEXT REFERENCES matrices(id) ON DELETE CASCADE"),
    ("matrix_rows", "requirement_number", "TEXT NOT NULL DEFAULT ''"),
)

_ROW_COLUMNS = (
    "id, matrix_id, requirement_number, requirements, experience_and_capability, "
    "past_performance, comments, row_order"
)


def generate_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


def current_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _matrix_from_row(row: sqlite3.Row) -> Matrix:
    return Matrix(
        id=row["id"],
        name=row["name"],
        is_imported=bool(row["is_imported"]),
        source_file=row["source_file"],
        parent_matrix_id=row["parent_matrix_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _matrix_row_from_row(row: sqlite3.Row) -> MatrixRow:
    return MatrixRow(
        id=row["id"],
        matrix_id=row["matrix_id"],
        requirement_number=row["requirement_number"] or "",
        requirements=row["requirements"] or "",
        experience_and_capability=normalize_score(row["experience_and_capability"]),
        past_performance=row["past_performance"] or "",
        comments=row["comments"] or "",
        row_order=int(row["row_order"]),
    )


def _row_params(row: MatrixRow) -> Tuple[Any, ...]:
    return (
        row.id,
        row.matrix_id,
        row.requirement_number,
        row.requirements,
        row.experience_and_capability,
        row.past_performance,
        row.comments,
        row.row_order,
    )


class MatrixStore:
    """CRUD over the capability-matrix database."""

    def __init__(self, db_path: Union[str, Path] = ":memory:") -> None:
        self.db_path = str(db_path)
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.create_function("normalize_requirement", 1, normalize_requirement, deterministic=True)
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.initialize()

    def __enter__(self) -> "MatrixStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def initialize(self) -> None:
        with self.conn:
            self.conn.executescript(_SCHEMA)
            for table, column, definition in _LATE_COLUMNS:
                existing = {r["name"] for r in self.conn.execute(f"PRAGMA table_info({table})")}
                if column not in existing:
                    LOGGER.info("Adding column %s.%s", table, column)
                    self.conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
            self.conn.executescript(_INDEXES)

    def close(self) -> None:
        self.conn.close()

    def _touch(self, matrix_ids: Iterable[str], now: Optional[str] = None) -> None:
        now = now or current_timestamp()
        self.conn.executemany(
            "UPDATE matrices SET updated_at = ? WHERE id = ?",
            [(now, matrix_id) for matrix_id in dict.fromkeys(matrix_ids)],
        )

    def _matrix_id_of_row(self, row_id: str) -> Optional[str]:
        found = self.conn.execute("SELECT matrix_id FROM matrix_rows WHERE id = ?", (row_id,)).fetchone()
        return found["matrix_id"] if found else None

    ########################
    # MATRICES
    ########################

    def _select_matrices(self, where: str = "", params: Sequence[Any] = ()) -> List[Matrix]:
        sql = f"SELECT * FROM matrices {where} ORDER BY created_at DESC, rowid DESC"
        return [_matrix_from_row(r) for r in self.conn.execute(sql, params)]

    def get_all_matrices(self) -> List[Matrix]:
        return self._select_matrices()

    def get_user_matrices(self) -> List[Matrix]:
        return self._select_matrices("WHERE is_imported = 0")

    def get_imported_matrices(self) -> List[Matrix]:
        return self._select_matrices("WHERE is_imported = 1")

    def get_template_matrices(self) -> List[Matrix]:
        """Matrices that are not linked to a parent template."""

        return self._select_matrices("WHERE parent_matrix_id IS NULL")

    def get_child_matrices(self, parent_id: str) -> List[Matrix]:
        return self._select_matrices("WHERE parent_matrix_id = ?", (parent_id,))

    def get_matrix_by_id(self, matrix_id: str) -> Optional[Matrix]:
        found = self.conn.execute("SELECT * FROM matrices WHERE id = ?", (matrix_id,)).fetchone()
        return _matrix_from_row(found) if found else None

    def get_matrix_with_rows(self, matrix_id: str) -> Optional[MatrixWithRows]:
        matrix = self.get_matrix_by_id(matrix_id)
        if matrix is None:
            return None
        return MatrixWithRows.from_matrix(matrix, self.get_matrix_rows(matrix_id))

    def create_matrix(
        self,
        name: str,
        *,
        is_imported: bool = False,
        source_file: Optional[str] = None,
        parent_matrix_id: Optional[str] = None,
    ) -> Matrix:
        matrix = Matrix(
            id=generate_id("matrix"),
            name=name,
            is_imported=is_imported,
            source_file=source_file,
            parent_matrix_id=parent_matrix_id,
        )
        matrix.created_at = matrix.updated_at = current_timestamp()
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO matrices (id, name, is_imported, source_file, parent_matrix_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    matrix.id,
                    matrix.name,
                    1 if is_imported else 0,
                    source_file,
                    parent_matrix_id,
                    matrix.created_at,
                    matrix.updated_at,
                ),
            )
        LOGGER.debug("Created matrix %s (%s)", matrix.id, name)
        return matrix

    def update_matrix_name(self, matrix_id: str, name: str) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE matrices SET name = ?, updated_at = ? WHERE id = ?",
                (name, current_timestamp(), matrix_id),
            )

    def delete_matrix(self, matrix_id: str) -> None:
        """Delete a matrix, its rows and any imported matrices linked to it."""

        with self.conn:
            # Explicit row delete so the cascade does not depend on the foreign_keys pragma.
            self.conn.execute("DELETE FROM matrix_rows WHERE matrix_id = ?", (matrix_id,))
            self.conn.execute("DELETE FROM matrices WHERE id = ?", (matrix_id,))
        LOGGER.debug("Deleted matrix %s", matrix_id)

    ########################
    # ROWS
    ########################

    def get_matrix_rows(self, matrix_id: str) -> List[MatrixRow]:
        cursor = self.conn.execute(
            f"SELECT {_ROW_COLUMNS} FROM matrix_rows WHERE matrix_id = ? ORDER BY row_order ASC, rowid ASC",
            (matrix_id,),
        )
        return [_matrix_row_from_row(r) for r in cursor]

    def get_matrix_row(self, row_id: str) -> Optional[MatrixRow]:
        found = self.conn.execute(f"SELECT {_ROW_COLUMNS} FROM matrix_rows WHERE id = ?", (row_id,)).fetchone()
        return _matrix_row_from_row(found) if found else None

    def get_all_rows(self) -> List[MatrixRow]:
        cursor = self.conn.execute(f"SELECT {_ROW_COLUMNS} FROM matrix_rows ORDER BY matrix_id, row_order, rowid")
        return [_matrix_row_from_row(r) for r in cursor]

    def _next_row_order(self, matrix_id: str) -> int:
        found = self.conn.execute(
            "SELECT MAX(row_order) AS max_order FROM matrix_rows WHERE matrix_id = ?",
            (matrix_id,),
        ).fetchone()
        max_order = found["max_order"] if found else None
        return (max_order if max_order is not None else -1) + 1

    def create_matrix_row(
        self,
        matrix_id: str,
        *,
        requirement_number: str = "",
        requirements: str = "",
        experience_and_capability: Score = None,
        past_performance: str = "",
        comments: str = "",
        row_order: Optional[int] = None,
    ) -> MatrixRow:
        with self.conn:
            if row_order is None:
                row_order = self._next_row_order(matrix_id)
            row = MatrixRow(
                id=generate_id("row"),
                matrix_id=matrix_id,
                requirement_number=requirement_number,
                requirements=requirements,
                experience_and_capability=normalize_score(experience_and_capability),
                past_performance=past_performance,
                comments=comments,
                row_order=row_order,
            )
            self.conn.execute(f"INSERT INTO matrix_rows ({_ROW_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)", _row_params(row))
            self._touch([matrix_id])
        return row

    def update_matrix_row(self, row_id: str, **changes: Any) -> None:
        """Partial update; only the given fields change."""

        unknown = sorted(set(changes) - set(ROW_UPDATE_FIELDS))
        if unknown:
            raise ValueError(f"Unknown row field(s): {', '.join(unknown)}")
        if not changes:
            return

        if "experience_and_capability" in changes:
            changes["experience_and_capability"] = normalize_score(changes["experience_and_capability"])

        assignments = ", ".join(f"{ROW_UPDATE_FIELDS[name]} = ?" for name in changes)
        with self.conn:
            self.conn.execute(
                f"UPDATE matrix_rows SET {assignments} WHERE id = ?",
                (*changes.values(), row_id),
            )
            matrix_id = self._matrix_id_of_row(row_id)
            if matrix_id:
                self._touch([matrix_id])

    def delete_matrix_row(self, row_id: str) -> None:
        with self.conn:
            matrix_id = self._matrix_id_of_row(row_id)
            self.conn.execute("DELETE FROM matrix_rows WHERE id = ?", (row_id,))
            if matrix_id:
                self._touch([matrix_id])

    def update_row_orders(self, updates: Sequence[Tuple[str, int]]) -> None:
        """Bulk-set ``row_order`` from (row_id, order) pairs."""

        if not updates:
            return
        with self.conn:
            matrix_ids = [m for m in (self._matrix_id_of_row(row_id) for row_id, _ in updates) if m]
            self.conn.executemany(
                "UPDATE matrix_rows SET row_order = ? WHERE id = ?",
                [(order, row_id) for row_id, order in updates],
            )
            self._touch(matrix_ids)

    def reorder_rows(self, matrix_id: str, ordered_ids: Sequence[str]) -> None:
        """
        Renumber every row of a matrix 0..n-1 in one transaction.

        Rows listed in ``ordered_ids`` come first in that order; any rows not
        listed keep their relative order after them.
        """

        current = [row.id for row in self.get_matrix_rows(matrix_id)]
        known = set(current)
        head = [row_id for row_id in dict.fromkeys(ordered_ids) if row_id in known]
        listed = set(head)
        final = head + [row_id for row_id in current if row_id not in listed]
        self.update_row_orders([(row_id, index) for index, row_id in enumerate(final)])

    def create_empty_rows(self, matrix_id: str, count: int = DEFAULT_EMPTY_ROWS) -> List[MatrixRow]:
        return [self.create_matrix_row(matrix_id, row_order=i) for i in range(count)]

    def create_matrix_with_rows(self, name: str, row_count: int = DEFAULT_EMPTY_ROWS, **kwargs: Any) -> MatrixWithRows:
        matrix = self.create_matrix(name, **kwargs)
        rows = self.create_empty_rows(matrix.id, row_count)
        return MatrixWithRows.from_matrix(matrix, rows)

    def assign_missing_numbers(self, matrix_id: str) -> int:
        """Give every unnumbered row (in display order) the number after its predecessor."""

        rows = self.get_matrix_rows(matrix_id)
        filled = numbering.fill_missing_numbers([row.requirement_number for row in rows])
        changed = [(number, row.id) for row, number in zip(rows, filled) if number != row.requirement_number]
        if changed:
            with self.conn:
                self.conn.executemany("UPDATE matrix_rows SET requirement_number = ? WHERE id = ?", changed)
                self._touch([matrix_id])
        return len(changed)

    def import_parsed_matrix(self, parsed: ParsedMatrix, parent_matrix_id: Optional[str] = None) -> MatrixWithRows:
        """Persist an ingested matrix as an imported matrix, keeping row order."""

        matrix = self.create_matrix(
            parsed.name,
            is_imported=True,
            source_file=parsed.source_file,
            parent_matrix_id=parent_matrix_id,
        )
        numbers = numbering.fill_missing_numbers([r.requirement_number for r in parsed.rows])
        rows = [
            MatrixRow(
                id=generate_id("row"),
                matrix_id=matrix.id,
                requirement_number=number,
                requirements=parsed_row.requirements,
                experience_and_capability=parsed_row.experience_and_capability,
                past_performance=parsed_row.past_performance,
                comments=parsed_row.comments,
                row_order=index,
            )
            for index, (parsed_row, number) in enumerate(zip(parsed.rows, numbers))
        ]
        with self.conn:
            self.conn.executemany(
                f"INSERT INTO matrix_rows ({_ROW_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [_row_params(row) for row in rows],
            )
        LOGGER.info("Imported %s with %d row(s) as %s", parsed.name, len(rows), matrix.id)
        return MatrixWithRows.from_matrix(matrix, rows)

    ########################
    # BULK REQUIREMENT OPERATIONS
    ########################

    def delete_rows_by_requirement(self, requirement: str) -> Tuple[List[MatrixRow], List[str]]:
        """
        Delete every row (any matrix) whose normalized text matches.

        Returns (deleted_rows, affected_matrix_ids); rows are captured before the
        delete so they can be restored verbatim.
        """

        key = normalize_requirement(requirement)
        if not key:
            # Blank requirements never appear in the comparison view.
            return [], []
        with self.conn:
            cursor = self.conn.execute(
                f"""
                SELECT {_ROW_COLUMNS} FROM matrix_rows
                WHERE normalize_requirement(requirements) = ?
                ORDER BY rowid
                """,
                (key,),
            )
            rows = [_matrix_row_from_row(r) for r in cursor]
            if not rows:
                return [], []
            self.conn.executemany("DELETE FROM matrix_rows WHERE id = ?", [(row.id,) for row in rows])
            affected = list(dict.fromkeys(row.matrix_id for row in rows))
            self._touch(affected)
        return rows, affected

    def restore_rows(self, rows: Sequence[MatrixRow]) -> List[str]:
        """
        Re-insert rows exactly as given (same id, matrix, fields and order).

        Rows whose matrix no longer exists are skipped. Returns the ids of the
        matrices touched.
        """

        if not rows:
            return []
        with self.conn:
            existing = {
                r["id"]
                for r in self.conn.execute(
                    f"SELECT id FROM matrices WHERE id IN ({', '.join('?' for _ in rows)})",
                    [row.matrix_id for row in rows],
                )
            }
            restorable = [row for row in rows if row.matrix_id in existing]
            skipped = len(rows) - len(restorable)
            if skipped:
                LOGGER.warning("Skipping %d row(s) whose matrix no longer exists", skipped)
            self.conn.executemany(
                f"INSERT OR REPLACE INTO matrix_rows ({_ROW_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [_row_params(row) for row in restorable],
            )
            touched = list(dict.fromkeys(row.matrix_id for row in restorable))
            self._touch(touched)
        return touched

    ########################
    # SETTINGS / STATS
    ########################

    def get_setting(self, key: str) -> Optional[str]:
        found = self.conn.execute("SELECT value FROM app_settings WHERE key = ?", (key,)).fetchone()
        return found["value"] if found else None

    def set_setting(self, key: str, value: Optional[str]) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO app_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def get_active_matrix_id(self) -> Optional[str]:
        return self.get_setting(ACTIVE_MATRIX_KEY)

    def set_active_matrix_id(self, matrix_id: Optional[str]) -> None:
        self.set_setting(ACTIVE_MATRIX_KEY, matrix_id)

    def count_matrices(self) -> Dict[str, int]:
        found = self.conn.execute(
            """
            SELECT COUNT(*) AS total,
                   COALESCE(SUM(CASE WHEN is_imported = 0 THEN 1 ELSE 0 END), 0) AS user,
                   COALESCE(SUM(CASE WHEN is_imported = 1 THEN 1 ELSE 0 END), 0) AS imported
            FROM matrices
            """
        ).fetchone()
        return {"total": found["total"], "user": found["user"], "imported": found["imported"]}


__all__ = ["MatrixStore", "generate_id", "current_timestamp", "ACTIVE_MATRIX_KEY"]
