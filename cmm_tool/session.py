"""
Debounced auto-save for an editing session.

Edits to the same row are merged and written once the row has been quiet for
``delay`` seconds. The queue belongs to one session and is passed explicitly to
whatever issues writes; closing it flushes everything still pending.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from cmm_common.schema import ROW_UPDATE_FIELDS

from .store import MatrixStore

LOGGER = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


class PendingSaveQueue:
    def __init__(
        self,
        store: MatrixStore,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.delay = delay
        self._clock = clock
        self._pending: Dict[str, Dict[str, Any]] = {}
        self._last_change: Dict[str, float] = {}
        self._closed = False

    def __enter__(self) -> "PendingSaveQueue":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._pending)

    def pending(self, row_id: str) -> Optional[Dict[str, Any]]:
        changes = self._pending.get(row_id)
        return dict(changes) if changes is not None else None

    def queue(self, row_id: str, **changes: Any) -> None:
        """Merge ``changes`` into the row's pending update and restart its timer."""

        if self._closed:
            raise RuntimeError("Cannot queue changes on a closed session")
        unknown = sorted(set(changes) - set(ROW_UPDATE_FIELDS))
        if unknown:
            raise ValueError(f"Unknown row field(s): {', '.join(unknown)}")

        self._pending.setdefault(row_id, {}).update(changes)
        self._last_change[row_id] = self._clock()

    def discard(self, row_id: str) -> None:
        """Drop pending changes for a row (e.g. it was deleted)."""

        self._pending.pop(row_id, None)
        self._last_change.pop(row_id, None)

    def _write(self, row_ids: List[str]) -> List[str]:
        written: List[str] = []
        for row_id in row_ids:
            changes = self._pending.pop(row_id)
            self._last_change.pop(row_id, None)
            try:
                self.store.update_matrix_row(row_id, **changes)
            except Exception:
                LOGGER.exception("Failed to save row %s", row_id)
                continue
            written.append(row_id)
        if written:
            LOGGER.debug("Saved %d row(s)", len(written))
        return written

    def flush_if_due(self) -> List[str]:
        """Write rows whose last change is at least ``delay`` seconds old."""

        now = self._clock()
        due = [row_id for row_id, changed in self._last_change.items() if now - changed >= self.delay]
        return self._write(due)

    def flush(self) -> List[str]:
        return self._write(list(self._pending))

    def close(self) -> None:
        if self._closed:
            return
        self.flush()
        self._closed = True


__all__ = ["PendingSaveQueue", "DEFAULT_DEBOUNCE_SECONDS"]
