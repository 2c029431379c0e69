import json
import logging
from pathlib import Path

import pytest

from cmm_tool.comparison import build_comparison_data
from cmm_tool.ledger import BulkDeleteResult, RequirementLedger, UndoJournal
from cmm_tool.store import MatrixStore


@pytest.fixture
def store():
    with MatrixStore() as s:
        yield s


def _seed(store):
    a = store.create_matrix("Acme", is_imported=True)
    b = store.create_matrix("Beta", is_imported=True)
    store.create_matrix_row(a.id, requirement_number="1", requirements="Foo", experience_and_capability=3)
    store.create_matrix_row(a.id, requirement_number="2", requirements="Bar", comments="keep")
    store.create_matrix_row(b.id, requirement_number="1", requirements="Baz")
    store.create_matrix_row(b.id, requirement_number="2", requirements=" foo ", past_performance="PP")
    return a, b


def _snapshot(store):
    return {m.id: store.get_matrix_rows(m.id) for m in store.get_all_matrices()}


def test_delete_then_restore_reproduces_rows(store):
    a, b = _seed(store)
    before = _snapshot(store)
    ledger = RequirementLedger(store)

    result = ledger.delete_by_requirement("Foo")

    assert result.deleted_count == 2
    assert result.affected_matrix_ids == [a.id, b.id]
    assert [r.requirements for r in store.get_matrix_rows(a.id)] == ["Bar"]
    assert [r.requirements for r in store.get_matrix_rows(b.id)] == ["Baz"]

    touched = ledger.restore(result.deleted_rows)

    assert touched == [a.id, b.id]
    assert _snapshot(store) == before


def test_delete_bumps_updated_timestamp_of_affected_matrices(store):
    a, b = _seed(store)
    other = store.create_matrix("Untouched")
    store.conn.execute("UPDATE matrices SET updated_at = '2000-01-01'")
    store.conn.commit()

    RequirementLedger(store).delete_by_requirement("FOO")

    assert store.get_matrix_by_id(a.id).updated_at > "2000-01-01"
    assert store.get_matrix_by_id(b.id).updated_at > "2000-01-01"
    assert store.get_matrix_by_id(other.id).updated_at == "2000-01-01"


def test_delete_with_no_match_is_a_no_op(store):
    _seed(store)
    ledger = RequirementLedger(store)

    result = ledger.delete_by_requirement("does not exist")

    assert result.deleted_count == 0
    assert result.affected_matrix_ids == []
    assert result.deleted_rows == []
    assert not ledger.can_undo()
    assert len(store.get_all_rows()) == 4


def test_blank_requirement_deletes_nothing(store):
    template = store.create_matrix_with_rows("Template")
    vendor = store.create_matrix("Vendor", is_imported=True, parent_matrix_id=template.id)
    store.create_matrix_row(vendor.id, requirements="Foo", experience_and_capability=2)
    store.create_matrix_row(vendor.id, requirements="   ", comments="vendor note")
    shown = build_comparison_data([store.get_matrix_with_rows(m.id) for m in (template, vendor)])
    assert [r.requirement for r in shown.rows] == ["Foo"]

    ledger = RequirementLedger(store)
    result = ledger.delete_by_requirement("  ")

    assert result.deleted_count == 0
    assert result.affected_matrix_ids == []
    assert len(store.get_all_rows()) == 12
    assert not ledger.can_undo()


def test_undo_is_single_level(store):
    _seed(store)
    ledger = RequirementLedger(store)
    ledger.delete_by_requirement("Foo")
    ledger.delete_by_requirement("Bar")

    undone = ledger.undo()

    assert undone.requirement == "Bar"
    remaining = sorted(r.requirements.strip() for r in store.get_all_rows())
    assert remaining == ["Bar", "Baz"]
    assert ledger.undo() is None


def test_journal_lets_undo_survive_restart(store, tmp_path: Path):
    _seed(store)
    journal_path = tmp_path / "state" / "last_delete.json"
    RequirementLedger(store, UndoJournal(journal_path)).delete_by_requirement("foo")

    saved = json.loads(journal_path.read_text(encoding="utf-8"))
    assert saved["deleted_count"] == 2
    assert {row["requirements"] for row in saved["deleted_rows"]} == {"Foo", " foo "}

    fresh = RequirementLedger(store, UndoJournal(journal_path))
    assert fresh.can_undo()
    fresh.undo()

    assert len(store.get_all_rows()) == 4
    assert not journal_path.exists()


@pytest.mark.parametrize("content", ["{not json", '["a", "list"]', '{"deleted_rows": [{"id": "r1"}]}'])
def test_corrupt_journal_is_treated_as_empty(store, tmp_path: Path, caplog, content):
    _seed(store)
    journal_path = tmp_path / "last_delete.json"
    journal_path.write_text(content, encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        ledger = RequirementLedger(store, UndoJournal(journal_path))

    assert "Ignoring unreadable undo journal" in caplog.text
    assert not ledger.can_undo()
    assert ledger.undo() is None
    assert ledger.delete_by_requirement("Foo").deleted_count == 2
    assert ledger.can_undo()


def test_bulk_delete_result_round_trips_through_dict():
    result = BulkDeleteResult(requirement="Foo")
    assert BulkDeleteResult.from_dict(result.to_dict()) == result
