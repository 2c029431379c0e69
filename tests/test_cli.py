from io import BytesIO
from pathlib import Path

import openpyxl
import pandas as pd
import pytest

from cmm_tool import cli
from cmm_tool.cli import main
from cmm_tool.store import MatrixStore


def _vendor_workbook(path: Path, company: str, rows):
    workbook = openpyxl.Workbook()
    ws = workbook.active
    ws.append(["Company Name", company])
    ws.append([])
    ws.append(["Req #", "Requirements", "Score", "Past Performance", "Comments"])
    for row in rows:
        ws.append(list(row))
    buffer = BytesIO()
    workbook.save(buffer)
    path.write_bytes(buffer.getvalue())
    return path


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch):
    config = tmp_path / "cmm.yaml"
    config.write_text("store:\n  db_path: cmm.db\nexport:\n  output_dir: out\n", encoding="utf-8")
    monkeypatch.setenv("CMM_CONFIG", str(config))
    _vendor_workbook(tmp_path / "acme.xlsx", "Acme", [("1", "Foo", 3, "Program X", ""), ("2", "Bar", 1, "", "")])
    _vendor_workbook(tmp_path / "beta.xlsx", "Beta", [("1", " foo ", 2, "", "note")])
    return tmp_path


def _matrix_ids(db_path: Path):
    with MatrixStore(db_path) as store:
        return {m.name: m.id for m in store.get_all_matrices()}


def test_import_compare_and_export(workspace: Path, capsys):
    assert main(["new", "Template", "--rows", "2"]) == 0
    template_id = _matrix_ids(workspace / "cmm.db")["Template"]

    assert main(["import", str(workspace / "acme.xlsx"), str(workspace / "beta.xlsx"), "--parent", template_id]) == 0
    assert "2 matrix(es) imported, 0 warning(s)" in capsys.readouterr().out

    csv_path = workspace / "comparison.csv"
    assert main(["compare", "--template", template_id, "--output", str(csv_path)]) == 0
    frame = pd.read_csv(csv_path)
    # Newest import comes first, so Beta's casing wins.
    assert frame["Requirement"].tolist() == ["foo", "Bar"]
    assert len(frame.columns) == 7

    acme_id = _matrix_ids(workspace / "cmm.db")["Acme"]
    assert main(["export", acme_id, "--date", "2024-05-01", "--version", "1.1"]) == 0
    exported = workspace / "out" / "Capability_Matrix_Acme_2024-05-01.xlsx"
    ws = openpyxl.load_workbook(exported)["Capability Matrix"]
    assert ws["C7"].value == "1.1"
    assert ws["B10"].value == "Foo"


def test_delete_requirement_needs_confirmation_then_undo(workspace: Path, capsys):
    main(["import", str(workspace / "acme.xlsx"), str(workspace / "beta.xlsx")])
    capsys.readouterr()

    assert main(["delete-requirement", "FOO"]) == 1
    out = capsys.readouterr().out
    assert "has data in 2 matrix(es)" in out
    assert "Acme: score 3 (Excellent), past performance" in out

    assert main(["delete-requirement", "FOO", "--yes"]) == 0
    assert "Deleted 2 row(s) from 2 matrix(es)" in capsys.readouterr().out

    assert main(["undo"]) == 0
    assert 'Restored 2 row(s) for "FOO"' in capsys.readouterr().out
    assert main(["undo"]) == 1


def test_import_reports_failures(workspace: Path, capsys):
    broken = workspace / "broken.xlsx"
    broken.write_bytes(b"nope")

    assert main(["import", str(broken)]) == 1
    out = capsys.readouterr().out
    assert "0 matrix(es) imported, 1 warning(s)" in out
    assert "Failed to parse broken.xlsx" in out


def test_list_and_missing_matrix(workspace: Path, capsys):
    assert main(["list"]) == 0
    assert "No matrices." in capsys.readouterr().out
    assert main(["export", "matrix-missing"]) == 2
    assert main(["number", "matrix-missing"]) == 2


def test_invalid_config_exits_with_error(tmp_path: Path, monkeypatch):
    bad = tmp_path / "bad.yaml"
    bad.write_text("- nope\n", encoding="utf-8")
    assert main(["--config", str(bad), "list"]) == 2


def test_edit_row_saves_through_session_with_configured_delay(tmp_path: Path, monkeypatch, capsys):
    config = tmp_path / "cmm.yaml"
    config.write_text("store:\n  db_path: cmm.db\nsession:\n  debounce_seconds: 2.5\n", encoding="utf-8")
    monkeypatch.setenv("CMM_CONFIG", str(config))
    main(["new", "Template", "--rows", "1"])
    with MatrixStore(tmp_path / "cmm.db") as store:
        row_id = store.get_all_rows()[0].id

    delays = []
    real_queue = cli.PendingSaveQueue

    def recording_queue(store, delay):
        delays.append(delay)
        return real_queue(store, delay=delay)

    monkeypatch.setattr(cli, "PendingSaveQueue", recording_queue)
    assert main(["edit-row", row_id, "--requirements", "Provide support", "--score", "2", "--number", "1.1"]) == 0

    assert delays == [2.5]
    assert "Updated" in capsys.readouterr().out
    with MatrixStore(tmp_path / "cmm.db") as store:
        row = store.get_matrix_row(row_id)
    assert (row.requirement_number, row.requirements, row.experience_and_capability) == ("1.1", "Provide support", 2)


def test_edit_row_rejects_missing_row_and_empty_change(workspace: Path):
    assert main(["edit-row", "row-missing", "--comments", "x"]) == 2
    main(["new", "Template", "--rows", "1"])
    with MatrixStore(workspace / "cmm.db") as store:
        row_id = store.get_all_rows()[0].id
    assert main(["edit-row", row_id]) == 2
