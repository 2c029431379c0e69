from io import BytesIO
from pathlib import Path

import openpyxl

from cmm_tool.cells import SheetGrid
from cmm_tool.importer import (
    extract_company_name,
    filename_from_path,
    find_header_info,
    parse_excel_file,
    parse_excel_files,
    parse_excel_paths,
    strip_excel_extension,
)


def _workbook_bytes(sheets):
    """Build an .xlsx in memory from {sheet_name: [(row, col, value), ...]} (1-indexed)."""

    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)
    for name, cells in sheets.items():
        ws = workbook.create_sheet(name)
        for row, col, value in cells:
            ws.cell(row=row, column=col, value=value)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _rows(start_row, rows, first_col=1):
    cells = []
    for offset, values in enumerate(rows):
        for col_offset, value in enumerate(values):
            if value is not None:
                cells.append((start_row + offset, first_col + col_offset, value))
    return cells


def test_header_in_row_five_without_req_column_auto_numbers():
    cells = _rows(5, [("Requirements", "Score", "Past Performance", "Comments")])
    cells += _rows(
        6,
        [
            ("Provide training", 3, "Contract A", "Strong"),
            ("Maintain simulators", "2", None, None),
            (None, 1, "orphan", None),
            ("Deliver reports", None, None, "n/a"),
        ],
    )
    result = parse_excel_file(_workbook_bytes({"Sheet1": cells}), "vendor.xlsx")

    assert result.errors == []
    assert len(result.matrices) == 1
    rows = result.matrices[0].rows
    assert [r.requirement_number for r in rows] == ["1", "2", "3"]
    assert [r.requirements for r in rows] == ["Provide training", "Maintain simulators", "Deliver reports"]
    assert [r.experience_and_capability for r in rows] == [3, 2, None]
    assert rows[0].past_performance == "Contract A"
    assert rows[2].comments == "n/a"


def test_req_number_column_is_used_verbatim():
    cells = _rows(1, [("Req #", "Requirements", "Score", "Past Performance", "Comments")])
    cells += _rows(2, [("1.2", "First", 1, None, None), ("1.10", "Second", 0, None, None), (None, "Third", None, None, None)])
    result = parse_excel_file(_workbook_bytes({"Sheet1": cells}), "vendor.xlsx")

    rows = result.matrices[0].rows
    assert [r.requirement_number for r in rows] == ["1.2", "1.10", "1"]
    assert [r.experience_and_capability for r in rows] == [1, 0, None]


def test_find_header_info_prefers_first_row_and_last_column():
    grid = SheetGrid(
        [
            ("title", None, None),
            ("Req Number", "Requirement", "Requirements"),
            ("Requirements", None, None),
        ]
    )
    header = find_header_info(grid)
    assert header.row == 1
    assert header.req_number_col == 0
    assert header.requirements_col == 2
    assert header.score_col == 3


def test_find_header_info_defaults_to_column_a():
    header = find_header_info(SheetGrid([("alpha", 1), ("beta", 2)]))
    assert header.row == 0
    assert header.requirements_col == 0
    assert header.req_number_col is None


def test_company_name_from_label_and_fallbacks():
    assert extract_company_name(SheetGrid([("Company Name:", "Acme Corp")]), "f.xlsx") == "Acme Corp"
    assert extract_company_name(SheetGrid([("Company", "Beta LLC")]), "f.xlsx") == "Beta LLC"
    assert extract_company_name(SheetGrid([("Requirements",)]), "vendor_a.xlsx") == "vendor_a"
    assert extract_company_name(SheetGrid([]), "vendor_a.xlsx", "Round 2") == "vendor_a - Round 2"
    assert extract_company_name(SheetGrid([]), "vendor_a.xlsx", "Sheet1") == "vendor_a"


def test_company_name_reads_only_the_adjacent_cell():
    grid = SheetGrid([("Company Name:", None, "Date:", "2024-01-01")])
    assert extract_company_name(grid, "vendor_a.xlsx") == "vendor_a"
    assert extract_company_name(SheetGrid([("Company", None, "Beta LLC")]), "f.xlsx") == "f"


def test_multi_sheet_workbook_yields_matrix_per_sheet():
    data = _workbook_bytes(
        {
            "Acme": _rows(1, [("Requirements",), ("Req A",)]),
            "Notes": _rows(1, [("nothing here",)]),
            "Beta": _rows(1, [("Company Name", "Beta Inc")]) + _rows(3, [("Requirements", "Score"), ("Req B", 3)]),
        }
    )
    result = parse_excel_file(data, "bids.xlsx")

    assert result.errors == []
    assert [m.name for m in result.matrices] == ["bids - Acme", "Beta Inc"]
    assert [m.sheet_name for m in result.matrices] == ["Acme", "Beta"]
    assert result.matrices[1].rows[0].experience_and_capability == 3


def test_workbook_without_rows_reports_no_valid_data():
    data = _workbook_bytes({"Sheet1": _rows(1, [("Requirements", "Score")])})
    result = parse_excel_file(data, "empty.xlsx")

    assert result.matrices == []
    assert result.errors == ["No valid data found in empty.xlsx"]


def test_unreadable_file_becomes_error_and_batch_continues():
    good = _workbook_bytes({"Sheet1": _rows(1, [("Requirements",), ("Keep going",)])})
    result = parse_excel_files([(b"not a workbook", "broken.xlsx"), (BytesIO(good), "good.xlsx")])

    assert len(result.matrices) == 1
    assert result.matrices[0].source_file == "good.xlsx"
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Failed to parse broken.xlsx: ")


def test_legacy_xls_is_reported_as_parse_failure():
    # BIFF signature; openpyxl only reads OOXML.
    result = parse_excel_file(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 512, "legacy.xls")

    assert result.matrices == []
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Failed to parse legacy.xls: ")


def test_parse_excel_paths_reads_from_disk(tmp_path: Path):
    path = tmp_path / "vendor_c.xlsx"
    path.write_bytes(_workbook_bytes({"Sheet1": _rows(1, [("Requirements",), ("From disk",)])}))

    result = parse_excel_paths([path, tmp_path / "missing.xlsx"])

    assert [m.name for m in result.matrices] == ["vendor_c"]
    assert result.errors and result.errors[0].startswith("Failed to parse missing.xlsx")


def test_strip_excel_extension_only_knows_ooxml():
    assert strip_excel_extension("bid.XLSX") == "bid"
    assert strip_excel_extension("bid.xlsm") == "bid"
    assert strip_excel_extension("bid.xls") == "bid.xls"


def test_filename_from_path_handles_both_separators():
    assert filename_from_path("C:\\bids\\vendor.xlsx") == "vendor.xlsx"
    assert filename_from_path("/tmp/bids/vendor.xlsx") == "vendor.xlsx"
    assert filename_from_path("vendor.xlsx") == "vendor.xlsx"
