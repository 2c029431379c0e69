from datetime import date

import pytest

from cmm_common.normalize import normalize_requirement, normalize_score, value_to_text
from cmm_tool.cells import EMPTY, NumberCell, SheetGrid, TextCell, to_cell


@pytest.mark.parametrize("raw", [3, "3", 3.4, 2.6, " 3 ", "3.9"])
def test_normalize_score_maps_to_three(raw):
    assert normalize_score(raw) == 3


@pytest.mark.parametrize("raw", [-1, 4, "abc", "", None, 3.5, float("nan"), True])
def test_normalize_score_unrated(raw):
    assert normalize_score(raw) is None


def test_normalize_score_rounds_half_up():
    assert normalize_score(0.5) == 1
    assert normalize_score(2.49) == 2
    assert normalize_score(-0.4) == 0


def test_normalize_requirement_trims_and_casefolds():
    assert normalize_requirement("  Provide Support ") == "provide support"
    assert normalize_requirement("STRASSE") == normalize_requirement("straße")
    assert normalize_requirement(None) == ""


def test_value_to_text():
    assert value_to_text(4.0) == "4"
    assert value_to_text(1.5) == "1.5"
    assert value_to_text("  x ") == "x"
    assert value_to_text(date(2024, 1, 2)) == "2024-01-02"
    assert value_to_text(None) == ""


def test_to_cell_variants():
    assert to_cell(None) is EMPTY
    assert to_cell("   ") is EMPTY
    assert to_cell(2) == NumberCell(2)
    assert to_cell(" hi ") == TextCell("hi")
    assert to_cell(2.0).text() == "2"


def test_sheet_grid_out_of_range_is_empty():
    grid = SheetGrid([("a", None), ("b",)])
    assert grid.max_row == 1
    assert grid.max_col == 1
    assert grid.text(0, 0) == "a"
    assert grid.cell(1, 1) is EMPTY
    assert grid.cell(5, 0) is EMPTY
    assert SheetGrid([]).max_row == -1
