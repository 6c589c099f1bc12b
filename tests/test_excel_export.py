"""Tests for spreadsheet export, read back with openpyxl."""

import io
import zipfile
from datetime import datetime

import openpyxl
import pytest

from reflex_datatable.excel_export import SHEET_TITLE, export_to_excel, render_xlsx
from reflex_datatable.models import Column, ExportConfig

COLUMNS = [
    Column(id="name", label="Name"),
    Column(id="age", label="Age"),
    Column(id="notes", label="Notes", width=40),
]


def _load(content):
    return openpyxl.load_workbook(io.BytesIO(content))


@pytest.fixture
def sheet(fixed_config):
    rows = [
        {"name": "=1+1", "age": 30, "notes": "+cmd|' /C calc'!A0"},
        {"name": "Bob", "age": 2.5, "notes": None},
        {"name": "Eve", "age": True, "notes": ["a", "b"]},
    ]
    return _load(render_xlsx(rows, COLUMNS, fixed_config))[SHEET_TITLE]


class TestCells:
    def test_header_row(self, sheet):
        assert [cell.value for cell in sheet[1]] == ["Name", "Age", "Notes"]
        assert sheet["A1"].font.bold

    def test_formula_text_stays_text(self, sheet):
        assert sheet["A2"].value == "=1+1"
        assert sheet["A2"].data_type != "f"
        assert sheet["C2"].value == "+cmd|' /C calc'!A0"
        assert sheet["C2"].data_type != "f"

    def test_numbers_stay_numeric(self, sheet):
        assert sheet["B2"].value == 30
        assert sheet["B3"].value == 2.5

    def test_other_values_use_the_text_form(self, sheet):
        assert sheet["B4"].value == "Yes"
        assert sheet["C3"].value in ("", None)
        assert sheet["C4"].value == '["a", "b"]'

    def test_column_widths(self, sheet):
        assert sheet.column_dimensions["A"].width == 10
        assert sheet.column_dimensions["C"].width == 40


def test_title_rows_are_merged(fixed_config):
    config = ExportConfig(title="Team", subtitle="All staff", generated_at=fixed_config.generated_at)
    sheet = _load(render_xlsx([{"name": "a", "age": 1}], COLUMNS, config))[SHEET_TITLE]
    merged = {str(cell_range) for cell_range in sheet.merged_cells.ranges}
    assert {"A1:C1", "A2:C2"} <= merged
    assert sheet["A1"].value == "Team"
    assert sheet["A2"].value == "All staff"
    assert sheet["A4"].value == "Name"
    assert sheet["A5"].value == "a"


def test_workbook_metadata_is_pinned(fixed_config):
    content = render_xlsx([], COLUMNS, fixed_config)
    workbook = _load(content)
    assert workbook.properties.created.replace(tzinfo=None) == datetime(2024, 3, 9, 14, 5, 7)
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        assert {info.date_time for info in archive.infolist()} == {(1980, 1, 1, 0, 0, 0)}


def test_artifact(fixed_config):
    artifact = export_to_excel([{"name": "x"}], COLUMNS, fixed_config)
    assert artifact.filename == "report_2024-03-09.xlsx"
    assert artifact.media_type.endswith("spreadsheetml.sheet")
    assert zipfile.is_zipfile(io.BytesIO(artifact.content))


def test_control_characters_do_not_abort_export(fixed_config):
    config = ExportConfig(title="Bell\x07", generated_at=fixed_config.generated_at)
    rows = [{"name": "ok"}, {"name": "bad\x01value", "notes": "tab\tkept"}, {"name": "last"}]
    sheet = _load(render_xlsx(rows, COLUMNS, config))[SHEET_TITLE]
    assert sheet["A1"].value == "Bell"
    assert [sheet.cell(row=r, column=1).value for r in range(4, 7)] == ["ok", "badvalue", "last"]
    assert sheet["C5"].value == "tab\tkept"
