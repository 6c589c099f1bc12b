"""Tests for the export dispatcher and shared cell rendering."""

import json
import logging
from datetime import date, datetime

import pytest

from reflex_datatable.exporting import (
    EXPORT_FORMATS,
    FORMAT_EXTENSIONS,
    exportable_columns,
    export_data,
    format_cell_value,
    generate_filename,
    render_heading,
    render_table,
)
from reflex_datatable.models import Column, ExportConfig

NAME = Column(id="name", label="Name")


class TestFormatCellValue:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, ""),
            (True, "Yes"),
            (False, "No"),
            (0, "0"),
            (2.5, "2.5"),
            ("text", "text"),
            ([1, 2], "[1, 2]"),
        ],
    )
    def test_defaults(self, value, expected):
        assert format_cell_value(value, {}, NAME, 0) == expected

    def test_mappings_become_json(self):
        text = format_cell_value({"a": 1, "b": "é"}, {}, NAME, 0)
        assert json.loads(text) == {"a": 1, "b": "é"}

    def test_dates_use_the_locale_date(self):
        day = date(2024, 7, 4)
        assert format_cell_value(day, {}, NAME, 0) == day.strftime("%x")

    def test_column_formatter_wins(self):
        calls = []

        def formatter(value, row, index):
            calls.append((value, row, index))
            return f"#{index}:{value}"

        column = Column(id="n", label="N", export_format=formatter)
        assert format_cell_value(None, {"n": None}, column, 3) == "#3:None"
        assert calls == [(None, {"n": None}, 3)]

    def test_formatter_returning_none_renders_empty(self):
        column = Column(id="n", label="N", export_format=lambda value, row, index: None)
        assert format_cell_value(5, {"n": 5}, column, 0) == ""

    def test_circular_values_do_not_raise(self):
        loop = {}
        loop["self"] = loop
        assert isinstance(format_cell_value(loop, {}, NAME, 0), str)


def test_generate_filename():
    assert generate_filename("my report", "csv", date(2024, 3, 9)) == "my_report_2024-03-09.csv"
    assert generate_filename("", "pdf", datetime(2024, 3, 9, 23, 0)) == "export_2024-03-09.pdf"


def test_exportable_columns_drop_excluded():
    columns = [NAME, Column(id="secret", label="Secret", exportable=False)]
    assert exportable_columns(columns) == [NAME]


class TestHeading:
    def test_title_is_always_escaped(self, fixed_config):
        config = ExportConfig(
            title="<b>Hi</b>",
            custom_header="<em>ok</em>",
            allow_unsafe_html=True,
            generated_at=fixed_config.generated_at,
        )
        heading = render_heading(config, 7)
        assert "&lt;b&gt;Hi&lt;/b&gt;" in heading
        assert "<em>ok</em>" in heading
        assert "Generated: 2024-03-09 14:05:07 | Records: 7" in heading

    def test_custom_header_escaped_by_default(self):
        heading = render_heading(ExportConfig(custom_header="<script>x</script>"), 0)
        assert "<script>" not in heading
        assert "&lt;script&gt;" in heading


def test_render_table_escapes_cells():
    table = render_table([{"name": "<img src=x>"}], [NAME])
    assert "<th>Name</th>" in table
    assert "<td>&lt;img src=x&gt;</td>" in table


class TestExportData:
    def test_unknown_format_returns_none(self, caplog):
        with caplog.at_level(logging.WARNING, logger="reflex_datatable.exporting"):
            assert export_data("yaml", [], [NAME]) is None
        assert "Unknown export format: yaml" in caplog.text

    @pytest.mark.parametrize("format", ["csv", "excel", "word"])
    def test_artifact_naming(self, format, fixed_config):
        artifact = export_data(format, [{"name": "x"}], [NAME], fixed_config)
        assert artifact.filename == f"report_2024-03-09.{FORMAT_EXTENSIONS[format]}"
        assert artifact.size == len(artifact.content) > 0

    def test_non_exportable_columns_are_dropped(self, fixed_config):
        columns = [NAME, Column(id="secret", label="Secret", exportable=False)]
        artifact = export_data("csv", [{"name": "a", "secret": "s"}], columns, fixed_config)
        assert artifact.content == b"Name\na\n"

    def test_format_names(self):
        assert EXPORT_FORMATS == ("csv", "excel", "pdf", "word")
