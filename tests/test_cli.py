"""Tests for the command-line exporter."""

import pytest
import typer
from typer.testing import CliRunner

from reflex_datatable.cli import _parse_filter, app

runner = CliRunner()


@pytest.fixture
def people_csv(tmp_path):
    path = tmp_path / "people.csv"
    path.write_text("id,name,city\n1,Alice,Paris\n2,Bob,Berlin\n3,Carol,Boston\n")
    return path


def test_formats():
    result = runner.invoke(app, ["formats"])
    assert result.exit_code == 0
    assert "excel\tExcel\t.xlsx" in result.output
    assert "word\tWord\t.doc" in result.output


def test_export_with_search_and_sort(people_csv, tmp_path):
    target = tmp_path / "out.csv"
    result = runner.invoke(
        app,
        ["export", str(people_csv), "--search", "bo", "--sort", "name", "--desc", "-o", str(target)],
    )
    assert result.exit_code == 0, result.output
    assert "Wrote 2 rows" in result.output
    assert target.read_text() == "Id,Name,City\n3,Carol,Boston\n2,Bob,Berlin\n"


def test_export_single_page_into_directory(people_csv, tmp_path):
    out_dir = tmp_path / "exports"
    out_dir.mkdir()
    result = runner.invoke(
        app,
        [
            "export",
            str(people_csv),
            "--filter",
            "city:startsWith:b",
            "--page",
            "1",
            "--rows-per-page",
            "1",
            "--output",
            str(out_dir),
        ],
    )
    assert result.exit_code == 0, result.output
    [written] = list(out_dir.iterdir())
    assert written.name.startswith("people_") and written.suffix == ".csv"
    assert written.read_text() == "Id,Name,City\n3,Carol,Boston\n"


def test_export_excel(people_csv, tmp_path):
    target = tmp_path / "out.xlsx"
    result = runner.invoke(app, ["export", str(people_csv), "-f", "excel", "-o", str(target)])
    assert result.exit_code == 0, result.output
    assert "(Excel)" in result.output
    assert target.read_bytes()[:2] == b"PK"


def test_unknown_format(people_csv):
    result = runner.invoke(app, ["export", str(people_csv), "--format", "yaml"])
    assert result.exit_code == 1
    assert "unknown format" in result.output


def test_missing_file(tmp_path):
    result = runner.invoke(app, ["export", str(tmp_path / "nope.csv")])
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_bad_filter_is_a_usage_error(people_csv):
    result = runner.invoke(app, ["export", str(people_csv), "--filter", "city"])
    assert result.exit_code == 2


class TestParseFilter:
    def test_value_may_contain_colons(self):
        assert _parse_filter("time:equals:12:30") == ("time", "equals", "12:30")

    def test_between(self):
        assert _parse_filter("age:between:1,5") == ("age", "between", ("1", "5"))

    def test_valueless(self):
        assert _parse_filter("age:isEmpty") == ("age", "isEmpty", None)

    @pytest.mark.parametrize("spec", ["age", ":equals:1", "age:like:1", "age:contains"])
    def test_invalid(self, spec):
        with pytest.raises(typer.BadParameter):
            _parse_filter(spec)
