"""Tests for the Reflex state helpers."""

import pytest

pytest.importorskip("reflex")

from reflex_datatable.models import (  # noqa: E402
    Column,
    ColumnFilter,
    SortState,
)
from reflex_datatable.pipeline import DataPipeline  # noqa: E402
from reflex_datatable.state import (  # noqa: E402
    _json_safe,
    column_defs,
    drop_pipeline,
    find_row,
    get_pipeline,
    register_pipeline,
    snapshot_vars,
)


def test_column_defs_use_camel_case():
    [definition] = column_defs([Column(id="age", label="Age", filter_type="number", width=8)])
    assert definition["filterType"] == "number"
    assert definition["width"] == 8
    assert definition["sortable"] is True


def test_snapshot_vars(people, people_columns):
    pipeline = DataPipeline(people_columns, people, rows_per_page=2)
    pipeline.set_sort(SortState(column="age", direction="asc"))
    pipeline.set_filter("name", "e")
    pipeline.toggle_row(people[0])
    values = snapshot_vars(pipeline.snapshot())

    assert values["dt_sort"] == {"column": "age", "direction": "asc"}
    assert values["dt_filters"] == {"name": {"value": "e", "operator": "contains"}}
    assert values["dt_selected_keys"] == [1]
    assert values["dt_total_count"] == 3
    assert values["dt_total_pages"] == 2
    assert values["dt_error"] == ""
    assert values["dt_visible_columns"] == ["name", "age", "city.name"]


def test_json_safe_handles_cycles_and_tuples():
    row = {"t": (1, 2), "f": ColumnFilter(value="x")}
    row["self"] = row
    safe = _json_safe(row)
    assert safe["t"] == [1, 2]
    assert safe["self"] is None
    assert isinstance(safe["f"], str)


def test_registry_closes_replaced_pipelines(people_columns):
    first = DataPipeline(people_columns, [])
    second = DataPipeline(people_columns, [])
    register_pipeline("TableState:token", first)
    register_pipeline("TableState:token", second)
    assert first.closed
    assert get_pipeline("TableState:token") is second
    drop_pipeline("TableState:token")
    assert second.closed
    assert get_pipeline("TableState:token") is None


def test_find_row_matches_json_keys(people, people_columns):
    pipeline = DataPipeline(people_columns, people)
    assert find_row(pipeline, "3") is people[2]
    assert find_row(pipeline, 99) is None
