"""Tests for per-column predicate filters."""

import pytest

from reflex_datatable.filters import apply_filters, evaluate_filter, is_empty_value, set_filter
from reflex_datatable.models import ColumnFilter


class TestEvaluateFilter:
    @pytest.mark.parametrize(
        "value, operator, target, expected",
        [
            ("Alice", "equals", "alice", True),
            ("Alice", "equals", "ali", False),
            ("Alice", "contains", "LIC", True),
            ("Alice", "startsWith", "al", True),
            ("Alice", "endsWith", "CE", True),
            ("Alice", "endsWith", "al", False),
            (42, "equals", "42", True),
            (True, "equals", "true", True),
        ],
    )
    def test_string_operators(self, value, operator, target, expected):
        assert evaluate_filter(value, ColumnFilter(value=target, operator=operator)) is expected

    def test_numeric_comparisons(self):
        assert evaluate_filter(10, ColumnFilter(value="5", operator="greaterThan"))
        assert not evaluate_filter(10, ColumnFilter(value=10, operator="greaterThan"))
        assert evaluate_filter("3.5", ColumnFilter(value=4, operator="lessThan"))

    @pytest.mark.parametrize("target", [27, "27"])
    def test_integral_floats_compare_as_displayed(self, target):
        assert evaluate_filter(27.0, ColumnFilter(value=target, operator="equals"))
        assert evaluate_filter(27.0, ColumnFilter(value=target, operator="endsWith"))
        assert evaluate_filter(2.5, ColumnFilter(value="2.5", operator="equals"))

    def test_non_numeric_never_matches_numeric_operators(self):
        assert not evaluate_filter("abc", ColumnFilter(value=1, operator="greaterThan"))
        assert not evaluate_filter(5, ColumnFilter(value="abc", operator="lessThan"))

    def test_between_is_inclusive(self):
        bounds = ColumnFilter(value=(10, 20), operator="between")
        assert evaluate_filter(10, bounds)
        assert evaluate_filter(20, bounds)
        assert not evaluate_filter(21, bounds)

    def test_between_with_malformed_bounds(self):
        assert not evaluate_filter(5, ColumnFilter(value="1-10", operator="between"))
        assert not evaluate_filter(5, ColumnFilter(value=(1,), operator="between"))

    def test_empty_checks(self):
        assert evaluate_filter(None, ColumnFilter(operator="isEmpty"))
        assert evaluate_filter("", ColumnFilter(operator="isEmpty"))
        assert not evaluate_filter(0, ColumnFilter(operator="isEmpty"))
        assert evaluate_filter(False, ColumnFilter(operator="isNotEmpty"))

    def test_missing_value_fails_value_operators(self):
        assert not evaluate_filter(None, ColumnFilter(value="", operator="contains"))

    def test_unknown_operator_matches(self):
        assert evaluate_filter("x", ColumnFilter(value="y", operator="regex"))


def test_is_empty_value():
    assert is_empty_value(None)
    assert is_empty_value("")
    assert not is_empty_value([])
    assert not is_empty_value(0)


class TestApplyFilters:
    def test_predicates_combine_with_and(self, people):
        filters = {
            "age": ColumnFilter(value=30, operator="lessThan"),
            "city.name": ColumnFilter(value="b", operator="startsWith"),
        }
        assert [row["id"] for row in apply_filters(people, filters)] == [2]

    def test_accepts_plain_dicts(self, people):
        filters = {"name": {"value": "o", "operator": "contains"}}
        assert [row["name"] for row in apply_filters(people, filters)] == ["Bob", "Carol"]

    def test_no_filters_returns_all_rows(self, people):
        assert apply_filters(people, {}) == people

    def test_rows_are_not_modified(self, people):
        before = [dict(row) for row in people]
        apply_filters(people, {"age": ColumnFilter(value=1, operator="greaterThan")})
        assert people == before


class TestSetFilter:
    def test_adds_and_replaces(self):
        filters = set_filter({}, "name", "al")
        assert filters == {"name": ColumnFilter(value="al", operator="contains")}
        filters = set_filter(filters, "name", "bo", "startsWith")
        assert filters["name"] == ColumnFilter(value="bo", operator="startsWith")

    def test_empty_value_removes(self):
        filters = {"name": ColumnFilter(value="al")}
        assert set_filter(filters, "name", "") == {}
        assert filters == {"name": ColumnFilter(value="al")}

    def test_valueless_operator_is_kept(self):
        filters = set_filter({}, "age", None, "isEmpty")
        assert filters["age"].operator == "isEmpty"

    def test_list_values_become_tuples(self):
        filters = set_filter({}, "age", [1, 5], "between")
        assert filters["age"].value == (1, 5)
