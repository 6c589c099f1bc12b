"""Tests for full-text and advanced search."""

from datetime import date

from reflex_datatable.models import AdvancedSearchState, Column, SearchCriterion
from reflex_datatable.search import (
    apply_advanced_search,
    apply_search,
    extract_leaf_values,
    matches_search,
)


class TestExtractLeafValues:
    def test_flattens_nested_structures(self):
        row = {"a": "x", "b": {"c": [1, {"d": True}]}, "e": None}
        assert extract_leaf_values(row) == ["x", "1", "true"]

    def test_terminates_on_cycles(self):
        row = {"name": "loop"}
        row["self"] = row
        items = ["item"]
        items.append(items)
        row["items"] = items
        assert sorted(extract_leaf_values(row)) == ["item", "loop"]

    def test_dates_contribute_iso_and_locale_forms(self):
        day = date(2024, 1, 31)
        values = extract_leaf_values({"when": day})
        assert "2024-01-31" in values
        assert day.strftime("%x") in values


class TestMatchesSearch:
    def test_case_insensitive_substring(self):
        assert matches_search({"name": "Alice Smith"}, "SMITH")

    def test_empty_term_matches(self):
        assert matches_search({"name": "x"}, "")

    def test_finds_values_outside_configured_columns(self):
        row = {"name": "Alice", "notes": {"tag": "priority"}}
        assert matches_search(row, "prior", [Column(id="name", label="Name")])

    def test_no_match(self):
        assert not matches_search({"name": "Alice"}, "bob")

    def test_cyclic_row_does_not_hang(self):
        row = {"name": "Alice"}
        row["parent"] = row
        assert not matches_search(row, "zzz")


def test_apply_search_keeps_input_order(people, people_columns):
    result = apply_search(people, "bo", people_columns)
    assert [row["name"] for row in result] == ["Bob", "Carol"]


class TestAdvancedSearch:
    def test_match_all(self, people):
        search = AdvancedSearchState(
            criteria=(
                SearchCriterion(field="city.name", value="paris", operator="EQUALS"),
                SearchCriterion(field="name", value="a", operator="STARTS_WITH"),
            ),
            match_all=True,
        )
        assert [row["id"] for row in apply_advanced_search(people, search)] == [1]

    def test_match_any(self, people):
        search = AdvancedSearchState(
            criteria=(
                SearchCriterion(field="name", value="eve", operator="EQUALS"),
                SearchCriterion(field="city.name", value="LIN", operator="ENDS_WITH"),
            ),
            match_all=False,
        )
        assert [row["id"] for row in apply_advanced_search(people, search)] == [2, 5]

    def test_blank_criteria_are_ignored(self, people):
        search = AdvancedSearchState(criteria=(SearchCriterion(field="name", value="   "),))
        assert not search.is_active
        assert apply_advanced_search(people, search) == people

    def test_missing_field_does_not_match(self, people):
        search = AdvancedSearchState(criteria=(SearchCriterion(field="city.name", value="a"),))
        ids = [row["id"] for row in apply_advanced_search(people, search)]
        assert 5 not in ids
