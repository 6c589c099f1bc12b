"""Full-text and advanced (multi-criteria) row matching for local mode."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any

from reflex_datatable.models import AdvancedSearchState, Column, Row, SearchCriterion
from reflex_datatable.paths import resolve_path

logger = logging.getLogger(__name__)


def _to_search_text(value: Any) -> str:
    """Stringify a scalar the way the filter box displays it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def extract_leaf_values(obj: Any) -> list[str]:
    """Collect every reachable leaf value of *obj* as a string.

    Walks mappings and sequences depth-first with an explicit stack.
    Composite values already visited during this call (tracked by ``id``)
    are skipped, so self-referencing rows terminate.  Dates contribute both
    their ISO form and their locale date string.
    """
    values: list[str] = []
    visited: set[int] = set()
    stack: list[Any] = [obj]

    while stack:
        current = stack.pop()
        if current is None:
            continue
        if isinstance(current, str):
            values.append(current)
        elif isinstance(current, (bool, int, float)):
            values.append(_to_search_text(current))
        elif isinstance(current, date):
            values.append(current.isoformat())
            values.append(current.strftime("%x"))
        elif isinstance(current, Mapping):
            if id(current) in visited:
                continue
            visited.add(id(current))
            stack.extend(reversed(list(current.values())))
        elif isinstance(current, Sequence) and not isinstance(current, (bytes, bytearray)):
            if id(current) in visited:
                continue
            visited.add(id(current))
            stack.extend(reversed(list(current)))

    return values


def matches_search(row: Row, term: str, columns: Iterable[Column] = ()) -> bool:
    """Return ``True`` if *term* occurs (case-insensitively) anywhere in *row*.

    Searchable columns are checked first through :func:`resolve_path`; when
    none matches, every leaf of the row is checked.  An empty term matches.
    """
    if not term:
        return True
    needle = term.lower()

    for column in columns:
        if column.searchable is False:
            continue
        value = resolve_path(row, column.id)
        if value is not None and needle in _to_search_text(value).lower():
            return True

    return any(needle in leaf.lower() for leaf in extract_leaf_values(row))


def _criterion_matches(row: Row, criterion: SearchCriterion) -> bool:
    value = resolve_path(row, criterion.field)
    if value is None:
        return False
    haystack = _to_search_text(value).lower()
    needle = str(criterion.value).strip().lower()

    operator = criterion.operator
    if operator == "CONTAINS":
        return needle in haystack
    if operator == "EQUALS":
        return haystack == needle
    if operator == "STARTS_WITH":
        return haystack.startswith(needle)
    if operator == "ENDS_WITH":
        return haystack.endswith(needle)
    logger.debug("Ignoring unknown search operator %r", operator)
    return True


def matches_advanced_search(row: Row, search: AdvancedSearchState) -> bool:
    """Evaluate the non-blank criteria of *search* against *row*.

    Criteria combine with AND when ``match_all`` is set, OR otherwise.  An
    inactive search (no criteria, or only blank ones) matches every row.
    """
    criteria = search.active_criteria
    if not criteria:
        return True
    if search.match_all:
        return all(_criterion_matches(row, c) for c in criteria)
    return any(_criterion_matches(row, c) for c in criteria)


def apply_search(
    rows: Iterable[Row],
    term: str,
    columns: Iterable[Column] = (),
) -> list[Row]:
    """Keep the rows that match the full-text *term*."""
    if not term:
        return list(rows)
    columns = tuple(columns)
    return [row for row in rows if matches_search(row, term, columns)]


def apply_advanced_search(rows: Iterable[Row], search: AdvancedSearchState) -> list[Row]:
    if not search.is_active:
        return list(rows)
    return [row for row in rows if matches_advanced_search(row, search)]
