"""Per-column predicate filters (local mode)."""

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from reflex_datatable.models import VALUELESS_OPERATORS, ColumnFilter, Row
from reflex_datatable.paths import resolve_path
from reflex_datatable.search import _to_search_text

logger = logging.getLogger(__name__)


def _coerce_numeric(value: Any) -> int | float | None:
    """Try to coerce *value* to a finite number."""
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        # Try int first, then float
        for conv in (int, float):
            try:
                number = conv(value)
            except ValueError:
                continue
            if isinstance(number, float) and math.isnan(number):
                return None
            return number
    return None


def is_empty_value(value: Any) -> bool:
    """``None`` and ``""`` are empty; ``0``, ``False`` and ``[]`` are not."""
    return value is None or (isinstance(value, str) and value == "")


def _to_compare_text(value: Any) -> str:
    return _to_search_text(value).lower()


def evaluate_filter(value: Any, column_filter: ColumnFilter) -> bool:
    """Apply one predicate to an already-resolved cell *value*."""
    operator = column_filter.operator

    if operator == "isEmpty":
        return is_empty_value(value)
    if operator == "isNotEmpty":
        return not is_empty_value(value)

    # A missing value never satisfies a value-bearing operator.
    if value is None:
        return False

    if operator in ("greaterThan", "lessThan"):
        left = _coerce_numeric(value)
        right = _coerce_numeric(column_filter.value)
        if left is None or right is None:
            return False
        return left > right if operator == "greaterThan" else left < right

    if operator == "between":
        bounds = column_filter.value
        if isinstance(bounds, (str, bytes)) or not isinstance(bounds, Sequence) or len(bounds) != 2:
            return False
        number = _coerce_numeric(value)
        low, high = _coerce_numeric(bounds[0]), _coerce_numeric(bounds[1])
        if number is None or low is None or high is None:
            return False
        return low <= number <= high

    haystack = _to_compare_text(value)
    needle = "" if column_filter.value is None else _to_compare_text(column_filter.value)
    if operator == "equals":
        return haystack == needle
    if operator == "contains":
        return needle in haystack
    if operator == "startsWith":
        return haystack.startswith(needle)
    if operator == "endsWith":
        return haystack.endswith(needle)

    logger.debug("Ignoring unknown filter operator %r", operator)
    return True


def row_matches_filters(row: Row, filters: Mapping[str, ColumnFilter]) -> bool:
    return all(
        evaluate_filter(resolve_path(row, column_id), column_filter)
        for column_id, column_filter in filters.items()
    )


def apply_filters(rows: Iterable[Row], filters: Mapping[str, ColumnFilter]) -> list[Row]:
    """Keep the rows that satisfy every predicate in *filters* (logical AND).

    Args:
        rows: Rows to filter; they are not modified.
        filters: ``{column_id: ColumnFilter}``.  Plain
            ``{"value": ..., "operator": ...}`` dicts are accepted too.

    Returns:
        A new list preserving the input order.
    """
    if not filters:
        return list(rows)
    normalized = {key: ColumnFilter.coerce(f) for key, f in filters.items()}
    return [row for row in rows if row_matches_filters(row, normalized)]


def set_filter(
    filters: Mapping[str, ColumnFilter],
    column_id: str,
    value: Any,
    operator: str = "contains",
) -> dict[str, ColumnFilter]:
    """Return a new filter state with *column_id* set, replaced or removed.

    An empty value (``None`` or ``""``) removes the predicate, except for
    the valueless operators ``isEmpty`` / ``isNotEmpty``.
    """
    updated = dict(filters)
    if operator not in VALUELESS_OPERATORS and is_empty_value(value):
        updated.pop(column_id, None)
        return updated
    if isinstance(value, list):
        value = tuple(value)
    updated[column_id] = ColumnFilter(value=value, operator=operator)  # type: ignore[arg-type]
    return updated
