"""Stable single-column sorting (local mode)."""

import functools
import locale
import math
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from reflex_datatable.models import Row, SortState
from reflex_datatable.paths import resolve_path


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same_date_kind(a: Any, b: Any) -> bool:
    # datetime is a date subclass but the two do not order against each other.
    if isinstance(a, datetime) or isinstance(b, datetime):
        return isinstance(a, datetime) and isinstance(b, datetime)
    return isinstance(a, date) and isinstance(b, date)


def _sign(number: float) -> int:
    return (number > 0) - (number < 0)


def compare_values(a: Any, b: Any) -> int:
    """Ascending three-way comparison of two present cell values.

    Numbers compare numerically, strings with the current locale collation,
    and two dates of the same kind chronologically.  Anything else falls back
    to a collation of the string forms.
    """
    if _is_number(a) and _is_number(b):
        return _sign(a - b)
    if isinstance(a, str) and isinstance(b, str):
        return _sign(locale.strcoll(a, b))
    if _same_date_kind(a, b):
        try:
            return (a > b) - (a < b)
        except TypeError:
            # naive vs aware datetimes
            pass
    return _sign(locale.strcoll(str(a), str(b)))


def apply_sort(rows: Iterable[Row], sort: SortState) -> list[Row]:
    """Sort *rows* by ``sort.column``.

    Missing values (``None`` or a NaN float) go last in both
    directions.  Ties keep their input order.  With no active sort the input
    order is returned unchanged.
    """
    rows = list(rows)
    if not sort.is_active:
        return rows

    column = sort.column
    descending = sort.direction == "desc"

    present: list[tuple[Any, Row]] = []
    missing: list[Row] = []
    for row in rows:
        value = resolve_path(row, column)
        if value is None or (isinstance(value, float) and math.isnan(value)):
            missing.append(row)
        else:
            present.append((value, row))

    def _cmp(left: tuple[Any, Row], right: tuple[Any, Row]) -> int:
        result = compare_values(left[0], right[0])
        return -result if descending else result

    # list.sort is stable, so negating the comparator keeps ties in order.
    present.sort(key=functools.cmp_to_key(_cmp))
    return [row for _, row in present] + missing


def next_sort_state(current: SortState, column_id: str) -> SortState:
    """Header-click cycle: ascending, then descending, then unsorted.

    Clicking a different column starts that column at ascending.
    """
    if current.column != column_id:
        return SortState(column=column_id, direction="asc")
    if current.direction == "asc":
        return SortState(column=column_id, direction="desc")
    return SortState()
