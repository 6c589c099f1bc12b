"""Row selection keyed by a row field rather than object identity."""

import logging
from collections.abc import Callable, Hashable, Iterable, Sequence
from typing import Any

from reflex_datatable.models import Row, SelectAllScope, SelectionMode, SelectionStatus
from reflex_datatable.paths import resolve_path

logger = logging.getLogger(__name__)


class SelectionTracker:
    """Track the selected rows of a table.

    Membership compares the value at ``row_key_field`` (resolved with
    :func:`~reflex_datatable.paths.resolve_path`), so a row re-fetched from a
    remote source keeps its selected status.  Rows without a usable key fall
    back to object identity.

    The selected rows are held in a tuple that is replaced, never mutated,
    on every change.

    Args:
        mode: ``"single"`` or ``"multiple"``.
        row_key_field: Dotted path of the identifying field.
        on_change: Called with the new tuple after every change.
    """

    def __init__(
        self,
        mode: SelectionMode = "multiple",
        row_key_field: str = "id",
        on_change: Callable[[tuple[Row, ...]], None] | None = None,
    ) -> None:
        if mode not in ("single", "multiple"):
            raise ValueError(f"Unknown selection mode: {mode!r}")
        self.mode: SelectionMode = mode
        self.row_key_field = row_key_field
        self.on_change = on_change
        self._selected: tuple[Row, ...] = ()

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def row_key(self, row: Row) -> Hashable:
        value = resolve_path(row, self.row_key_field)
        if value is None:
            return ("__identity__", id(row))
        try:
            hash(value)
        except TypeError:
            return ("__identity__", id(row))
        return value

    def _keys(self, rows: Iterable[Row]) -> set[Hashable]:
        return {self.row_key(row) for row in rows}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def selected(self) -> tuple[Row, ...]:
        return self._selected

    @property
    def selected_keys(self) -> list[Any]:
        return [self.row_key(row) for row in self._selected]

    def is_selected(self, row: Row, selected: Sequence[Row] | None = None) -> bool:
        if selected is None:
            selected = self._selected
        key = self.row_key(row)
        return any(self.row_key(r) == key for r in selected)

    @staticmethod
    def selection_scope(
        all_rows: Sequence[Row],
        page_rows: Sequence[Row],
        scope: SelectAllScope = "page",
    ) -> Sequence[Row]:
        """The rows that "select all" and the tri-state checkbox act on."""
        return all_rows if scope == "all" else page_rows

    def status(
        self, scope_rows: Sequence[Row], selected: Sequence[Row] | None = None
    ) -> SelectionStatus:
        """``none``, ``partial`` or ``all`` for the given scope.

        *selected* overrides the tracked selection, e.g. with a caller-owned one.
        """
        if not scope_rows:
            return "none"
        selected_keys = self._keys(self._selected if selected is None else selected)
        hits = sum(1 for row in scope_rows if self.row_key(row) in selected_keys)
        if hits == 0:
            return "none"
        if hits == len(scope_rows):
            return "all"
        return "partial"

    def is_all_selected(self, scope_rows: Sequence[Row]) -> bool:
        return self.status(scope_rows) == "all"

    def is_indeterminate(self, scope_rows: Sequence[Row]) -> bool:
        return self.status(scope_rows) == "partial"

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _commit(self, selected: tuple[Row, ...]) -> tuple[Row, ...]:
        self._selected = selected
        if self.on_change is not None:
            self.on_change(selected)
        return selected

    def compute_toggle(
        self, row: Row, selected: Sequence[Row] | None = None
    ) -> tuple[Row, ...]:
        """The selection that toggling *row* would produce, without applying it."""
        base = tuple(self._selected if selected is None else selected)
        key = self.row_key(row)
        already = self.is_selected(row, base)
        if self.mode == "single":
            return () if already else (row,)
        if already:
            return tuple(r for r in base if self.row_key(r) != key)
        return (*base, row)

    def compute_set_all(
        self,
        rows: Sequence[Row],
        selected: bool,
        current: Sequence[Row] | None = None,
    ) -> tuple[Row, ...]:
        """The selection that ``set_all(rows, selected)`` would produce."""
        base = tuple(self._selected if current is None else current)
        scope_keys = self._keys(rows)
        if not selected:
            return tuple(r for r in base if self.row_key(r) not in scope_keys)
        if self.mode == "single":
            # Only one row may be selected; keep the first row of the scope.
            if not rows:
                return base
            logger.debug("select-all in single mode clamped to the first row")
            return (rows[0],)
        current_keys = self._keys(base)
        additions: list[Row] = []
        for row in rows:
            key = self.row_key(row)
            if key not in current_keys:
                current_keys.add(key)
                additions.append(row)
        return (*base, *additions)

    def toggle(self, row: Row) -> tuple[Row, ...]:
        return self._commit(self.compute_toggle(row))

    def set_all(self, rows: Sequence[Row], selected: bool) -> tuple[Row, ...]:
        return self._commit(self.compute_set_all(rows, selected))

    def select_only(self, row: Row) -> tuple[Row, ...]:
        """Replace the selection with just *row* (double-click behavior)."""
        return self._commit((row,))

    def clear(self) -> tuple[Row, ...]:
        return self._commit(())

    def replace(self, rows: Iterable[Row]) -> tuple[Row, ...]:
        """Adopt a caller-owned selection, clamped to the selection mode."""
        rows = tuple(rows)
        if self.mode == "single" and len(rows) > 1:
            rows = rows[:1]
        return self._commit(rows)
