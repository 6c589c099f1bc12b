"""The table state machine: search, filter, sort, paginate, select, export.

A :class:`DataPipeline` owns one table.  Each state slice (page, sort,
filters, ...) is either *uncontrolled*, held internally with a default, or
*controlled*, supplied by the caller through :meth:`DataPipeline.set_controlled`.
Every change goes through :meth:`DataPipeline.propose`, which hands the new
value to the slice's handler (when one is registered) and only updates the
internal value when the caller does not own the slice.

Local mode runs the rows through the search, advanced-search, column
filter, sort and pagination stages.  Remote mode (a ``fetch`` function was
given) sends a :class:`~reflex_datatable.models.FetchRequest` on every
relevant change and shows the response as-is.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from reflex_datatable import filters as filter_engine
from reflex_datatable.debounce import _DEFAULT_FILTER_DELAY, _DEFAULT_SERVER_SEARCH_DELAY, Debouncer
from reflex_datatable.exporting import ExportArtifact, export_data
from reflex_datatable.models import (
    AdvancedSearchState,
    Column,
    ColumnFilter,
    ExportConfig,
    FetchRequest,
    Row,
    SelectAllScope,
    SelectionMode,
    ServerSearchState,
    SortState,
    TableSnapshot,
)
from reflex_datatable.pagination import (
    _DEFAULT_ROWS_PER_PAGE,
    _DEFAULT_ROWS_PER_PAGE_OPTIONS,
    slice_page,
    total_pages,
)
from reflex_datatable.remote import FetchFunction, RemoteFetchAdapter
from reflex_datatable.search import apply_advanced_search, apply_search
from reflex_datatable.selection import SelectionTracker
from reflex_datatable.sorting import apply_sort, next_sort_state

logger = logging.getLogger(__name__)

STATE_SLICES: tuple[str, ...] = (
    "page",
    "rows_per_page",
    "sort",
    "filters",
    "search_term",
    "server_search",
    "advanced_search",
    "selected_rows",
    "visible_columns",
)

# Uncontrolled changes to these slices send the table back to the first page.
_PAGE_RESETTING = frozenset(
    {"rows_per_page", "filters", "search_term", "server_search", "advanced_search"}
)

# Slices that take part in a remote request.
_FETCH_SLICES = frozenset(
    {"page", "rows_per_page", "sort", "filters", "server_search", "advanced_search"}
)

Listener = Callable[[TableSnapshot], None]


def _normalize(name: str, value: Any) -> Any:
    if name == "filters":
        return {key: ColumnFilter.coerce(f) for key, f in value.items()}
    if name in ("selected_rows", "visible_columns"):
        return tuple(value)
    if name == "sort" and isinstance(value, Mapping):
        return SortState(column=value.get("column"), direction=value.get("direction"))
    return value


class DataPipeline:
    """Turn rows (or a remote source) into the page to display.

    Args:
        columns: Column configuration, in display order.
        rows: Local rows.  Ignored when *fetch* is given.
        fetch: Async ``(FetchRequest) -> {"data", "totalCount"}`` function;
            switches the pipeline to remote mode.
        selection_mode: ``"single"`` or ``"multiple"``.
        row_key_field: Dotted path identifying a row for selection.
        select_all_scope: ``"page"`` or ``"all"``.
        rows_per_page: Initial page size.
        rows_per_page_options: Page sizes offered to the user.
        default_sort: Initial sort.
        search_fields: Fields forwarded with a server search term.
        handlers: ``{slice_name: callable}``; each is called with the proposed
            value of its slice.
        controlled: Initial caller-owned values, keyed by slice name.
        filter_delay: Debounce delay of :meth:`search_input`, in seconds.
        server_search_delay: Debounce delay of :meth:`server_search_input`.
    """

    def __init__(
        self,
        columns: Iterable[Column],
        rows: Iterable[Row] | None = None,
        *,
        fetch: FetchFunction | None = None,
        selection_mode: SelectionMode = "multiple",
        row_key_field: str = "id",
        select_all_scope: SelectAllScope = "page",
        rows_per_page: int = _DEFAULT_ROWS_PER_PAGE,
        rows_per_page_options: Sequence[int] = _DEFAULT_ROWS_PER_PAGE_OPTIONS,
        default_sort: SortState | None = None,
        search_fields: Iterable[str] = (),
        handlers: Mapping[str, Callable[[Any], None]] | None = None,
        controlled: Mapping[str, Any] | None = None,
        filter_delay: float = _DEFAULT_FILTER_DELAY,
        server_search_delay: float = _DEFAULT_SERVER_SEARCH_DELAY,
    ) -> None:
        self.columns: tuple[Column, ...] = tuple(columns)
        self._rows: tuple[Row, ...] = tuple(rows) if rows is not None else ()
        self._rows_version = 0
        self.remote = RemoteFetchAdapter(fetch) if fetch is not None else None
        self.selection = SelectionTracker(mode=selection_mode, row_key_field=row_key_field)
        self.select_all_scope: SelectAllScope = select_all_scope
        self.rows_per_page_options = tuple(rows_per_page_options)

        self._internal: dict[str, Any] = {
            "page": 0,
            "rows_per_page": rows_per_page,
            "sort": default_sort or SortState(),
            "filters": {},
            "search_term": "",
            "server_search": ServerSearchState(fields=tuple(search_fields)),
            "advanced_search": AdvancedSearchState(),
            "visible_columns": tuple(c.id for c in self.columns if not c.hidden),
        }
        self._controlled: dict[str, Any] = {}
        self._handlers: dict[str, Callable[[Any], None]] = {}
        for name, handler in (handlers or {}).items():
            self._check_slice(name)
            self._handlers[name] = handler
        for name, value in (controlled or {}).items():
            self._check_slice(name)
            if value is not None:
                self._controlled[name] = _normalize(name, value)

        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self._memo_key: tuple | None = None
        self._memo_rows: tuple[Row, ...] = ()

        self._filter_debouncer = Debouncer(self.set_search_term, filter_delay)
        self._server_search_debouncer = Debouncer(self.set_server_search_term, server_search_delay)

    # ------------------------------------------------------------------
    # Controlled / uncontrolled resolution
    # ------------------------------------------------------------------

    @staticmethod
    def _check_slice(name: str) -> None:
        if name not in STATE_SLICES:
            raise ValueError(f"Unknown state slice: {name!r}")

    @property
    def is_remote(self) -> bool:
        return self.remote is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def is_controlled(self, name: str) -> bool:
        self._check_slice(name)
        return name in self._controlled

    def resolve(self, name: str) -> Any:
        """Current value of slice *name*: the caller's if controlled, else ours."""
        self._check_slice(name)
        if name in self._controlled:
            return self._controlled[name]
        if name == "selected_rows":
            return self.selection.selected
        return self._internal[name]

    def propose(self, name: str, value: Any, *, reset_page: bool | None = None) -> bool:
        """Offer a new value for slice *name*.

        The registered handler (if any) always receives the value.  The
        internal value is updated only when the slice is not controlled.

        Returns:
            ``True`` if internal state changed.
        """
        self._check_slice(name)
        if self._closed:
            return False
        value = _normalize(name, value)
        handler = self._handlers.get(name)
        if handler is not None:
            handler(value)
        if name in self._controlled:
            return False

        if name == "selected_rows":
            self.selection.replace(value)
        else:
            self._internal[name] = value
        if reset_page is None:
            reset_page = name in _PAGE_RESETTING
        if reset_page:
            self._internal["page"] = 0
        return True

    def set_controlled(self, **values: Any) -> asyncio.Task | None:
        """Update caller-owned slices; a value of ``None`` releases ownership."""
        if self._closed:
            return None
        for name, value in values.items():
            self._check_slice(name)
            if value is None:
                self._controlled.pop(name, None)
            else:
                self._controlled[name] = _normalize(name, value)
        return self._changed(fetch=bool(_FETCH_SLICES.intersection(values)))

    def _apply(self, name: str, value: Any, *, reset_page: bool | None = None) -> asyncio.Task | None:
        if not self.propose(name, value, reset_page=reset_page):
            return None
        fetch = name in _FETCH_SLICES or (reset_page is not False and name in _PAGE_RESETTING)
        return self._changed(fetch=fetch)

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    @property
    def raw_rows(self) -> tuple[Row, ...]:
        if self.remote is not None:
            return self.remote.data
        return self._rows

    def set_rows(self, rows: Iterable[Row]) -> None:
        """Replace the local rows."""
        if self._closed:
            return
        self._rows = tuple(rows)
        self._rows_version += 1
        self._changed(fetch=False)

    def column(self, column_id: str) -> Column | None:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    @property
    def visible_columns(self) -> list[Column]:
        visible = set(self.resolve("visible_columns"))
        return [column for column in self.columns if column.id in visible]

    def processed_rows(self) -> tuple[Row, ...]:
        """Every row surviving search and filters, sorted.  Remote: the fetched page."""
        if self.remote is not None:
            return self.remote.data

        term = self.resolve("search_term")
        advanced = self.resolve("advanced_search")
        filters = dict(self.resolve("filters"))
        sort = self.resolve("sort")
        key = (self._rows_version, term, advanced, filters, sort)
        if key == self._memo_key:
            return self._memo_rows

        rows = apply_search(self._rows, term, self.columns)
        rows = apply_advanced_search(rows, advanced)
        rows = filter_engine.apply_filters(rows, filters)
        rows = apply_sort(rows, sort)

        self._memo_key = key
        self._memo_rows = tuple(rows)
        return self._memo_rows

    def page_rows(self) -> tuple[Row, ...]:
        if self.remote is not None:
            return self.remote.data
        return tuple(
            slice_page(self.processed_rows(), self.resolve("page"), self.resolve("rows_per_page"))
        )

    @property
    def total_count(self) -> int:
        if self.remote is not None:
            return self.remote.total_count
        return len(self.processed_rows())

    def selection_scope(self) -> Sequence[Row]:
        return self.selection.selection_scope(
            self.processed_rows(), self.page_rows(), self.select_all_scope
        )

    def snapshot(self) -> TableSnapshot:
        all_rows = self.processed_rows()
        rows = self.page_rows()
        total = self.total_count
        rows_per_page = self.resolve("rows_per_page")
        selected = tuple(self.resolve("selected_rows"))
        scope = self.selection.selection_scope(all_rows, rows, self.select_all_scope)
        return TableSnapshot(
            rows=rows,
            all_rows=all_rows,
            total_count=total,
            total_pages=total_pages(total, rows_per_page),
            page=self.resolve("page"),
            rows_per_page=rows_per_page,
            sort=self.resolve("sort"),
            filters=dict(self.resolve("filters")),
            search_term=self.resolve("search_term"),
            server_search=self.resolve("server_search"),
            advanced_search=self.resolve("advanced_search"),
            selected_rows=selected,
            selection_status=self.selection.status(scope, selected),
            visible_columns=tuple(self.resolve("visible_columns")),
            loading=self.remote.loading if self.remote is not None else False,
            error=self.remote.last_error if self.remote is not None else None,
        )

    # ------------------------------------------------------------------
    # Notifications and remote loading
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if self._closed or not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def _changed(self, fetch: bool = True) -> asyncio.Task | None:
        self._notify()
        if self.remote is not None and fetch:
            return self._schedule_fetch()
        return None

    def build_request(self) -> FetchRequest:
        advanced = self.resolve("advanced_search")
        return FetchRequest(
            page=self.resolve("page"),
            rows_per_page=self.resolve("rows_per_page"),
            sort=self.resolve("sort"),
            filters=dict(self.resolve("filters")),
            search=self.resolve("server_search"),
            advanced_search=advanced if advanced.criteria else None,
        )

    async def _load(self, request: FetchRequest) -> bool:
        assert self.remote is not None
        applied = await self.remote.load(request)
        self._notify()
        return applied

    def _schedule_fetch(self) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; call refresh() to load the page")
            return None
        task = loop.create_task(self._load(self.build_request()))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def refresh(self) -> bool:
        """Load the current page now (remote) or re-emit the snapshot (local)."""
        if self._closed:
            return False
        if self.remote is None:
            self._notify()
            return True
        return await self._load(self.build_request())

    # ------------------------------------------------------------------
    # Pagination and sorting
    # ------------------------------------------------------------------

    def set_page(self, page: int) -> asyncio.Task | None:
        return self._apply("page", max(0, int(page)))

    def set_rows_per_page(self, rows_per_page: int) -> asyncio.Task | None:
        rows_per_page = int(rows_per_page)
        if rows_per_page <= 0:
            logger.debug("Ignoring non-positive page size %d", rows_per_page)
            return None
        return self._apply("rows_per_page", rows_per_page)

    def toggle_sort(self, column_id: str) -> asyncio.Task | None:
        """Header click: ascending, descending, then unsorted."""
        column = self.column(column_id)
        if column is not None and not column.sortable:
            logger.debug("Column %r is not sortable", column_id)
            return None
        return self._apply("sort", next_sort_state(self.resolve("sort"), column_id))

    def set_sort(self, sort: SortState) -> asyncio.Task | None:
        return self._apply("sort", sort)

    # ------------------------------------------------------------------
    # Filtering and search
    # ------------------------------------------------------------------

    def set_filter(
        self, column_id: str, value: Any, operator: str = "contains"
    ) -> asyncio.Task | None:
        """Set, replace, or (for an empty value) remove one column predicate."""
        column = self.column(column_id)
        if column is not None and not column.filterable:
            logger.debug("Column %r is not filterable", column_id)
            return None
        updated = filter_engine.set_filter(self.resolve("filters"), column_id, value, operator)
        return self._apply("filters", updated)

    def clear_filters(self) -> asyncio.Task | None:
        return self._apply("filters", {})

    def set_search_term(self, term: str) -> asyncio.Task | None:
        return self._apply("search_term", term or "")

    def set_server_search_term(self, term: str) -> asyncio.Task | None:
        current = self.resolve("server_search")
        return self._apply("server_search", dataclasses.replace(current, term=term or ""))

    def set_search_fields(self, fields: Iterable[str]) -> asyncio.Task | None:
        current = self.resolve("server_search")
        return self._apply(
            "server_search", dataclasses.replace(current, fields=tuple(fields)), reset_page=False
        )

    def set_advanced_search(self, search: AdvancedSearchState) -> asyncio.Task | None:
        return self._apply("advanced_search", search)

    def clear_advanced_search(self) -> asyncio.Task | None:
        return self._apply("advanced_search", AdvancedSearchState())

    def search_input(self, term: str) -> None:
        """Debounced :meth:`set_search_term` for the filter box."""
        if not self._closed:
            self._filter_debouncer.push(term)

    def server_search_input(self, term: str) -> None:
        """Debounced :meth:`set_server_search_term`."""
        if not self._closed:
            self._server_search_debouncer.push(term)

    # ------------------------------------------------------------------
    # Selection and columns
    # ------------------------------------------------------------------

    def toggle_row(self, row: Row) -> asyncio.Task | None:
        current = self.resolve("selected_rows")
        return self._apply("selected_rows", self.selection.compute_toggle(row, current))

    def select_only(self, row: Row) -> asyncio.Task | None:
        """Double-click: select just this row."""
        return self._apply("selected_rows", (row,))

    def select_all(self, checked: bool) -> asyncio.Task | None:
        """Select or deselect every row of the current selection scope."""
        current = self.resolve("selected_rows")
        updated = self.selection.compute_set_all(self.selection_scope(), checked, current)
        return self._apply("selected_rows", updated)

    def clear_selection(self) -> asyncio.Task | None:
        return self._apply("selected_rows", ())

    def set_column_visibility(self, column_id: str, visible: bool) -> asyncio.Task | None:
        current = tuple(self.resolve("visible_columns"))
        if visible:
            updated = current if column_id in current else (*current, column_id)
        else:
            updated = tuple(c for c in current if c != column_id)
        return self._apply("visible_columns", updated)

    # ------------------------------------------------------------------
    # Export and teardown
    # ------------------------------------------------------------------

    def export(self, format: str, config: ExportConfig | None = None) -> ExportArtifact | None:
        """Export the processed (or raw) rows with the visible (or all) columns."""
        if self._closed:
            return None
        if config is None:
            config = ExportConfig()
        rows = self.processed_rows() if config.filtered_data_only else self.raw_rows
        columns = self.visible_columns if config.visible_columns_only else list(self.columns)
        return export_data(format, rows, columns, config)

    def close(self) -> None:
        """Stop timers and in-flight fetches; later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        self._filter_debouncer.close()
        self._server_search_debouncer.close()
        for task in list(self._tasks):
            task.cancel()
        self._listeners.clear()
