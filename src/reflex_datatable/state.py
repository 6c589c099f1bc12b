"""Reflex state mixin binding a :class:`~reflex_datatable.pipeline.DataPipeline` to reactive vars.

``DataTableMixin`` is a Reflex **state mixin** (``mixin=True``).  Each
subclass gets its own independent set of ``dt_*`` reactive variables, so
multiple tables on the same page do not interfere with each other.

Pipelines hold rows, callables and LazyFrames, none of which are
JSON-serialisable, so they live in a module-level registry keyed by the
state class name and the client token rather than inside ``rx.State``.

Typical usage::

    from reflex_datatable import Column, DataTableMixin

    class OrdersState(DataTableMixin, rx.State):
        def load(self):
            yield from self.set_rows_source(COLUMNS, fetch_orders())

    def index():
        return rx.foreach(OrdersState.dt_rows, render_row)
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, time
from decimal import Decimal
from typing import Any

import polars as pl
import reflex as rx

from reflex_datatable.exceptions import ExportError
from reflex_datatable.models import (
    AdvancedSearchState,
    Column,
    ExportConfig,
    Row,
    SearchCriterion,
    TableSnapshot,
)
from reflex_datatable.pagination import _DEFAULT_ROWS_PER_PAGE, _DEFAULT_ROWS_PER_PAGE_OPTIONS
from reflex_datatable.paths import resolve_path
from reflex_datatable.pipeline import DataPipeline
from reflex_datatable.polars_utils import build_columns_from_schema, lazyframe_fetcher

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Module-level pipeline registry
# ---------------------------------------------------------------------------

_pipeline_registry: dict[str, DataPipeline] = {}


def register_pipeline(cache_id: str, pipeline: DataPipeline) -> DataPipeline:
    """Store *pipeline* under *cache_id*, closing the one it replaces."""
    previous = _pipeline_registry.get(cache_id)
    if previous is not None and previous is not pipeline:
        previous.close()
    _pipeline_registry[cache_id] = pipeline
    return pipeline


def get_pipeline(cache_id: str) -> DataPipeline | None:
    return _pipeline_registry.get(cache_id)


def drop_pipeline(cache_id: str) -> None:
    pipeline = _pipeline_registry.pop(cache_id, None)
    if pipeline is not None:
        pipeline.close()


# ---------------------------------------------------------------------------
# Pure conversion helpers
# ---------------------------------------------------------------------------


def _json_safe(value: Any, _active: frozenset[int] = frozenset()) -> Any:
    """Convert a cell value into something Reflex can serialise."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Mapping):
        if id(value) in _active:
            return None
        active = _active | {id(value)}
        return {str(k): _json_safe(v, active) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        if id(value) in _active:
            return None
        active = _active | {id(value)}
        return [_json_safe(v, active) for v in value]
    return str(value)


def column_defs(columns: Iterable[Column]) -> list[dict[str, Any]]:
    """Column configuration as camelCase dicts for the frontend."""
    return [
        {
            "id": column.id,
            "label": column.label,
            "sortable": column.sortable,
            "searchable": column.searchable,
            "filterable": column.filterable,
            "exportable": column.exportable,
            "hidden": column.hidden,
            "width": column.width,
            "filterType": column.filter_type,
            "description": column.description,
        }
        for column in columns
    ]


def snapshot_vars(snapshot: TableSnapshot, row_key_field: str = "id") -> dict[str, Any]:
    """Map a pipeline snapshot onto the ``dt_*`` var values."""
    selected_keys = [_json_safe(resolve_path(row, row_key_field)) for row in snapshot.selected_rows]
    return {
        "dt_rows": [_json_safe(row) for row in snapshot.rows],
        "dt_total_count": snapshot.total_count,
        "dt_total_pages": snapshot.total_pages,
        "dt_page": snapshot.page,
        "dt_rows_per_page": snapshot.rows_per_page,
        "dt_sort": snapshot.sort.to_dict(),
        "dt_filters": {key: _json_safe(f.to_dict()) for key, f in snapshot.filters.items()},
        "dt_search_term": snapshot.search_term,
        "dt_server_search_term": snapshot.server_search.term,
        "dt_advanced_search": snapshot.advanced_search.to_dict(),
        "dt_selected_keys": selected_keys,
        "dt_selection_status": snapshot.selection_status,
        "dt_visible_columns": list(snapshot.visible_columns),
        "dt_loading": snapshot.loading,
        "dt_error": str(snapshot.error) if snapshot.error is not None else "",
    }


# ---------------------------------------------------------------------------
# DataTableMixin
# ---------------------------------------------------------------------------


class DataTableMixin(rx.State, mixin=True):
    """Reflex State mixin exposing a data table pipeline.

    All state variable names are prefixed with ``dt_`` to avoid collisions
    when composed with other state.  Event handlers are prefixed the same
    way; each runs one pipeline operation, waits for the remote page when
    the pipeline is remote, and copies the new snapshot into the vars.

    Example::

        class MyState(DataTableMixin, rx.State):
            async def load_data(self):
                async for _ in self.set_lazyframe(scan_file("data.parquet")):
                    yield
    """

    # -- Frontend state vars --
    dt_rows: list[dict[str, Any]] = []
    dt_columns: list[dict[str, Any]] = []
    dt_total_count: int = 0
    dt_total_pages: int = 0
    dt_page: int = 0
    dt_rows_per_page: int = _DEFAULT_ROWS_PER_PAGE
    dt_rows_per_page_options: list[int] = list(_DEFAULT_ROWS_PER_PAGE_OPTIONS)
    dt_sort: dict[str, Any] = {"column": None, "direction": None}
    dt_filters: dict[str, Any] = {}
    dt_search_term: str = ""
    dt_server_search_term: str = ""
    dt_advanced_search: dict[str, Any] = {"criteria": [], "matchAll": True}
    dt_selected_keys: list[Any] = []
    dt_selection_status: str = "none"
    dt_visible_columns: list[str] = []
    dt_loading: bool = False
    dt_loaded: bool = False
    dt_error: str = ""
    dt_export_filename: str = "export"
    dt_export_title: str = ""

    # -- Backend-only vars (not sent to frontend) --
    _dt_cache_id: str = ""
    _dt_row_key_field: str = "id"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def _dt_make_cache_id(self) -> str:
        token = self.router.session.client_token
        return f"{type(self).__name__}:{token}"

    def _dt_install(self, pipeline: DataPipeline, row_key_field: str) -> None:
        cache_id = self._dt_make_cache_id()
        self._dt_cache_id = cache_id  # type: ignore[assignment]
        self._dt_row_key_field = row_key_field  # type: ignore[assignment]
        register_pipeline(cache_id, pipeline)
        self.dt_columns = column_defs(pipeline.columns)  # type: ignore[assignment]
        self.dt_rows_per_page_options = list(pipeline.rows_per_page_options)  # type: ignore[assignment]
        self.dt_loaded = True  # type: ignore[assignment]

    def set_rows_source(
        self,
        columns: Sequence[Column],
        rows: Iterable[Row],
        *,
        row_key_field: str = "id",
        **options: Any,
    ):
        """Show local *rows*.

        This is a **generator** -- use ``yield from self.set_rows_source(...)``
        inside your event handler so the loading state is sent to the
        frontend immediately.  *options* are passed to :class:`DataPipeline`.
        """
        self.dt_loading = True  # type: ignore[assignment]
        yield

        pipeline = DataPipeline(columns, rows, row_key_field=row_key_field, **options)
        self._dt_install(pipeline, row_key_field)
        self._dt_sync()

    async def set_lazyframe(
        self,
        lf: pl.LazyFrame,
        columns: Sequence[Column] | None = None,
        *,
        row_key_field: str = "id",
        **options: Any,
    ):
        """Serve *lf* page by page through a remote pipeline.

        This is an **async generator**; iterate it from your handler.  When
        *columns* is omitted they are built from the LazyFrame schema (no
        data scan).
        """
        self.dt_loading = True  # type: ignore[assignment]
        yield

        if columns is None:
            columns = build_columns_from_schema(lf.collect_schema())
        pipeline = DataPipeline(
            columns, fetch=lazyframe_fetcher(lf), row_key_field=row_key_field, **options
        )
        self._dt_install(pipeline, row_key_field)
        await pipeline.refresh()
        self._dt_sync()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def dt_set_page(self, page: int):
        await self._dt_run(lambda p: p.set_page(int(page)))

    async def dt_set_rows_per_page(self, rows_per_page: str):
        await self._dt_run(lambda p: p.set_rows_per_page(int(rows_per_page)))

    async def dt_toggle_sort(self, column_id: str):
        await self._dt_run(lambda p: p.toggle_sort(column_id))

    async def dt_set_filter(self, column_id: str, value: Any, operator: str = "contains"):
        await self._dt_run(lambda p: p.set_filter(column_id, value, operator))

    async def dt_clear_filters(self):
        await self._dt_run(lambda p: p.clear_filters())

    async def dt_set_search_term(self, term: str):
        await self._dt_run(lambda p: p.set_search_term(term))

    async def dt_set_server_search_term(self, term: str):
        await self._dt_run(lambda p: p.set_server_search_term(term))

    async def dt_set_advanced_search(self, criteria: list[dict[str, Any]], match_all: bool = True):
        search = AdvancedSearchState(
            criteria=tuple(
                SearchCriterion(
                    field=str(c.get("field", "")),
                    value=str(c.get("value", "")),
                    operator=c.get("operator", "CONTAINS"),
                )
                for c in criteria
            ),
            match_all=bool(match_all),
        )
        await self._dt_run(lambda p: p.set_advanced_search(search))

    async def dt_clear_advanced_search(self):
        await self._dt_run(lambda p: p.clear_advanced_search())

    async def dt_toggle_row(self, row_key: Any):
        await self._dt_run_on_row(row_key, lambda p, row: p.toggle_row(row))

    async def dt_select_only(self, row_key: Any):
        await self._dt_run_on_row(row_key, lambda p, row: p.select_only(row))

    async def dt_select_all(self, checked: bool):
        await self._dt_run(lambda p: p.select_all(bool(checked)))

    async def dt_clear_selection(self):
        await self._dt_run(lambda p: p.clear_selection())

    async def dt_set_column_visibility(self, column_id: str, visible: bool):
        await self._dt_run(lambda p: p.set_column_visibility(column_id, bool(visible)))

    async def dt_refresh(self):
        pipeline = self._dt_pipeline()
        if pipeline is None:
            return
        self.dt_loading = True  # type: ignore[assignment]
        yield
        await pipeline.refresh()
        self._dt_sync()

    def dt_export(self, format: str) -> rx.event.EventSpec | None:
        """Export the table and hand the artifact to the browser as a download."""
        pipeline = self._dt_pipeline()
        if pipeline is None:
            return None
        config = ExportConfig(
            filename=self.dt_export_filename or "export",
            title=self.dt_export_title or None,
        )
        try:
            artifact = pipeline.export(format, config)
        except ExportError as exc:
            logger.error("Export as %s failed: %s", format, exc)
            self.dt_error = str(exc)  # type: ignore[assignment]
            return None
        if artifact is None:
            self.dt_error = f"Unknown export format: {format}"  # type: ignore[assignment]
            return None
        return rx.download(  # type: ignore[return-value]
            data=artifact.content,
            filename=artifact.filename,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _dt_pipeline(self) -> DataPipeline | None:
        cache_id = self._dt_cache_id
        if not cache_id:
            return None
        return get_pipeline(cache_id)

    async def _dt_run(self, operation) -> None:
        pipeline = self._dt_pipeline()
        if pipeline is None:
            return
        task = operation(pipeline)
        if task is not None:
            await task
        self._dt_sync()

    async def _dt_run_on_row(self, row_key: Any, operation) -> None:
        pipeline = self._dt_pipeline()
        if pipeline is None:
            return
        row = find_row(pipeline, row_key, self._dt_row_key_field)
        if row is None:
            logger.debug("No row with key %r on the current view", row_key)
            return
        await self._dt_run(lambda p: operation(p, row))

    def _dt_sync(self) -> None:
        pipeline = self._dt_pipeline()
        if pipeline is None:
            return
        for name, value in snapshot_vars(pipeline.snapshot(), self._dt_row_key_field).items():
            setattr(self, name, value)


def find_row(pipeline: DataPipeline, row_key: Any, row_key_field: str = "id") -> Row | None:
    """Look up a row by key among the rows the frontend can currently see.

    Keys travel through JSON, so ``1`` and ``"1"`` compare equal.
    """
    candidates = (*pipeline.page_rows(), *pipeline.resolve("selected_rows"))
    for row in candidates:
        key = resolve_path(row, row_key_field)
        if key == row_key or (key is not None and str(key) == str(row_key)):
            return row
    return None
