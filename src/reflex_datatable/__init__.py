"""reflex-datatable – table state, selection and export core for Reflex apps.

Install the package::

    pip install "reflex-datatable[all]"

The core (``DataPipeline`` and the exporters) is plain Python and can be used
without a running Reflex app; ``DataTableMixin`` binds a pipeline to Reflex
state, and ``lazyframe_fetcher`` serves pages straight from a polars
LazyFrame.  The Reflex binding is imported on first access, so the core
works where only the base dependencies are installed.
"""

from typing import Any

from reflex_datatable.exceptions import DataTableError, ExportError, RemoteFetchError
from reflex_datatable.exporting import EXPORT_FORMATS, ExportArtifact, export_data, format_cell_value
from reflex_datatable.models import (
    AdvancedSearchState,
    Column,
    ColumnFilter,
    ExportConfig,
    FetchRequest,
    FetchResponse,
    PaginationState,
    SearchCriterion,
    ServerSearchState,
    SortState,
    TableSnapshot,
)
from reflex_datatable.paths import is_blocked_path, resolve_path
from reflex_datatable.pipeline import DataPipeline
from reflex_datatable.polars_utils import (
    apply_filter_state,
    apply_sort_state,
    build_columns_from_schema,
    lazyframe_fetcher,
    lazyframe_to_rows,
    scan_file,
)
from reflex_datatable.sanitize import escape_markup, resolve_trusted
from reflex_datatable.selection import SelectionTracker

_STATE_EXPORTS = ("DataTableMixin", "column_defs", "snapshot_vars")


def __getattr__(name: str) -> Any:
    if name in _STATE_EXPORTS:
        from reflex_datatable import state

        return getattr(state, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "AdvancedSearchState",
    "Column",
    "ColumnFilter",
    "DataPipeline",
    "DataTableError",
    "DataTableMixin",
    "EXPORT_FORMATS",
    "ExportArtifact",
    "ExportConfig",
    "ExportError",
    "FetchRequest",
    "FetchResponse",
    "PaginationState",
    "RemoteFetchError",
    "SearchCriterion",
    "SelectionTracker",
    "ServerSearchState",
    "SortState",
    "TableSnapshot",
    "apply_filter_state",
    "apply_sort_state",
    "build_columns_from_schema",
    "column_defs",
    "escape_markup",
    "export_data",
    "format_cell_value",
    "is_blocked_path",
    "lazyframe_fetcher",
    "lazyframe_to_rows",
    "resolve_path",
    "resolve_trusted",
    "scan_file",
    "snapshot_vars",
]
