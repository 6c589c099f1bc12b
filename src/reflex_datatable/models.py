"""Immutable data model shared by the pipeline, the remote adapter and the exporters.

Every state object is a frozen dataclass.  State changes never mutate an
existing object: a new instance replaces the old one, so a consumer that
holds a snapshot keeps a consistent view.
"""

import typing
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

Row = Mapping[str, Any]

FilterOperator = Literal[
    "equals",
    "contains",
    "startsWith",
    "endsWith",
    "greaterThan",
    "lessThan",
    "between",
    "isEmpty",
    "isNotEmpty",
]
SearchOperator = Literal["CONTAINS", "EQUALS", "STARTS_WITH", "ENDS_WITH"]
SortDirection = Literal["asc", "desc"]
SelectionMode = Literal["single", "multiple"]
SelectAllScope = Literal["page", "all"]
SelectionStatus = Literal["none", "partial", "all"]
ExportFormat = Literal["csv", "excel", "pdf", "word"]
PdfOrientation = Literal["portrait", "landscape"]
PdfPageSize = Literal["a4", "letter", "legal"]

FILTER_OPERATORS: tuple[str, ...] = typing.get_args(FilterOperator)
VALUELESS_OPERATORS: frozenset[str] = frozenset({"isEmpty", "isNotEmpty"})
SEARCH_OPERATORS: tuple[str, ...] = typing.get_args(SearchOperator)


@dataclass(frozen=True)
class Column:
    """Configuration for one field of a row.

    Attributes:
        id: Dot-separated path into a row, e.g. ``"customer.address.city"``.
        label: Display / export header text.
        sortable: Whether the header toggles sorting.
        searchable: Whether the full-text filter checks this column first.
        filterable: Whether a per-column predicate may target this column.
        exportable: ``False`` drops the column from every export.
        hidden: Hidden columns start out invisible.
        export_format: Optional ``(value, row, row_index) -> str`` used by
            every exporter instead of the default cell rendering.
        width: Optional width hint (characters) for the spreadsheet export.
        filter_type: Editor hint: ``text``, ``number``, ``select``, ``date``
            or ``boolean``.
        description: Optional tooltip text.
    """

    id: str
    label: str
    sortable: bool = True
    searchable: bool = True
    filterable: bool = True
    exportable: bool = True
    hidden: bool = False
    export_format: Callable[[Any, Row, int], str] | None = field(
        default=None, compare=False, repr=False
    )
    width: int | None = None
    filter_type: Literal["text", "number", "select", "date", "boolean"] | None = None
    description: str | None = None


@dataclass(frozen=True)
class ColumnFilter:
    """A single predicate on one column."""

    value: Any = None
    operator: FilterOperator = "contains"

    def to_dict(self) -> dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"value": value, "operator": self.operator}

    @classmethod
    def coerce(cls, raw: "ColumnFilter | Mapping[str, Any]") -> "ColumnFilter":
        if isinstance(raw, ColumnFilter):
            return raw
        return cls(value=raw.get("value"), operator=raw.get("operator", "contains"))


FilterState = Mapping[str, ColumnFilter]


@dataclass(frozen=True)
class SortState:
    """Current sort.  ``direction is None`` if and only if ``column is None``."""

    column: str | None = None
    direction: SortDirection | None = None

    def __post_init__(self) -> None:
        if (self.column is None) != (self.direction is None):
            raise ValueError(
                f"Partial sort state is not allowed: column={self.column!r}, "
                f"direction={self.direction!r}"
            )
        if self.direction not in (None, "asc", "desc"):
            raise ValueError(f"Unknown sort direction: {self.direction!r}")

    @property
    def is_active(self) -> bool:
        return self.column is not None

    def to_dict(self) -> dict[str, Any]:
        return {"column": self.column, "direction": self.direction}


@dataclass(frozen=True)
class SearchCriterion:
    field: str
    value: str
    operator: SearchOperator = "CONTAINS"

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "value": self.value, "operator": self.operator}


@dataclass(frozen=True)
class AdvancedSearchState:
    """Multi-field search built in the search dialog.

    ``match_all`` selects AND (``True``) or OR (``False``) between criteria.
    """

    criteria: tuple[SearchCriterion, ...] = ()
    match_all: bool = True

    @property
    def active_criteria(self) -> tuple[SearchCriterion, ...]:
        return tuple(c for c in self.criteria if str(c.value or "").strip() != "")

    @property
    def is_active(self) -> bool:
        return bool(self.active_criteria)

    def to_dict(self) -> dict[str, Any]:
        return {
            "criteria": [c.to_dict() for c in self.criteria],
            "matchAll": self.match_all,
        }


@dataclass(frozen=True)
class ServerSearchState:
    """Free-text term forwarded to a remote source, with the fields to search."""

    term: str = ""
    fields: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"term": self.term, "fields": list(self.fields)}


@dataclass(frozen=True)
class PaginationState:
    page: int = 0
    rows_per_page: int = 12

    def total_pages(self, total_count: int) -> int:
        if self.rows_per_page <= 0 or total_count <= 0:
            return 0
        return -(-total_count // self.rows_per_page)


@dataclass(frozen=True)
class ExportConfig:
    """Options for a single export.

    ``allow_unsafe_html`` is the only trust boundary: when ``False`` (the
    default) the custom header/footer and the document title are escaped.
    Set it only from application code, never from user input.
    """

    filename: str = "export"
    title: str | None = None
    subtitle: str | None = None
    include_headers: bool = True
    visible_columns_only: bool = True
    filtered_data_only: bool = True
    custom_header: str | None = None
    custom_footer: str | None = None
    allow_unsafe_html: bool = False
    pdf_orientation: PdfOrientation = "portrait"
    pdf_page_size: PdfPageSize = "a4"
    generated_at: datetime | None = None


@dataclass(frozen=True)
class FetchRequest:
    """What a remote source is asked for on each state change."""

    page: int
    rows_per_page: int
    sort: SortState = SortState()
    filters: Mapping[str, ColumnFilter] = field(default_factory=dict)
    search: ServerSearchState = ServerSearchState()
    advanced_search: AdvancedSearchState | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "page": self.page,
            "rowsPerPage": self.rows_per_page,
            "sort": self.sort.to_dict(),
            "filters": {key: f.to_dict() for key, f in self.filters.items()},
            "search": self.search.to_dict(),
        }
        if self.advanced_search is not None:
            payload["advancedSearch"] = self.advanced_search.to_dict()
        return payload


@dataclass(frozen=True)
class FetchResponse:
    data: Sequence[Row]
    total_count: int

    @classmethod
    def coerce(cls, raw: "FetchResponse | Mapping[str, Any]") -> "FetchResponse":
        """Accept a ``FetchResponse`` or a ``{"data", "totalCount"}`` mapping.

        Raises:
            ValueError: If the payload is malformed (``data`` is not a list of
                rows, or the total count is not a non-negative integer).
        """
        if isinstance(raw, FetchResponse):
            data, total = raw.data, raw.total_count
        elif isinstance(raw, Mapping):
            data = raw.get("data")
            total = raw.get("totalCount", raw.get("total_count"))
        else:
            raise ValueError(f"Unsupported fetch response type: {type(raw).__name__}")

        if isinstance(data, (str, bytes)) or not isinstance(data, Sequence):
            raise ValueError("Fetch response 'data' must be a list of rows")
        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            raise ValueError(f"Fetch response 'totalCount' is invalid: {total!r}")
        return cls(data=tuple(data), total_count=total)


@dataclass(frozen=True)
class TableSnapshot:
    """Everything a consumer needs to re-render, emitted after each recompute."""

    rows: tuple[Row, ...]
    all_rows: tuple[Row, ...]
    total_count: int
    total_pages: int
    page: int
    rows_per_page: int
    sort: SortState
    filters: Mapping[str, ColumnFilter]
    search_term: str
    server_search: ServerSearchState
    advanced_search: AdvancedSearchState
    selected_rows: tuple[Row, ...]
    selection_status: SelectionStatus
    visible_columns: tuple[str, ...]
    loading: bool = False
    error: Exception | None = None

    @property
    def is_all_selected(self) -> bool:
        return self.selection_status == "all"

    @property
    def is_indeterminate(self) -> bool:
        return self.selection_status == "partial"

    @property
    def has_active_filters(self) -> bool:
        return bool(self.filters)
