"""Utilities for serving table state from polars LazyFrames.

Translates the pipeline's filter, sort and search state into polars
expressions so a LazyFrame can act as a remote source: only the requested
page slice is ever collected.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import polars as pl

from reflex_datatable.filters import _coerce_numeric
from reflex_datatable.models import (
    AdvancedSearchState,
    Column,
    ColumnFilter,
    FetchRequest,
    SearchCriterion,
    SortState,
)
from reflex_datatable.paths import is_blocked_path

logger = logging.getLogger(__name__)


def polars_dtype_to_filter_type(dtype: pl.DataType) -> str:
    """Map a polars DataType to the closest column filter editor.

    Args:
        dtype: A polars data type.

    Returns:
        One of ``"text"``, ``"number"``, ``"boolean"``, ``"date"``.
    """
    if isinstance(dtype, pl.Boolean):
        return "boolean"
    if dtype.is_numeric():
        return "number"
    if isinstance(dtype, (pl.Date, pl.Datetime)):
        return "date"
    # Everything else (String, Categorical, Enum, List, Struct, Duration, …)
    return "text"


def _humanize_field_name(field: str) -> str:
    """Convert a snake_case or dotted field name to a human-friendly header.

    Examples:
        ``"first_name"`` -> ``"First Name"``
        ``"customer.city"`` -> ``"Customer City"``
        ``"__row_id__"`` -> ``"Row Id"``
    """
    return field.replace(".", "_").strip("_").replace("_", " ").title()


def _col_to_str_expr(col: pl.Expr, dtype: pl.DataType) -> pl.Expr:
    """Convert a column expression to a String, handling List/Struct types.

    * ``List(T)`` → cast inner to String, then ``list.join(",")``
    * ``Array(T, n)`` → cast to ``List(String)``, then ``list.join(",")``
    * ``Struct`` → JSON text
    * Everything else → ``cast(pl.String)``
    """
    if isinstance(dtype, (pl.List, pl.Array)):
        return col.cast(pl.List(pl.String)).list.join(",")
    if isinstance(dtype, pl.Struct):
        return col.struct.json_encode()
    return col.cast(pl.String)


def _column_expr(column_id: str, schema: pl.Schema) -> tuple[pl.Expr, pl.DataType] | None:
    """Resolve a dotted column id to a (struct field) expression.

    Returns ``None`` for denied paths and paths that do not exist in
    *schema*, mirroring :func:`reflex_datatable.paths.resolve_path`.
    """
    if not column_id or is_blocked_path(column_id):
        return None
    head, *rest = column_id.split(".")
    if head not in schema:
        return None
    expr = pl.col(head)
    dtype = schema[head]
    for segment in rest:
        if not isinstance(dtype, pl.Struct):
            return None
        fields = {f.name: f.dtype for f in dtype.fields}
        if segment not in fields:
            return None
        expr = expr.struct.field(segment)
        dtype = fields[segment]
    return expr, dtype


# ---------------------------------------------------------------------------
# File scanning and conversion
# ---------------------------------------------------------------------------


def scan_file(path: Path | str) -> pl.LazyFrame:
    """Scan a data file into a LazyFrame.

    Auto-detects the file format from the extension:

    * ``.parquet`` / ``.pq`` -- uses ``pl.scan_parquet()``.
    * ``.csv`` -- uses ``pl.scan_csv()``.
    * ``.tsv`` -- uses ``pl.scan_csv(separator="\\t")``.
    * ``.json`` -- uses ``pl.read_json().lazy()`` (no streaming scan).
    * ``.ndjson`` / ``.jsonl`` -- uses ``pl.scan_ndjson()``.
    * ``.ipc`` / ``.arrow`` / ``.feather`` -- uses ``pl.scan_ipc()``.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file extension is not recognised.
    """
    path = Path(path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()

    if suffix in (".parquet", ".pq"):
        return pl.scan_parquet(path)
    if suffix == ".csv":
        return pl.scan_csv(path)
    if suffix == ".tsv":
        return pl.scan_csv(path, separator="\t")
    # JSON (no streaming scan -- read then convert to lazy)
    if suffix == ".json":
        return pl.read_json(path).lazy()
    if suffix in (".ndjson", ".jsonl"):
        return pl.scan_ndjson(path)
    if suffix in (".ipc", ".arrow", ".feather"):
        return pl.scan_ipc(path)

    raise ValueError(
        f"Unsupported file extension: {suffix!r}. "
        "Supported: .parquet, .pq, .csv, .tsv, .json, .ndjson, .jsonl, "
        ".ipc, .arrow, .feather"
    )


def build_columns_from_schema(
    schema: pl.Schema,
    *,
    column_descriptions: Mapping[str, str] | None = None,
    id_field: str | None = None,
    show_id_field: bool = False,
    flatten_structs: bool = False,
) -> list[Column]:
    """Build :class:`Column` definitions from a polars Schema without collecting data.

    Args:
        schema: A polars ``Schema`` (e.g. ``lf.collect_schema()``).
        column_descriptions: Optional ``{column: description}`` mapping
            for header tooltips.
        id_field: Name of the column used as the unique row identifier.
            When *show_id_field* is ``False`` (the default), it starts out
            hidden.
        show_id_field: Whether the *id_field* column starts out visible.
        flatten_structs: Emit one dotted column per struct field
            (``"customer.city"``) instead of one column per struct.

    Returns:
        A list of columns in schema order.
    """
    descriptions = column_descriptions or {}
    columns: list[Column] = []

    def _add(column_id: str, dtype: pl.DataType) -> None:
        if flatten_structs and isinstance(dtype, pl.Struct):
            for struct_field in dtype.fields:
                _add(f"{column_id}.{struct_field.name}", struct_field.dtype)
            return
        if is_blocked_path(column_id):
            logger.debug("Skipping column with denied path %r", column_id)
            return
        filter_type = polars_dtype_to_filter_type(dtype)
        columns.append(
            Column(
                id=column_id,
                label=_humanize_field_name(column_id),
                hidden=(column_id == id_field and not show_id_field),
                filter_type=filter_type,  # type: ignore[arg-type]
                sortable=not isinstance(dtype, (pl.List, pl.Array, pl.Struct)),
                description=descriptions.get(column_id),
            )
        )

    for col_name, dtype in schema.items():
        _add(col_name, dtype)
    return columns


def _dataframe_to_dicts(df: pl.DataFrame) -> list[dict[str, Any]]:
    """Convert a DataFrame to a list of JSON-safe dicts.

    Non-JSON-safe column types are converted automatically:
    * Temporal columns (Date, Datetime, Time, Duration) -> ISO-8601 strings.
    * List columns -> comma-joined strings (inner values cast to String first).

    Struct columns stay nested dicts so dotted column ids keep resolving.
    Other types are left as-is (polars ``to_dicts()`` already returns
    Python-native scalars for numeric / string / bool).
    """
    exprs: list[pl.Expr] = []
    needs_cast = False
    for name, dtype in df.schema.items():
        if isinstance(dtype, (pl.Date, pl.Datetime, pl.Time, pl.Duration)):
            exprs.append(pl.col(name).cast(pl.String))
            needs_cast = True
        elif isinstance(dtype, (pl.List, pl.Array)):
            exprs.append(pl.col(name).cast(pl.List(pl.String)).list.join(","))
            needs_cast = True
        else:
            exprs.append(pl.col(name))

    if not needs_cast:
        return df.to_dicts()
    return df.select(exprs).to_dicts()


def lazyframe_to_rows(
    lf: pl.LazyFrame,
    *,
    limit: int | None = None,
    json_safe: bool = False,
) -> list[dict[str, Any]]:
    """Collect a LazyFrame (optionally only its first *limit* rows) into row dicts."""
    if limit is not None:
        lf = lf.head(limit)
    df = lf.collect()
    if json_safe:
        return _dataframe_to_dicts(df)
    return df.to_dicts()


# ---------------------------------------------------------------------------
# Server-side filtering
# ---------------------------------------------------------------------------


def _build_filter_expr(
    column_id: str,
    column_filter: ColumnFilter,
    schema: pl.Schema,
) -> pl.Expr | None:
    """Translate a single column predicate to a Polars expression.

    String operators compare case-insensitively; ``greaterThan``,
    ``lessThan`` and ``between`` compare numerically and never match values
    that are not numbers.

    Returns:
        A polars expression, or ``None`` if the predicate cannot be
        translated (unknown operator or column).
    """
    resolved = _column_expr(column_id, schema)
    if resolved is None:
        return None
    col, dtype = resolved
    str_col = _col_to_str_expr(col, dtype)
    operator = column_filter.operator
    value = column_filter.value

    # -- operators that don't need a value --
    if operator == "isEmpty":
        return col.is_null() | (str_col == "").fill_null(False)
    if operator == "isNotEmpty":
        return col.is_not_null() & (str_col != "").fill_null(False)

    # -- numeric operators --
    if operator in ("greaterThan", "lessThan", "between"):
        num_col = col if dtype.is_numeric() else str_col.str.strip_chars().cast(
            pl.Float64, strict=False
        )
        if operator == "between":
            if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)) or len(value) != 2:
                return pl.lit(False)
            low, high = _coerce_numeric(value[0]), _coerce_numeric(value[1])
            if low is None or high is None:
                return pl.lit(False)
            return num_col.is_between(low, high, closed="both").fill_null(False)
        number = _coerce_numeric(value)
        if number is None:
            return pl.lit(False)
        expr = num_col > number if operator == "greaterThan" else num_col < number
        return expr.fill_null(False)

    # -- string operators --
    needle = "" if value is None else _to_text(value).lower()
    lowered = str_col.str.to_lowercase()
    if operator == "contains":
        expr = lowered.str.contains(needle, literal=True)
    elif operator == "equals":
        expr = lowered == needle
    elif operator == "startsWith":
        expr = lowered.str.starts_with(needle)
    elif operator == "endsWith":
        expr = lowered.str.ends_with(needle)
    else:
        logger.debug("Ignoring unknown filter operator %r", operator)
        return None
    return expr.fill_null(False)


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def apply_filter_state(
    lf: pl.LazyFrame,
    filters: Mapping[str, ColumnFilter],
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """Apply column predicates (combined with AND) to a LazyFrame -- **no collect**.

    Args:
        lf: The polars LazyFrame to filter.
        filters: ``{column_id: ColumnFilter}``; plain dicts are accepted.
        schema: Optional schema override.  If ``None``, the schema is
            obtained from ``lf.collect_schema()``.

    Returns:
        The filtered ``pl.LazyFrame``.
    """
    if not filters:
        return lf
    if schema is None:
        schema = lf.collect_schema()

    exprs: list[pl.Expr] = []
    for column_id, raw in filters.items():
        expr = _build_filter_expr(column_id, ColumnFilter.coerce(raw), schema)
        if expr is not None:
            exprs.append(expr)
    if not exprs:
        return lf

    combined = exprs[0]
    for e in exprs[1:]:
        combined = combined & e
    return lf.filter(combined)


# ---------------------------------------------------------------------------
# Server-side sorting and search
# ---------------------------------------------------------------------------


def apply_sort_state(
    lf: pl.LazyFrame,
    sort: SortState,
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """Sort a LazyFrame by one column -- **no collect**.

    The sort is stable and puts nulls last in both directions.  Strings are
    ordered by code point, not by locale.
    """
    if not sort.is_active:
        return lf
    if schema is None:
        schema = lf.collect_schema()
    resolved = _column_expr(sort.column, schema)
    if resolved is None:
        logger.debug("Cannot sort by unknown column %r", sort.column)
        return lf
    expr, _ = resolved
    return lf.sort(expr, descending=sort.direction == "desc", nulls_last=True, maintain_order=True)


def _search_exprs(fields: Iterable[str], schema: pl.Schema) -> list[pl.Expr]:
    exprs = []
    for field in fields:
        resolved = _column_expr(field, schema)
        if resolved is not None:
            col, dtype = resolved
            exprs.append(_col_to_str_expr(col, dtype).str.to_lowercase())
    return exprs


def apply_search_term(
    lf: pl.LazyFrame,
    term: str,
    fields: Iterable[str] = (),
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """Keep rows where *term* occurs (case-insensitively) in any of *fields*.

    With no *fields* every top-level column is searched.
    """
    if not term:
        return lf
    if schema is None:
        schema = lf.collect_schema()
    fields = list(fields) or list(schema.names())
    needle = term.lower()
    exprs = [e.str.contains(needle, literal=True).fill_null(False) for e in _search_exprs(fields, schema)]
    if not exprs:
        return lf.filter(pl.lit(False))
    return lf.filter(pl.any_horizontal(exprs))


def _criterion_expr(criterion: SearchCriterion, schema: pl.Schema) -> pl.Expr:
    exprs = _search_exprs([criterion.field], schema)
    if not exprs:
        return pl.lit(False)
    lowered = exprs[0]
    needle = str(criterion.value).strip().lower()
    if criterion.operator == "EQUALS":
        expr = lowered == needle
    elif criterion.operator == "STARTS_WITH":
        expr = lowered.str.starts_with(needle)
    elif criterion.operator == "ENDS_WITH":
        expr = lowered.str.ends_with(needle)
    else:
        expr = lowered.str.contains(needle, literal=True)
    return expr.fill_null(False)


def apply_advanced_search(
    lf: pl.LazyFrame,
    search: AdvancedSearchState | None,
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """Apply the non-blank criteria, combined with AND (``match_all``) or OR."""
    if search is None or not search.is_active:
        return lf
    if schema is None:
        schema = lf.collect_schema()
    exprs = [_criterion_expr(c, schema) for c in search.active_criteria]
    if search.match_all:
        return lf.filter(pl.all_horizontal(exprs))
    return lf.filter(pl.any_horizontal(exprs))


# ---------------------------------------------------------------------------
# Remote fetch function
# ---------------------------------------------------------------------------


def collect_page(lf: pl.LazyFrame, request: FetchRequest) -> dict[str, Any]:
    """Answer one fetch request: search -> filter -> count -> sort -> slice.

    Only the requested slice is collected; the row count is a
    ``select(pl.len())`` query pushed down into the scan.
    """
    schema = lf.collect_schema()
    filtered = apply_search_term(lf, request.search.term, request.search.fields, schema)
    filtered = apply_advanced_search(filtered, request.advanced_search, schema)
    filtered = apply_filter_state(filtered, request.filters, schema)

    total = filtered.select(pl.len()).collect().item()
    ordered = apply_sort_state(filtered, request.sort, schema)
    offset = max(request.page, 0) * request.rows_per_page
    page_df = ordered.slice(offset, request.rows_per_page).collect()
    logger.debug(
        "Collected page %d (%d rows of %d)", request.page, page_df.height, total
    )
    return {"data": page_df.to_dicts(), "totalCount": total}


def lazyframe_fetcher(lf: pl.LazyFrame):
    """Return an async fetch function serving pages of *lf*.

    The collect runs in a worker thread so the event loop stays free.

    Example::

        pipeline = DataPipeline(columns, fetch=lazyframe_fetcher(scan_file("data.parquet")))
    """

    async def fetch(request: FetchRequest) -> dict[str, Any]:
        return await asyncio.to_thread(collect_page, lf, request)

    return fetch
