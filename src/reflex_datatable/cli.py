"""CLI for reflex-datatable -- export tabular files through the table pipeline.

Usage::

    # Export a Parquet file to a spreadsheet
    reflex-datatable export data.parquet --format excel

    # Search, filter and sort before exporting
    reflex-datatable export people.csv --search smith --filter age:greaterThan:30 --sort name

    # Export only the second page of 25 rows as PDF
    reflex-datatable export people.csv --format pdf --page 1 --rows-per-page 25

The file is scanned with polars, run through a local ``DataPipeline`` and
written with the chosen exporter.
"""

from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from reflex_datatable.exceptions import ExportError
from reflex_datatable.exporting import EXPORT_FORMATS, FORMAT_EXTENSIONS, FORMAT_LABELS, export_data
from reflex_datatable.models import FILTER_OPERATORS, VALUELESS_OPERATORS, ExportConfig, SortState
from reflex_datatable.pipeline import DataPipeline
from reflex_datatable.polars_utils import build_columns_from_schema, lazyframe_to_rows, scan_file

app = typer.Typer(
    name="reflex-datatable",
    help="Search, filter, sort and export tabular data files.",
    no_args_is_help=True,
)


def _parse_filter(spec: str) -> tuple[str, str, Any]:
    """Parse ``COLUMN:OPERATOR[:VALUE]``.

    The value may itself contain colons; only the first two separate parts.
    """
    parts = spec.split(":", 2)
    if len(parts) < 2 or not parts[0]:
        raise typer.BadParameter(f"expected COLUMN:OPERATOR[:VALUE], got {spec!r}")
    column, operator = parts[0], parts[1]
    if operator not in FILTER_OPERATORS:
        raise typer.BadParameter(
            f"unknown operator {operator!r}; choose from {', '.join(FILTER_OPERATORS)}"
        )
    value = parts[2] if len(parts) == 3 else None
    if operator == "between" and value is not None:
        low, _, high = value.partition(",")
        return column, operator, (low, high)
    if value is None and operator not in VALUELESS_OPERATORS:
        raise typer.BadParameter(f"operator {operator!r} needs a value")
    return column, operator, value


@app.command()
def export(
    file: Annotated[Path, typer.Argument(help="Path to the data file (CSV, TSV, Parquet, JSON, NDJSON, IPC)")],
    format: Annotated[str, typer.Option("--format", "-f", help="csv, excel, pdf or word")] = "csv",
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output file or directory")] = None,
    search: Annotated[Optional[str], typer.Option("--search", "-s", help="Full-text filter term")] = None,
    filters: Annotated[
        Optional[list[str]],
        typer.Option("--filter", help="Column predicate COLUMN:OPERATOR[:VALUE]; repeatable"),
    ] = None,
    sort: Annotated[Optional[str], typer.Option("--sort", help="Column to sort by")] = None,
    desc: Annotated[bool, typer.Option("--desc", help="Sort descending")] = False,
    page: Annotated[Optional[int], typer.Option("--page", help="Export only this page (0-based)")] = None,
    rows_per_page: Annotated[int, typer.Option("--rows-per-page", help="Page size used with --page")] = 12,
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Document title")] = None,
    subtitle: Annotated[Optional[str], typer.Option("--subtitle", help="Document subtitle")] = None,
) -> None:
    """Export a data file in one of the supported formats."""
    if format not in EXPORT_FORMATS:
        typer.echo(
            f"Error: unknown format {format!r}; choose from {', '.join(EXPORT_FORMATS)}",
            err=True,
        )
        raise typer.Exit(code=1)

    file = file.resolve()
    try:
        lf = scan_file(file)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    columns = build_columns_from_schema(lf.collect_schema())
    pipeline = DataPipeline(columns, lazyframe_to_rows(lf), rows_per_page=max(rows_per_page, 1))

    if search:
        pipeline.set_search_term(search)
    for spec in filters or []:
        column, operator, value = _parse_filter(spec)
        pipeline.set_filter(column, value, operator)
    if sort:
        pipeline.set_sort(SortState(column=sort, direction="desc" if desc else "asc"))

    config = ExportConfig(filename=file.stem, title=title, subtitle=subtitle)
    try:
        if page is None:
            rows = pipeline.processed_rows()
            artifact = pipeline.export(format, config)
        else:
            pipeline.set_page(page)
            rows = pipeline.page_rows()
            artifact = export_data(format, rows, pipeline.visible_columns, config)
    except ExportError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    if artifact is None:
        raise typer.Exit(code=1)

    if output is None:
        target = Path.cwd() / artifact.filename
    elif output.is_dir():
        target = output / artifact.filename
    else:
        target = output
    target.write_bytes(artifact.content)
    typer.echo(f"Wrote {len(rows)} rows to {target} ({FORMAT_LABELS[format]})")


@app.command()
def formats() -> None:
    """List the available export formats."""
    for name in EXPORT_FORMATS:
        typer.echo(f"{name}\t{FORMAT_LABELS[name]}\t.{FORMAT_EXTENSIONS[name]}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
