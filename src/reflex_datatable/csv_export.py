"""Delimited-text export."""

import csv
import io
from collections.abc import Sequence

from reflex_datatable.exporting import ExportArtifact, build_artifact, cell_text, exportable_columns
from reflex_datatable.models import Column, ExportConfig, Row


def render_csv(rows: Sequence[Row], columns: Sequence[Column], config: ExportConfig) -> str:
    """Fields holding a comma, quote or line break are quoted, quotes doubled."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    if config.include_headers:
        writer.writerow([column.label for column in columns])
    for row_index, row in enumerate(rows):
        writer.writerow([cell_text(row, column, row_index) for column in columns])
    return buffer.getvalue()


def export_to_csv(
    rows: Sequence[Row], columns: Sequence[Column], config: ExportConfig
) -> ExportArtifact:
    text = render_csv(rows, exportable_columns(columns), config)
    return build_artifact("csv", text.encode("utf-8"), config)
