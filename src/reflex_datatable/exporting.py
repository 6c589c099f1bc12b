"""Export entry point and the helpers shared by every serializer.

Each serializer turns ``(rows, columns, config)`` into an in-memory
:class:`ExportArtifact`.  Writing it to disk or handing it to a browser
download is left to the caller (see :mod:`reflex_datatable.state` and
:mod:`reflex_datatable.cli`).
"""

import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from reflex_datatable.models import Column, ExportConfig, Row
from reflex_datatable.paths import resolve_path
from reflex_datatable.sanitize import escape_markup, resolve_trusted, sanitize_filename

logger = logging.getLogger(__name__)

EXPORT_FORMATS: tuple[str, ...] = ("csv", "excel", "pdf", "word")

FORMAT_LABELS: dict[str, str] = {
    "csv": "CSV",
    "excel": "Excel",
    "pdf": "PDF",
    "word": "Word",
}

FORMAT_EXTENSIONS: dict[str, str] = {
    "csv": "csv",
    "excel": "xlsx",
    "pdf": "pdf",
    "word": "doc",
}

MEDIA_TYPES: dict[str, str] = {
    "csv": "text/csv; charset=utf-8",
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
    "word": "application/msword",
}

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class ExportArtifact:
    """A finished export held in memory."""

    filename: str
    content: bytes
    media_type: str

    @property
    def size(self) -> int:
        return len(self.content)


# ---------------------------------------------------------------------------
# Cell rendering
# ---------------------------------------------------------------------------


def _to_json(value: Any) -> str:
    try:
        return json.dumps(value, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        # Circular structures cannot be serialized.
        return str(value)


def format_cell_value(value: Any, row: Row, column: Column, row_index: int) -> str:
    """Render one cell for export.

    The column's ``export_format`` wins.  Otherwise ``None`` becomes ``""``,
    booleans ``Yes``/``No``, dates their locale date string, mappings and
    sequences JSON, and everything else ``str()``.
    """
    if column.export_format is not None:
        formatted = column.export_format(value, row, row_index)
        return "" if formatted is None else str(formatted)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, date):
        return value.strftime("%x")
    if isinstance(value, str):
        return value
    if isinstance(value, (Mapping, Sequence)) and not isinstance(value, (bytes, bytearray)):
        return _to_json(value)
    return str(value)


def cell_text(row: Row, column: Column, row_index: int) -> str:
    return format_cell_value(resolve_path(row, column.id), row, column, row_index)


def exportable_columns(columns: Sequence[Column]) -> list[Column]:
    return [column for column in columns if column.exportable is not False]


# ---------------------------------------------------------------------------
# Naming and heading
# ---------------------------------------------------------------------------


def generated_at(config: ExportConfig) -> datetime:
    return config.generated_at if config.generated_at is not None else datetime.now()


def generate_filename(base_name: str, extension: str, when: date | None = None) -> str:
    """``<sanitized base>_<YYYY-MM-DD>.<extension>``."""
    if when is None:
        when = date.today()
    if isinstance(when, datetime):
        when = when.date()
    return f"{sanitize_filename(base_name)}_{when.isoformat()}.{extension}"


def build_artifact(format: str, content: bytes, config: ExportConfig) -> ExportArtifact:
    return ExportArtifact(
        filename=generate_filename(config.filename, FORMAT_EXTENSIONS[format], generated_at(config)),
        content=content,
        media_type=MEDIA_TYPES[format],
    )


def render_heading(config: ExportConfig, record_count: int, records_label: str = "Records") -> str:
    """Heading block shared by the paginated and word-processor documents.

    Title and subtitle are always escaped; the custom header is inserted raw
    only when ``config.allow_unsafe_html`` is set.
    """
    parts = ['<div class="header">']
    if config.title:
        parts.append(f'<h1 class="title">{escape_markup(config.title)}</h1>')
    if config.subtitle:
        parts.append(f'<p class="subtitle">{escape_markup(config.subtitle)}</p>')
    if config.custom_header:
        header = resolve_trusted(config.custom_header, config.allow_unsafe_html)
        parts.append(f'<div class="custom-header">{header}</div>')
    stamp = generated_at(config).strftime(_TIMESTAMP_FORMAT)
    parts.append(
        f'<p class="meta">Generated: {escape_markup(stamp)} | '
        f"{escape_markup(records_label)}: {record_count}</p>"
    )
    parts.append("</div>")
    return "\n".join(parts)


def render_table(rows: Sequence[Row], columns: Sequence[Column]) -> str:
    """HTML table with every header and cell escaped."""
    head = "".join(f"<th>{escape_markup(column.label)}</th>" for column in columns)
    body = []
    for row_index, row in enumerate(rows):
        cells = "".join(
            f"<td>{escape_markup(cell_text(row, column, row_index))}</td>" for column in columns
        )
        body.append(f"<tr>{cells}</tr>")
    return (
        "<table>\n"
        f"<thead><tr>{head}</tr></thead>\n"
        "<tbody>\n" + "\n".join(body) + "\n</tbody>\n"
        "</table>"
    )


def default_footer_title(config: ExportConfig) -> str:
    return escape_markup(config.title or "Document")


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def _serializers() -> dict[str, Callable[..., ExportArtifact]]:
    from reflex_datatable.csv_export import export_to_csv
    from reflex_datatable.excel_export import export_to_excel
    from reflex_datatable.pdf_export import export_to_pdf
    from reflex_datatable.word_export import export_to_word

    return {
        "csv": export_to_csv,
        "excel": export_to_excel,
        "pdf": export_to_pdf,
        "word": export_to_word,
    }


def export_data(
    format: str,
    rows: Sequence[Row],
    columns: Sequence[Column],
    config: ExportConfig | None = None,
) -> ExportArtifact | None:
    """Serialize *rows* in *format*.

    Columns marked ``exportable=False`` are dropped.  An unknown format is
    logged and yields ``None``.

    Raises:
        ExportError: If the backend for a known format fails.
    """
    if config is None:
        config = ExportConfig()
    serializer = _serializers().get(format)
    if serializer is None:
        logger.warning("Unknown export format: %s", format)
        return None
    artifact = serializer(rows, exportable_columns(columns), config)
    logger.debug("Exported %d rows as %s (%d bytes)", len(rows), format, artifact.size)
    return artifact
