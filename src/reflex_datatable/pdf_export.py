"""Paginated document export: HTML laid out by WeasyPrint.

The HTML carries its own page setup (``@page`` size and orientation) and a
running footer that WeasyPrint repeats on every page after the first.
"""

import logging
from collections.abc import Sequence

from reflex_datatable.exceptions import ExportError
from reflex_datatable.exporting import (
    ExportArtifact,
    build_artifact,
    default_footer_title,
    exportable_columns,
    generated_at,
    render_heading,
    render_table,
)
from reflex_datatable.models import Column, ExportConfig, Row
from reflex_datatable.sanitize import escape_markup, resolve_trusted

logger = logging.getLogger(__name__)

# Optional WeasyPrint import: its native libraries (pango) may be missing.
try:
    from weasyprint import HTML

    WEASYPRINT_AVAILABLE = True
except (ImportError, OSError):
    HTML = None
    WEASYPRINT_AVAILABLE = False

_PAGE_SIZES = {"a4": "A4", "letter": "letter", "legal": "legal"}

_STYLESHEET = """
@page {
  size: %(size)s %(orientation)s;
  margin: 1.5cm 1cm 2cm 1cm;
  @bottom-center { content: element(footer); width: 100%%; }
}
@page :first {
  @bottom-center { content: none; }
}
* { box-sizing: border-box; }
body {
  font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
  font-size: 10pt;
  color: #333;
  margin: 0;
}
.header { margin-bottom: 20px; padding-bottom: 10px; border-bottom: 2px solid #1976d2; }
.title { font-size: 18pt; font-weight: bold; color: #1976d2; margin: 0 0 5px 0; }
.subtitle { font-size: 10pt; color: #666; margin: 0; }
.meta { font-size: 9pt; color: #888; margin-top: 10px; }
table { width: 100%%; border-collapse: collapse; margin-top: 15px; }
thead { display: table-header-group; }
tr { page-break-inside: avoid; }
th {
  background-color: #1976d2;
  color: white;
  font-weight: 600;
  text-align: left;
  padding: 10px 8px;
  font-size: 9pt;
  text-transform: uppercase;
  letter-spacing: 0.5px;
}
td { padding: 8px; border-bottom: 1px solid #e0e0e0; font-size: 9pt; }
tbody tr:nth-child(even) { background-color: #f8f9fa; }
.page-footer {
  position: running(footer);
  font-size: 8pt;
  color: #888;
  text-align: center;
  border-top: 1px solid #e0e0e0;
  padding-top: 4px;
}
.page-footer .page-indicator { float: right; }
.page-number::after { content: counter(page); }
.page-count::after { content: counter(pages); }
"""

_PAGE_X_OF_Y = 'Page <span class="page-number"></span> of <span class="page-count"></span>'


def render_footer(config: ExportConfig) -> str:
    """Running footer: the custom footer plus a right-aligned page indicator,
    or ``<title> – Page X of Y``."""
    if config.custom_footer:
        footer = resolve_trusted(config.custom_footer, config.allow_unsafe_html)
        return (
            '<div class="page-footer">'
            f'<span class="page-indicator">{_PAGE_X_OF_Y}</span>'
            f'<span class="custom-footer">{footer}</span>'
            "</div>"
        )
    return f'<div class="page-footer">{default_footer_title(config)} – {_PAGE_X_OF_Y}</div>'


def render_pdf_html(rows: Sequence[Row], columns: Sequence[Column], config: ExportConfig) -> str:
    """Build the print-ready HTML document that WeasyPrint turns into a PDF."""
    style = _STYLESHEET % {
        "size": _PAGE_SIZES.get(config.pdf_page_size, "A4"),
        "orientation": "landscape" if config.pdf_orientation == "landscape" else "portrait",
    }
    created = generated_at(config).replace(microsecond=0).isoformat()
    return (
        "<!DOCTYPE html>\n"
        "<html>\n<head>\n"
        '<meta charset="utf-8">\n'
        f"<title>{escape_markup(config.title or 'Export')}</title>\n"
        f'<meta name="dcterms.created" content="{escape_markup(created)}">\n'
        f"<style>{style}</style>\n"
        "</head>\n<body>\n"
        f"{render_footer(config)}\n"
        f"{render_heading(config, len(rows))}\n"
        f"{render_table(rows, columns)}\n"
        "</body>\n</html>\n"
    )


def export_to_pdf(
    rows: Sequence[Row], columns: Sequence[Column], config: ExportConfig
) -> ExportArtifact:
    """Render the rows to PDF bytes.

    Raises:
        ExportError: If WeasyPrint is not installed or fails to render.
    """
    if not WEASYPRINT_AVAILABLE or HTML is None:
        raise ExportError(
            "PDF export requires the weasyprint package and its system libraries. "
            "Install with: pip install weasyprint"
        )
    document = render_pdf_html(rows, exportable_columns(columns), config)
    try:
        content = HTML(string=document).write_pdf()
    except Exception as exc:
        logger.exception("PDF rendering failed")
        raise ExportError(f"PDF rendering failed: {exc}") from exc
    return build_artifact("pdf", content, config)
