"""Word-processor export: an HTML document in Word's ``.doc`` HTML dialect."""

from collections.abc import Sequence

from reflex_datatable.exporting import (
    ExportArtifact,
    build_artifact,
    default_footer_title,
    exportable_columns,
    render_heading,
    render_table,
)
from reflex_datatable.models import Column, ExportConfig, Row
from reflex_datatable.sanitize import escape_markup, resolve_trusted

BOM = "\ufeff"

# (width, height) in portrait orientation
_PAGE_DIMENSIONS = {
    "a4": ("21.0cm", "29.7cm"),
    "letter": ("8.5in", "11.0in"),
    "legal": ("8.5in", "14.0in"),
}

_PAGE_FIELDS = (
    "Page <span style='mso-field-code:\" PAGE \"'></span>"
    " of <span style='mso-field-code:\" NUMPAGES \"'></span>"
)

_STYLESHEET = """
@page Section1 {
  size: %(width)s %(height)s;
  mso-page-orientation: %(orientation)s;
  margin: 2.0cm 1.5cm 2.0cm 1.5cm;
  mso-footer: f1;
  mso-title-page: yes;
}
div.Section1 { page: Section1; }
body { font-family: 'Calibri', sans-serif; font-size: 11pt; }
h1 { font-size: 18pt; color: #1976d2; margin-bottom: 5pt; }
.subtitle { font-size: 11pt; color: #666; margin-bottom: 15pt; }
.meta { font-size: 9pt; color: #888; margin-bottom: 20pt; }
table { width: 100%%; border-collapse: collapse; margin-top: 10pt; }
th {
  background-color: #1976d2;
  color: white;
  font-weight: bold;
  text-align: left;
  padding: 8pt 6pt;
  font-size: 10pt;
  border: 1pt solid #1565c0;
}
td { padding: 6pt; border: 1pt solid #e0e0e0; font-size: 10pt; }
tr:nth-child(even) td { background-color: #f5f5f5; }
p.MsoFooter { font-size: 9pt; color: #888; text-align: center; }
span.page-indicator { float: right; }
"""


def render_footer(config: ExportConfig) -> str:
    if config.custom_footer:
        footer = resolve_trusted(config.custom_footer, config.allow_unsafe_html)
        text = f'{footer}<span class="page-indicator">{_PAGE_FIELDS}</span>'
    else:
        text = f"{default_footer_title(config)} – {_PAGE_FIELDS}"
    return f'<div style="mso-element:footer" id="f1"><p class="MsoFooter">{text}</p></div>'


def render_word_html(rows: Sequence[Row], columns: Sequence[Column], config: ExportConfig) -> str:
    """Build the Word HTML document (without the byte order mark).

    Title, subtitle, meta line and cells are always escaped; only the custom
    header and footer honor ``allow_unsafe_html``.
    """
    width, height = _PAGE_DIMENSIONS.get(config.pdf_page_size, _PAGE_DIMENSIONS["a4"])
    orientation = "landscape" if config.pdf_orientation == "landscape" else "portrait"
    if orientation == "landscape":
        width, height = height, width
    style = _STYLESHEET % {"width": width, "height": height, "orientation": orientation}

    return (
        '<html xmlns:o="urn:schemas-microsoft-com:office:office"\n'
        '      xmlns:w="urn:schemas-microsoft-com:office:word"\n'
        '      xmlns="http://www.w3.org/TR/REC-html40">\n'
        "<head>\n"
        '<meta charset="utf-8">\n'
        f"<title>{escape_markup(config.title or 'Export')}</title>\n"
        "<!--[if gte mso 9]>\n"
        "<xml><w:WordDocument><w:View>Print</w:View><w:Zoom>100</w:Zoom>"
        "<w:DoNotOptimizeForBrowser/></w:WordDocument></xml>\n"
        "<![endif]-->\n"
        f"<style>{style}</style>\n"
        "</head>\n<body>\n"
        '<div class="Section1">\n'
        f"{render_heading(config, len(rows), records_label='Total Records')}\n"
        f"{render_table(rows, columns)}\n"
        f"{render_footer(config)}\n"
        "</div>\n"
        "</body>\n</html>\n"
    )


def export_to_word(
    rows: Sequence[Row], columns: Sequence[Column], config: ExportConfig
) -> ExportArtifact:
    document = render_word_html(rows, exportable_columns(columns), config)
    return build_artifact("word", (BOM + document).encode("utf-8"), config)
