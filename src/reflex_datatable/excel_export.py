"""Spreadsheet (xlsx) export with openpyxl.

Numbers stay numeric cells.  Every text cell is written with the string
data type, so content such as ``=1+1`` is stored as literal text and never
evaluated as a formula.
"""

import io
import math
import zipfile
from collections.abc import Sequence
from typing import Any

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from reflex_datatable.exporting import (
    ExportArtifact,
    build_artifact,
    cell_text,
    exportable_columns,
    generated_at,
)
from reflex_datatable.models import Column, ExportConfig, Row
from reflex_datatable.paths import resolve_path

SHEET_TITLE = "Data"

_MIN_COLUMN_WIDTH = 10
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

_title_font = Font(bold=True, size=14)
_subtitle_font = Font(italic=True, size=11, color="666666")
_header_font = Font(bold=True, size=12)
_header_fill = PatternFill(start_color="E8E8E8", end_color="E8E8E8", fill_type="solid")
_header_alignment = Alignment(horizontal="center", vertical="center")


def _is_numeric_cell(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (isinstance(value, float) and not math.isfinite(value))


def _write_text(worksheet, row: int, column: int, text: str):
    # openpyxl rejects control characters other than tab, CR and LF.
    cell = worksheet.cell(row=row, column=column, value=ILLEGAL_CHARACTERS_RE.sub("", text))
    cell.data_type = "s"
    return cell


def column_width(column: Column) -> int:
    if column.width:
        return column.width
    return max(len(column.label) + 4, _MIN_COLUMN_WIDTH)


def build_workbook(
    rows: Sequence[Row], columns: Sequence[Column], config: ExportConfig
) -> openpyxl.Workbook:
    """Lay out title rows, the header row and one sheet row per data row."""
    workbook = openpyxl.Workbook()
    worksheet = workbook.active
    worksheet.title = SHEET_TITLE

    stamp = generated_at(config).replace(tzinfo=None, microsecond=0)
    workbook.properties.created = stamp
    workbook.properties.modified = stamp
    if config.title:
        workbook.properties.title = config.title

    span = max(len(columns), 1)
    sheet_row = 1

    if config.title or config.subtitle:
        if config.title:
            _write_text(worksheet, sheet_row, 1, config.title).font = _title_font
            if span > 1:
                worksheet.merge_cells(
                    start_row=sheet_row, start_column=1, end_row=sheet_row, end_column=span
                )
            sheet_row += 1
        if config.subtitle:
            _write_text(worksheet, sheet_row, 1, config.subtitle).font = _subtitle_font
            if span > 1:
                worksheet.merge_cells(
                    start_row=sheet_row, start_column=1, end_row=sheet_row, end_column=span
                )
            sheet_row += 1
        # spacer
        sheet_row += 1

    if config.include_headers:
        for col_num, column in enumerate(columns, 1):
            cell = _write_text(worksheet, sheet_row, col_num, column.label)
            cell.font = _header_font
            cell.fill = _header_fill
            cell.alignment = _header_alignment
        sheet_row += 1

    for row_index, row in enumerate(rows):
        for col_num, column in enumerate(columns, 1):
            value = resolve_path(row, column.id)
            if column.export_format is None and _is_numeric_cell(value):
                worksheet.cell(row=sheet_row, column=col_num, value=value)
            else:
                _write_text(worksheet, sheet_row, col_num, cell_text(row, column, row_index))
        sheet_row += 1

    for col_num, column in enumerate(columns, 1):
        worksheet.column_dimensions[get_column_letter(col_num)].width = column_width(column)

    return workbook


def _pin_zip_timestamps(data: bytes) -> bytes:
    """Rewrite every archive member with a fixed modification date."""
    source = zipfile.ZipFile(io.BytesIO(data))
    output = io.BytesIO()
    with source, zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as target:
        for info in source.infolist():
            pinned = zipfile.ZipInfo(info.filename, date_time=_ZIP_EPOCH)
            pinned.compress_type = zipfile.ZIP_DEFLATED
            pinned.external_attr = info.external_attr
            target.writestr(pinned, source.read(info.filename))
    return output.getvalue()


def render_xlsx(rows: Sequence[Row], columns: Sequence[Column], config: ExportConfig) -> bytes:
    workbook = build_workbook(rows, columns, config)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return _pin_zip_timestamps(buffer.getvalue())


def export_to_excel(
    rows: Sequence[Row], columns: Sequence[Column], config: ExportConfig
) -> ExportArtifact:
    content = render_xlsx(rows, exportable_columns(columns), config)
    return build_artifact("excel", content, config)
