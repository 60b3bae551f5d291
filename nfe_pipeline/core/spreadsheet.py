"""
Serialização de registros fiscais em planilha XLSX (uma única aba).

Número NF e Chave NF são sempre gravados como célula de texto: um tipo
numérico/geral apagaria zeros à esquerda e truncaria a chave de 44 dígitos.
"""
import logging
from decimal import InvalidOperation
from io import BytesIO
from typing import Iterable, List

from openpyxl import Workbook
from openpyxl.cell.cell import Cell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ..schema.models import ColumnSpec, FiscalRecord, Template
from .formatters import parse_display_date, to_decimal
from .templates import TEXT_FORCED_KEYS, WEIGHT_KEYS, cell_value

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DEFAULT_SHEET_NAME = "Notas Fiscais"

TEXT_FORMAT = "@"
CURRENCY_FORMAT = '"R$" #,##0.00'
WEIGHT_FORMAT = "#,##0.000"
NUMBER_FORMAT = "#,##0.00"
DATE_FORMAT = "dd/mm/yyyy"

MIN_AUTO_WIDTH = 10
MAX_AUTO_WIDTH = 50
AUTO_WIDTH_PADDING = 2

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(fill_type="solid", fgColor="22C55E")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
DATA_ALIGNMENT = Alignment(vertical="center")
_THIN = Side(style="thin")
DATA_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)


def _write_text(cell: Cell, value: str) -> None:
    # vazio fica como célula em branco; XLSX não guarda string vazia
    if not value:
        return
    cell.value = value
    # impede que textos iniciados por "=" virem fórmula
    cell.data_type = "s"


def _write_numeric(cell: Cell, raw: str, number_format: str) -> None:
    try:
        cell.value = to_decimal(raw)
    except (InvalidOperation, ValueError):
        _write_text(cell, raw)
        return
    cell.number_format = number_format


def write_cell(cell: Cell, column: ColumnSpec, raw: str) -> None:
    """Grava `raw` tipando a célula pelo formato da coluna."""
    if column.source_key in TEXT_FORCED_KEYS:
        _write_text(cell, raw)
        cell.number_format = TEXT_FORMAT
        return

    if column.format == "currency":
        _write_numeric(cell, raw, CURRENCY_FORMAT)
    elif column.format == "number":
        fmt = WEIGHT_FORMAT if column.source_key in WEIGHT_KEYS else NUMBER_FORMAT
        _write_numeric(cell, raw, fmt)
    elif column.format == "date":
        if not raw:
            return
        parsed = parse_display_date(raw)
        if parsed is not None:
            cell.value = parsed
        else:
            _write_text(cell, raw)
        cell.number_format = DATE_FORMAT
    else:
        if raw:
            _write_text(cell, raw)


def column_width(column: ColumnSpec, values: Iterable[str]) -> float:
    """Largura explícita do template, ou auto-ajuste limitado a [10, 50]."""
    if column.width:
        return column.width
    longest = max([len(column.label)] + [len(v) for v in values if v])
    return min(max(longest + AUTO_WIDTH_PADDING, MIN_AUTO_WIDTH), MAX_AUTO_WIDTH)


def build_workbook(
    records: List[FiscalRecord],
    template: Template,
    sheet_name: str = DEFAULT_SHEET_NAME,
) -> Workbook:
    """Uma linha por registro (ordem de entrada), uma coluna por item do template."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    for col_idx, column in enumerate(template.columns, start=1):
        cell = ws.cell(row=1, column=col_idx)
        _write_text(cell, column.label)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT

    for row_idx, record in enumerate(records, start=2):
        for col_idx, column in enumerate(template.columns, start=1):
            cell = ws.cell(row=row_idx, column=col_idx)
            write_cell(cell, column, cell_value(record, column.source_key))
            cell.border = DATA_BORDER
            cell.alignment = DATA_ALIGNMENT

    for col_idx, column in enumerate(template.columns, start=1):
        values = [cell_value(r, column.source_key) for r in records]
        ws.column_dimensions[get_column_letter(col_idx)].width = column_width(column, values)

    ws.freeze_panes = "A2"
    return wb


def serialize(
    records: List[FiscalRecord],
    template: Template,
    sheet_name: str = DEFAULT_SHEET_NAME,
) -> bytes:
    """
    Returns:
        bytes do arquivo XLSX
    """
    wb = build_workbook(records, template, sheet_name)
    buffer = BytesIO()
    wb.save(buffer)

    logger.info(
        "Planilha gerada: %d linhas, %d colunas (template %s)",
        len(records), len(template.columns), template.name,
    )
    return buffer.getvalue()
