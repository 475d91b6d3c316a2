"""
Excel (.xlsx) adapter built on openpyxl.

Every worksheet becomes a level-2 Header with the sheet title followed by
a Table whose first non-empty row is the header row.
"""

import io
import zipfile
from typing import Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.utils.cell import column_index_from_string
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import MalformedInput
from ..formats import DocumentFormat
from ..model.document import Document
from ..model.elements import DEFAULT_COLUMN_WIDTH, Element, Header, element_text
from ..model.images import ImageBundle
from ..utils.logger import get_logger
from ..utils.units import chars_to_mm, mm_to_chars, round_mm
from .base import ConversionWarnings, Transformer
from .sheets import SHEET_HEADER_LEVEL, build_table, cell_text, collect_sheets, trim_rows

logger = get_logger(__name__)


class XlsxConverter(Transformer):
    """Converts between Excel workbooks and header + table documents."""

    FORMAT = DocumentFormat.XLSX
    SUPPORTED_EXTENSIONS = {".xlsx"}

    def parse(self, data: bytes, images: Optional[ImageBundle] = None,
              warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        if not data:
            return Document(), ImageBundle()
        try:
            wb = load_workbook(io.BytesIO(data), data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
            raise MalformedInput(f"Invalid XLSX workbook: {exc}") from exc

        elements: list[Element] = []
        for ws in wb.worksheets:
            rows = trim_rows([[cell_text(v) for v in row] for row in ws.iter_rows(values_only=True)])
            elements.append(Header(SHEET_HEADER_LEVEL, ws.title))
            elements.append(build_table(rows, _column_widths(ws)))
            logger.debug("Read sheet %r with %d rows", ws.title, len(rows))
        wb.close()
        return Document(elements), ImageBundle()

    def generate(self, document: Document, images: Optional[ImageBundle] = None,
                 warnings: Optional[ConversionWarnings] = None) -> tuple[bytes, ImageBundle]:
        warnings = warnings if warnings is not None else ConversionWarnings()
        sheets = collect_sheets(document, warnings, "XLSX")

        wb = Workbook()
        wb.remove(wb.active)
        for title, table in sheets:
            ws = wb.create_sheet(title=title)
            if table.headers:
                ws.append([element_text(h) for h in table.headers])
                for cell in ws[1]:
                    cell.font = Font(bold=True)
            for row in table.rows:
                ws.append([element_text(c) for c in row.cells])
            for index, header in enumerate(table.headers, start=1):
                ws.column_dimensions[get_column_letter(index)].width = round(mm_to_chars(header.width), 2)
        if not sheets:
            wb.create_sheet(title="Sheet1")

        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue(), ImageBundle()


def _column_widths(ws) -> list[float]:
    """Column widths in millimeters; columns without a custom width get the default."""
    widths: dict[int, float] = {}
    for key, dim in ws.column_dimensions.items():
        if not dim.customWidth or not dim.width:
            continue
        first = dim.min or column_index_from_string(key)
        last = dim.max or first
        for index in range(first, last + 1):
            widths[index] = round_mm(chars_to_mm(dim.width))
    if not widths:
        return []
    return [widths.get(index, DEFAULT_COLUMN_WIDTH) for index in range(1, max(widths) + 1)]
