"""
Legacy Excel (.xls) adapter, parse only, built on python-calamine.

Sheets map to the same Header + Table pairs as the XLSX and ODS adapters.
The binary format carries no column widths we read, so every column gets
the default width.
"""

import io
from typing import Optional

from python_calamine import CalamineError, CalamineWorkbook

from ..errors import MalformedInput
from ..formats import DocumentFormat
from ..model.document import Document
from ..model.elements import Element, Header
from ..model.images import ImageBundle
from ..utils.logger import get_logger
from .base import ConversionWarnings, Transformer
from .sheets import SHEET_HEADER_LEVEL, build_table, cell_text, trim_rows

logger = get_logger(__name__)


class XlsConverter(Transformer):
    """Reads Excel 97-2003 workbooks into header + table documents."""

    FORMAT = DocumentFormat.XLS
    SUPPORTED_EXTENSIONS = {".xls"}
    CAN_GENERATE = False

    def parse(self, data: bytes, images: Optional[ImageBundle] = None,
              warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        if not data:
            return Document(), ImageBundle()
        try:
            wb = CalamineWorkbook.from_filelike(io.BytesIO(data))
            sheets = [(name, wb.get_sheet_by_name(name).to_python(skip_empty_area=False))
                      for name in wb.sheet_names]
        except (CalamineError, ValueError, OSError) as exc:
            raise MalformedInput(f"Invalid XLS workbook: {exc}") from exc

        elements: list[Element] = []
        for name, values in sheets:
            rows = trim_rows([[cell_text(v) for v in row] for row in values])
            elements.append(Header(SHEET_HEADER_LEVEL, name))
            elements.append(build_table(rows, []))
            logger.debug("Read sheet %r with %d rows", name, len(rows))
        return Document(elements), ImageBundle()
