"""
CSV adapter.

A CSV file maps to a single Table whose first row is the header row.
"""

import csv
import io
from typing import Optional

from ..errors import MalformedInput, UnsupportedFeature
from ..formats import DocumentFormat
from ..model.document import Document
from ..model.elements import Table, TableCell, TableHeader, Text, element_text
from ..model.images import ImageBundle
from ..utils.logger import get_logger
from ..utils.text import decode_text
from .base import ConversionWarnings, Transformer, report_chrome

logger = get_logger(__name__)


class CsvConverter(Transformer):
    """Converts between comma-separated values and a single-table document."""

    FORMAT = DocumentFormat.CSV
    SUPPORTED_EXTENSIONS = {".csv"}

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter

    def parse(self, data: bytes, images: Optional[ImageBundle] = None,
              warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        try:
            text = decode_text(data)
        except UnicodeDecodeError as exc:
            raise MalformedInput(f"CSV is not valid UTF-8: {exc}") from exc
        if not text.strip():
            return Document(), ImageBundle()

        try:
            records = [row for row in csv.reader(io.StringIO(text, newline=""), delimiter=self.delimiter) if row]
        except csv.Error as exc:
            raise MalformedInput(f"Invalid CSV: {exc}") from exc

        headers = [TableHeader(Text(value)) for value in records[0]]
        rows = [[TableCell(Text(value)) for value in record] for record in records[1:]]
        table = Table.padded(headers, rows)
        logger.debug("Parsed CSV table with %d columns and %d rows", table.column_count, len(table.rows))
        return Document([table]), ImageBundle()

    def generate(self, document: Document, images: Optional[ImageBundle] = None,
                 warnings: Optional[ConversionWarnings] = None) -> tuple[bytes, ImageBundle]:
        warnings = warnings if warnings is not None else ConversionWarnings()
        if not document.elements:
            report_chrome(document, warnings, "CSV")
            return b"", ImageBundle()

        tables = [e for e in document.elements if isinstance(e, Table)]
        if not tables:
            raise UnsupportedFeature("CSV output requires a table, the document has none")
        if len(tables) > 1:
            raise UnsupportedFeature(f"CSV output holds a single table, the document has {len(tables)}")

        for element in document.elements:
            if not isinstance(element, Table):
                warnings.add(element.variant_name, "CSV holds only a single table")
        report_chrome(document, warnings, "CSV")

        table = tables[0]
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=self.delimiter, lineterminator="\n")
        if table.headers:
            writer.writerow([element_text(h) for h in table.headers])
        for row in table.rows:
            writer.writerow([element_text(c) for c in row.cells])
        return buffer.getvalue().encode("utf-8"), ImageBundle()
