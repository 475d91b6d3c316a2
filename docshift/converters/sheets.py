"""
Model mapping shared by the spreadsheet adapters (Xlsx, Ods).

A workbook maps to a sequence of Header(2, sheet name) + Table pairs.
"""

import datetime
import re

from ..model.document import Document
from ..model.elements import Header, Table, TableCell, TableHeader, Text
from .base import ConversionWarnings, report_chrome

SHEET_HEADER_LEVEL = 2
MAX_SHEET_TITLE = 31
INVALID_TITLE_CHARS = re.compile(r"[\[\]:*?/\\]")


def sheet_title(name: str, used: set[str]) -> str:
    """Make a worksheet name valid and unique within the workbook."""
    title = INVALID_TITLE_CHARS.sub("_", name).strip().strip("'")[:MAX_SHEET_TITLE] or f"Sheet{len(used) + 1}"
    base, counter = title, 2
    while title.lower() in {u.lower() for u in used}:
        suffix = f" ({counter})"
        title = base[:MAX_SHEET_TITLE - len(suffix)] + suffix
        counter += 1
    used.add(title)
    return title


def collect_sheets(document: Document, warnings: ConversionWarnings, format_name: str) -> list[tuple[str, Table]]:
    """
    Pick the top-level tables of a document, each named by the Header
    immediately before it. Anything else is reported as dropped.
    """
    sheets = []
    used: set[str] = set()
    pending = None
    for element in document.elements:
        if isinstance(element, Table):
            name = pending.text if pending is not None else f"Sheet{len(sheets) + 1}"
            sheets.append((sheet_title(name, used), element))
            pending = None
            continue
        if pending is not None:
            warnings.add("Header", f"{format_name} keeps headers only as sheet names")
        if isinstance(element, Header):
            pending = element
        else:
            pending = None
            warnings.add(element.variant_name, f"{format_name} holds only tables")
    if pending is not None:
        warnings.add("Header", f"{format_name} keeps headers only as sheet names")
    report_chrome(document, warnings, format_name)
    return sheets


def cell_text(value) -> str:
    """Render a spreadsheet cell value as text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)


def build_table(rows: list[list[str]], widths: list[float]) -> Table:
    """First row becomes the headers; widths are indexed by column."""
    if not rows:
        return Table()
    headers = [
        TableHeader(Text(value), widths[index]) if index < len(widths) else TableHeader(Text(value))
        for index, value in enumerate(rows[0])
    ]
    cells = [[TableCell(Text(value)) for value in row] for row in rows[1:]]
    table = Table.padded(headers, cells)
    for index, header in enumerate(table.headers):
        if index < len(widths) and index >= len(rows[0]):
            header.width = widths[index]
    return table


def trim_rows(rows: list[list[str]]) -> list[list[str]]:
    """Drop fully empty rows and trailing empty cells."""
    trimmed = []
    for row in rows:
        while row and row[-1] == "":
            row = row[:-1]
        if row:
            trimmed.append(row)
    return trimmed
