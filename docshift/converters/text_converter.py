"""
Plain text adapter.

Parsing turns every line into a paragraph. Generation flattens the
document to readable text: lists become prefixed lines, tables become
padded pipe tables, images are dropped.
"""

from typing import Optional

from ..errors import MalformedInput
from ..formats import DocumentFormat
from ..model.document import Document
from ..model.elements import (
    Element,
    Header,
    Hyperlink,
    Image,
    List,
    PageBreak,
    Paragraph,
    Table,
    Text,
    element_text,
)
from ..model.images import ImageBundle
from ..utils.logger import get_logger
from ..utils.text import decode_text, normalize_newlines
from .base import ConversionWarnings, Transformer, report_chrome

logger = get_logger(__name__)

FORM_FEED = "\f"


class PlainTextConverter(Transformer):
    """Converts between plain UTF-8 text and the document model."""

    FORMAT = DocumentFormat.PLAIN_TEXT
    SUPPORTED_EXTENSIONS = {".txt", ".text"}

    def parse(self, data: bytes, images: Optional[ImageBundle] = None,
              warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        try:
            text = normalize_newlines(decode_text(data))
        except UnicodeDecodeError as exc:
            raise MalformedInput(f"Plain text is not valid UTF-8: {exc}") from exc

        if not text:
            return Document(), ImageBundle()

        lines = text.split("\n")
        if text.endswith("\n"):
            lines.pop()

        elements: list[Element] = []
        for line in lines:
            if line == FORM_FEED:
                elements.append(PageBreak())
            elif line:
                elements.append(Paragraph([Text(line)]))
            else:
                elements.append(Paragraph([]))

        logger.debug("Parsed %d text lines", len(elements))
        return Document(elements), ImageBundle()

    def generate(self, document: Document, images: Optional[ImageBundle] = None,
                 warnings: Optional[ConversionWarnings] = None) -> tuple[bytes, ImageBundle]:
        warnings = warnings if warnings is not None else ConversionWarnings()
        report_chrome(document, warnings, "Plain text")

        lines: list[str] = []
        for element in document.elements:
            lines.extend(_block_lines(element, warnings))

        if not lines:
            return b"", ImageBundle()
        return ("\n".join(lines) + "\n").encode("utf-8"), ImageBundle()


def _block_lines(element: Element, warnings: ConversionWarnings) -> list[str]:
    if isinstance(element, Header):
        return [element.text]
    if isinstance(element, Paragraph):
        return [_inline_text(element.elements, warnings)]
    if isinstance(element, Text):
        return [element.text]
    if isinstance(element, List):
        return _list_lines(element, 0, warnings)
    if isinstance(element, Table):
        return _table_lines(element)
    if isinstance(element, PageBreak):
        return [FORM_FEED]
    warnings.add(element.variant_name, "no plain text representation")
    return []


def _inline_text(elements: list[Element], warnings: ConversionWarnings) -> str:
    parts = []
    for child in elements:
        if isinstance(child, Text):
            parts.append(child.text)
        elif isinstance(child, Hyperlink):
            if child.title and child.title != child.url:
                parts.append(f"{child.title} <{child.url}>")
            else:
                parts.append(child.url or child.title)
        elif isinstance(child, Image):
            warnings.add("Image", "plain text cannot hold images")
    return "".join(parts)


def _list_lines(lst: List, depth: int, warnings: ConversionWarnings) -> list[str]:
    lines = []
    indent = "  " * depth
    number = 0
    for item in lst.elements:
        if isinstance(item.element, List):
            lines.extend(_list_lines(item.element, depth + 1, warnings))
            continue
        number += 1
        marker = f"{number}." if lst.numbered else "-"
        item_lines = _block_lines(item.element, warnings) or [""]
        lines.append(f"{indent}{marker} {item_lines[0]}")
        lines.extend(f"{indent}  {extra}" for extra in item_lines[1:])
    return lines


def _table_lines(table: Table) -> list[str]:
    grid = [[_cell_text(h) for h in table.headers]]
    grid.extend([_cell_text(c) for c in row.cells] for row in table.rows)
    if not grid[0]:
        return []
    widths = [max(len(row[i]) for row in grid) for i in range(len(grid[0]))]

    def render(row):
        return "| " + " | ".join(cell.ljust(w) for cell, w in zip(row, widths)) + " |"

    lines = [render(grid[0]), "|" + "|".join("-" * (w + 2) for w in widths) + "|"]
    lines.extend(render(row) for row in grid[1:])
    return lines


def _cell_text(element: Element) -> str:
    return element_text(element).replace("\n", " ")
