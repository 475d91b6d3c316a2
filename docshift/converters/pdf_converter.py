"""
PDF adapter.

Parsing goes through pymupdf4llm, which turns each page into structured
Markdown (headings, tables, lists); every page is then read with the
Markdown reader and pages are separated by PageBreak.

Generation lays the document out with PyMuPDF (fitz) using a simple
top-to-bottom flow: words wrap at the content width, headers use the
HEADER_SIZES scale, images are scaled to fit, tables are drawn as grids
sized from the header widths.
"""

import io
from typing import Optional

import fitz  # pymupdf
import pymupdf4llm
from PIL import Image as PILImage, UnidentifiedImageError

from ..errors import MalformedInput
from ..formats import DocumentFormat
from ..model.document import Document
from ..model.elements import (
    DEFAULT_TEXT_SIZE,
    HEADER_SIZES,
    Element,
    Header,
    Hyperlink,
    Image,
    KeyedImage,
    List,
    PageBreak,
    Paragraph,
    Table,
    Text,
    element_text,
)
from ..model.images import ImageBundle, ImageLoader, ImageSink
from ..utils.logger import get_logger
from ..utils.units import mm_to_points, points_to_mm, round_mm
from .base import ConversionWarnings, ImageAwareTransformer
from .markdown_converter import MarkdownConverter

logger = get_logger(__name__)

FONT = "helv"
BOLD_FONT = "hebo"
LINE_SPACING = 1.25
BLOCK_SPACING = 6.0  # points
LIST_INDENT = mm_to_points(6)
CELL_PADDING = 3.0
LINK_COLOR = (0.02, 0.39, 0.76)
BORDER_WIDTH = 0.5


class PdfConverter(ImageAwareTransformer):
    """Converts between PDF and the document model."""

    FORMAT = DocumentFormat.PDF
    SUPPORTED_EXTENSIONS = {".pdf"}

    def parse_with_loader(self, data: bytes, loader: ImageLoader,
                          warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        warnings = warnings if warnings is not None else ConversionWarnings()
        if not data:
            return Document(), ImageBundle()
        try:
            pdf = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise MalformedInput(f"Invalid PDF: {exc}") from exc

        try:
            if pdf.page_count == 0:
                return Document(), ImageBundle()
            first = pdf[0].rect
            chunks = pymupdf4llm.to_markdown(pdf, page_chunks=True, show_progress=False)
        finally:
            pdf.close()

        markdown = MarkdownConverter()
        elements: list[Element] = []
        images = ImageBundle()
        for index, chunk in enumerate(chunks):
            if index:
                elements.append(PageBreak())
            page, page_images = markdown.parse_with_loader(chunk.get("text", "").encode("utf-8"), loader, warnings)
            elements.extend(page.elements)
            images.update(page_images)

        logger.debug("Parsed PDF with %d pages into %d blocks", len(chunks), len(elements))
        document = Document(
            elements,
            page_width=round_mm(points_to_mm(first.width)),
            page_height=round_mm(points_to_mm(first.height)),
        )
        return document, images

    def generate_with_sink(self, document: Document, sink: ImageSink,
                           images: Optional[ImageBundle] = None,
                           warnings: Optional[ConversionWarnings] = None) -> bytes:
        warnings = warnings if warnings is not None else ConversionWarnings()
        layout = PdfLayout(document, images or ImageBundle(), warnings)
        return layout.render()


class PdfLayout:
    """
    Flow layout onto fitz pages.

    All coordinates are PDF points with the origin at the top left, which
    is what PyMuPDF uses for page drawing.
    """

    def __init__(self, document: Document, images: ImageBundle, warnings: ConversionWarnings):
        self.document = document
        self.images = images
        self.warnings = warnings
        self.width = mm_to_points(document.page_width)
        self.height = mm_to_points(document.page_height)
        self.left = mm_to_points(document.left_page_indent)
        self.right = self.width - mm_to_points(document.right_page_indent)
        self.top = mm_to_points(document.top_page_indent)
        self.bottom = self.height - mm_to_points(document.bottom_page_indent)
        if self.right <= self.left or self.bottom <= self.top:
            raise MalformedInput("Page indents leave no room for content")
        self.pdf = fitz.open()
        self.page = None
        self.y = self.top

    def render(self) -> bytes:
        self.new_page()
        for element in self.document.elements:
            self.block(element)
        for page in self.pdf:
            self.draw_chrome(page)
        output = self.pdf.tobytes(garbage=3, deflate=True)
        self.pdf.close()
        return output

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def new_page(self) -> None:
        self.page = self.pdf.new_page(width=self.width, height=self.height)
        self.y = self.top

    def ensure_space(self, needed: float) -> None:
        if self.y + needed > self.bottom and self.y > self.top:
            self.new_page()

    def draw_chrome(self, page) -> None:
        lines = [element_text(e) for e in self.document.page_header]
        y = mm_to_points(self.document.top_page_indent) / 2
        for line in lines:
            y += DEFAULT_TEXT_SIZE
            page.insert_text((self.left, y), line, fontsize=DEFAULT_TEXT_SIZE, fontname=FONT)

        lines = [element_text(e) for e in self.document.page_footer]
        y = self.bottom + mm_to_points(self.document.bottom_page_indent) / 2
        for line in lines:
            y += DEFAULT_TEXT_SIZE
            page.insert_text((self.left, y), line, fontsize=DEFAULT_TEXT_SIZE, fontname=FONT)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def block(self, element: Element) -> None:
        if isinstance(element, Header):
            size = HEADER_SIZES[element.level]
            self.y += BLOCK_SPACING
            self.flow([(element.text, size, None)], self.left, self.right, BOLD_FONT)
        elif isinstance(element, Paragraph):
            self.paragraph(element.elements, self.left)
        elif isinstance(element, Text):
            self.paragraph([element], self.left)
        elif isinstance(element, List):
            self.list_block(element, 0)
        elif isinstance(element, Table):
            self.table(element)
        elif isinstance(element, PageBreak):
            self.new_page()
            return
        else:
            self.warnings.add(element.variant_name, "no PDF block representation")
            return
        self.y += BLOCK_SPACING

    def paragraph(self, elements: list[Element], x0: float) -> None:
        fragments = []
        for element in elements:
            if isinstance(element, Image):
                self.flow(fragments, x0, self.right)
                fragments = []
                self.image(element)
            elif isinstance(element, Hyperlink):
                fragments.append((element.title or element.url, element.size, element.url))
            elif isinstance(element, Text):
                fragments.append((element.text, element.size, None))
        self.flow(fragments, x0, self.right)

    def flow(self, fragments: list[tuple[str, int, Optional[str]]], x0: float, x1: float,
             font: str = FONT) -> None:
        """Wrap (text, size, url) fragments between x0 and x1 starting at the cursor."""
        line: list[tuple[str, int, Optional[str], float]] = []
        x = x0

        def emit():
            nonlocal line, x
            if line:
                self.draw_line(line, x0, font)
            line = []
            x = x0

        for text, size, url in fragments:
            for index, segment in enumerate(text.split("\n")):
                if index:
                    if not line:
                        line.append(("", size, None, 0.0))
                    emit()
                for word in _words(segment):
                    width = fitz.get_text_length(word, fontname=font, fontsize=size)
                    if line and x + width > x1 and word.strip():
                        emit()
                        word = word.lstrip()
                        width = fitz.get_text_length(word, fontname=font, fontsize=size)
                    if not line and not word.strip():
                        continue
                    line.append((word, size, url, width))
                    x += width
        emit()

    def draw_line(self, words: list[tuple[str, int, Optional[str], float]], x0: float, font: str) -> None:
        size = max(w[1] for w in words) or DEFAULT_TEXT_SIZE
        height = size * LINE_SPACING
        self.ensure_space(height)
        baseline = self.y + size
        x = x0
        for word, word_size, url, width in words:
            if word:
                color = LINK_COLOR if url else (0, 0, 0)
                self.page.insert_text((x, baseline), word, fontsize=word_size, fontname=font, color=color)
                if url:
                    rect = fitz.Rect(x, baseline - word_size, x + width, baseline + word_size * 0.25)
                    self.page.insert_link({"kind": fitz.LINK_URI, "from": rect, "uri": url})
            x += width
        self.y += height

    def image(self, image: Image) -> None:
        if isinstance(image.source, KeyedImage):
            data = self.images.lookup(image.source.key)
        else:
            data = image.source.data
        try:
            with PILImage.open(io.BytesIO(data)) as img:
                width_px, height_px = img.size
        except (UnidentifiedImageError, OSError) as exc:
            raise MalformedInput(f"Cannot decode image {image.key or '(inline)'}: {exc}") from exc

        # 96 dpi source pixels, scaled down to the content box
        width = width_px * 0.75
        height = height_px * 0.75
        scale = min(1.0, (self.right - self.left) / width, (self.bottom - self.top) / height)
        width, height = width * scale, height * scale
        self.ensure_space(height)
        rect = fitz.Rect(self.left, self.y, self.left + width, self.y + height)
        self.page.insert_image(rect, stream=data)
        self.y += height

    def list_block(self, lst: List, depth: int) -> None:
        x0 = self.left + LIST_INDENT * (depth + 1)
        number = 0
        for item in lst.elements:
            content = item.element
            if isinstance(content, List):
                self.list_block(content, depth + 1)
                continue
            number += 1
            marker = f"{number}." if lst.numbered else "-"
            self.ensure_space(DEFAULT_TEXT_SIZE * LINE_SPACING)
            self.page.insert_text(
                (x0 - LIST_INDENT * 0.8, self.y + DEFAULT_TEXT_SIZE), marker,
                fontsize=DEFAULT_TEXT_SIZE, fontname=FONT,
            )
            if isinstance(content, Paragraph):
                self.paragraph(content.elements, x0)
            elif isinstance(content, Text):
                self.paragraph([content], x0)
            elif isinstance(content, Header):
                self.flow([(content.text, HEADER_SIZES[content.level], None)], x0, self.right, BOLD_FONT)
            else:
                self.warnings.add(content.variant_name, "flattened to text inside a PDF list item")
                self.flow([(element_text(content), DEFAULT_TEXT_SIZE, None)], x0, self.right)

    def table(self, table: Table) -> None:
        if not table.headers:
            self.warnings.add("Table", "a table without columns has no PDF representation")
            return
        widths = [mm_to_points(h.width) for h in table.headers]
        available = self.right - self.left
        if sum(widths) > available:
            factor = available / sum(widths)
            widths = [w * factor for w in widths]

        self.table_row([h.element for h in table.headers], widths, BOLD_FONT)
        for row in table.rows:
            self.table_row([c.element for c in row.cells], widths, FONT)

    def table_row(self, contents: list[Element], widths: list[float], font: str) -> None:
        cells = []
        for content, width in zip(contents, widths):
            if isinstance(content, (Header, List, Table)):
                self.warnings.add(content.variant_name, "flattened to text inside a PDF table cell")
            cells.append(self.wrap_cell(element_text(content), width - 2 * CELL_PADDING, font))
        line_height = DEFAULT_TEXT_SIZE * LINE_SPACING
        row_height = max(len(lines) for lines in cells) * line_height + 2 * CELL_PADDING
        self.ensure_space(row_height)

        x = self.left
        for lines, width in zip(cells, widths):
            rect = fitz.Rect(x, self.y, x + width, self.y + row_height)
            self.page.draw_rect(rect, color=(0, 0, 0), width=BORDER_WIDTH)
            baseline = self.y + CELL_PADDING + DEFAULT_TEXT_SIZE
            for line in lines:
                self.page.insert_text((x + CELL_PADDING, baseline), line, fontsize=DEFAULT_TEXT_SIZE, fontname=font)
                baseline += line_height
            x += width
        self.y += row_height

    @staticmethod
    def wrap_cell(text: str, width: float, font: str) -> list[str]:
        lines = []
        for paragraph in text.split("\n"):
            current = ""
            for word in _words(paragraph):
                candidate = current + word
                if current and fitz.get_text_length(candidate, fontname=font, fontsize=DEFAULT_TEXT_SIZE) > width:
                    lines.append(current.rstrip())
                    current = word.lstrip()
                else:
                    current = candidate
            lines.append(current.rstrip())
        return lines or [""]


def _words(text: str) -> list[str]:
    """Split text into words that keep their leading whitespace."""
    words = []
    current = ""
    for char in text:
        if char.isspace() and current and not current.isspace():
            words.append(current)
            current = char
        else:
            current += char
    if current:
        words.append(current)
    return words
