"""
Markdown adapter.

Parsing renders Markdown to HTML with Python-Markdown and reads the
result with the HTML tree reader. Generation writes Markdown directly:
ATX headers, pipe tables, two-space list nesting.
"""

import re
from typing import Optional

import markdown
from bs4 import BeautifulSoup
from markdown.extensions import Extension
from markdown.preprocessors import Preprocessor

from ..errors import MalformedInput
from ..formats import DocumentFormat
from ..model.document import Document
from ..model.elements import (
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
)
from ..model.images import ImageBundle, ImageLoader, ImageSink
from ..utils.logger import get_logger
from ..utils.text import decode_text, normalize_newlines
from .base import ConversionWarnings, ImageAwareTransformer, report_chrome
from .html_converter import HtmlTreeReader

logger = get_logger(__name__)

LIST_ITEM_PATTERN = re.compile(r"^(?P<indent>[ ]*)(?P<marker>[-*+]|\d+[.)])(?:[ ]+(?P<rest>.*))?$")
FENCE_PATTERN = re.compile(r"^[ ]{0,3}(```|~~~)")
INDENT_WIDTH = 4

INLINE_ESCAPES = re.compile(r"([\\`*_\[\]])")
LINE_START_ESCAPES = re.compile(r"^([#>+-])")
NUMBERED_START = re.compile(r"^(\d+)([.)])")
TRAILING_HASHES = re.compile(r"^(.*?)(#*)\Z", re.S)


class ListIndentPreprocessor(Preprocessor):
    """
    Normalize list indentation to four spaces per level.

    Python-Markdown only nests lists indented by a full tab stop, while
    most authors indent nested items by two or three spaces. Each list
    item gets the deepest level consistent with its indentation; an item
    indented between two open levels nests under the previous item.
    A blank line is also inserted before a list that directly follows a
    paragraph line.
    """

    def run(self, lines):
        output = []
        stack: list[int] = []
        in_fence = False
        previous_blank = True
        previous_item = False

        for line in lines:
            if FENCE_PATTERN.match(line):
                in_fence = not in_fence
                stack = []
                output.append(line)
                previous_blank = previous_item = False
                continue
            if in_fence:
                output.append(line)
                continue

            match = LIST_ITEM_PATTERN.match(line)
            if match and (stack or match.group("rest") is not None):
                indent = len(match.group("indent"))
                if not stack:
                    if not previous_blank and not previous_item:
                        output.append("")
                    stack = [indent]
                elif indent > stack[-1]:
                    stack.append(indent)
                else:
                    while len(stack) > 1 and indent < stack[-1]:
                        stack.pop()
                    if indent > stack[-1]:
                        stack.append(indent)
                marker = match.group("marker").replace(")", ".")
                level = len(stack) - 1
                output.append(" " * (INDENT_WIDTH * level) + f"{marker} {match.group('rest') or ''}")
                previous_blank, previous_item = False, True
                continue

            if not line.strip():
                output.append(line)
                previous_blank, previous_item = True, False
                continue

            if stack and line.startswith(" "):
                # Continuation of the innermost open item
                output.append(" " * (INDENT_WIDTH * len(stack)) + line.lstrip())
            else:
                if stack and previous_blank:
                    stack = []
                output.append(line)
            previous_blank = previous_item = False

        return output


class ListIndentExtension(Extension):
    def extendMarkdown(self, md):
        # After whitespace normalization (30), before fenced code (25)
        md.preprocessors.register(ListIndentPreprocessor(md), "docshift_list_indent", 28)


def markdown_to_html(text: str) -> str:
    md = markdown.Markdown(extensions=["tables", "fenced_code", ListIndentExtension()])
    return md.convert(text)


class MarkdownConverter(ImageAwareTransformer):
    """Converts between Markdown and the document model."""

    FORMAT = DocumentFormat.MARKDOWN
    SUPPORTED_EXTENSIONS = {".md", ".markdown"}

    def parse_with_loader(self, data: bytes, loader: ImageLoader,
                          warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        warnings = warnings if warnings is not None else ConversionWarnings()
        try:
            text = normalize_newlines(decode_text(data))
        except UnicodeDecodeError as exc:
            raise MalformedInput(f"Markdown is not valid UTF-8: {exc}") from exc
        if not text.strip():
            return Document(), ImageBundle()

        html = markdown_to_html(text)
        reader = HtmlTreeReader(loader, warnings, fold_item_paragraphs=True)
        elements = reader.read(BeautifulSoup(html, "html.parser"))
        logger.debug("Parsed Markdown into %d blocks, %d images", len(elements), len(reader.images))
        return Document(elements), reader.images

    def generate_with_sink(self, document: Document, sink: ImageSink,
                           images: Optional[ImageBundle] = None,
                           warnings: Optional[ConversionWarnings] = None) -> bytes:
        warnings = warnings if warnings is not None else ConversionWarnings()
        report_chrome(document, warnings, "Markdown")
        writer = MarkdownWriter(sink, images or ImageBundle(), warnings)
        blocks = [writer.block(e) for e in document.elements]
        blocks = [b for b in blocks if b]
        if not blocks:
            return b""
        return ("\n\n".join(blocks) + "\n").encode("utf-8")


def escape(text: str) -> str:
    text = INLINE_ESCAPES.sub(r"\\\1", text)
    text = text.replace("&", "&amp;").replace("<", "&lt;")
    lines = [NUMBERED_START.sub(r"\1\\\2", LINE_START_ESCAPES.sub(r"\\\1", line))
             for line in text.split("\n")]
    return "  \n".join(lines)


def escape_header(text: str) -> str:
    """Escape header text, including a closing `#` run ATX headings would drop."""
    body, hashes = TRAILING_HASHES.match(text).groups()
    return escape(body) + "\\#" * len(hashes)


class MarkdownWriter:
    """Serializes document elements as Markdown blocks."""

    def __init__(self, sink: ImageSink, images: ImageBundle, warnings: ConversionWarnings):
        self.sink = sink
        self.images = images
        self.warnings = warnings
        self._saved: set[str] = set()
        self._inline_count = 0

    def block(self, element: Element) -> str:
        if isinstance(element, Header):
            return f"{'#' * element.level} {escape_header(element.text)}"
        if isinstance(element, Paragraph):
            return self.inline(element.elements)
        if isinstance(element, Text):
            return escape(element.text)
        if isinstance(element, List):
            return "\n".join(self.list_lines(element, 0))
        if isinstance(element, Table):
            return self.table(element)
        if isinstance(element, PageBreak):
            self.warnings.add("PageBreak", "Markdown has no page breaks")
            return ""
        self.warnings.add(element.variant_name, "no Markdown block representation")
        return ""

    def inline(self, elements: list[Element]) -> str:
        parts = []
        for element in elements:
            if isinstance(element, Text):
                parts.append(escape(element.text))
            elif isinstance(element, Hyperlink):
                parts.append(self.link(element))
            elif isinstance(element, Image):
                parts.append(self.image(element))
        return "".join(parts)

    def link(self, link: Hyperlink) -> str:
        if link.title == link.url and not link.alt and re.match(r"^[a-z][a-z0-9+.-]*:\S+$", link.url, re.I):
            return f"<{link.url}>"
        title = f' "{_quote(link.alt)}"' if link.alt else ""
        return f"[{escape(link.title)}]({_destination(link.url)}{title})"

    def image(self, image: Image) -> str:
        if isinstance(image.source, KeyedImage):
            key = image.source.key
            data = self.images.lookup(key)
        else:
            data = image.source.data
            self._inline_count += 1
            key = f"image{self._inline_count}.{image.image_type.extension}"
            while key in self.images or key in self._saved:
                self._inline_count += 1
                key = f"image{self._inline_count}.{image.image_type.extension}"
        if key not in self._saved:
            self.sink.save(key, data)
            self._saved.add(key)
        title = f' "{_quote(image.title)}"' if image.title else ""
        return f"![{escape(image.alt)}]({_destination(key)}{title})"

    def list_lines(self, lst: List, depth: int) -> list[str]:
        lines = []
        indent = "  " * depth
        number = 0
        for item in lst.elements:
            element = item.element
            if isinstance(element, List):
                lines.extend(self.list_lines(element, depth + 1))
                continue
            number += 1
            marker = f"{number}." if lst.numbered else "-"
            if isinstance(element, (Table, PageBreak)):
                self.warnings.add(element.variant_name, "not representable inside a Markdown list item")
                content = ""
            else:
                content = self.block(element).replace("  \n", " ")
            lines.append(f"{indent}{marker} {content}")
        return lines

    def table(self, table: Table) -> str:
        if not table.headers:
            self.warnings.add("Table", "a table without columns has no Markdown representation")
            return ""
        header = "| " + " | ".join(self.cell(h.element) for h in table.headers) + " |"
        separator = "| " + " | ".join("---" for _ in table.headers) + " |"
        rows = ["| " + " | ".join(self.cell(c.element) for c in row.cells) + " |" for row in table.rows]
        return "\n".join([header, separator] + rows)

    def cell(self, element: Element) -> str:
        if isinstance(element, Text):
            content = escape(element.text)
        elif isinstance(element, Paragraph):
            content = self.inline(element.elements)
        elif isinstance(element, Header):
            self.warnings.add("Header", "written as plain text inside a Markdown table cell")
            content = escape(element.text)
        else:
            self.warnings.add(element.variant_name, "not representable inside a Markdown table cell")
            content = ""
        return content.replace("  \n", " ").replace("|", "\\|")


def _quote(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _destination(url: str) -> str:
    if re.search(r"[\s()<>]", url):
        return "<" + url.replace(">", "%3E") + ">"
    return url
