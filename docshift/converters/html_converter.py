"""
HTML adapter.

Parsing walks a BeautifulSoup tree and maps block tags (headings,
paragraphs, lists, tables) to document elements; inline runs outside any
block are grouped into paragraphs. The same reader backs the Markdown
adapter, which renders Markdown to HTML first.

Generation writes a standalone HTML5 page.
"""

import html
import re
from typing import Optional

from bs4 import BeautifulSoup
from bs4.element import (
    CData,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)

from ..errors import MalformedInput, MissingImage
from ..formats import DocumentFormat
from ..model.document import Document
from ..model.elements import (
    DEFAULT_COLUMN_WIDTH,
    DEFAULT_TEXT_SIZE,
    Element,
    Header,
    Hyperlink,
    Image,
    ImageType,
    InlineImage,
    KeyedImage,
    List,
    ListItem,
    PageBreak,
    Paragraph,
    Table,
    TableCell,
    TableHeader,
    TableRow,
    Text,
    clamp_level,
    element_text,
)
from ..model.images import ImageBundle, ImageLoader, ImageSink, decode_data_uri, encode_data_uri
from ..utils.logger import get_logger
from ..utils.text import collapse_whitespace
from ..utils.units import parse_length_mm
from .base import ConversionWarnings, ImageAwareTransformer, report_chrome

logger = get_logger(__name__)

HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
STRIPPED_TAGS = ["script", "style", "noscript", "iframe", "template", "object", "embed"]
CONTAINER_TAGS = {
    "html", "body", "div", "section", "article", "main", "header", "footer",
    "nav", "aside", "blockquote", "figure", "figcaption", "form", "fieldset",
    "center", "address", "details", "summary", "dl", "dd", "dt",
}
SKIPPED_NODES = (Comment, Doctype, Declaration, ProcessingInstruction, CData)

FONT_SIZE_PATTERN = re.compile(r"font-size\s*:\s*([\d.]+)\s*(pt|px)", re.I)
WIDTH_PATTERN = re.compile(r"(?<![-\w])width\s*:\s*([\d.]+\s*(?:mm|cm|in|pt|px))", re.I)
PAGE_BREAK_PATTERN = re.compile(r"(page-)?break-(before|after)\s*:\s*(always|page)", re.I)
PAGE_SIZE_PATTERN = re.compile(r"@page\s*\{[^}]*?size\s*:\s*([\d.]+)mm\s+([\d.]+)mm", re.I | re.S)
PAGE_MARGIN_PATTERN = re.compile(
    r"@page\s*\{[^}]*?margin\s*:\s*([\d.]+)mm\s+([\d.]+)mm\s+([\d.]+)mm\s+([\d.]+)mm", re.I | re.S
)


class HtmlConverter(ImageAwareTransformer):
    """Converts between HTML and the document model."""

    FORMAT = DocumentFormat.HTML
    SUPPORTED_EXTENSIONS = {".html", ".htm"}

    def __init__(self, embed_images: bool = False):
        self.embed_images = embed_images

    def parse_with_loader(self, data: bytes, loader: ImageLoader,
                          warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        warnings = warnings if warnings is not None else ConversionWarnings()
        if not data.strip():
            return Document(), ImageBundle()

        soup = BeautifulSoup(data, "html.parser")
        geometry = _page_geometry(soup)
        reader = HtmlTreeReader(loader, warnings)
        elements = reader.read(soup)
        logger.debug("Parsed HTML into %d blocks, %d images", len(elements), len(reader.images))
        return Document(elements, **geometry), reader.images

    def generate_with_sink(self, document: Document, sink: ImageSink,
                           images: Optional[ImageBundle] = None,
                           warnings: Optional[ConversionWarnings] = None) -> bytes:
        warnings = warnings if warnings is not None else ConversionWarnings()
        report_chrome(document, warnings, "HTML")
        writer = HtmlWriter(sink, images or ImageBundle(), warnings, self.embed_images)
        return writer.write(document).encode("utf-8")


# ============================================================================
# Reading
# ============================================================================


class HtmlTreeReader:
    """Maps a parsed HTML tree onto document elements."""

    def __init__(self, loader: ImageLoader, warnings: ConversionWarnings, fold_item_paragraphs: bool = False):
        self.loader = loader
        self.warnings = warnings
        self.images = ImageBundle()
        # Markdown wraps loose list items in <p>; tight and loose lists read alike
        self.fold_item_paragraphs = fold_item_paragraphs

    def read(self, soup) -> list[Element]:
        for tag in soup.find_all(STRIPPED_TAGS):
            tag.decompose()
        for head in soup.find_all("head"):
            head.decompose()
        return self._blocks(soup)

    def _blocks(self, parent: Tag, unwrap_text: bool = False) -> list[Element]:
        return self._blocks_from(parent.children, unwrap_text)

    def _blocks_from(self, nodes, unwrap_text: bool = False) -> list[Element]:
        """
        Collect block elements from a sequence of sibling nodes.

        Inline runs between blocks become a Paragraph; with `unwrap_text`
        a run holding a single Text is emitted bare (list items, cells).
        """
        blocks: list[Element] = []
        pending: list[Element] = []

        def flush():
            run = _merge_inline(pending)
            pending.clear()
            if not run:
                return
            if unwrap_text and len(run) == 1 and isinstance(run[0], Text):
                blocks.append(run[0])
            else:
                blocks.append(Paragraph(run))

        for node in nodes:
            if isinstance(node, SKIPPED_NODES):
                continue
            if isinstance(node, NavigableString):
                pending.extend(self._inline(node, DEFAULT_TEXT_SIZE))
                continue
            if not isinstance(node, Tag):
                continue

            name = node.name.lower()
            breaks = _page_breaks(node)
            if "before" in breaks:
                flush()
                blocks.append(PageBreak())

            if name in HEADING_TAGS:
                flush()
                text = collapse_whitespace(node.get_text()).strip()
                blocks.append(Header(clamp_level(int(name[1])), text))
            elif name == "p":
                flush()
                blocks.append(Paragraph(_merge_inline(self._inline_children(node, _font_size(node)))))
            elif name in ("ul", "ol", "menu"):
                flush()
                blocks.append(self._list(node))
            elif name == "table":
                flush()
                blocks.append(self._table(node))
            elif name == "pre":
                flush()
                text = node.get_text().rstrip("\n")
                blocks.append(Paragraph([Text(text)] if text else []))
            elif name in CONTAINER_TAGS:
                flush()
                blocks.extend(self._blocks(node, unwrap_text))
            elif name in ("hr", "br"):
                flush()
            else:
                pending.extend(self._inline(node, DEFAULT_TEXT_SIZE))

            if "after" in breaks:
                flush()
                blocks.append(PageBreak())

        flush()
        return blocks

    def _inline(self, node, size: int) -> list[Element]:
        if isinstance(node, SKIPPED_NODES):
            return []
        if isinstance(node, NavigableString):
            text = collapse_whitespace(str(node))
            return [Text(text, size)] if text else []
        if not isinstance(node, Tag):
            return []

        name = node.name.lower()
        size = _font_size(node) or size
        if name == "br":
            return [Text("\n", size)]
        if name == "img":
            return self._image(node)
        if name == "a" and node.get("href"):
            return self._hyperlink(node, size)
        return self._inline_children(node, size)

    def _inline_children(self, node: Tag, size: Optional[int]) -> list[Element]:
        items = []
        for child in node.children:
            items.extend(self._inline(child, size or DEFAULT_TEXT_SIZE))
        return items

    def _hyperlink(self, node: Tag, size: int) -> list[Element]:
        items = []
        for img in node.find_all("img"):
            items.extend(self._image(img))
        title = collapse_whitespace(node.get_text()).strip()
        items.append(Hyperlink(title, node["href"].strip(), node.get("title", ""), size))
        return items

    def _image(self, node: Tag) -> list[Element]:
        src = (node.get("src") or "").strip()
        if not src:
            return []
        title = node.get("title", "")
        alt = node.get("alt", "")

        try:
            decoded = decode_data_uri(src)
        except ValueError as exc:
            raise MalformedInput(f"Invalid inline image: {exc}") from exc
        if decoded is not None:
            mime, data = decoded
            image_type = ImageType.from_mime_type(mime) or ImageType.from_bytes(data) or ImageType.PNG
            return [Image(InlineImage(data), title, alt, image_type)]

        if src not in self.images:
            try:
                self.images.insert(src, self.loader.load(src))
            except MissingImage as exc:
                self.warnings.add("Image", exc.description)
                return []
        data = self.images.lookup(src)
        image_type = ImageType.from_extension(src) or ImageType.from_bytes(data) or ImageType.PNG
        return [Image(KeyedImage(src), title, alt, image_type)]

    def _list(self, node: Tag) -> List:
        items: list[ListItem] = []
        for child in node.children:
            if isinstance(child, SKIPPED_NODES):
                continue
            if isinstance(child, NavigableString):
                if str(child).strip():
                    items.append(ListItem(Text(collapse_whitespace(str(child)).strip())))
                continue
            if not isinstance(child, Tag):
                continue
            name = child.name.lower()
            if name in ("ul", "ol"):
                # Nested list written directly inside the parent list
                items.append(ListItem(self._list(child)))
            elif name == "li":
                items.extend(self._list_item(child))
            else:
                items.extend(ListItem(block) for block in self._blocks_from([child], unwrap_text=True))
        return List(items, numbered=node.name.lower() == "ol")

    def _list_item(self, node: Tag) -> list[ListItem]:
        blocks = self._blocks(node, unwrap_text=True)
        if not blocks:
            return [ListItem(Text(""))]
        if self.fold_item_paragraphs:
            blocks = [_fold_paragraph(block) for block in blocks]
        return [ListItem(block) for block in blocks]

    def _table(self, node: Tag) -> Table:
        rows = []
        for tr in node.find_all("tr"):
            if tr.find_parent("table") is not node:
                continue
            rows.append(tr.find_all(["th", "td"], recursive=False))

        if not rows:
            return Table()

        header_cells, body = rows[0], rows[1:]
        if not all(cell.name == "th" for cell in header_cells):
            logger.debug("Table without a <th> row; promoting the first row to headers")

        headers = [TableHeader(self._cell(th), _width_mm(th)) for th in header_cells]
        cells = [[TableCell(self._cell(td)) for td in row] for row in body]
        return Table.padded(headers, cells)

    def _cell(self, node: Tag) -> Element:
        blocks = self._blocks(node, unwrap_text=True)
        if not blocks:
            return Text("")
        if len(blocks) == 1:
            return blocks[0]
        merged: list[Element] = []
        for block in blocks:
            if merged:
                merged.append(Text("\n"))
            if isinstance(block, Paragraph):
                merged.extend(block.elements)
            else:
                merged.append(Text(element_text(block)))
        return Paragraph(_merge_inline(merged))


def _fold_paragraph(element: Element) -> Element:
    if isinstance(element, Paragraph) and len(element.elements) == 1 and isinstance(element.elements[0], Text):
        return element.elements[0]
    return element

def _merge_inline(items: list[Element]) -> list[Element]:
    """Join adjacent same-size Text runs and trim the run's outer whitespace."""
    merged: list[Element] = []
    for item in items:
        if isinstance(item, Text) and merged and isinstance(merged[-1], Text) and merged[-1].size == item.size:
            merged[-1] = Text(merged[-1].text + item.text, item.size)
        else:
            merged.append(item)

    cleaned = []
    for item in merged:
        if isinstance(item, Text):
            item = Text(re.sub(r" *\n *", "\n", item.text), item.size)
        cleaned.append(item)

    if cleaned and isinstance(cleaned[0], Text):
        cleaned[0] = Text(cleaned[0].text.lstrip(), cleaned[0].size)
    if cleaned and isinstance(cleaned[-1], Text):
        cleaned[-1] = Text(cleaned[-1].text.rstrip(), cleaned[-1].size)
    return [item for item in cleaned if not (isinstance(item, Text) and not item.text)]


def _font_size(node: Tag) -> Optional[int]:
    match = FONT_SIZE_PATTERN.search(node.get("style", "") or "")
    if not match:
        return None
    value = float(match.group(1))
    if match.group(2).lower() == "px":
        value *= 0.75
    return int(round(value))


def _width_mm(node: Tag) -> float:
    match = WIDTH_PATTERN.search(node.get("style", "") or "")
    if match:
        width = parse_length_mm(match.group(1).replace(" ", ""))
        if width is not None:
            return round(width, 2)
    return DEFAULT_COLUMN_WIDTH


def _page_breaks(node: Tag) -> set[str]:
    found = set()
    for match in PAGE_BREAK_PATTERN.finditer(node.get("style", "") or ""):
        found.add(match.group(2).lower())
    if "page-break" in (node.get("class") or []):
        found.add("after")
    return found


def _page_geometry(soup) -> dict:
    css = "\n".join(style.get_text() for style in soup.find_all("style"))
    geometry = {}
    size = PAGE_SIZE_PATTERN.search(css)
    if size:
        geometry["page_width"] = float(size.group(1))
        geometry["page_height"] = float(size.group(2))
    margin = PAGE_MARGIN_PATTERN.search(css)
    if margin:
        top, right, bottom, left = (float(v) for v in margin.groups())
        geometry.update(
            top_page_indent=top, right_page_indent=right,
            bottom_page_indent=bottom, left_page_indent=left,
        )
    return geometry


# ============================================================================
# Writing
# ============================================================================


def _num(value: float) -> str:
    """Format a float without a trailing .0."""
    return f"{value:g}"


def _esc(text: str) -> str:
    return html.escape(text, quote=False)


def _attr(text: str) -> str:
    return html.escape(text, quote=True)


class HtmlWriter:
    """Serializes a Document as a standalone HTML page."""

    def __init__(self, sink: ImageSink, images: ImageBundle, warnings: ConversionWarnings,
                 embed_images: bool = False):
        self.sink = sink
        self.images = images
        self.warnings = warnings
        self.embed_images = embed_images
        self._saved: set[str] = set()
        self._inline_count = 0

    def write(self, document: Document) -> str:
        title = next((e.text for e in document.elements if isinstance(e, Header)), "Document")
        blocks = [self.block(e) for e in document.elements]
        body = "".join(f"{b}\n" for b in blocks if b)
        page_css = (
            f"@page {{ size: {_num(document.page_width)}mm {_num(document.page_height)}mm; "
            f"margin: {_num(document.top_page_indent)}mm {_num(document.right_page_indent)}mm "
            f"{_num(document.bottom_page_indent)}mm {_num(document.left_page_indent)}mm; }}"
        )
        return (
            "<!DOCTYPE html>\n"
            "<html>\n"
            "<head>\n"
            '<meta charset="utf-8">\n'
            f"<title>{_esc(title)}</title>\n"
            f"<style>{page_css}</style>\n"
            "</head>\n"
            "<body>\n"
            f"{body}"
            "</body>\n"
            "</html>\n"
        )

    def block(self, element: Element) -> str:
        if isinstance(element, Header):
            return f"<h{element.level}>{_esc(element.text)}</h{element.level}>"
        if isinstance(element, Paragraph):
            return f"<p>{self.inline(element.elements)}</p>"
        if isinstance(element, Text):
            return f"<p>{self.inline([element])}</p>"
        if isinstance(element, List):
            return self.list_block(element)
        if isinstance(element, Table):
            return self.table(element)
        if isinstance(element, PageBreak):
            return '<div style="page-break-after: always"></div>'
        self.warnings.add(element.variant_name, "no HTML block representation")
        return ""

    def nested(self, element: Element) -> str:
        """Content of a list item or table cell. Bare Text stays inline."""
        if isinstance(element, Text):
            return self.inline([element])
        return self.block(element)

    def inline(self, elements: list[Element]) -> str:
        parts = []
        for element in elements:
            if isinstance(element, Text):
                text = _esc(element.text).replace("\n", "<br>")
                if element.size != DEFAULT_TEXT_SIZE:
                    text = f'<span style="font-size: {element.size}pt">{text}</span>'
                parts.append(text)
            elif isinstance(element, Hyperlink):
                attrs = f' href="{_attr(element.url)}"'
                if element.alt:
                    attrs += f' title="{_attr(element.alt)}"'
                if element.size != DEFAULT_TEXT_SIZE:
                    attrs += f' style="font-size: {element.size}pt"'
                parts.append(f"<a{attrs}>{_esc(element.title)}</a>")
            elif isinstance(element, Image):
                parts.append(self.image(element))
            else:
                self.warnings.add(element.variant_name, "not allowed inline in HTML")
        return "".join(parts)

    def image(self, image: Image) -> str:
        attrs = f' src="{_attr(self.image_src(image))}"'
        attrs += f' alt="{_attr(image.alt)}"'
        if image.title:
            attrs += f' title="{_attr(image.title)}"'
        return f"<img{attrs}>"

    def image_src(self, image: Image) -> str:
        if isinstance(image.source, KeyedImage):
            key = image.source.key
            data = self.images.lookup(key)
        else:
            key = None
            data = image.source.data

        if self.embed_images:
            return encode_data_uri(data, image.image_type.mime_type)

        if key is None:
            self._inline_count += 1
            key = f"image{self._inline_count}.{image.image_type.extension}"
            while key in self.images or key in self._saved:
                self._inline_count += 1
                key = f"image{self._inline_count}.{image.image_type.extension}"
        if key not in self._saved:
            self.sink.save(key, data)
            self._saved.add(key)
        return key

    def list_block(self, lst: List) -> str:
        tag = "ol" if lst.numbered else "ul"
        items: list[str] = []
        open_item = False
        for item in lst.elements:
            if isinstance(item.element, List):
                nested = self.list_block(item.element)
                if open_item:
                    items[-1] += nested
                else:
                    items.append(f"<li>{nested}")
                    open_item = True
                continue
            items.append(f"<li>{self.nested(item.element)}")
            open_item = True
        body = "".join(f"{item}</li>" for item in items)
        return f"<{tag}>{body}</{tag}>"

    def table(self, table: Table) -> str:
        parts = ["<table>"]
        if table.headers:
            cells = "".join(
                f'<th style="width: {_num(h.width)}mm">{self.nested(h.element)}</th>'
                for h in table.headers
            )
            parts.append(f"<thead><tr>{cells}</tr></thead>")
        if table.rows:
            parts.append("<tbody>")
            for row in table.rows:
                cells = "".join(f"<td>{self.nested(c.element)}</td>" for c in row.cells)
                parts.append(f"<tr>{cells}</tr>")
            parts.append("</tbody>")
        parts.append("</table>")
        return "\n".join(parts)
