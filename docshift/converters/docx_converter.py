"""
Word (.docx) adapter built on python-docx.

Parsing walks the body XML in order so paragraphs and tables keep their
relative position. Heading styles become Headers, list styles and
numbering become nested Lists, embedded pictures are extracted into the
image bundle under their media part name (image1.png, ...).

Generation uses the default python-docx template: Heading N styles,
List Bullet/List Number styles (three levels), Table Grid tables.
"""

import io
import re
import zipfile
from typing import Optional

from docx import Document as open_docx
from docx.enum.text import WD_BREAK
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Mm, Pt, RGBColor
from PIL import Image as PILImage, UnidentifiedImageError

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
    KeyedImage,
    List,
    ListItem,
    PageBreak,
    Paragraph,
    Table,
    TableCell,
    TableHeader,
    Text,
    clamp_level,
    element_text,
)
from ..model.images import ImageBundle, ImageLoader, ImageSink
from ..utils.logger import get_logger
from ..utils.units import round_mm, twips_to_mm
from .base import ConversionWarnings, ImageAwareTransformer

logger = get_logger(__name__)

HEADING_STYLE = re.compile(r"^heading\s*(\d+)$", re.I)
LIST_STYLE = re.compile(r"^list\s*(bullet|number)(?:\s*(\d+))?$", re.I)
NUMBERED_FORMATS = {
    "decimal", "decimalZero", "lowerLetter", "upperLetter", "lowerRoman",
    "upperRoman", "ordinal", "cardinalText", "ordinalText",
}
MAX_LIST_STYLE_LEVEL = 3
PIXELS_PER_INCH = 96


def _local(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.split("}")[-1] if "}" in tag else tag


class DocxConverter(ImageAwareTransformer):
    """Converts between Word documents and the document model."""

    FORMAT = DocumentFormat.DOCX
    SUPPORTED_EXTENSIONS = {".docx"}

    def parse_with_loader(self, data: bytes, loader: ImageLoader,
                          warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        warnings = warnings if warnings is not None else ConversionWarnings()
        if not data:
            return Document(), ImageBundle()
        try:
            docx = open_docx(io.BytesIO(data))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
            raise MalformedInput(f"Invalid DOCX package: {exc}") from exc

        reader = DocxReader(docx, loader, warnings)
        document = reader.read()
        logger.debug("Parsed DOCX into %d blocks, %d images", len(document.elements), len(reader.images))
        return document, reader.images

    def generate_with_sink(self, document: Document, sink: ImageSink,
                           images: Optional[ImageBundle] = None,
                           warnings: Optional[ConversionWarnings] = None) -> bytes:
        warnings = warnings if warnings is not None else ConversionWarnings()
        writer = DocxWriter(images or ImageBundle(), warnings)
        return writer.write(document)


# ============================================================================
# Reading
# ============================================================================


class DocxReader:
    """Maps a python-docx Document onto document elements."""

    def __init__(self, docx, loader: ImageLoader, warnings: ConversionWarnings):
        self.docx = docx
        self.loader = loader
        self.warnings = warnings
        self.images = ImageBundle()
        self.style_names = {style.style_id: style.name or "" for style in docx.styles}
        self.numbering = self._numbering_formats()

    def read(self) -> Document:
        elements = self._blocks(self.docx.element.body, self.docx.part)
        geometry = {}
        header: list[Element] = []
        footer: list[Element] = []
        if self.docx.sections:
            section = self.docx.sections[0]
            for name, length in (
                ("page_width", section.page_width),
                ("page_height", section.page_height),
                ("left_page_indent", section.left_margin),
                ("right_page_indent", section.right_margin),
                ("top_page_indent", section.top_margin),
                ("bottom_page_indent", section.bottom_margin),
            ):
                if length is not None:
                    geometry[name] = round_mm(length.mm)
            if not section.header.is_linked_to_previous:
                header = self._blocks(section.header._element, section.header.part)
            if not section.footer.is_linked_to_previous:
                footer = self._blocks(section.footer._element, section.footer.part)
        return Document(elements, page_header=header, page_footer=footer, **geometry)

    def _numbering_formats(self) -> dict[str, str]:
        """numId -> numFmt of level 0 (bullet, decimal, ...)."""
        try:
            numbering = self.docx.part.numbering_part.element
        except (KeyError, NotImplementedError):
            return {}
        abstract = {}
        for abstract_num in numbering.findall(qn("w:abstractNum")):
            lvl = abstract_num.find(qn("w:lvl"))
            fmt = lvl.find(qn("w:numFmt")) if lvl is not None else None
            abstract[abstract_num.get(qn("w:abstractNumId"))] = (
                fmt.get(qn("w:val"), "bullet") if fmt is not None else "bullet"
            )
        formats = {}
        for num in numbering.findall(qn("w:num")):
            ref = num.find(qn("w:abstractNumId"))
            if ref is not None:
                formats[num.get(qn("w:numId"))] = abstract.get(ref.get(qn("w:val")), "bullet")
        return formats

    def _blocks(self, container, part) -> list[Element]:
        blocks: list[Element] = []
        pending_list: list[tuple[int, bool, Element]] = []

        def flush_list():
            if pending_list:
                blocks.append(nest_list_items(pending_list))
                pending_list.clear()

        for child in container.iterchildren():
            tag = _local(child.tag)
            if tag == "p":
                for kind, payload in self._paragraph(child, part):
                    if kind == "list_item":
                        pending_list.append(payload)
                    else:
                        flush_list()
                        blocks.append(payload)
            elif tag == "tbl":
                flush_list()
                blocks.append(self._table(child, part))
            elif tag == "sdt":
                content = child.find(qn("w:sdtContent"))
                if content is not None:
                    flush_list()
                    blocks.extend(self._blocks(content, part))
        flush_list()
        return blocks

    def _paragraph(self, p, part) -> list[tuple[str, object]]:
        """Return ("block", Element) and ("list_item", (level, numbered, Element)) entries."""
        inline, breaks_before, breaks_after = self._runs(p, part)
        style_name = self._style_name(p)
        results: list[tuple[str, object]] = [("block", PageBreak()) for _ in range(breaks_before)]

        level = self._heading_level(style_name)
        list_info = self._list_info(p, style_name)
        if level is not None:
            results.append(("block", Header(clamp_level(level), element_text(Paragraph(inline)))))
        elif list_info is not None:
            if len(inline) == 1 and isinstance(inline[0], Text):
                content: Element = inline[0]
            else:
                content = Paragraph(inline)
            results.append(("list_item", (list_info[0], list_info[1], content)))
        elif inline or not (breaks_before or breaks_after):
            results.append(("block", Paragraph(inline)))

        results.extend(("block", PageBreak()) for _ in range(breaks_after))
        return results

    def _style_name(self, p) -> str:
        ppr = p.find(qn("w:pPr"))
        pstyle = ppr.find(qn("w:pStyle")) if ppr is not None else None
        if pstyle is None:
            return ""
        style_id = pstyle.get(qn("w:val"), "")
        return self.style_names.get(style_id, style_id)

    @staticmethod
    def _heading_level(style_name: str) -> Optional[int]:
        if style_name.lower() == "title":
            return 1
        match = HEADING_STYLE.match(style_name)
        return int(match.group(1)) if match else None

    def _list_info(self, p, style_name: str) -> Optional[tuple[int, bool]]:
        ppr = p.find(qn("w:pPr"))
        num_pr = ppr.find(qn("w:numPr")) if ppr is not None else None
        if num_pr is not None:
            num_id = num_pr.find(qn("w:numId"))
            ilvl = num_pr.find(qn("w:ilvl"))
            num_id = num_id.get(qn("w:val"), "0") if num_id is not None else "0"
            if num_id != "0":
                level = int(ilvl.get(qn("w:val"), "0")) if ilvl is not None else 0
                return level, self.numbering.get(num_id, "bullet") in NUMBERED_FORMATS

        match = LIST_STYLE.match(style_name)
        if match:
            level = int(match.group(2)) - 1 if match.group(2) else 0
            return level, match.group(1).lower() == "number"
        return None

    def _runs(self, p, part) -> tuple[list[Element], int, int]:
        """Inline content of a paragraph plus page breaks before/after the text."""
        items: list[Element] = []
        breaks_before = breaks_after = 0

        def page_break():
            nonlocal breaks_before, breaks_after
            if items:
                breaks_after += 1
            else:
                breaks_before += 1

        for child in p.iterchildren():
            tag = _local(child.tag)
            if tag == "r":
                for item in self._run(child, part, page_break):
                    items.append(item)
            elif tag == "hyperlink":
                link = self._hyperlink(child, part)
                if link is not None:
                    items.append(link)
            elif tag in ("ins", "smartTag", "fldSimple"):
                for r in child.iter(qn("w:r")):
                    items.extend(self._run(r, part, page_break))
        return _merge_texts(items), breaks_before, breaks_after

    def _run(self, r, part, on_page_break) -> list[Element]:
        size = _run_size(r)
        items: list[Element] = []
        for child in r.iterchildren():
            tag = _local(child.tag)
            if tag == "t":
                items.append(Text(child.text or "", size))
            elif tag == "tab":
                items.append(Text("\t", size))
            elif tag in ("br", "cr"):
                if child.get(qn("w:type"), "textWrapping") == "page":
                    on_page_break()
                else:
                    items.append(Text("\n", size))
            elif tag in ("drawing", "pict"):
                items.extend(self._pictures(child, part))
        return items

    def _hyperlink(self, node, part) -> Optional[Hyperlink]:
        rid = node.get(qn("r:id"))
        if rid and rid in part.rels:
            url = part.rels[rid].target_ref
        elif node.get(qn("w:anchor")):
            url = "#" + node.get(qn("w:anchor"))
        else:
            return None
        runs = list(node.iter(qn("w:r")))
        title = "".join(t.text or "" for r in runs for t in r.iter(qn("w:t")))
        size = _run_size(runs[0]) if runs else DEFAULT_TEXT_SIZE
        return Hyperlink(title, url, node.get(qn("w:tooltip"), ""), size)

    def _pictures(self, drawing, part) -> list[Element]:
        doc_pr = next(drawing.iter(qn("wp:docPr")), None)
        alt = doc_pr.get("descr", "") if doc_pr is not None else ""
        title = doc_pr.get("title", "") if doc_pr is not None else ""
        pictures = []
        for blip in drawing.iter(qn("a:blip")):
            key = None
            embed = blip.get(qn("r:embed"))
            link = blip.get(qn("r:link"))
            if embed and embed in part.related_parts:
                image_part = part.related_parts[embed]
                key = image_part.partname.split("/")[-1]
                if key not in self.images:
                    self.images.insert(key, image_part.blob)
            elif link and link in part.rels:
                key = part.rels[link].target_ref
                if key not in self.images:
                    try:
                        self.images.insert(key, self.loader.load(key))
                    except MissingImage as exc:
                        self.warnings.add("Image", exc.description)
                        continue
            if key is None:
                continue
            image_type = ImageType.from_extension(key) or ImageType.from_bytes(self.images.lookup(key))
            pictures.append(Image(KeyedImage(key), title, alt, image_type or ImageType.PNG))
        return pictures

    def _table(self, tbl, part) -> Table:
        grid = [
            round_mm(twips_to_mm(int(col.get(qn("w:w"), "0"))))
            for col in tbl.iter(qn("w:gridCol"))
        ]
        rows = []
        for tr in tbl.findall(qn("w:tr")):
            rows.append([(tc, self._cell(tc, part)) for tc in tr.findall(qn("w:tc"))])
        if not rows:
            return Table()

        headers = []
        for index, (tc, content) in enumerate(rows[0]):
            width = _cell_width(tc)
            if width is None:
                width = grid[index] if index < len(grid) and grid[index] > 0 else DEFAULT_COLUMN_WIDTH
            headers.append(TableHeader(content, width))
        cells = [[TableCell(content) for _, content in row] for row in rows[1:]]
        return Table.padded(headers, cells)

    def _cell(self, tc, part) -> Element:
        blocks = self._blocks(tc, part)
        inline: list[Element] = []
        for block in blocks:
            if inline:
                inline.append(Text("\n"))
            if isinstance(block, Paragraph):
                inline.extend(block.elements)
            elif isinstance(block, (List, Table, Header)) and len(blocks) == 1:
                return block
            else:
                inline.append(Text(element_text(block)))
        inline = _merge_texts(inline)
        if not inline:
            return Text("")
        if len(inline) == 1 and isinstance(inline[0], Text):
            return inline[0]
        return Paragraph(inline)


def nest_list_items(entries: list[tuple[int, bool, Element]]) -> List:
    """
    Build a List from flat (level, numbered, content) entries.

    A deeper item opens a nested List placed as a sibling ListItem right
    after the item it belongs to. Skipped levels collapse to one step.
    """
    stack: list[tuple[list[ListItem], bool]] = [([], entries[0][1])]
    for level, numbered, content in entries:
        level = min(level, len(stack))
        while len(stack) - 1 > level:
            items, nested_numbered = stack.pop()
            stack[-1][0].append(ListItem(List(items, nested_numbered)))
        if len(stack) - 1 < level:
            stack.append(([], numbered))
        stack[-1][0].append(ListItem(content))
    while len(stack) > 1:
        items, nested_numbered = stack.pop()
        stack[-1][0].append(ListItem(List(items, nested_numbered)))
    items, numbered = stack[0]
    return List(items, numbered)


def _run_size(r) -> int:
    rpr = r.find(qn("w:rPr"))
    sz = rpr.find(qn("w:sz")) if rpr is not None else None
    if sz is not None:
        value = sz.get(qn("w:val"), "")
        if value.isdigit():
            return int(value) // 2
    return DEFAULT_TEXT_SIZE


def _cell_width(tc) -> Optional[float]:
    tcpr = tc.find(qn("w:tcPr"))
    tcw = tcpr.find(qn("w:tcW")) if tcpr is not None else None
    if tcw is None or tcw.get(qn("w:type"), "dxa") != "dxa":
        return None
    value = tcw.get(qn("w:w"), "")
    if not value.isdigit() or int(value) == 0:
        return None
    return round_mm(twips_to_mm(int(value)))


def _merge_texts(items: list[Element]) -> list[Element]:
    merged: list[Element] = []
    for item in items:
        if isinstance(item, Text) and merged and isinstance(merged[-1], Text) and merged[-1].size == item.size:
            merged[-1] = Text(merged[-1].text + item.text, item.size)
        elif not (isinstance(item, Text) and not item.text):
            merged.append(item)
    return merged


# ============================================================================
# Writing
# ============================================================================


class DocxWriter:
    """Builds a python-docx Document from the model."""

    def __init__(self, images: ImageBundle, warnings: ConversionWarnings):
        self.images = images
        self.warnings = warnings
        self.content_width = None

    def write(self, document: Document) -> bytes:
        docx = open_docx()
        section = docx.sections[0]
        section.page_width = Mm(document.page_width)
        section.page_height = Mm(document.page_height)
        section.left_margin = Mm(document.left_page_indent)
        section.right_margin = Mm(document.right_page_indent)
        section.top_margin = Mm(document.top_page_indent)
        section.bottom_margin = Mm(document.bottom_page_indent)
        self.content_width = document.content_width

        for element in document.elements:
            self.block(docx, element)

        if document.page_header:
            section.header.is_linked_to_previous = False
            self._chrome(section.header, document.page_header)
        if document.page_footer:
            section.footer.is_linked_to_previous = False
            self._chrome(section.footer, document.page_footer)

        buffer = io.BytesIO()
        docx.save(buffer)
        return buffer.getvalue()

    def _chrome(self, container, elements: list[Element]) -> None:
        # A fresh header/footer starts with one empty paragraph
        placeholder = container.paragraphs[0] if container.paragraphs else None
        for element in elements:
            if isinstance(element, Table):
                self.warnings.add("Table", "tables are not written to page headers or footers")
                continue
            self.block(container, element)
        if placeholder is not None and not placeholder.text and len(container.paragraphs) > 1:
            placeholder._element.getparent().remove(placeholder._element)

    def block(self, container, element: Element) -> None:
        if isinstance(element, Header):
            p = container.add_paragraph(style=f"Heading {element.level}")
            p.add_run(element.text)
        elif isinstance(element, Paragraph):
            self.inline(container.add_paragraph(), element.elements)
        elif isinstance(element, Text):
            self.inline(container.add_paragraph(), [element])
        elif isinstance(element, List):
            self.list_block(container, element, 0)
        elif isinstance(element, Table):
            self.table(container, element)
        elif isinstance(element, PageBreak):
            container.add_paragraph().add_run().add_break(WD_BREAK.PAGE)
        else:
            self.warnings.add(element.variant_name, "no DOCX block representation")

    def inline(self, paragraph, elements: list[Element]) -> None:
        for element in elements:
            if isinstance(element, Text):
                run = paragraph.add_run(element.text)
                run.font.size = Pt(element.size)
            elif isinstance(element, Hyperlink):
                self.hyperlink(paragraph, element)
            elif isinstance(element, Image):
                self.picture(paragraph, element)

    def hyperlink(self, paragraph, link: Hyperlink) -> None:
        r_id = paragraph.part.relate_to(link.url, RT.HYPERLINK, is_external=True)
        node = OxmlElement("w:hyperlink")
        node.set(qn("r:id"), r_id)
        if link.alt:
            node.set(qn("w:tooltip"), link.alt)

        run = paragraph.add_run(link.title)
        run.font.size = Pt(link.size)
        run.font.underline = True
        run.font.color.rgb = RGBColor(0x05, 0x63, 0xC1)
        # Move the run from the paragraph into the hyperlink element
        node.append(run._r)
        paragraph._p.append(node)

    def picture(self, paragraph, image: Image) -> None:
        if isinstance(image.source, KeyedImage):
            data = self.images.lookup(image.source.key)
        else:
            data = image.source.data
        try:
            with PILImage.open(io.BytesIO(data)) as img:
                width_px = img.size[0]
        except (UnidentifiedImageError, OSError) as exc:
            raise MalformedInput(f"Cannot decode image {image.key or '(inline)'}: {exc}") from exc

        native_mm = width_px / PIXELS_PER_INCH * 25.4
        width = Mm(min(native_mm, self.content_width))
        run = paragraph.add_run()
        run.add_picture(io.BytesIO(data), width=width)
        for doc_pr in run._r.iter(qn("wp:docPr")):
            doc_pr.set("descr", image.alt)
            if image.title:
                doc_pr.set("title", image.title)

    def nested(self, paragraph, element: Element) -> None:
        """Write list item or cell content into an existing paragraph."""
        if isinstance(element, Paragraph):
            self.inline(paragraph, element.elements)
        elif isinstance(element, Text):
            self.inline(paragraph, [element])
        elif isinstance(element, Header):
            self.warnings.add("Header", "written as bold text inside a DOCX list item or cell")
            run = paragraph.add_run(element.text)
            run.bold = True
        else:
            self.warnings.add(element.variant_name, "flattened to text inside a DOCX list item or cell")
            paragraph.add_run(element_text(element))

    def list_block(self, container, lst: List, depth: int) -> None:
        kind = "List Number" if lst.numbered else "List Bullet"
        level = min(depth, MAX_LIST_STYLE_LEVEL - 1)
        style = kind if level == 0 else f"{kind} {level + 1}"
        for item in lst.elements:
            if isinstance(item.element, List):
                self.list_block(container, item.element, depth + 1)
                continue
            self.nested(container.add_paragraph(style=style), item.element)

    def table(self, container, table: Table) -> None:
        if not table.headers:
            self.warnings.add("Table", "a table without columns has no DOCX representation")
            return
        docx_table = container.add_table(rows=len(table.rows) + 1, cols=len(table.headers))
        docx_table.style = "Table Grid"
        for index, header in enumerate(table.headers):
            self.nested(docx_table.cell(0, index).paragraphs[0], header.element)
        for row_index, row in enumerate(table.rows, start=1):
            for index, cell in enumerate(row.cells):
                self.nested(docx_table.cell(row_index, index).paragraphs[0], cell.element)
        for index, header in enumerate(table.headers):
            for cell in docx_table.columns[index].cells:
                cell.width = Mm(header.width)
