"""
RTF adapter (generation only).

Writes RTF 1.x by hand: page setup in twips, header/footer groups,
HYPERLINK fields, \\trowd tables and \\pict images. GIF images are
re-encoded to PNG with Pillow since RTF readers only accept PNG and JPEG.
"""

import io
from typing import Optional

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
    ImageType,
    KeyedImage,
    List,
    PageBreak,
    Paragraph,
    Table,
    Text,
)
from ..model.images import ImageBundle
from ..utils.logger import get_logger
from ..utils.units import mm_to_twips
from .base import ConversionWarnings, Transformer

logger = get_logger(__name__)

LIST_INDENT_TWIPS = 360
PIXELS_TO_TWIPS = 15  # at 96 dpi


def escape(text: str) -> str:
    """Escape text for an RTF body, encoding non-ASCII as \\uN? control words."""
    out = []
    for char in text:
        code = ord(char)
        if char in "\\{}":
            out.append("\\" + char)
        elif char == "\n":
            out.append("\\line ")
        elif char == "\t":
            out.append("\\tab ")
        elif 32 <= code < 128:
            out.append(char)
        elif code < 32:
            continue
        elif code < 0x10000:
            out.append(f"\\u{code if code < 32768 else code - 65536}?")
        else:
            # Outside the BMP: write the UTF-16 surrogate pair
            code -= 0x10000
            for unit in (0xD800 + (code >> 10), 0xDC00 + (code & 0x3FF)):
                out.append(f"\\u{unit - 65536}?")
    return "".join(out)


class RtfConverter(Transformer):
    """Generates Rich Text Format from the document model."""

    FORMAT = DocumentFormat.RTF
    SUPPORTED_EXTENSIONS = {".rtf"}
    CAN_PARSE = False

    def generate(self, document: Document, images: Optional[ImageBundle] = None,
                 warnings: Optional[ConversionWarnings] = None) -> tuple[bytes, ImageBundle]:
        warnings = warnings if warnings is not None else ConversionWarnings()
        writer = RtfWriter(document, images or ImageBundle(), warnings)
        return writer.write().encode("ascii"), ImageBundle()


class RtfWriter:
    def __init__(self, document: Document, images: ImageBundle, warnings: ConversionWarnings):
        self.document = document
        self.images = images
        self.warnings = warnings
        self.content_twips = mm_to_twips(document.content_width)

    def write(self) -> str:
        doc = self.document
        parts = [
            "{\\rtf1\\ansi\\ansicpg1252\\deff0\\uc1",
            "{\\fonttbl{\\f0\\fswiss Helvetica;}}",
            "{\\colortbl;\\red0\\green0\\blue255;}",
            (
                f"\\paperw{mm_to_twips(doc.page_width)}\\paperh{mm_to_twips(doc.page_height)}"
                f"\\margl{mm_to_twips(doc.left_page_indent)}\\margr{mm_to_twips(doc.right_page_indent)}"
                f"\\margt{mm_to_twips(doc.top_page_indent)}\\margb{mm_to_twips(doc.bottom_page_indent)}"
            ),
        ]
        if doc.page_header:
            parts.append("{\\header " + "".join(self.block(e) for e in doc.page_header) + "}")
        if doc.page_footer:
            parts.append("{\\footer " + "".join(self.block(e) for e in doc.page_footer) + "}")
        parts.extend(self.block(e) for e in doc.elements)
        parts.append("}")
        return "\n".join(p for p in parts if p) + "\n"

    def block(self, element: Element) -> str:
        if isinstance(element, Header):
            size = HEADER_SIZES[element.level] * 2
            return f"{{\\pard\\sb240\\sa120\\keepn\\b\\fs{size} {escape(element.text)}\\par}}"
        if isinstance(element, Paragraph):
            return f"{{\\pard\\sa120 {self.inline(element.elements)}\\par}}"
        if isinstance(element, Text):
            return f"{{\\pard\\sa120 {self.inline([element])}\\par}}"
        if isinstance(element, List):
            return "".join(self.list_lines(element, 0))
        if isinstance(element, Table):
            return self.table(element)
        if isinstance(element, PageBreak):
            return "\\page"
        self.warnings.add(element.variant_name, "no RTF representation")
        return ""

    def inline(self, elements: list[Element]) -> str:
        parts = []
        for element in elements:
            if isinstance(element, Text):
                parts.append(f"{{\\fs{element.size * 2} {escape(element.text)}}}")
            elif isinstance(element, Hyperlink):
                parts.append(
                    f'{{\\field{{\\*\\fldinst{{HYPERLINK "{escape(element.url)}"}}}}'
                    f"{{\\fldrslt{{\\ul\\cf1\\fs{element.size * 2} {escape(element.title or element.url)}}}}}}}"
                )
            elif isinstance(element, Image):
                parts.append(self.picture(element))
        return "".join(parts)

    def nested(self, element: Element) -> str:
        """Content of a list item or table cell, without paragraph framing."""
        if isinstance(element, Paragraph):
            return self.inline(element.elements)
        if isinstance(element, Text):
            return self.inline([element])
        if isinstance(element, Header):
            self.warnings.add("Header", "written as bold text inside an RTF list item or cell")
            return f"{{\\b\\fs{HEADER_SIZES[element.level] * 2} {escape(element.text)}}}"
        self.warnings.add(element.variant_name, "cannot be nested in RTF list items or table cells")
        return ""

    def list_lines(self, lst: List, depth: int) -> list[str]:
        lines = []
        indent = LIST_INDENT_TWIPS * (depth + 1)
        number = 0
        for item in lst.elements:
            if isinstance(item.element, List):
                lines.extend(self.list_lines(item.element, depth + 1))
                continue
            number += 1
            marker = f"{number}." if lst.numbered else "\\bullet"
            lines.append(
                f"{{\\pard\\li{indent}\\fi-{LIST_INDENT_TWIPS}\\sa60 "
                f"{{\\fs{DEFAULT_TEXT_SIZE * 2} {marker}}}\\tab {self.nested(item.element)}\\par}}"
            )
        return lines

    def table(self, table: Table) -> str:
        if not table.headers:
            self.warnings.add("Table", "a table without columns has no RTF representation")
            return ""
        edges = []
        position = 0
        for header in table.headers:
            position += mm_to_twips(header.width)
            edges.append(f"\\clbrdrt\\brdrs\\clbrdrl\\brdrs\\clbrdrb\\brdrs\\clbrdrr\\brdrs\\cellx{position}")
        row_prefix = "\\trowd\\trgaph108" + "".join(edges)

        rows = []
        header_cells = "".join(f"\\pard\\intbl{{\\b {self.nested(h.element)}}}\\cell" for h in table.headers)
        rows.append(f"{row_prefix}\n{header_cells}\\row")
        for row in table.rows:
            cells = "".join(f"\\pard\\intbl {self.nested(c.element)}\\cell" for c in row.cells)
            rows.append(f"{row_prefix}\n{cells}\\row")
        return "{" + "\n".join(rows) + "\\pard\\par}"

    def picture(self, image: Image) -> str:
        if isinstance(image.source, KeyedImage):
            data = self.images.lookup(image.source.key)
        else:
            data = image.source.data

        try:
            with PILImage.open(io.BytesIO(data)) as img:
                width_px, height_px = img.size
                if image.image_type == ImageType.GIF or img.format not in ("PNG", "JPEG"):
                    buffer = io.BytesIO()
                    img.convert("RGBA").save(buffer, format="PNG")
                    data, blip = buffer.getvalue(), "\\pngblip"
                else:
                    blip = "\\jpegblip" if img.format == "JPEG" else "\\pngblip"
        except (UnidentifiedImageError, OSError) as exc:
            raise MalformedInput(f"Cannot decode image {image.key or '(inline)'}: {exc}") from exc

        width_tw = width_px * PIXELS_TO_TWIPS
        height_tw = height_px * PIXELS_TO_TWIPS
        if width_tw > self.content_twips:
            height_tw = int(height_tw * self.content_twips / width_tw)
            width_tw = self.content_twips
        return (
            f"{{\\pict{blip}\\picw{width_px}\\pich{height_px}"
            f"\\picwgoal{width_tw}\\pichgoal{height_tw}\n{data.hex()}}}"
        )
