"""
XML adapter.

A lossless element-per-variant schema mirroring the JSON wire format:

    <document page_width="210" ...>
      <elements>
        <header level="1">Title</header>
        <paragraph><text size="8">Body</text></paragraph>
      </elements>
      <page_header/>
      <page_footer/>
    </document>
"""

import base64
import binascii
import xml.etree.ElementTree as ET

from ..errors import MalformedInput
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
)
from ..utils.logger import get_logger
from .base import KeyedImageTransformer
from .json_converter import GEOMETRY_FIELDS

logger = get_logger(__name__)


class XmlConverter(KeyedImageTransformer):
    """Converts between the XML schema and the document model."""

    FORMAT = DocumentFormat.XML
    SUPPORTED_EXTENSIONS = {".xml"}

    def read_document(self, data: bytes) -> Document:
        if not data.strip():
            return Document()
        try:
            root = ET.fromstring(data)
        except ET.ParseError as exc:
            raise MalformedInput(f"Invalid XML: {exc}") from exc
        if root.tag != "document":
            raise MalformedInput(f"Expected <document> root element, got <{root.tag}>")

        try:
            document = _read_document(root)
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedInput(f"Invalid document structure: {exc}") from exc
        logger.debug("Parsed XML document with %d blocks", len(document.elements))
        return document

    def write_document(self, document: Document) -> bytes:
        root = ET.Element("document", {name: _num(getattr(document, name)) for name, _ in GEOMETRY_FIELDS})
        for section in ("elements", "page_header", "page_footer"):
            node = ET.SubElement(root, section)
            for element in getattr(document, section):
                node.append(_write(element))
        ET.indent(root)
        return ET.tostring(root, encoding="utf-8", xml_declaration=True) + b"\n"


def _num(value: float) -> str:
    return repr(float(value))


def _write(element: Element) -> ET.Element:
    if isinstance(element, Header):
        node = ET.Element("header", level=str(element.level))
        node.text = element.text
    elif isinstance(element, Paragraph):
        node = ET.Element("paragraph")
        node.extend(_write(e) for e in element.elements)
    elif isinstance(element, Text):
        node = ET.Element("text", size=str(element.size))
        node.text = element.text
    elif isinstance(element, Hyperlink):
        node = ET.Element("hyperlink", url=element.url, alt=element.alt, size=str(element.size))
        node.text = element.title
    elif isinstance(element, Image):
        node = ET.Element("image", title=element.title, alt=element.alt, image_type=element.image_type.value)
        if isinstance(element.source, KeyedImage):
            node.set("key", element.source.key)
        else:
            node.set("data", base64.b64encode(element.source.data).decode("ascii"))
    elif isinstance(element, List):
        node = ET.Element("list", numbered="true" if element.numbered else "false")
        node.extend(_write(e) for e in element.elements)
    elif isinstance(element, ListItem):
        node = ET.Element("list_item")
        node.append(_write(element.element))
    elif isinstance(element, Table):
        node = ET.Element("table")
        node.extend(_write(h) for h in element.headers)
        node.extend(_write(r) for r in element.rows)
    elif isinstance(element, TableHeader):
        node = ET.Element("table_header", width=_num(element.width))
        node.append(_write(element.element))
    elif isinstance(element, TableRow):
        node = ET.Element("table_row")
        node.extend(_write(c) for c in element.cells)
    elif isinstance(element, TableCell):
        node = ET.Element("table_cell")
        node.append(_write(element.element))
    elif isinstance(element, PageBreak):
        node = ET.Element("page_break")
    else:
        raise TypeError(f"Unknown element type: {type(element).__name__}")
    return node


def _read_document(root: ET.Element) -> Document:
    geometry = {}
    for name, default in GEOMETRY_FIELDS:
        value = root.get(name)
        geometry[name] = float(value) if value is not None else default
    sections = {}
    for section in ("elements", "page_header", "page_footer"):
        node = root.find(section)
        sections[section] = [_read(child) for child in node] if node is not None else []
    return Document(
        sections["elements"],
        page_header=sections["page_header"],
        page_footer=sections["page_footer"],
        **geometry,
    )


def _single_child(node: ET.Element) -> Element:
    children = list(node)
    if len(children) != 1:
        raise ValueError(f"<{node.tag}> must hold exactly one element, got {len(children)}")
    return _read(children[0])


def _read(node: ET.Element) -> Element:
    tag = node.tag
    if tag == "header":
        return Header(clamp_level(int(node.get("level", "1"))), node.text or "")
    if tag == "paragraph":
        return Paragraph([_read(child) for child in node])
    if tag == "text":
        return Text(node.text or "", int(node.get("size", DEFAULT_TEXT_SIZE)))
    if tag == "hyperlink":
        return Hyperlink(node.text or "", node.get("url", ""), node.get("alt", ""),
                         int(node.get("size", DEFAULT_TEXT_SIZE)))
    if tag == "image":
        image_type = ImageType.from_name(node.get("image_type", "Png"))
        if node.get("key") is not None:
            source = KeyedImage(node.get("key"))
        else:
            try:
                source = InlineImage(base64.b64decode(node.get("data", ""), validate=True))
            except binascii.Error as exc:
                raise ValueError(f"invalid image data: {exc}") from exc
        return Image(source, node.get("title", ""), node.get("alt", ""), image_type)
    if tag == "list":
        items = [_read(child) for child in node]
        return List(items, node.get("numbered", "false").lower() == "true")
    if tag == "list_item":
        return ListItem(_single_child(node))
    if tag == "table":
        headers = [_read(child) for child in node if child.tag == "table_header"]
        rows = [_read(child) for child in node if child.tag == "table_row"]
        return Table(headers, rows)
    if tag == "table_header":
        return TableHeader(_single_child(node), float(node.get("width", DEFAULT_COLUMN_WIDTH)))
    if tag == "table_row":
        return TableRow([_read(child) for child in node])
    if tag == "table_cell":
        return TableCell(_single_child(node))
    if tag == "page_break":
        return PageBreak()
    raise ValueError(f"unknown element <{tag}>")
