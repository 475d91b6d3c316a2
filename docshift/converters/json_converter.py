"""
JSON adapter: the canonical, lossless serialization of a Document.

Every element is written as a single-key object naming its variant,
e.g. {"Text": {"text": "hi", "size": 8}}. Image bytes are base64 encoded.
"""

import base64
import binascii
import json
from typing import Any

from ..errors import MalformedInput
from ..formats import DocumentFormat
from ..model.document import (
    DEFAULT_PAGE_HEIGHT,
    DEFAULT_PAGE_INDENT,
    DEFAULT_PAGE_WIDTH,
    Document,
)
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

logger = get_logger(__name__)

GEOMETRY_FIELDS = (
    ("page_width", DEFAULT_PAGE_WIDTH),
    ("page_height", DEFAULT_PAGE_HEIGHT),
    ("left_page_indent", DEFAULT_PAGE_INDENT),
    ("right_page_indent", DEFAULT_PAGE_INDENT),
    ("top_page_indent", DEFAULT_PAGE_INDENT),
    ("bottom_page_indent", DEFAULT_PAGE_INDENT),
)


class JsonConverter(KeyedImageTransformer):
    """Converts between the JSON wire format and the document model."""

    FORMAT = DocumentFormat.JSON
    SUPPORTED_EXTENSIONS = {".json"}

    def read_document(self, data: bytes) -> Document:
        if not data.strip():
            return Document()
        try:
            raw = json.loads(data.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedInput(f"Invalid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise MalformedInput(f"JSON document must be an object, got {type(raw).__name__}")

        try:
            document = document_from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedInput(f"Invalid document structure: {exc}") from exc
        logger.debug("Parsed JSON document with %d blocks", len(document.elements))
        return document

    def write_document(self, document: Document) -> bytes:
        payload = json.dumps(document_to_dict(document), separators=(",", ":"), ensure_ascii=False)
        return payload.encode("utf-8")


# ============================================================================
# Encoding
# ============================================================================


def document_to_dict(document: Document) -> dict:
    result: dict[str, Any] = {"elements": [element_to_dict(e) for e in document.elements]}
    for name, _ in GEOMETRY_FIELDS:
        result[name] = getattr(document, name)
    result["page_header"] = [element_to_dict(e) for e in document.page_header]
    result["page_footer"] = [element_to_dict(e) for e in document.page_footer]
    return result


def element_to_dict(element: Element) -> dict:
    if isinstance(element, Header):
        body = {"level": element.level, "text": element.text}
    elif isinstance(element, Paragraph):
        body = {"elements": [element_to_dict(e) for e in element.elements]}
    elif isinstance(element, Text):
        body = {"text": element.text, "size": element.size}
    elif isinstance(element, Hyperlink):
        body = {"title": element.title, "url": element.url, "alt": element.alt, "size": element.size}
    elif isinstance(element, Image):
        if isinstance(element.source, InlineImage):
            body = {"bytes": base64.b64encode(element.source.data).decode("ascii")}
        else:
            body = {"key": element.source.key}
        body.update(title=element.title, alt=element.alt, image_type=element.image_type.value)
    elif isinstance(element, List):
        body = {"elements": [element_to_dict(e) for e in element.elements], "numbered": element.numbered}
    elif isinstance(element, ListItem):
        body = {"element": element_to_dict(element.element)}
    elif isinstance(element, Table):
        body = {
            "headers": [element_to_dict(h) for h in element.headers],
            "rows": [element_to_dict(r) for r in element.rows],
        }
    elif isinstance(element, TableHeader):
        body = {"element": element_to_dict(element.element), "width": element.width}
    elif isinstance(element, TableRow):
        body = {"cells": [element_to_dict(c) for c in element.cells]}
    elif isinstance(element, TableCell):
        body = {"element": element_to_dict(element.element)}
    elif isinstance(element, PageBreak):
        body = {}
    else:
        raise TypeError(f"Unknown element type: {type(element).__name__}")
    return {element.variant_name: body}


# ============================================================================
# Decoding
# ============================================================================


def document_from_dict(raw: dict) -> Document:
    geometry = {}
    for name, default in GEOMETRY_FIELDS:
        value = raw.get(name)
        geometry[name] = float(value) if value is not None else default
    return Document(
        [element_from_dict(e) for e in _list(raw.get("elements"), "elements")],
        page_header=[element_from_dict(e) for e in _list(raw.get("page_header"), "page_header")],
        page_footer=[element_from_dict(e) for e in _list(raw.get("page_footer"), "page_footer")],
        **geometry,
    )


def element_from_dict(raw: Any) -> Element:
    if not isinstance(raw, dict) or len(raw) != 1:
        raise ValueError(f"element must be a single-key object, got {raw!r:.80}")
    (variant, body), = raw.items()
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise ValueError(f"{variant} body must be an object")

    if variant == "Header":
        return Header(clamp_level(body.get("level", 1)), _str(body.get("text")))
    if variant == "Paragraph":
        return Paragraph([element_from_dict(e) for e in _list(body.get("elements"), variant)])
    if variant == "Text":
        return Text(_str(body.get("text")), int(body.get("size", DEFAULT_TEXT_SIZE)))
    if variant == "Hyperlink":
        return Hyperlink(
            _str(body.get("title")), _str(body.get("url")), _str(body.get("alt")),
            int(body.get("size", DEFAULT_TEXT_SIZE)),
        )
    if variant == "Image":
        return _image_from_dict(body)
    if variant == "List":
        items = [_wrapped(e, ListItem) for e in _list(body.get("elements"), variant)]
        return List(items, bool(body.get("numbered", False)))
    if variant == "ListItem":
        return ListItem(element_from_dict(body["element"]))
    if variant == "Table":
        headers = [_wrapped(h, TableHeader) for h in _list(body.get("headers"), variant)]
        rows = [_wrapped(r, TableRow) for r in _list(body.get("rows"), variant)]
        return Table(headers, rows)
    if variant == "TableHeader":
        return TableHeader(element_from_dict(body["element"]), float(body.get("width", DEFAULT_COLUMN_WIDTH)))
    if variant == "TableRow":
        return TableRow([_wrapped(c, TableCell) for c in _list(body.get("cells"), variant)])
    if variant == "TableCell":
        return TableCell(element_from_dict(body["element"]))
    if variant == "PageBreak":
        return PageBreak()
    raise ValueError(f"unknown element variant: {variant}")


def _wrapped(raw: Any, expected: type) -> Element:
    """Decode a structural child written either tagged or as a bare struct."""
    if isinstance(raw, dict) and len(raw) == 1 and expected.__name__ in raw:
        return element_from_dict(raw)
    if not isinstance(raw, dict):
        raise ValueError(f"{expected.__name__} must be an object")
    return element_from_dict({expected.__name__: raw})


def _image_from_dict(body: dict) -> Image:
    image_type = ImageType.from_name(body.get("image_type", "Png"))
    if body.get("key") is not None:
        source = KeyedImage(_str(body["key"]))
    else:
        payload = body.get("bytes")
        try:
            if isinstance(payload, list):
                data = bytes(payload)
            else:
                data = base64.b64decode(_str(payload), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"invalid image bytes: {exc}") from exc
        source = InlineImage(data)
    return Image(source, _str(body.get("title")), _str(body.get("alt")), image_type)


def _list(value: Any, owner: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{owner} must be an array")
    return value


def _str(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {type(value).__name__}")
    return value
