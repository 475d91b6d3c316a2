"""
OpenDocument spreadsheet (.ods) adapter.

An ODS file is a zip package; the cells live in content.xml. Parsing
expands number-rows-repeated / number-columns-repeated runs after
trimming trailing blanks, so the million-row padding LibreOffice writes
never gets materialized.
"""

import io
import zipfile
import xml.etree.ElementTree as ET
from typing import Optional

from ..errors import MalformedInput
from ..formats import DocumentFormat
from ..model.document import Document
from ..model.elements import DEFAULT_COLUMN_WIDTH, Element, Header, Table, element_text
from ..model.images import ImageBundle
from ..utils.logger import get_logger
from ..utils.units import parse_length_mm, round_mm
from .base import ConversionWarnings, Transformer
from .sheets import SHEET_HEADER_LEVEL, build_table, collect_sheets, trim_rows

logger = get_logger(__name__)

MIMETYPE = "application/vnd.oasis.opendocument.spreadsheet"
NS = {
    "office": "urn:oasis:names:tc:opendocument:xmlns:office:1.0",
    "style": "urn:oasis:names:tc:opendocument:xmlns:style:1.0",
    "table": "urn:oasis:names:tc:opendocument:xmlns:table:1.0",
    "text": "urn:oasis:names:tc:opendocument:xmlns:text:1.0",
    "fo": "urn:oasis:names:tc:opendocument:xmlns:xsl-fo-compatible:1.0",
    "meta": "urn:oasis:names:tc:opendocument:xmlns:meta:1.0",
    "manifest": "urn:oasis:names:tc:opendocument:xmlns:manifest:1.0",
}
ODF_VERSION = "1.2"
MAX_REPEAT = 10000

for _prefix, _uri in NS.items():
    ET.register_namespace(_prefix, _uri)


def _q(name: str) -> str:
    """'table:table-row' -> '{urn:...table:1.0}table-row'"""
    prefix, local = name.split(":")
    return f"{{{NS[prefix]}}}{local}"


def _repeat(node, attribute: str) -> int:
    value = node.get(_q(attribute), "1")
    return int(value) if value.isdigit() and int(value) > 0 else 1


class OdsConverter(Transformer):
    """Converts between OpenDocument spreadsheets and header + table documents."""

    FORMAT = DocumentFormat.ODS
    SUPPORTED_EXTENSIONS = {".ods"}

    def parse(self, data: bytes, images: Optional[ImageBundle] = None,
              warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        if not data:
            return Document(), ImageBundle()
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as package:
                content = package.read("content.xml")
            root = ET.fromstring(content)
        except (zipfile.BadZipFile, KeyError) as exc:
            raise MalformedInput(f"Invalid ODS package: {exc}") from exc
        except ET.ParseError as exc:
            raise MalformedInput(f"Invalid ODS content.xml: {exc}") from exc

        column_styles = _column_styles(root)
        elements: list[Element] = []
        for table in root.iter(_q("table:table")):
            name = table.get(_q("table:name"), f"Sheet{len(elements) // 2 + 1}")
            rows = _read_rows(table)
            widths = _read_widths(table, column_styles, max((len(r) for r in rows), default=0))
            elements.append(Header(SHEET_HEADER_LEVEL, name))
            elements.append(build_table(rows, widths))
            logger.debug("Read sheet %r with %d rows", name, len(rows))
        return Document(elements), ImageBundle()

    def generate(self, document: Document, images: Optional[ImageBundle] = None,
                 warnings: Optional[ConversionWarnings] = None) -> tuple[bytes, ImageBundle]:
        warnings = warnings if warnings is not None else ConversionWarnings()
        sheets = collect_sheets(document, warnings, "ODS")
        if not sheets:
            sheets = [("Sheet1", Table())]

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as package:
            # mimetype must be the first entry and stored uncompressed
            package.writestr(zipfile.ZipInfo("mimetype"), MIMETYPE, compress_type=zipfile.ZIP_STORED)
            package.writestr("META-INF/manifest.xml", _manifest(), compress_type=zipfile.ZIP_DEFLATED)
            package.writestr("content.xml", _content(sheets), compress_type=zipfile.ZIP_DEFLATED)
            package.writestr("styles.xml", _styles(), compress_type=zipfile.ZIP_DEFLATED)
            package.writestr("meta.xml", _meta(), compress_type=zipfile.ZIP_DEFLATED)
        return buffer.getvalue(), ImageBundle()


# ============================================================================
# Reading
# ============================================================================


def _column_styles(root) -> dict[str, float]:
    styles = {}
    for style in root.iter(_q("style:style")):
        if style.get(_q("style:family")) != "table-column":
            continue
        props = style.find(_q("style:table-column-properties"))
        if props is None:
            continue
        width = parse_length_mm(props.get(_q("style:column-width"), ""))
        if width is not None:
            styles[style.get(_q("style:name"))] = round_mm(width)
    return styles


def _iter_rows(container):
    for child in container:
        if child.tag == _q("table:table-row"):
            yield child
        elif child.tag in (_q("table:table-header-rows"), _q("table:table-rows"), _q("table:table-row-group")):
            yield from _iter_rows(child)


def _iter_columns(container):
    for child in container:
        if child.tag == _q("table:table-column"):
            yield child
        elif child.tag in (_q("table:table-header-columns"), _q("table:table-columns"), _q("table:table-column-group")):
            yield from _iter_columns(child)


def _read_rows(table) -> list[list[str]]:
    runs: list[tuple[list[str], int]] = []
    for row in _iter_rows(table):
        cells: list[tuple[str, int]] = []
        for cell in row:
            if cell.tag not in (_q("table:table-cell"), _q("table:covered-table-cell")):
                continue
            cells.append((_cell_text(cell), _repeat(cell, "table:number-columns-repeated")))
        while cells and cells[-1][0] == "":
            cells.pop()
        values = []
        for text, count in cells:
            values.extend([text] * min(count, MAX_REPEAT))
        runs.append((values, _repeat(row, "table:number-rows-repeated")))

    rows = []
    for values, count in runs:
        if values:
            rows.extend(list(values) for _ in range(min(count, MAX_REPEAT)))
    return trim_rows(rows)


def _read_widths(table, column_styles: dict[str, float], count: int) -> list[float]:
    widths: list[float] = []
    for column in _iter_columns(table):
        width = column_styles.get(column.get(_q("table:style-name")), DEFAULT_COLUMN_WIDTH)
        widths.extend([width] * min(_repeat(column, "table:number-columns-repeated"), count - len(widths)))
        if len(widths) >= count:
            break
    return widths


def _cell_text(cell) -> str:
    paragraphs = [_text_content(p) for p in cell.findall(_q("text:p"))]
    if paragraphs:
        return "\n".join(paragraphs)
    return cell.get(_q("office:string-value")) or cell.get(_q("office:value")) or ""


def _text_content(node) -> str:
    parts = [node.text or ""]
    for child in node:
        if child.tag == _q("text:s"):
            parts.append(" " * _repeat(child, "text:c"))
        elif child.tag == _q("text:tab"):
            parts.append("\t")
        elif child.tag == _q("text:line-break"):
            parts.append("\n")
        elif child.tag != _q("office:annotation"):
            parts.append(_text_content(child))
        parts.append(child.tail or "")
    return "".join(parts)


# ============================================================================
# Writing
# ============================================================================


def _xml(root) -> bytes:
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _content(sheets: list[tuple[str, Table]]) -> bytes:
    root = ET.Element(_q("office:document-content"), {_q("office:version"): ODF_VERSION})
    automatic = ET.SubElement(root, _q("office:automatic-styles"))
    body = ET.SubElement(ET.SubElement(root, _q("office:body")), _q("office:spreadsheet"))

    style_names: dict[float, str] = {}
    for title, table in sheets:
        sheet = ET.SubElement(body, _q("table:table"), {_q("table:name"): title})
        for header in table.headers:
            if header.width not in style_names:
                name = f"co{len(style_names) + 1}"
                style_names[header.width] = name
                style = ET.SubElement(automatic, _q("style:style"), {
                    _q("style:name"): name,
                    _q("style:family"): "table-column",
                })
                ET.SubElement(style, _q("style:table-column-properties"), {
                    _q("style:column-width"): f"{header.width:g}mm",
                })
            ET.SubElement(sheet, _q("table:table-column"), {_q("table:style-name"): style_names[header.width]})
        if not table.headers:
            ET.SubElement(sheet, _q("table:table-column"))

        rows = [[element_text(h) for h in table.headers]] if table.headers else [[""]]
        rows.extend([element_text(c) for c in row.cells] for row in table.rows)
        for values in rows:
            row = ET.SubElement(sheet, _q("table:table-row"))
            for value in values:
                _write_cell(row, value)
    return _xml(root)


def _write_cell(row, value: str) -> None:
    if value == "":
        ET.SubElement(row, _q("table:table-cell"))
        return
    cell = ET.SubElement(row, _q("table:table-cell"), {_q("office:value-type"): "string"})
    for line in value.split("\n"):
        ET.SubElement(cell, _q("text:p")).text = line


def _manifest() -> bytes:
    root = ET.Element(_q("manifest:manifest"), {_q("manifest:version"): ODF_VERSION})
    for path, media_type in (
        ("/", MIMETYPE),
        ("content.xml", "text/xml"),
        ("styles.xml", "text/xml"),
        ("meta.xml", "text/xml"),
    ):
        attrs = {_q("manifest:full-path"): path, _q("manifest:media-type"): media_type}
        if path == "/":
            attrs[_q("manifest:version")] = ODF_VERSION
        ET.SubElement(root, _q("manifest:file-entry"), attrs)
    return _xml(root)


def _styles() -> bytes:
    root = ET.Element(_q("office:document-styles"), {_q("office:version"): ODF_VERSION})
    ET.SubElement(root, _q("office:styles"))
    return _xml(root)


def _meta() -> bytes:
    root = ET.Element(_q("office:document-meta"), {_q("office:version"): ODF_VERSION})
    meta = ET.SubElement(root, _q("office:meta"))
    ET.SubElement(meta, _q("meta:generator")).text = "docshift"
    return _xml(root)
