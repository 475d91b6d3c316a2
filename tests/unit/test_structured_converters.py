"""
Unit tests for the JSON, XML and CSV adapters.
"""

import json

import pytest

from docshift.converters import CsvConverter, JsonConverter, XmlConverter
from docshift.converters.base import ConversionWarnings
from docshift.errors import MalformedInput, MissingImage, UnsupportedFeature
from docshift.model import (
    BundleImageLoader,
    Document,
    Header,
    Image,
    ImageBundle,
    ImageType,
    List,
    ListItem,
    Paragraph,
    Table,
    TableCell,
    TableHeader,
    TableRow,
    Text,
)


class TestJsonConverter:
    """Tests for JsonConverter."""

    @pytest.fixture
    def converter(self):
        """Create a converter instance."""
        return JsonConverter()

    def test_identity(self, converter, document):
        """Test that JSON is lossless."""
        output, _ = converter.generate(document)
        parsed, _ = converter.parse(output)
        assert parsed == document

    def test_byte_stable(self, converter, document):
        """Test that JSON -> JSON reproduces the same bytes."""
        output, _ = converter.generate(document)
        again, _ = converter.generate(converter.parse(output)[0])
        assert again == output

    def test_wire_format(self, converter):
        """Test compact output with keys in schema order."""
        output, _ = converter.generate(Document([Header(1, "T")]))
        assert output == (
            b'{"elements":[{"Header":{"level":1,"text":"T"}}],'
            b'"page_width":210.0,"page_height":297.0,'
            b'"left_page_indent":10.0,"right_page_indent":10.0,'
            b'"top_page_indent":10.0,"bottom_page_indent":10.0,'
            b'"page_header":[],"page_footer":[]}'
        )

    def test_empty_document(self, converter):
        """Test that an empty document serializes its defaults."""
        raw = json.loads(converter.generate(Document())[0])
        assert raw["elements"] == []
        assert raw["page_width"] == 210.0

    def test_inline_image_base64(self, converter, png):
        """Test inline images as base64 and as byte arrays."""
        document = Document([Paragraph([Image.inline(png, alt="x")])])
        output, _ = converter.generate(document)
        assert converter.parse(output)[0] == document

        raw = json.loads(output)
        raw["elements"][0]["Paragraph"]["elements"][0]["Image"]["bytes"] = list(png)
        assert converter.parse(json.dumps(raw).encode())[0] == document

    def test_keyed_image_bundle(self, converter, image_doc, png):
        """Test that only referenced images travel with the document."""
        bundle = ImageBundle([("pic.png", png), ("unused.png", png)])
        _, images = converter.generate(image_doc, bundle)
        assert images.keys() == ["pic.png"]

    def test_keyed_image_resolved_from_bundle(self, converter, image_doc, image_bundle):
        """Test that a parsed key comes back with its bytes."""
        output, _ = converter.generate(image_doc, image_bundle)
        parsed, images = converter.parse(output, image_bundle)
        assert parsed == image_doc
        assert images.keys() == ["pic.png"]

    def test_key_missing_from_bundle(self, converter, image_doc):
        """Test that a supplied bundle must hold every key."""
        output, _ = converter.generate(image_doc)
        with pytest.raises(MissingImage) as exc_info:
            converter.parse(output, ImageBundle())
        assert exc_info.value.key == "pic.png"

    def test_unresolved_key_dropped(self, converter, image_doc):
        """Test that without images a keyed reference is dropped and reported."""
        output, _ = converter.generate(image_doc)
        warnings = ConversionWarnings()
        parsed, images = converter.parse(output, warnings=warnings)
        assert parsed.elements == [Paragraph([])]
        assert parsed.image_keys() == []
        assert len(images) == 0
        assert warnings.variants() == ["Image"]

    def test_keys_loaded_through_loader(self, converter, image_doc, image_bundle, png):
        """Test that a loader supplies the images beside the document."""
        output, _ = converter.generate(image_doc)
        parsed, images = converter.parse_with_loader(output, BundleImageLoader(image_bundle))
        assert parsed == image_doc
        assert images.lookup("pic.png") == png

    def test_bare_struct_children(self, converter):
        """Test that list items may be written without their tag."""
        raw = {"elements": [{"List": {"elements": [{"element": {"Text": {"text": "a"}}}], "numbered": True}}]}
        document, _ = converter.parse(json.dumps(raw).encode())
        assert document.elements == [List([ListItem(Text("a"))], numbered=True)]

    def test_header_level_clamped(self, converter):
        """Test that out-of-range header levels are clamped."""
        raw = {"elements": [{"Header": {"level": 0, "text": "a"}}, {"Header": {"level": 9, "text": "b"}}]}
        document, _ = converter.parse(json.dumps(raw).encode())
        assert [e.level for e in document.elements] == [1, 6]

    @pytest.mark.parametrize("payload", [
        b"{not json",
        b"[1, 2]",
        b'{"elements": [{"Bogus": {}}]}',
        b'{"elements": [{"Text": {"text": 5}}]}',
        b'{"elements": [{"Table": {"headers": [{"element": {"Text": {"text": "a"}}}], "rows": [{"cells": []}]}}]}',
    ])
    def test_malformed(self, converter, payload):
        """Test that invalid payloads raise MalformedInput."""
        with pytest.raises(MalformedInput):
            converter.parse(payload)

    def test_empty_input(self, converter):
        """Test empty input."""
        assert converter.parse(b"")[0] == Document()


class TestXmlConverter:
    """Tests for XmlConverter."""

    @pytest.fixture
    def converter(self):
        """Create a converter instance."""
        return XmlConverter()

    def test_round_trip(self, converter, document):
        """Test that XML keeps the whole document."""
        output, _ = converter.generate(document)
        assert output.startswith(b"<?xml")
        assert converter.parse(output)[0] == document

    def test_inline_image(self, converter, png):
        """Test inline image data."""
        document = Document([Paragraph([Image.inline(png, title="t")])])
        parsed, _ = converter.parse(converter.generate(document)[0])
        image = parsed.elements[0].elements[0]
        assert image.data == png
        assert image.image_type == ImageType.PNG

    def test_dangling_key(self, converter, image_doc, image_bundle):
        """Test that keys must resolve against the images supplied."""
        output, _ = converter.generate(image_doc, image_bundle)
        assert converter.parse(output, image_bundle)[1].keys() == ["pic.png"]
        with pytest.raises(MissingImage):
            converter.parse(output, ImageBundle())
        warnings = ConversionWarnings()
        parsed, images = converter.parse(output, warnings=warnings)
        assert parsed.image_keys() == []
        assert warnings.variants() == ["Image"]

    def test_wrong_root(self, converter):
        """Test that a foreign root element is rejected."""
        with pytest.raises(MalformedInput):
            converter.parse(b"<html/>")

    def test_not_xml(self, converter):
        """Test that broken XML is rejected."""
        with pytest.raises(MalformedInput):
            converter.parse(b"<document><elements>")

    def test_list_item_needs_one_child(self, converter):
        """Test structural validation of list items."""
        with pytest.raises(MalformedInput):
            converter.parse(b"<document><elements><list><list_item/></list></elements></document>")


class TestCsvConverter:
    """Tests for CsvConverter."""

    @pytest.fixture
    def converter(self):
        """Create a converter instance."""
        return CsvConverter()

    def test_parse(self, converter, csv_source):
        """Test that the first row becomes headers."""
        document, _ = converter.parse(csv_source)
        (table,) = document.elements
        assert [h.element for h in table.headers] == [Text("a"), Text("b")]
        assert [[c.element.text for c in row.cells] for row in table.rows] == [["1", "2"], ["3", "4"]]

    def test_ragged_rows_padded(self, converter):
        """Test padding of short and long rows."""
        document, _ = converter.parse(b"a\n1,2\n")
        table = document.elements[0]
        assert table.column_count == 2
        assert table.headers[1].element == Text("")

    def test_round_trip(self, converter, csv_source):
        """Test generate(parse(x)) == x."""
        document, _ = converter.parse(csv_source)
        assert converter.generate(document)[0] == csv_source

    def test_quoting(self, converter):
        """Test that commas and quotes survive."""
        table = Table(
            [TableHeader(Text("name"))],
            [TableRow([TableCell(Text('Smith, "J"'))])],
        )
        output, _ = converter.generate(Document([table]))
        assert output == b'name\n"Smith, ""J"""\n'
        assert converter.parse(output)[0].elements[0].rows[0].cells[0].element == Text('Smith, "J"')

    def test_no_table(self, converter):
        """Test that a document without a table cannot be written."""
        with pytest.raises(UnsupportedFeature):
            converter.generate(Document([Paragraph([Text("x")])]))

    def test_two_tables(self, converter, csv_source):
        """Test that more than one table cannot be written."""
        table = converter.parse(csv_source)[0].elements[0]
        with pytest.raises(UnsupportedFeature):
            converter.generate(Document([table, table]))

    def test_other_blocks_warned(self, converter, csv_source):
        """Test that non-table blocks are reported."""
        table = converter.parse(csv_source)[0].elements[0]
        warnings = ConversionWarnings()
        output, _ = converter.generate(Document([Header(1, "T"), table]), warnings=warnings)
        assert output == csv_source
        assert warnings.variants() == ["Header"]

    def test_semicolon_delimiter(self):
        """Test a custom delimiter."""
        document, _ = CsvConverter(delimiter=";").parse(b"a;b\n1;2\n")
        assert document.elements[0].column_count == 2
