"""
Unit tests for the DOCX adapter.
"""

import io

import pytest
from docx import Document as WordDocument
from docx.shared import Pt

from docshift.converters import DocxConverter
from docshift.converters.base import ConversionWarnings
from docshift.converters.docx_converter import nest_list_items
from docshift.errors import MalformedInput, MissingImage
from docshift.model import (
    Document,
    Header,
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
    TableRow,
    Text,
    element_text,
)


def _word_bytes(build) -> bytes:
    """Build a .docx with python-docx and return its bytes."""
    doc = WordDocument()
    build(doc)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


class TestNestListItems:
    """Tests for building nested lists from flat paragraphs."""

    def test_nested_items_follow_parent(self):
        """Test the sibling nesting convention."""
        lst = nest_list_items([(0, False, Text("a")), (1, True, Text("a1")), (0, False, Text("b"))])
        assert lst == List([
            ListItem(Text("a")),
            ListItem(List([ListItem(Text("a1"))], numbered=True)),
            ListItem(Text("b")),
        ])

    def test_skipped_levels_collapse(self):
        """Test that jumping two levels nests only once."""
        lst = nest_list_items([(0, False, Text("a")), (2, False, Text("deep"))])
        assert lst.elements[1] == ListItem(List([ListItem(Text("deep"))]))


class TestDocxParse:
    """Tests for reading Word documents."""

    @pytest.fixture
    def converter(self):
        """Create a converter instance."""
        return DocxConverter()

    def test_headings_paragraphs_and_lists(self, converter):
        """Test a document written with python-docx styles."""
        def build(doc):
            doc.add_heading("Main", level=1)
            doc.add_heading("Sub", level=2)
            run = doc.add_paragraph().add_run("Body text")
            run.font.size = Pt(11)
            doc.add_paragraph("one", style="List Bullet")
            doc.add_paragraph("inner", style="List Bullet 2")
            doc.add_paragraph("two", style="List Bullet")
            doc.add_page_break()
            doc.add_paragraph("Done")

        document, images = converter.parse(_word_bytes(build))
        assert document.elements == [
            Header(1, "Main"),
            Header(2, "Sub"),
            Paragraph([Text("Body text", 11)]),
            List([
                ListItem(Text("one")),
                ListItem(List([ListItem(Text("inner"))])),
                ListItem(Text("two")),
            ]),
            PageBreak(),
            Paragraph([Text("Done")]),
        ]
        assert len(images) == 0

    def test_table(self, converter):
        """Test that the first table row becomes the headers."""
        def build(doc):
            table = doc.add_table(rows=2, cols=2)
            table.cell(0, 0).text = "k"
            table.cell(0, 1).text = "v"
            table.cell(1, 0).text = "x"
            table.cell(1, 1).text = "1"

        document, _ = converter.parse(_word_bytes(build))
        (table,) = document.elements
        assert isinstance(table, Table)
        assert [h.element for h in table.headers] == [Text("k"), Text("v")]
        assert [c.element for c in table.rows[0].cells] == [Text("x"), Text("1")]

    def test_not_a_docx(self, converter):
        """Test that random bytes are malformed input."""
        with pytest.raises(MalformedInput):
            converter.parse(b"definitely not a zip")

    def test_empty(self, converter):
        """Test empty input."""
        assert converter.parse(b"")[0] == Document()


class TestDocxGenerate:
    """Tests for writing Word documents."""

    @pytest.fixture
    def converter(self):
        """Create a converter instance."""
        return DocxConverter()

    def test_round_trip(self, converter, document):
        """Test that body content survives generate then parse."""
        output, _ = converter.generate(document)
        parsed, _ = converter.parse(output)
        assert parsed.elements == document.elements
        assert parsed.page_width == 210.0
        assert parsed.left_page_indent == 10.0
        assert [element_text(e) for e in parsed.page_header] == ["Header line"]
        assert [element_text(e) for e in parsed.page_footer] == ["Footer line"]

    def test_page_geometry(self, converter):
        """Test that custom page sizes are written."""
        document = Document([Paragraph([Text("x")])], page_width=148.0, page_height=210.0, top_page_indent=20.0)
        parsed, _ = converter.parse(converter.generate(document)[0])
        assert (parsed.page_width, parsed.page_height) == (148.0, 210.0)
        assert parsed.top_page_indent == 20.0

    def test_hyperlink_relationship(self, converter, document):
        """Test that hyperlinks are written as external relationships."""
        output, _ = converter.generate(document)
        word = WordDocument(io.BytesIO(output))
        targets = [rel.target_ref for rel in word.part.rels.values() if rel.is_external]
        assert "https://example.com/docs" in targets

    def test_images_embedded(self, converter, image_doc, image_bundle, png):
        """Test that pictures are stored in the package and read back."""
        output, images = converter.generate(image_doc, image_bundle)
        assert len(images) == 0
        parsed, parsed_images = converter.parse(output)
        (paragraph,) = parsed.elements
        (image,) = paragraph.elements
        assert isinstance(image, Image)
        assert isinstance(image.source, KeyedImage)
        assert image.alt == "A picture"
        assert image.title == "Picture"
        assert image.image_type == ImageType.PNG
        assert parsed_images.lookup(image.source.key) == png

    def test_missing_image(self, converter, image_doc):
        """Test that an unknown image key raises MissingImage."""
        with pytest.raises(MissingImage):
            converter.generate(image_doc)

    def test_header_in_cell_reported(self, converter):
        """Test that a header written as bold cell text is reported."""
        table = Table(
            [TableHeader(Header(2, "H"), 30.0)],
            [TableRow([TableCell(Text("1"))])],
        )
        warnings = ConversionWarnings()
        output, _ = converter.generate(Document([table]), warnings=warnings)
        assert warnings.variants() == ["Header"]

        parsed, _ = converter.parse(output)
        assert element_text(parsed.elements[0].headers[0]) == "H"

    def test_header_in_list_item_reported(self, converter):
        """Test that a header inside a list item is reported."""
        warnings = ConversionWarnings()
        converter.generate(Document([List([ListItem(Header(1, "Top"))])]), warnings=warnings)
        assert warnings.variants() == ["Header"]
