"""
Unit tests for the PDF adapter.
"""

import fitz
import pytest

from docshift.converters import PdfConverter
from docshift.converters.base import ConversionWarnings
from docshift.errors import MalformedInput, MissingImage
from docshift.model import (
    Document,
    Header,
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


class TestPdfGenerate:
    """Tests for PDF generation."""

    @pytest.fixture
    def converter(self):
        """Create a converter instance."""
        return PdfConverter()

    def test_pages_and_text(self, converter, document):
        """Test that page breaks start new pages and text is drawn."""
        output, images = converter.generate(document)
        assert output.startswith(b"%PDF")
        assert len(images) == 0

        pdf = fitz.open(stream=output, filetype="pdf")
        assert pdf.page_count == 2
        first = pdf[0].get_text()
        assert "Title" in first
        assert "Ada" in first
        assert "Header line" in first
        assert "Footer line" in pdf[1].get_text()
        assert "Second page" in pdf[1].get_text()
        pdf.close()

    def test_page_size(self, converter):
        """Test that page geometry is converted to points."""
        output, _ = converter.generate(Document([Paragraph([Text("x")])], page_width=100.0, page_height=150.0))
        pdf = fitz.open(stream=output, filetype="pdf")
        assert round(pdf[0].rect.width, 1) == 283.5
        assert round(pdf[0].rect.height, 1) == 425.2
        pdf.close()

    def test_links(self, converter, document):
        """Test that hyperlinks become URI link annotations."""
        output, _ = converter.generate(document)
        pdf = fitz.open(stream=output, filetype="pdf")
        uris = [link.get("uri") for link in pdf[0].get_links()]
        assert "https://example.com/docs" in uris
        pdf.close()

    def test_long_text_wraps_onto_pages(self, converter):
        """Test that overflowing content continues on a new page."""
        paragraphs = [Paragraph([Text("word " * 200)]) for _ in range(30)]
        output, _ = converter.generate(Document(paragraphs))
        pdf = fitz.open(stream=output, filetype="pdf")
        assert pdf.page_count > 1
        pdf.close()

    def test_images(self, converter, image_doc, image_bundle):
        """Test that images are placed on the page."""
        output, _ = converter.generate(image_doc, image_bundle)
        pdf = fitz.open(stream=output, filetype="pdf")
        assert len(pdf[0].get_images()) == 1
        pdf.close()

    def test_missing_image(self, converter, image_doc):
        """Test that an unknown image key raises MissingImage."""
        with pytest.raises(MissingImage):
            converter.generate(image_doc)

    def test_nested_lists(self, converter):
        """Test that nested list items are drawn with their markers."""
        document = Document([List([
            ListItem(Text("outer")),
            ListItem(List([ListItem(Text("inner"))], numbered=True)),
        ])])
        output, _ = converter.generate(document)
        pdf = fitz.open(stream=output, filetype="pdf")
        text = pdf[0].get_text()
        assert "outer" in text
        assert "inner" in text
        assert "1." in text
        pdf.close()

    def test_header_in_cell_reported(self, converter):
        """Test that a header flattened into a table cell is reported."""
        table = Table([TableHeader(Header(2, "H"))], [TableRow([TableCell(Text("1"))])])
        warnings = ConversionWarnings()
        converter.generate(Document([table]), warnings=warnings)
        assert warnings.variants() == ["Header"]


class TestPdfParse:
    """Tests for PDF parsing."""

    @pytest.fixture
    def converter(self):
        """Create a converter instance."""
        return PdfConverter()

    @pytest.mark.slow
    def test_parse_generated(self, converter):
        """Test reading back text and page breaks."""
        source = Document([
            Header(1, "Heading"),
            Paragraph([Text("First page body.")]),
            PageBreak(),
            Paragraph([Text("Second page body.")]),
        ])
        output, _ = converter.generate(source)
        document, _ = converter.parse(output)
        assert document.elements.count(PageBreak()) >= 1
        assert document.page_width == 210.0
        assert document.page_height == 297.0
        text = "\n".join(element_text(e) for e in document.elements)
        assert "First page body." in text
        assert "Second page body." in text

    def test_not_a_pdf(self, converter):
        """Test that garbage input is malformed."""
        with pytest.raises(MalformedInput):
            converter.parse(b"this is not a pdf file")

    def test_empty(self, converter):
        """Test empty input."""
        assert converter.parse(b"")[0] == Document()
