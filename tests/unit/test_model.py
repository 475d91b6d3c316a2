"""
Unit tests for the document model.
"""

import pytest

from docshift.errors import MissingImage
from docshift.model import (
    DEFAULT_COLUMN_WIDTH,
    DEFAULT_TEXT_SIZE,
    Document,
    Header,
    Hyperlink,
    Image,
    ImageBundle,
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


class TestElements:
    """Tests for element construction rules."""

    def test_defaults(self):
        """Test that sizes and widths default to the model constants."""
        assert Text("a").size == DEFAULT_TEXT_SIZE == 8
        assert Hyperlink("t", "u").size == 8
        assert TableHeader(Text("h")).width == DEFAULT_COLUMN_WIDTH == 10.0

    @pytest.mark.parametrize("level", [0, 7, -1])
    def test_header_rejects_out_of_range_level(self, level):
        """Test that header levels outside 1..6 are rejected."""
        with pytest.raises(ValueError):
            Header(level, "x")

    @pytest.mark.parametrize("level,expected", [(0, 1), (1, 1), (6, 6), (7, 6), (42, 6)])
    def test_clamp_level(self, level, expected):
        """Test header level clamping."""
        assert clamp_level(level) == expected

    def test_negative_size_rejected(self):
        """Test that negative text sizes are rejected."""
        with pytest.raises(ValueError):
            Text("x", -1)

    def test_paragraph_holds_inline_only(self):
        """Test that a paragraph rejects block children."""
        Paragraph([Text("a"), Hyperlink("b", "c"), Image.keyed("k.png")])
        with pytest.raises(ValueError):
            Paragraph([Header(1, "no")])

    def test_list_children_must_be_items(self):
        """Test that list children must be ListItems."""
        with pytest.raises(ValueError):
            List([Text("bare")])

    def test_list_item_cannot_wrap_list_item(self):
        """Test that ListItem does not directly wrap a ListItem."""
        with pytest.raises(ValueError):
            ListItem(ListItem(Text("x")))

    def test_hyperlink_must_be_wrapped_in_list_item(self):
        """Test that a bare hyperlink inside a list item is rejected."""
        with pytest.raises(ValueError):
            ListItem(Hyperlink("a", "b"))
        ListItem(Paragraph([Hyperlink("a", "b")]))

    def test_table_rows_must_match_headers(self):
        """Test that each row needs one cell per header."""
        headers = [TableHeader(Text("a")), TableHeader(Text("b"))]
        with pytest.raises(ValueError):
            Table(headers, [TableRow([TableCell(Text("1"))])])

    def test_table_padded(self):
        """Test that ragged rows are padded to a rectangle."""
        table = Table.padded(
            [TableHeader(Text("a"))],
            [[TableCell(Text("1")), TableCell(Text("2"))], []],
        )
        assert table.column_count == 2
        assert all(len(row.cells) == 2 for row in table.rows)
        assert table.headers[1].element == Text("")

    def test_image_constructors(self):
        """Test keyed and inline image helpers."""
        keyed = Image.keyed("photo.jpg")
        assert keyed.key == "photo.jpg"
        assert keyed.image_type == ImageType.JPEG
        inline = Image.inline(b"\x89PNG", image_type=ImageType.PNG)
        assert inline.data == b"\x89PNG"
        assert inline.key is None

    def test_element_text(self):
        """Test flattening elements to text."""
        para = Paragraph([Text("Go "), Hyperlink("here", "https://x.y")])
        assert element_text(para) == "Go here"
        lst = List([ListItem(Text("a")), ListItem(Text("b"))])
        assert element_text(lst) == "a\nb"


class TestImageType:
    """Tests for the ImageType enum."""

    def test_from_name(self):
        """Test wire and Pillow names."""
        assert ImageType.from_name("Png") == ImageType.PNG
        assert ImageType.from_name("JPEG") == ImageType.JPEG
        assert ImageType.from_name("jpg") == ImageType.JPEG
        with pytest.raises(ValueError):
            ImageType.from_name("Tiff")

    def test_from_extension(self):
        """Test extension guessing."""
        assert ImageType.from_extension("a/b/c.GIF") == ImageType.GIF
        assert ImageType.from_extension("x.bmp") is None

    def test_from_bytes(self, png):
        """Test sniffing with Pillow."""
        assert ImageType.from_bytes(png) == ImageType.PNG
        assert ImageType.from_bytes(b"not an image") is None


class TestDocument:
    """Tests for the Document container."""

    def test_default_geometry(self):
        """Test A4 defaults with 10 mm indents."""
        doc = Document()
        assert (doc.page_width, doc.page_height) == (210.0, 297.0)
        assert doc.left_page_indent == doc.bottom_page_indent == 10.0
        assert doc.is_empty
        assert doc.content_width == 190.0
        assert doc.page_format == (210.0, 297.0)

    def test_rejects_structural_blocks(self):
        """Test that structural variants cannot be top-level blocks."""
        with pytest.raises(ValueError):
            Document([ListItem(Text("x"))])
        with pytest.raises(ValueError):
            Document([Hyperlink("a", "b")])

    def test_rejects_bad_geometry(self):
        """Test that non-positive sizes and negative indents are rejected."""
        with pytest.raises(ValueError):
            Document(page_width=0)
        with pytest.raises(ValueError):
            Document(left_page_indent=-1)

    def test_image_keys_include_chrome(self):
        """Test keyed image discovery across body and chrome."""
        doc = Document(
            [Paragraph([Image.keyed("a.png"), Image.keyed("b.png"), Image.keyed("a.png")])],
            page_footer=[Paragraph([Image.keyed("c.png")])],
        )
        assert doc.image_keys() == ["a.png", "b.png", "c.png"]

    def test_iter_elements_depth_first(self, document):
        """Test that iteration reaches nested list items."""
        texts = [e.text for e in document.iter_elements() if isinstance(e, Text)]
        assert "nested" in texts
        assert "Header line" not in texts

    def test_externalize_and_materialize(self, png):
        """Test moving inline images into a bundle and back."""
        doc = Document([Paragraph([Image.inline(png, alt="dot")])])
        keyed, bundle = doc.externalize_images()
        image = keyed.elements[0].elements[0]
        assert isinstance(image.source, KeyedImage)
        assert image.key == "image1.png"
        assert bundle.lookup("image1.png") == png

        inline = keyed.materialize_images(bundle)
        assert inline.elements[0].elements[0].source == InlineImage(png)

    def test_materialize_missing_image(self, image_doc):
        """Test that materializing an unknown key raises MissingImage."""
        with pytest.raises(MissingImage) as exc_info:
            image_doc.materialize_images(ImageBundle())
        assert exc_info.value.key == "pic.png"

    def test_without_images(self):
        """Test that only the named keyed images are removed."""
        doc = Document([Paragraph([Text("a"), Image.keyed("x.png"), Image.keyed("y.png")])])
        trimmed = doc.without_images(["x.png"])
        assert trimmed.elements == [Paragraph([Text("a"), Image.keyed("y.png")])]
        assert doc.image_keys() == ["x.png", "y.png"]

    def test_page_break_is_block(self):
        """Test that PageBreak is allowed at block level."""
        assert Document([PageBreak()]).elements == [PageBreak()]
