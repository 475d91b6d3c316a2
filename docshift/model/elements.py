"""
Element variants of the document model.

The set is closed: every block or inline item of a Document is one of the
dataclasses below. Structural invariants (list nesting, rectangular tables,
inline-only links and images) are checked at construction time so that no
Document built through these types can violate them.
"""

import io
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Union

from PIL import Image as PILImage, UnidentifiedImageError

DEFAULT_TEXT_SIZE = 8  # points
DEFAULT_COLUMN_WIDTH = 10.0  # millimeters
MIN_HEADER_LEVEL = 1
MAX_HEADER_LEVEL = 6
HEADER_SIZES = {1: 20, 2: 16, 3: 14, 4: 12, 5: 10, 6: 9}  # points, for formats that render headers


def clamp_level(level: int) -> int:
    """Clamp a header level into the supported 1..6 range."""
    return max(MIN_HEADER_LEVEL, min(MAX_HEADER_LEVEL, int(level)))


class ImageType(Enum):
    """Raster formats an Image may carry."""
    PNG = "Png"
    JPEG = "Jpeg"
    GIF = "Gif"

    @property
    def extension(self) -> str:
        return {"Png": "png", "Jpeg": "jpg", "Gif": "gif"}[self.value]

    @property
    def mime_type(self) -> str:
        return {"Png": "image/png", "Jpeg": "image/jpeg", "Gif": "image/gif"}[self.value]

    @classmethod
    def from_name(cls, name: str) -> "ImageType":
        """Resolve a wire name ("Png") or Pillow format name ("PNG")."""
        for member in cls:
            if member.value.lower() == str(name).lower():
                return member
        if str(name).upper() in ("JPG", "JPEG"):
            return cls.JPEG
        raise ValueError(f"Unknown image type: {name}")

    @classmethod
    def from_extension(cls, path: str) -> Optional["ImageType"]:
        """Guess the type from a file name or extension. Returns None if unknown."""
        ext = path.rsplit(".", 1)[-1].lower().split("?")[0]
        return {
            "png": cls.PNG,
            "jpg": cls.JPEG,
            "jpeg": cls.JPEG,
            "jpe": cls.JPEG,
            "gif": cls.GIF,
        }.get(ext)

    @classmethod
    def from_mime_type(cls, mime: str) -> Optional["ImageType"]:
        mime = mime.lower().strip()
        for member in cls:
            if member.mime_type == mime:
                return member
        if mime == "image/jpg":
            return cls.JPEG
        return None

    @classmethod
    def from_bytes(cls, data: bytes) -> Optional["ImageType"]:
        """Sniff the raster format with Pillow. Returns None if it is not PNG, JPEG or GIF."""
        try:
            with PILImage.open(io.BytesIO(data)) as img:
                fmt = img.format
        except (UnidentifiedImageError, OSError):
            return None
        return {"PNG": cls.PNG, "JPEG": cls.JPEG, "GIF": cls.GIF}.get(fmt or "")


@dataclass(frozen=True)
class InlineImage:
    """Image bytes carried directly by the element."""
    data: bytes

    def __repr__(self) -> str:
        return f"InlineImage(<{len(self.data)} bytes>)"


@dataclass(frozen=True)
class KeyedImage:
    """Reference to an entry of the accompanying image bundle."""
    key: str


ImageSource = Union[InlineImage, KeyedImage]


class Element:
    """Base class of every document element."""

    @property
    def variant_name(self) -> str:
        return type(self).__name__

    def iter_children(self) -> Iterator["Element"]:
        """Yield direct child elements in document order."""
        return iter(())


@dataclass
class Header(Element):
    level: int
    text: str

    def __post_init__(self):
        if not MIN_HEADER_LEVEL <= self.level <= MAX_HEADER_LEVEL:
            raise ValueError(f"Header level must be between 1 and 6, got {self.level}")


@dataclass
class Text(Element):
    text: str
    size: int = DEFAULT_TEXT_SIZE

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"Text size cannot be negative, got {self.size}")


@dataclass
class Hyperlink(Element):
    title: str
    url: str
    alt: str = ""
    size: int = DEFAULT_TEXT_SIZE

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"Hyperlink size cannot be negative, got {self.size}")


@dataclass
class Image(Element):
    source: ImageSource
    title: str = ""
    alt: str = ""
    image_type: ImageType = ImageType.PNG

    def __post_init__(self):
        if not isinstance(self.source, (InlineImage, KeyedImage)):
            raise ValueError(f"Image source must be InlineImage or KeyedImage, got {type(self.source).__name__}")

    @classmethod
    def inline(cls, data: bytes, title: str = "", alt: str = "",
               image_type: Optional[ImageType] = None) -> "Image":
        return cls(InlineImage(data), title, alt, image_type or ImageType.from_bytes(data) or ImageType.PNG)

    @classmethod
    def keyed(cls, key: str, title: str = "", alt: str = "",
              image_type: Optional[ImageType] = None) -> "Image":
        return cls(KeyedImage(key), title, alt, image_type or ImageType.from_extension(key) or ImageType.PNG)

    @property
    def key(self) -> Optional[str]:
        return self.source.key if isinstance(self.source, KeyedImage) else None

    @property
    def data(self) -> Optional[bytes]:
        return self.source.data if isinstance(self.source, InlineImage) else None


INLINE_TYPES = (Text, Hyperlink, Image)


@dataclass
class Paragraph(Element):
    elements: list[Element] = field(default_factory=list)

    def __post_init__(self):
        for child in self.elements:
            if not isinstance(child, INLINE_TYPES):
                raise ValueError(f"Paragraph may only hold inline elements, got {type(child).__name__}")

    def iter_children(self) -> Iterator[Element]:
        return iter(self.elements)


@dataclass
class ListItem(Element):
    element: Element

    def __post_init__(self):
        _check_wrapped(self, self.element)
        if isinstance(self.element, ListItem):
            raise ValueError("ListItem cannot directly wrap another ListItem")

    def iter_children(self) -> Iterator[Element]:
        yield self.element


@dataclass
class List(Element):
    elements: list[ListItem] = field(default_factory=list)
    numbered: bool = False

    def __post_init__(self):
        for child in self.elements:
            if not isinstance(child, ListItem):
                raise ValueError(f"List children must be ListItem, got {type(child).__name__}")

    def iter_children(self) -> Iterator[Element]:
        return iter(self.elements)


@dataclass
class TableHeader(Element):
    element: Element
    width: float = DEFAULT_COLUMN_WIDTH

    def __post_init__(self):
        _check_wrapped(self, self.element)
        if self.width < 0:
            raise ValueError(f"Column width cannot be negative, got {self.width}")

    def iter_children(self) -> Iterator[Element]:
        yield self.element


@dataclass
class TableCell(Element):
    element: Element

    def __post_init__(self):
        _check_wrapped(self, self.element)

    def iter_children(self) -> Iterator[Element]:
        yield self.element


@dataclass
class TableRow(Element):
    cells: list[TableCell] = field(default_factory=list)

    def __post_init__(self):
        for cell in self.cells:
            if not isinstance(cell, TableCell):
                raise ValueError(f"TableRow children must be TableCell, got {type(cell).__name__}")

    def iter_children(self) -> Iterator[Element]:
        return iter(self.cells)


@dataclass
class Table(Element):
    headers: list[TableHeader] = field(default_factory=list)
    rows: list[TableRow] = field(default_factory=list)

    def __post_init__(self):
        for header in self.headers:
            if not isinstance(header, TableHeader):
                raise ValueError(f"Table headers must be TableHeader, got {type(header).__name__}")
        for index, row in enumerate(self.rows):
            if not isinstance(row, TableRow):
                raise ValueError(f"Table rows must be TableRow, got {type(row).__name__}")
            if len(row.cells) != len(self.headers):
                raise ValueError(
                    f"Row {index} has {len(row.cells)} cells but the table has {len(self.headers)} headers"
                )

    @classmethod
    def padded(cls, headers: list[TableHeader], rows: list[list[TableCell]]) -> "Table":
        """
        Build a rectangular table from ragged input.

        Short rows are padded with empty cells; when a row is longer than
        the header row, empty headers are appended.
        """
        width = max([len(headers)] + [len(cells) for cells in rows])
        headers = list(headers) + [TableHeader(Text("")) for _ in range(width - len(headers))]
        table_rows = [
            TableRow(list(cells) + [TableCell(Text("")) for _ in range(width - len(cells))])
            for cells in rows
        ]
        return cls(headers, table_rows)

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def iter_children(self) -> Iterator[Element]:
        yield from self.headers
        yield from self.rows


@dataclass
class PageBreak(Element):
    pass


STRUCTURAL_TYPES = (ListItem, TableHeader, TableRow, TableCell)


def _check_wrapped(owner: Element, element: Element) -> None:
    if not isinstance(element, Element):
        raise ValueError(f"{type(owner).__name__} must wrap an Element, got {type(element).__name__}")
    if isinstance(element, (Hyperlink, Image)):
        raise ValueError(
            f"{type(element).__name__} must be wrapped in a Paragraph inside {type(owner).__name__}"
        )
    if isinstance(element, (TableHeader, TableRow, TableCell)):
        raise ValueError(f"{type(owner).__name__} cannot wrap {type(element).__name__}")


def element_text(element: Element) -> str:
    """Flatten an element to its visible text, ignoring formatting."""
    if isinstance(element, (Header, Text)):
        return element.text
    if isinstance(element, Hyperlink):
        return element.title or element.url
    if isinstance(element, Image):
        return element.alt or element.title
    if isinstance(element, Paragraph):
        return "".join(element_text(child) for child in element.elements)
    if isinstance(element, (ListItem, TableHeader, TableCell)):
        return element_text(element.element)
    if isinstance(element, List):
        return "\n".join(element_text(item) for item in element.elements)
    if isinstance(element, TableRow):
        return "\t".join(element_text(cell) for cell in element.cells)
    if isinstance(element, Table):
        lines = ["\t".join(element_text(h) for h in element.headers)]
        lines.extend(element_text(row) for row in element.rows)
        return "\n".join(lines)
    return ""
