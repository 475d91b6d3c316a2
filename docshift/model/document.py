"""
The Document: ordered block elements plus page geometry.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from .elements import (
    Element,
    Hyperlink,
    Image,
    InlineImage,
    KeyedImage,
    Paragraph,
    STRUCTURAL_TYPES,
)
from .images import ImageBundle

DEFAULT_PAGE_WIDTH = 210.0  # A4, millimeters
DEFAULT_PAGE_HEIGHT = 297.0
DEFAULT_PAGE_INDENT = 10.0


@dataclass
class Document:
    """
    Format-independent representation of a document.

    Geometry is in millimeters. `page_header` and `page_footer` hold block
    elements repeated on every page by formats that have page chrome.
    """
    elements: list[Element] = field(default_factory=list)
    page_width: float = DEFAULT_PAGE_WIDTH
    page_height: float = DEFAULT_PAGE_HEIGHT
    left_page_indent: float = DEFAULT_PAGE_INDENT
    right_page_indent: float = DEFAULT_PAGE_INDENT
    top_page_indent: float = DEFAULT_PAGE_INDENT
    bottom_page_indent: float = DEFAULT_PAGE_INDENT
    page_header: list[Element] = field(default_factory=list)
    page_footer: list[Element] = field(default_factory=list)

    def __post_init__(self):
        if self.page_width <= 0 or self.page_height <= 0:
            raise ValueError(f"Page size must be positive, got {self.page_width}x{self.page_height}")
        for name in ("left_page_indent", "right_page_indent", "top_page_indent", "bottom_page_indent"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative, got {getattr(self, name)}")
        for section in (self.elements, self.page_header, self.page_footer):
            for element in section:
                _check_block(element)

    @classmethod
    def from_elements(cls, elements: list[Element], **geometry) -> "Document":
        return cls(list(elements), **geometry)

    @property
    def is_empty(self) -> bool:
        return not self.elements and not self.page_header and not self.page_footer

    @property
    def page_format(self) -> tuple[float, float]:
        """(width, height) of the page in millimeters."""
        return self.page_width, self.page_height

    @property
    def content_width(self) -> float:
        return max(self.page_width - self.left_page_indent - self.right_page_indent, 1.0)

    def iter_blocks(self) -> Iterator[Element]:
        """Yield top-level blocks in order."""
        return iter(self.elements)

    def iter_elements(self, include_chrome: bool = False) -> Iterator[Element]:
        """Yield every element depth-first, parent before children."""
        sections = [self.elements]
        if include_chrome:
            sections = [self.page_header, self.elements, self.page_footer]
        for section in sections:
            for element in section:
                yield from _walk(element)

    def image_keys(self) -> list[str]:
        """Keys of every keyed image, first occurrence order, chrome included."""
        keys = []
        for element in self.iter_elements(include_chrome=True):
            if isinstance(element, Image) and element.key is not None and element.key not in keys:
                keys.append(element.key)
        return keys

    def replace(self, **changes) -> "Document":
        return dataclasses.replace(self, **changes)

    def map_elements(self, fn: Callable[[Element], Element]) -> "Document":
        """Rebuild the tree bottom-up, replacing each element with fn(element)."""
        return self.replace(
            elements=[_rebuild(e, fn) for e in self.elements],
            page_header=[_rebuild(e, fn) for e in self.page_header],
            page_footer=[_rebuild(e, fn) for e in self.page_footer],
        )

    def materialize_images(self, bundle: ImageBundle) -> "Document":
        """Return a copy with every keyed image replaced by its inline bytes."""
        def inline(element: Element) -> Element:
            if isinstance(element, Image) and isinstance(element.source, KeyedImage):
                return dataclasses.replace(element, source=InlineImage(bundle.lookup(element.source.key)))
            return element

        return self.map_elements(inline)

    def without_images(self, keys) -> "Document":
        """Return a copy with the keyed images named in `keys` removed."""
        keys = set(keys)

        def drop(element: Element) -> Element:
            if isinstance(element, Paragraph):
                kept = [e for e in element.elements if not (isinstance(e, Image) and e.key in keys)]
                if len(kept) != len(element.elements):
                    return Paragraph(kept)
            return element

        return self.map_elements(drop)

    def externalize_images(self, namer: Optional[Callable[[int, Image], str]] = None) -> tuple["Document", ImageBundle]:
        """
        Move inline image bytes into a bundle.

        Returns the rewritten document and the bundle of extracted images.
        The default names are image1.png, image2.jpg, ...
        """
        bundle = ImageBundle()
        namer = namer or default_image_name

        def extract(element: Element) -> Element:
            if isinstance(element, Image) and isinstance(element.source, InlineImage):
                key = namer(len(bundle) + 1, element)
                bundle.insert(key, element.source.data)
                return dataclasses.replace(element, source=KeyedImage(key))
            return element

        return self.map_elements(extract), bundle


def default_image_name(index: int, image: Image) -> str:
    return f"image{index}.{image.image_type.extension}"


def _walk(element: Element) -> Iterator[Element]:
    yield element
    for child in element.iter_children():
        yield from _walk(child)


def _check_block(element: Element) -> None:
    if not isinstance(element, Element):
        raise ValueError(f"Document blocks must be Elements, got {type(element).__name__}")
    if isinstance(element, STRUCTURAL_TYPES):
        raise ValueError(f"{type(element).__name__} cannot appear at block level")
    if isinstance(element, (Hyperlink, Image)):
        raise ValueError(f"{type(element).__name__} must be wrapped in a Paragraph")


def _rebuild(element: Element, fn: Callable[[Element], Element]) -> Element:
    changes = {}
    for f in dataclasses.fields(element):
        value = getattr(element, f.name)
        if isinstance(value, Element):
            changes[f.name] = _rebuild(value, fn)
        elif isinstance(value, list) and value and isinstance(value[0], Element):
            changes[f.name] = [_rebuild(child, fn) for child in value]
    if changes:
        element = dataclasses.replace(element, **changes)
    return fn(element)
