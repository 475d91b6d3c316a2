"""
Transformer contract shared by every format adapter.

A transformer parses bytes of its format into a Document and generates
bytes of its format from a Document. Image-aware transformers can also
pull referenced images through an ImageLoader while parsing and push
images through an ImageSink while generating.
"""

import os
from typing import Optional

from ..errors import MissingImage, UnknownFormat
from ..formats import DocumentFormat
from ..model.document import Document
from ..model.images import (
    BundleImageLoader,
    BundleImageSink,
    ImageBundle,
    ImageLoader,
    ImageSink,
    NullImageLoader,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ConversionWarnings:
    """
    Collects content a generator dropped because its format cannot express it.

    Each entry is a (variant_name, reason) pair. Entries are also logged
    at DEBUG level; callers decide how to report them.
    """

    def __init__(self):
        self.entries: list[tuple[str, str]] = []

    def add(self, variant_name: str, reason: str) -> None:
        logger.debug("Dropped %s: %s", variant_name, reason)
        self.entries.append((variant_name, reason))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def variants(self) -> list[str]:
        return [variant for variant, _ in self.entries]


class Transformer:
    """Base class for format adapters."""

    FORMAT: DocumentFormat = None
    SUPPORTED_EXTENSIONS: set[str] = set()
    CAN_PARSE = True
    CAN_GENERATE = True

    @classmethod
    def can_handle(cls, file_path: str) -> bool:
        _, ext = os.path.splitext(file_path.lower())
        return ext in cls.SUPPORTED_EXTENSIONS

    def parse(self, data: bytes, images: Optional[ImageBundle] = None,
              warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        """Parse `data` into a Document plus the images it references by key."""
        raise UnknownFormat(f"{self.FORMAT.value} cannot be parsed")

    def generate(self, document: Document, images: Optional[ImageBundle] = None,
                 warnings: Optional[ConversionWarnings] = None) -> tuple[bytes, ImageBundle]:
        """Serialize `document`, returning the bytes plus any images kept outside them."""
        raise UnknownFormat(f"{self.FORMAT.value} cannot be generated")

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ImageAwareTransformer(Transformer):
    """
    Transformer whose format references images outside the document body.

    Subclasses implement parse_with_loader and generate_with_sink; parse and
    generate route through an in-memory loader/sink.
    """

    def parse(self, data: bytes, images: Optional[ImageBundle] = None,
              warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        return self.parse_with_loader(data, BundleImageLoader(images), warnings)

    def generate(self, document: Document, images: Optional[ImageBundle] = None,
                 warnings: Optional[ConversionWarnings] = None) -> tuple[bytes, ImageBundle]:
        sink = BundleImageSink()
        output = self.generate_with_sink(document, sink, images, warnings)
        return output, sink.bundle

    def parse_with_loader(self, data: bytes, loader: ImageLoader,
                          warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        raise UnknownFormat(f"{self.FORMAT.value} cannot be parsed")

    def generate_with_sink(self, document: Document, sink: ImageSink,
                           images: Optional[ImageBundle] = None,
                           warnings: Optional[ConversionWarnings] = None) -> bytes:
        raise UnknownFormat(f"{self.FORMAT.value} cannot be generated")


def report_chrome(document: Document, warnings: ConversionWarnings, format_name: str) -> None:
    """Warn about page header/footer content a format without page chrome drops."""
    if document.page_header:
        warnings.add("PageHeader", f"{format_name} has no page header")
    if document.page_footer:
        warnings.add("PageFooter", f"{format_name} has no page footer")


class KeyedImageTransformer(ImageAwareTransformer):
    """
    Transformer for formats that name images by key and keep the bytes
    beside the document (JSON, XML).

    Subclasses implement read_document and write_document. Parsing with a
    caller bundle requires every key to be present; parsing through a
    loader drops and reports the images it cannot resolve, so a parsed
    document never names a key missing from the returned bundle.
    """

    def read_document(self, data: bytes) -> Document:
        raise NotImplementedError

    def write_document(self, document: Document) -> bytes:
        raise NotImplementedError

    def parse(self, data: bytes, images: Optional[ImageBundle] = None,
              warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        if images is None:
            return self.parse_with_loader(data, NullImageLoader(), warnings)
        document = self.read_document(data)
        keys = document.image_keys()
        for key in keys:
            if key not in images:
                raise MissingImage(key)
        return document, images.subset(keys)

    def parse_with_loader(self, data: bytes, loader: ImageLoader,
                          warnings: Optional[ConversionWarnings] = None) -> tuple[Document, ImageBundle]:
        warnings = warnings if warnings is not None else ConversionWarnings()
        document = self.read_document(data)
        bundle = ImageBundle()
        missing = []
        for key in document.image_keys():
            try:
                bundle.insert(key, loader.load(key))
            except MissingImage as exc:
                warnings.add("Image", exc.description)
                missing.append(key)
        if missing:
            document = document.without_images(missing)
        return document, bundle

    def generate_with_sink(self, document: Document, sink: ImageSink,
                           images: Optional[ImageBundle] = None,
                           warnings: Optional[ConversionWarnings] = None) -> bytes:
        output = self.write_document(document)
        for key, data in (images or ImageBundle()).subset(document.image_keys()).items():
            sink.save(key, data)
        return output
