"""
Docshift Core Engine

The registry that maps format tags to adapters, the convert pipeline
(parse with the source adapter, generate with the target adapter), and
the DocumentConverter that drives conversions between files on disk.
"""

import os
from typing import Optional

from .config import Config
from .converters import (
    CsvConverter,
    DocxConverter,
    HtmlConverter,
    JsonConverter,
    MarkdownConverter,
    OdsConverter,
    PdfConverter,
    PlainTextConverter,
    RtfConverter,
    XlsConverter,
    XlsxConverter,
    XmlConverter,
)
from .converters.base import ConversionWarnings, ImageAwareTransformer, Transformer
from .errors import IOFailure, UnknownFormat
from .formats import DocumentFormat
from .model.document import Document
from .model.images import (
    DirectoryImageLoader,
    DirectoryImageSink,
    HttpImageLoader,
    ImageBundle,
    ImageLoader,
    ImageSink,
    RecordingImageSink,
)
from .utils.logger import get_logger

logger = get_logger(__name__)

PARSE = "parse"
GENERATE = "generate"


class ConverterRegistry:
    """Maps each DocumentFormat to the adapter instance that handles it."""

    def __init__(self):
        self._transformers: dict[DocumentFormat, Transformer] = {}

    def register(self, transformer: Transformer) -> None:
        if transformer.FORMAT is None:
            raise ValueError(f"{type(transformer).__name__} does not declare a FORMAT")
        self._transformers[transformer.FORMAT] = transformer

    def resolve(self, fmt, direction: str = PARSE) -> Transformer:
        """
        Return the adapter for `fmt` able to work in `direction`.

        Raises UnknownFormat when the tag is unknown, has no adapter, or the
        adapter cannot parse/generate.
        """
        if direction not in (PARSE, GENERATE):
            raise ValueError(f"direction must be {PARSE!r} or {GENERATE!r}, got {direction!r}")
        fmt = DocumentFormat.from_name(fmt)
        transformer = self._transformers.get(fmt)
        able = transformer is not None and (transformer.CAN_PARSE if direction == PARSE else transformer.CAN_GENERATE)
        if not able:
            raise UnknownFormat(f"no {direction} support for {fmt.value}")
        return transformer

    def formats(self, direction: str = PARSE) -> list[DocumentFormat]:
        attribute = "CAN_PARSE" if direction == PARSE else "CAN_GENERATE"
        return [fmt for fmt, t in self._transformers.items() if getattr(t, attribute)]

    def supported_formats(self) -> dict[str, dict[str, bool]]:
        """Return {format name: {"parse": bool, "generate": bool}} for every known tag."""
        table = {}
        for fmt in DocumentFormat:
            transformer = self._transformers.get(fmt)
            table[fmt.value] = {
                PARSE: bool(transformer and transformer.CAN_PARSE),
                GENERATE: bool(transformer and transformer.CAN_GENERATE),
            }
        return table

    def __contains__(self, fmt) -> bool:
        return DocumentFormat.from_name(fmt) in self._transformers

    @classmethod
    def default(cls, config: Optional[Config] = None) -> "ConverterRegistry":
        config = config or Config()
        registry = cls()
        for transformer in (
            PlainTextConverter(),
            MarkdownConverter(),
            HtmlConverter(embed_images=config.images.embed_in_html),
            JsonConverter(),
            XmlConverter(),
            CsvConverter(),
            RtfConverter(),
            DocxConverter(),
            PdfConverter(),
            XlsxConverter(),
            XlsConverter(),
            OdsConverter(),
        ):
            registry.register(transformer)
        return registry


DEFAULT_REGISTRY = ConverterRegistry.default()


def default_registry() -> ConverterRegistry:
    """The registry used when no registry is passed; built once at import."""
    return DEFAULT_REGISTRY


def parse(data: bytes, fmt, loader: Optional[ImageLoader] = None,
          images: Optional[ImageBundle] = None,
          warnings: Optional[ConversionWarnings] = None,
          registry: Optional[ConverterRegistry] = None) -> tuple[Document, ImageBundle]:
    """Parse bytes of `fmt` into a Document plus the images it references."""
    transformer = (registry or default_registry()).resolve(fmt, PARSE)
    if loader is not None and isinstance(transformer, ImageAwareTransformer):
        return transformer.parse_with_loader(data, loader, warnings)
    return transformer.parse(data, images, warnings)


def generate(document: Document, fmt, sink: Optional[ImageSink] = None,
             images: Optional[ImageBundle] = None,
             warnings: Optional[ConversionWarnings] = None,
             registry: Optional[ConverterRegistry] = None) -> tuple[bytes, ImageBundle]:
    """Serialize a Document as `fmt`, returning the bytes and any externalized images."""
    transformer = (registry or default_registry()).resolve(fmt, GENERATE)
    if sink is not None and isinstance(transformer, ImageAwareTransformer):
        recorder = RecordingImageSink(sink)
        output = transformer.generate_with_sink(document, recorder, images, warnings)
        return output, recorder.bundle
    return transformer.generate(document, images, warnings)


def convert(data: bytes, source_format, target_format,
            loader: Optional[ImageLoader] = None,
            sink: Optional[ImageSink] = None,
            images: Optional[ImageBundle] = None,
            warnings: Optional[ConversionWarnings] = None,
            registry: Optional[ConverterRegistry] = None) -> tuple[bytes, ImageBundle]:
    """
    Convert bytes from one format to another.

    Args:
        data: Source document bytes
        source_format: Format of `data` (DocumentFormat, tag name or extension)
        target_format: Format to produce
        loader: Resolves external image references while parsing
        sink: Receives images the target format keeps outside its bytes
        images: Images available to the parser when no loader is given
        warnings: Collects content the target format could not express
        registry: Adapter registry; the default one when omitted

    Returns:
        (output bytes, images written or externalized by the generator)
    """
    registry = registry or default_registry()
    source = DocumentFormat.from_name(source_format)
    target = DocumentFormat.from_name(target_format)
    parser = registry.resolve(source, PARSE)
    generator = registry.resolve(target, GENERATE)

    if loader is not None and isinstance(parser, ImageAwareTransformer):
        document, parsed_images = parser.parse_with_loader(data, loader, warnings)
    else:
        document, parsed_images = parser.parse(data, images, warnings)
    logger.debug("Parsed %s: %d blocks, %d images", source.value, len(document.elements), len(parsed_images))

    if sink is not None and isinstance(generator, ImageAwareTransformer):
        recorder = RecordingImageSink(sink)
        output = generator.generate_with_sink(document, recorder, parsed_images, warnings)
        return output, recorder.bundle
    return generator.generate(document, parsed_images, warnings)


class DocumentConverter:
    """
    Main conversion engine.

    Holds a registry and the configuration used to build image loaders
    and sinks for file conversions.
    """

    def __init__(self, config: Optional[Config] = None, registry: Optional[ConverterRegistry] = None):
        self.config = config or Config()
        self.registry = registry or ConverterRegistry.default(self.config)

    def convert(self, data: bytes, source_format, target_format,
                loader: Optional[ImageLoader] = None,
                sink: Optional[ImageSink] = None,
                images: Optional[ImageBundle] = None,
                warnings: Optional[ConversionWarnings] = None) -> tuple[bytes, ImageBundle]:
        return convert(data, source_format, target_format, loader, sink, images, warnings, self.registry)

    def loader_for(self, directory: str) -> ImageLoader:
        loader: ImageLoader = DirectoryImageLoader(self.config.images.directory or directory)
        if self.config.images.fetch_remote:
            loader = HttpImageLoader(loader, timeout=self.config.images.timeout)
        return loader

    def sink_for(self, directory: str) -> ImageSink:
        return DirectoryImageSink(self.config.images.directory or directory)

    def convert_file(self, input_path: str, output_path: str,
                     input_format=None, output_format=None,
                     warnings: Optional[ConversionWarnings] = None) -> ImageBundle:
        """
        Convert a file on disk.

        Formats default to the ones implied by the file extensions. Images are
        loaded relative to the input file and written next to the output file
        unless the config names an image directory.

        Returns:
            The images written alongside the output
        """
        source = DocumentFormat.from_name(input_format) if input_format else DocumentFormat.from_path(input_path)
        target = DocumentFormat.from_name(output_format) if output_format else DocumentFormat.from_path(output_path)

        try:
            with open(input_path, "rb") as f:
                data = f.read()
        except OSError as exc:
            raise IOFailure(f"Cannot read {input_path}: {exc}") from exc

        input_dir = os.path.dirname(os.path.abspath(input_path))
        output_dir = os.path.dirname(os.path.abspath(output_path))
        output, images = self.convert(
            data, source, target,
            loader=self.loader_for(input_dir),
            sink=self.sink_for(output_dir),
            warnings=warnings,
        )

        try:
            with open(output_path, "wb") as f:
                f.write(output)
        except OSError as exc:
            raise IOFailure(f"Cannot write {output_path}: {exc}") from exc
        logger.info("Converted %s (%s) -> %s (%s)", input_path, source.value, output_path, target.value)
        return images

    def supported_formats(self) -> dict[str, dict[str, bool]]:
        """Return a dictionary of all formats and the directions they support."""
        return self.registry.supported_formats()
