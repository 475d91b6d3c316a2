"""
Docshift - Document Format Converter

Parses documents into a small format-neutral model (headers, paragraphs,
lists, tables, images, links, page breaks) and writes them back out in
another format. Images referenced by a document travel alongside it in
an ImageBundle and are fetched and stored through pluggable loaders and
sinks.
"""

from .converters.base import ConversionWarnings
from .core import ConverterRegistry, DocumentConverter, convert, generate, parse
from .errors import (
    ConversionError,
    InternalError,
    IOFailure,
    MalformedInput,
    MissingImage,
    UnknownFormat,
    UnsupportedFeature,
)
from .formats import DocumentFormat
from .model import *  # noqa: F401,F403
from .model import __all__ as _model_all

__version__ = "0.3.0"

__all__ = [
    "ConversionWarnings",
    "ConverterRegistry",
    "DocumentConverter",
    "DocumentFormat",
    "convert",
    "parse",
    "generate",
    "ConversionError",
    "InternalError",
    "IOFailure",
    "MalformedInput",
    "MissingImage",
    "UnknownFormat",
    "UnsupportedFeature",
] + list(_model_all)
