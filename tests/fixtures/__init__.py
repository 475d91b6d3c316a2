# Test fixtures
from .sample_documents import (
    SAMPLE_CSV,
    SAMPLE_HTML,
    SAMPLE_MARKDOWN,
    gif_bytes,
    image_document,
    png_bytes,
    sample_document,
    sample_table,
)

__all__ = [
    "SAMPLE_CSV",
    "SAMPLE_HTML",
    "SAMPLE_MARKDOWN",
    "gif_bytes",
    "image_document",
    "png_bytes",
    "sample_document",
    "sample_table",
]
