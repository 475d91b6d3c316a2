"""Helpers for whitespace and newline normalization."""

import re

WHITESPACE_PATTERN = re.compile(r"\s+")
NEWLINE_PATTERN = re.compile(r"\r\n?")


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces, as HTML rendering does."""
    return WHITESPACE_PATTERN.sub(" ", text)


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return NEWLINE_PATTERN.sub("\n", text)


def decode_text(data: bytes) -> str:
    """Decode UTF-8 input, dropping a byte order mark. Raises UnicodeDecodeError."""
    if data.startswith(b"\xef\xbb\xbf"):
        data = data[3:]
    return data.decode("utf-8")
