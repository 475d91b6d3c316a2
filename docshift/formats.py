"""
Format tags known to the engine.
"""

import os
from enum import Enum

from .errors import UnknownFormat


class DocumentFormat(Enum):
    """Closed set of document formats."""
    PLAIN_TEXT = "PlainText"
    MARKDOWN = "Markdown"
    HTML = "Html"
    PDF = "Pdf"
    DOCX = "Docx"
    RTF = "Rtf"
    JSON = "Json"
    XML = "Xml"
    CSV = "Csv"
    ODS = "Ods"
    XLSX = "Xlsx"
    XLS = "Xls"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @classmethod
    def from_name(cls, value) -> "DocumentFormat":
        """
        Resolve a format from an enum member, a tag name ("Markdown"),
        or a file extension ("md", ".htm"). Case-insensitive.
        """
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower().lstrip(".")
        for member in cls:
            if member.value.lower() == name or member.name.lower() == name:
                return member
        if name in _ALIASES:
            return _ALIASES[name]
        raise UnknownFormat(f"unknown format: {value}")

    @classmethod
    def from_path(cls, path: str) -> "DocumentFormat":
        _, ext = os.path.splitext(path.lower())
        if not ext:
            raise UnknownFormat(f"cannot infer format from file name: {path}")
        return cls.from_name(ext)


_EXTENSIONS = {
    DocumentFormat.PLAIN_TEXT: "txt",
    DocumentFormat.MARKDOWN: "md",
    DocumentFormat.HTML: "html",
    DocumentFormat.PDF: "pdf",
    DocumentFormat.DOCX: "docx",
    DocumentFormat.RTF: "rtf",
    DocumentFormat.JSON: "json",
    DocumentFormat.XML: "xml",
    DocumentFormat.CSV: "csv",
    DocumentFormat.ODS: "ods",
    DocumentFormat.XLSX: "xlsx",
    DocumentFormat.XLS: "xls",
}

_MIME_TYPES = {
    DocumentFormat.PLAIN_TEXT: "text/plain; charset=utf-8",
    DocumentFormat.MARKDOWN: "text/markdown; charset=utf-8",
    DocumentFormat.HTML: "text/html; charset=utf-8",
    DocumentFormat.PDF: "application/pdf",
    DocumentFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    DocumentFormat.RTF: "application/rtf",
    DocumentFormat.JSON: "application/json",
    DocumentFormat.XML: "application/xml",
    DocumentFormat.CSV: "text/csv; charset=utf-8",
    DocumentFormat.ODS: "application/vnd.oasis.opendocument.spreadsheet",
    DocumentFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    DocumentFormat.XLS: "application/vnd.ms-excel",
}

_ALIASES = {
    "txt": DocumentFormat.PLAIN_TEXT,
    "text": DocumentFormat.PLAIN_TEXT,
    "plain": DocumentFormat.PLAIN_TEXT,
    "md": DocumentFormat.MARKDOWN,
    "markdown": DocumentFormat.MARKDOWN,
    "htm": DocumentFormat.HTML,
}
