from .base import ConversionWarnings, ImageAwareTransformer, Transformer
from .text_converter import PlainTextConverter
from .markdown_converter import MarkdownConverter
from .html_converter import HtmlConverter
from .json_converter import JsonConverter
from .xml_converter import XmlConverter
from .csv_converter import CsvConverter
from .rtf_converter import RtfConverter
from .docx_converter import DocxConverter
from .pdf_converter import PdfConverter
from .xlsx_converter import XlsxConverter
from .xls_converter import XlsConverter
from .ods_converter import OdsConverter

__all__ = [
    "ConversionWarnings",
    "Transformer",
    "ImageAwareTransformer",
    "PlainTextConverter",
    "MarkdownConverter",
    "HtmlConverter",
    "JsonConverter",
    "XmlConverter",
    "CsvConverter",
    "RtfConverter",
    "DocxConverter",
    "PdfConverter",
    "XlsxConverter",
    "XlsConverter",
    "OdsConverter",
]
