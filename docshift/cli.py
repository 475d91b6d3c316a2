#!/usr/bin/env python3
"""
Docshift CLI

Command-line interface for converting documents between formats.

Usage:
    docshift --input-file report.md --output-file report.html
    docshift --input-file data.csv --output-file data.json
    docshift --input-file notes.txt --output-file notes.pdf --output-format pdf
    docshift --formats

Options:
    --input-file PATH      Source document
    --output-file PATH     Destination document
    --input-format F       Source format (default: from the input extension)
    --output-format F      Target format (default: from the output extension)
    --image-dir DIR        Where images are read from and written to
    --config PATH          YAML configuration file
    --formats              Show all supported formats
    -v, --verbose          Log progress to stderr
"""

import argparse
import sys

from .config import load_config
from .converters.base import ConversionWarnings
from .core import DocumentConverter, GENERATE, PARSE
from .errors import ConversionError
from .utils.logger import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docshift",
        description=(
            "Docshift - Document Format Converter\n\n"
            "Parses a document into a format-neutral model and writes it out\n"
            "in another format: plain text, Markdown, HTML, PDF, DOCX, RTF,\n"
            "JSON, XML, CSV, ODS and XLSX (XLS is read only)."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  docshift --input-file README.md --output-file README.html\n"
            "  docshift --input-file table.csv --output-file table.xlsx\n"
            "  docshift --input-file page.html --output-file page.md --image-dir ./img\n"
            "  docshift --input-file doc.json --output-file doc.out --output-format docx\n"
            "  docshift --formats                                   # list formats\n"
        ),
    )

    parser.add_argument(
        "--input-file",
        help="Source document",
    )
    parser.add_argument(
        "--output-file",
        help="Destination document",
    )
    parser.add_argument(
        "--input-format",
        default=None,
        help="Source format (default: inferred from the input file extension)",
    )
    parser.add_argument(
        "--output-format",
        default=None,
        help="Target format (default: inferred from the output file extension)",
    )
    parser.add_argument(
        "--image-dir",
        default=None,
        help="Directory images are loaded from and saved to (default: next to the files)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML configuration file (default: $DOCSHIFT_CONFIG)",
    )
    parser.add_argument(
        "--formats",
        action="store_true",
        help="Show all supported formats and exit",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress to stderr",
    )
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConversionError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    if args.image_dir:
        config.images.directory = args.image_dir
    configure_logging("DEBUG" if args.verbose else config.logging.level, config.logging.format)

    engine = DocumentConverter(config)

    if args.formats:
        _show_formats(engine)
        return 0

    if not args.input_file or not args.output_file:
        parser.print_help()
        print("\nError: --input-file and --output-file are required.", file=sys.stderr)
        sys.exit(1)

    warnings = ConversionWarnings()
    try:
        images = engine.convert_file(
            args.input_file,
            args.output_file,
            input_format=args.input_format,
            output_format=args.output_format,
            warnings=warnings,
        )
    except ConversionError as e:
        _show_warnings(warnings)
        print(str(e), file=sys.stderr)
        sys.exit(1)

    _show_warnings(warnings)
    print(f"[SAVED] {args.output_file}")
    for key in images.keys():
        print(f"[IMAGE] {key}")
    return 0


def _show_warnings(warnings: ConversionWarnings) -> None:
    for variant, reason in warnings:
        print(f"[WARN] {variant}: {reason}", file=sys.stderr)


def _show_formats(engine: DocumentConverter):
    """Display all supported formats."""
    print("\nSupported Formats:")
    print("-" * 40)
    print(f"  {'Format':<12}{'Parse':<8}{'Generate':<8}")
    for name, directions in engine.supported_formats().items():
        parse = "yes" if directions[PARSE] else "-"
        generate = "yes" if directions[GENERATE] else "-"
        print(f"  {name:<12}{parse:<8}{generate:<8}")
    print()


if __name__ == "__main__":
    sys.exit(main())
