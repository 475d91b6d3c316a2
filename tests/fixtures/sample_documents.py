"""
Sample documents and source texts for use in tests.
"""

import io

from PIL import Image as PILImage

from docshift.model import (
    Document,
    Header,
    Hyperlink,
    Image,
    List,
    ListItem,
    PageBreak,
    Paragraph,
    Table,
    TableCell,
    TableHeader,
    TableRow,
    Text,
)


SAMPLE_MARKDOWN = """# Quarterly Report

Revenue grew in every region.

## Highlights

- New office opened
- Hiring on track
  - Engineering
  - Sales
- Costs flat

1. Review budget
2. Approve plan

| Region | Revenue |
| --- | --- |
| North | 120 |
| South | 95 |

See [the dashboard](https://example.com/dash "Live numbers") for details.
"""

SAMPLE_HTML = """<!DOCTYPE html>
<html>
<head><title>Report</title>
<style>@page { size: 148mm 210mm; margin: 12mm 15mm 12mm 15mm; }</style>
</head>
<body>
<h1>Report</h1>
<p>First <a href="https://example.com" title="Example">link</a> here.</p>
<ul><li>one</li><li>two<ul><li>two.a</li></ul></li></ul>
<table>
<tr><th style="width: 30mm">Name</th><th>Value</th></tr>
<tr><td>alpha</td><td>1</td></tr>
<tr><td>beta</td></tr>
</table>
<div style="page-break-after: always"></div>
<p>After the break.</p>
</body>
</html>
"""

SAMPLE_CSV = "a,b\n1,2\n3,4\n"


def png_bytes(width: int = 4, height: int = 3, color=(200, 30, 30)) -> bytes:
    """Encode a tiny solid PNG."""
    buffer = io.BytesIO()
    PILImage.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def gif_bytes(width: int = 4, height: int = 3) -> bytes:
    buffer = io.BytesIO()
    PILImage.new("P", (width, height), 1).save(buffer, format="GIF")
    return buffer.getvalue()


def sample_table() -> Table:
    return Table(
        [TableHeader(Text("Name"), 40.0), TableHeader(Text("Score"), 20.0)],
        [
            TableRow([TableCell(Text("Ada")), TableCell(Text("10"))]),
            TableRow([TableCell(Text("Linus")), TableCell(Text("7"))]),
        ],
    )


def sample_document() -> Document:
    """A document touching every block variant."""
    return Document(
        [
            Header(1, "Title"),
            Paragraph([
                Text("Read "),
                Hyperlink("the docs", "https://example.com/docs", "Docs", 8),
                Text(" first."),
            ]),
            List([
                ListItem(Text("first")),
                ListItem(Text("second")),
                ListItem(List([ListItem(Text("nested"))], numbered=True)),
            ]),
            sample_table(),
            PageBreak(),
            Paragraph([Text("Second page", 12)]),
        ],
        page_header=[Text("Header line")],
        page_footer=[Text("Footer line")],
    )


def image_document(key: str = "pic.png") -> Document:
    return Document([Paragraph([Image.keyed(key, title="Picture", alt="A picture")])])
