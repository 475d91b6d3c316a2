"""Length conversions between the model's millimeters and format units."""

MM_PER_INCH = 25.4
POINTS_PER_INCH = 72.0
TWIPS_PER_INCH = 1440
EMU_PER_INCH = 914400
MM_PER_SPREADSHEET_CHAR = 1.852  # one default-font character in Calibri 11


def mm_to_points(mm: float) -> float:
    return mm / MM_PER_INCH * POINTS_PER_INCH


def points_to_mm(points: float) -> float:
    return points / POINTS_PER_INCH * MM_PER_INCH


def mm_to_twips(mm: float) -> int:
    return int(round(mm / MM_PER_INCH * TWIPS_PER_INCH))


def twips_to_mm(twips: float) -> float:
    return twips / TWIPS_PER_INCH * MM_PER_INCH


def emu_to_mm(emu: int) -> float:
    return emu / EMU_PER_INCH * MM_PER_INCH


def mm_to_emu(mm: float) -> int:
    return int(round(mm / MM_PER_INCH * EMU_PER_INCH))


def chars_to_mm(chars: float) -> float:
    return chars * MM_PER_SPREADSHEET_CHAR


def mm_to_chars(mm: float) -> float:
    return mm / MM_PER_SPREADSHEET_CHAR


def round_mm(value: float) -> float:
    """Round to a tenth of a millimeter so widths survive unit round trips."""
    return round(value, 1)


def parse_length_mm(value: str):
    """
    Parse a CSS/ODF length ("12mm", "1.5cm", "0.5in", "20pt", "96px") to millimeters.

    Returns None when the value has no recognizable unit.
    """
    value = (value or "").strip().lower()
    factors = {
        "mm": 1.0,
        "cm": 10.0,
        "in": MM_PER_INCH,
        "pt": MM_PER_INCH / POINTS_PER_INCH,
        "px": MM_PER_INCH / 96.0,
    }
    for unit, factor in factors.items():
        if value.endswith(unit):
            try:
                return float(value[: -len(unit)]) * factor
            except ValueError:
                return None
    return None
