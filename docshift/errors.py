"""
Conversion error taxonomy.

Every failure surfaced by the engine is a ConversionError subclass. The
`kind` attribute carries the stable name that the CLI prints and the HTTP
endpoint returns.
"""

from typing import Optional


class ConversionError(Exception):
    """Base class for all conversion failures."""

    kind = "Internal"

    def __init__(self, description: Optional[str] = None):
        self.description = description
        super().__init__(description or self.kind)

    def __str__(self) -> str:
        if self.description:
            return f"{self.kind}: {self.description}"
        return self.kind


class UnknownFormat(ConversionError):
    """Raised when a format tag is not recognized or has no adapter for the direction."""

    kind = "UnknownFormat"


class MalformedInput(ConversionError):
    """Raised when input bytes cannot be parsed in the declared format."""

    kind = "MalformedInput"


class UnsupportedFeature(ConversionError):
    """Raised when a document cannot be expressed in the target format at all."""

    kind = "UnsupportedFeature"


class MissingImage(ConversionError):
    """Raised when a keyed image cannot be found in the bundle or via the loader."""

    kind = "MissingImage"

    def __init__(self, key: str, description: Optional[str] = None):
        self.key = key
        super().__init__(description or f"image not found: {key}")


class IOFailure(ConversionError):
    """Raised when a loader, sink or file operation fails."""

    kind = "IOFailure"


class InternalError(ConversionError):
    """Raised for invariant violations inside the engine."""

    kind = "Internal"
