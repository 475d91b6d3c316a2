"""
Image bundle plus the pluggable loaders and sinks that move image bytes
between a conversion and the outside world.

The engine itself never touches the filesystem or the network; adapters
call a loader when a source references an external image and a sink when
an output format keeps images outside the document body.
"""

import base64
import os
import re
from typing import Iterable, Iterator, Optional
from urllib.parse import unquote_to_bytes

import requests

from ..errors import IOFailure, MissingImage
from ..utils.logger import get_logger

logger = get_logger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>[\w/+.-]*)(?P<params>(;[^,;]*)*?),(?P<payload>.*)$", re.S)


class ImageBundle:
    """Insertion-ordered mapping of logical image key to bytes."""

    def __init__(self, items: Optional[Iterable[tuple[str, bytes]]] = None):
        self._images: dict[str, bytes] = {}
        for key, data in items or ():
            self.insert(key, data)

    def insert(self, key: str, data: bytes) -> None:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"Image data for {key!r} must be bytes, got {type(data).__name__}")
        self._images[key] = bytes(data)

    def lookup(self, key: str) -> bytes:
        """Return the bytes for `key` or raise MissingImage."""
        try:
            return self._images[key]
        except KeyError:
            raise MissingImage(key) from None

    def get(self, key: str, default: Optional[bytes] = None) -> Optional[bytes]:
        return self._images.get(key, default)

    def keys(self) -> list[str]:
        return list(self._images)

    def items(self) -> list[tuple[str, bytes]]:
        return list(self._images.items())

    def copy(self) -> "ImageBundle":
        return ImageBundle(self._images.items())

    def subset(self, keys: Iterable[str]) -> "ImageBundle":
        """Bundle holding only the given keys that are present here, in the given order."""
        return ImageBundle((key, self._images[key]) for key in keys if key in self._images)

    def update(self, other: "ImageBundle") -> None:
        for key, data in other.items():
            self.insert(key, data)

    def __contains__(self, key: object) -> bool:
        return key in self._images

    def __len__(self) -> int:
        return len(self._images)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._images))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImageBundle):
            return NotImplemented
        return self.items() == other.items()

    def __repr__(self) -> str:
        return f"ImageBundle({self.keys()!r})"


def decode_data_uri(uri: str) -> Optional[tuple[str, bytes]]:
    """
    Decode a `data:` URI.

    Returns (mime_type, payload) or None when `uri` is not a data URI.
    Raises ValueError on an undecodable base64 payload.
    """
    match = DATA_URI_PATTERN.match(uri.strip())
    if not match:
        return None
    payload = match.group("payload")
    if ";base64" in match.group("params"):
        try:
            data = base64.b64decode(payload, validate=False)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"Invalid base64 payload in data URI: {exc}") from exc
    else:
        data = unquote_to_bytes(payload)
    return match.group("mime") or "application/octet-stream", data


def encode_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


# ============================================================================
# Loaders
# ============================================================================


class ImageLoader:
    """Resolves an external image reference to bytes."""

    def load(self, reference: str) -> bytes:
        raise NotImplementedError


class NullImageLoader(ImageLoader):
    """Loader that resolves nothing."""

    def load(self, reference: str) -> bytes:
        raise MissingImage(reference, f"no image loader configured for: {reference}")


class BundleImageLoader(ImageLoader):
    """Loader backed by an in-memory bundle."""

    def __init__(self, bundle: Optional[ImageBundle] = None):
        self.bundle = bundle if bundle is not None else ImageBundle()

    def load(self, reference: str) -> bytes:
        if reference in self.bundle:
            return self.bundle.lookup(reference)
        # Documents often reference "./img.png" while archives store "img.png"
        normalized = os.path.normpath(reference).replace(os.sep, "/").lstrip("/")
        return self.bundle.lookup(normalized)


class DirectoryImageLoader(ImageLoader):
    """Loads references relative to a root directory."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def load(self, reference: str) -> bytes:
        path = os.path.abspath(os.path.join(self.root, reference))
        if os.path.commonpath([self.root, path]) != self.root:
            raise MissingImage(reference, f"image path escapes {self.root}: {reference}")
        if not os.path.isfile(path):
            raise MissingImage(reference, f"image file not found: {path}")
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as exc:
            raise IOFailure(f"Failed to read image {path}: {exc}") from exc


class HttpImageLoader(ImageLoader):
    """
    Fetches http(s) references with requests.

    Anything that is not an absolute http(s) URL is handed to `fallback`.
    """

    USER_AGENT = "docshift image loader"

    def __init__(self, fallback: Optional[ImageLoader] = None, timeout: int = 30, session=None):
        self.fallback = fallback or NullImageLoader()
        self.timeout = timeout
        self._session = session

    @staticmethod
    def is_remote(reference: str) -> bool:
        return reference.lower().startswith(("http://", "https://"))

    def load(self, reference: str) -> bytes:
        if not self.is_remote(reference):
            return self.fallback.load(reference)

        session = self._session or requests
        logger.debug("Fetching image %s", reference)
        try:
            response = session.get(
                reference,
                headers={"User-Agent": self.USER_AGENT},
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise IOFailure(f"Failed to fetch image {reference}: {exc}") from exc
        if response.status_code == 404:
            raise MissingImage(reference, f"image not found (HTTP 404): {reference}")
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise IOFailure(f"Failed to fetch image {reference}: {exc}") from exc
        return response.content


# ============================================================================
# Sinks
# ============================================================================


class ImageSink:
    """Receives images that an output format stores outside the document body."""

    def save(self, key: str, data: bytes) -> None:
        raise NotImplementedError


class BundleImageSink(ImageSink):
    """Collects saved images into an ImageBundle."""

    def __init__(self):
        self.bundle = ImageBundle()

    def save(self, key: str, data: bytes) -> None:
        self.bundle.insert(key, data)


class DirectoryImageSink(ImageSink):
    """Writes images below a root directory, creating subdirectories as needed."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def save(self, key: str, data: bytes) -> None:
        path = os.path.abspath(os.path.join(self.root, key))
        if os.path.commonpath([self.root, path]) != self.root:
            raise IOFailure(f"Refusing to write image outside {self.root}: {key}")
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as exc:
            raise IOFailure(f"Failed to write image {path}: {exc}") from exc
        logger.debug("Wrote image %s (%d bytes)", path, len(data))


class RecordingImageSink(ImageSink):
    """Forwards to another sink and keeps a copy of everything saved."""

    def __init__(self, inner: ImageSink):
        self.inner = inner
        self.bundle = ImageBundle()

    def save(self, key: str, data: bytes) -> None:
        self.inner.save(key, data)
        self.bundle.insert(key, data)
