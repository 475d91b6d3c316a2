"""
Unit tests for the image bundle, loaders and sinks.
"""

from unittest.mock import MagicMock

import pytest
import requests

from docshift.errors import IOFailure, MissingImage
from docshift.model import (
    BundleImageLoader,
    BundleImageSink,
    DirectoryImageLoader,
    DirectoryImageSink,
    HttpImageLoader,
    ImageBundle,
    NullImageLoader,
    RecordingImageSink,
)
from docshift.model.images import decode_data_uri, encode_data_uri


class TestImageBundle:
    """Tests for ImageBundle."""

    def test_insert_and_lookup(self):
        """Test basic storage."""
        bundle = ImageBundle()
        bundle.insert("a.png", b"1")
        assert bundle.lookup("a.png") == b"1"
        assert "a.png" in bundle
        assert len(bundle) == 1

    def test_lookup_missing_raises(self):
        """Test that an unknown key raises MissingImage with the key."""
        with pytest.raises(MissingImage) as exc_info:
            ImageBundle().lookup("nope.png")
        assert exc_info.value.key == "nope.png"
        assert exc_info.value.kind == "MissingImage"

    def test_insert_rejects_non_bytes(self):
        """Test that only bytes can be stored."""
        with pytest.raises(TypeError):
            ImageBundle().insert("a", "text")

    def test_subset_keeps_requested_order(self):
        """Test subset filtering."""
        bundle = ImageBundle([("a", b"1"), ("b", b"2"), ("c", b"3")])
        subset = bundle.subset(["c", "a", "zzz"])
        assert subset.keys() == ["c", "a"]

    def test_copy_is_independent(self):
        """Test that copies do not share storage."""
        bundle = ImageBundle([("a", b"1")])
        copy = bundle.copy()
        copy.insert("b", b"2")
        assert "b" not in bundle
        assert copy != bundle


class TestDataUri:
    """Tests for data: URI helpers."""

    def test_round_trip(self, png):
        """Test encoding then decoding a data URI."""
        uri = encode_data_uri(png, "image/png")
        assert decode_data_uri(uri) == ("image/png", png)

    def test_plain_reference(self):
        """Test that ordinary paths are not data URIs."""
        assert decode_data_uri("images/a.png") is None


class TestLoaders:
    """Tests for image loaders."""

    def test_null_loader(self):
        """Test that the null loader resolves nothing."""
        with pytest.raises(MissingImage):
            NullImageLoader().load("a.png")

    def test_bundle_loader_normalizes_relative_paths(self):
        """Test that ./img.png resolves to img.png."""
        loader = BundleImageLoader(ImageBundle([("img.png", b"x")]))
        assert loader.load("./img.png") == b"x"

    def test_directory_loader(self, tmp_path):
        """Test loading from a directory."""
        (tmp_path / "a.png").write_bytes(b"data")
        loader = DirectoryImageLoader(str(tmp_path))
        assert loader.load("a.png") == b"data"
        with pytest.raises(MissingImage):
            loader.load("missing.png")

    def test_directory_loader_rejects_escape(self, tmp_path):
        """Test that references outside the root are refused."""
        loader = DirectoryImageLoader(str(tmp_path / "root"))
        with pytest.raises(MissingImage):
            loader.load("../secret.png")

    def test_http_loader_falls_back_for_local(self):
        """Test that non-URL references go to the fallback."""
        loader = HttpImageLoader(BundleImageLoader(ImageBundle([("a.png", b"x")])))
        assert loader.load("a.png") == b"x"

    def test_http_loader_fetches(self):
        """Test a successful fetch through the session."""
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=200, content=b"img")
        loader = HttpImageLoader(session=session, timeout=5)
        assert loader.load("https://example.com/a.png") == b"img"
        assert session.get.call_args.kwargs["timeout"] == 5

    def test_http_loader_404(self):
        """Test that a 404 becomes MissingImage."""
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=404)
        with pytest.raises(MissingImage):
            HttpImageLoader(session=session).load("https://example.com/a.png")

    def test_http_loader_network_error(self):
        """Test that transport errors become IOFailure."""
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("down")
        with pytest.raises(IOFailure):
            HttpImageLoader(session=session).load("http://example.com/a.png")


class TestSinks:
    """Tests for image sinks."""

    def test_bundle_sink(self):
        """Test collecting into a bundle."""
        sink = BundleImageSink()
        sink.save("a.png", b"1")
        assert sink.bundle.lookup("a.png") == b"1"

    def test_directory_sink_creates_dirs(self, tmp_path):
        """Test writing nested keys."""
        DirectoryImageSink(str(tmp_path)).save("img/a.png", b"1")
        assert (tmp_path / "img" / "a.png").read_bytes() == b"1"

    def test_directory_sink_rejects_escape(self, tmp_path):
        """Test that writes outside the root fail."""
        with pytest.raises(IOFailure):
            DirectoryImageSink(str(tmp_path / "out")).save("../x.png", b"1")

    def test_recording_sink(self):
        """Test that the recorder forwards and keeps a copy."""
        inner = BundleImageSink()
        recorder = RecordingImageSink(inner)
        recorder.save("a.png", b"1")
        assert inner.bundle.keys() == ["a.png"]
        assert recorder.bundle.keys() == ["a.png"]
