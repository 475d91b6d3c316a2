"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from docshift.config import Config
from docshift.converters.base import ConversionWarnings
from docshift.core import ConverterRegistry, DocumentConverter
from docshift.model import ImageBundle
from tests.fixtures.sample_documents import (
    SAMPLE_CSV,
    SAMPLE_HTML,
    SAMPLE_MARKDOWN,
    image_document,
    png_bytes,
    sample_document,
)


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark as integration test")
    config.addinivalue_line("markers", "network: mark as requiring network access")


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def registry():
    """Create the default converter registry."""
    return ConverterRegistry.default()


@pytest.fixture
def engine():
    """Create a document converter with default settings."""
    return DocumentConverter(Config())


@pytest.fixture
def warnings():
    """Create an empty warning collector."""
    return ConversionWarnings()


# ============================================================================
# Document Fixtures
# ============================================================================


@pytest.fixture
def document():
    """Create a document using every block variant."""
    return sample_document()


@pytest.fixture
def png():
    """Provide a tiny PNG image."""
    return png_bytes()


@pytest.fixture
def image_doc():
    """Create a document with one keyed image."""
    return image_document("pic.png")


@pytest.fixture
def image_bundle(png):
    """Create a bundle holding pic.png."""
    bundle = ImageBundle()
    bundle.insert("pic.png", png)
    return bundle


# ============================================================================
# Content Fixtures
# ============================================================================


@pytest.fixture
def markdown_source():
    """Sample Markdown report."""
    return SAMPLE_MARKDOWN.encode("utf-8")


@pytest.fixture
def html_source():
    """Sample HTML page with page geometry."""
    return SAMPLE_HTML.encode("utf-8")


@pytest.fixture
def csv_source():
    """Sample CSV table."""
    return SAMPLE_CSV.encode("utf-8")


# ============================================================================
# Temporary File Fixtures
# ============================================================================


@pytest.fixture
def temp_markdown_file(tmp_path, markdown_source):
    """Create a temporary Markdown file."""
    file_path = tmp_path / "report.md"
    file_path.write_bytes(markdown_source)
    return file_path


@pytest.fixture
def temp_image_dir(tmp_path, png):
    """Create a directory with a Markdown file referencing a local image."""
    (tmp_path / "img").mkdir()
    (tmp_path / "img" / "logo.png").write_bytes(png)
    (tmp_path / "page.md").write_text("# Page\n\n![Logo](img/logo.png)\n", encoding="utf-8")
    return tmp_path
