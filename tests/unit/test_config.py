"""
Unit tests for configuration loading.
"""

import pytest

from docshift.config import CONFIG_ENV_VAR, Config, load_config
from docshift.errors import IOFailure, MalformedInput


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self, monkeypatch):
        """Test that no path and no environment gives defaults."""
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        config = load_config()
        assert config == Config()
        assert config.server.port == 8080
        assert config.images.embed_in_html is False

    def test_partial_override(self, tmp_path):
        """Test that missing keys keep their defaults."""
        path = tmp_path / "docshift.yaml"
        path.write_text(
            "images:\n"
            "  embed_in_html: true\n"
            "  directory: /srv/images\n"
            "server:\n"
            "  port: 9000\n"
            "  unknown_key: ignored\n",
            encoding="utf-8",
        )
        config = load_config(str(path))
        assert config.images.embed_in_html is True
        assert config.images.directory == "/srv/images"
        assert config.images.timeout == 30
        assert config.server.port == 9000
        assert config.server.host == "127.0.0.1"
        assert config.logging.level == "WARNING"

    def test_environment_variable(self, tmp_path, monkeypatch):
        """Test that DOCSHIFT_CONFIG is used when no path is given."""
        path = tmp_path / "env.yaml"
        path.write_text("logging:\n  level: DEBUG\n", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().logging.level == "DEBUG"

    def test_empty_file(self, tmp_path):
        """Test that an empty file means defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == Config()

    def test_missing_file(self, tmp_path):
        """Test that a missing file is an IO failure."""
        with pytest.raises(IOFailure):
            load_config(str(tmp_path / "nope.yaml"))

    @pytest.mark.parametrize("content", ["images: [unclosed\n", "- just\n- a list\n"])
    def test_invalid_content(self, tmp_path, content):
        """Test that broken YAML or a non-mapping is malformed input."""
        path = tmp_path / "bad.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(MalformedInput):
            load_config(str(path))
