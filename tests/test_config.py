# tests/test_config.py
"""Tests for PioEditorConfig: Pydantic Settings single source of truth."""

from pathlib import Path

import pytest


class TestPioEditorConfig:
    """Test PioEditorConfig defaults and overrides."""

    def test_default_values(self, monkeypatch):
        """Config should have sensible defaults without any env vars."""
        from pioeditor.config import PioEditorConfig

        monkeypatch.delenv("PIOEDITOR_LOG_LEVEL", raising=False)
        cfg = PioEditorConfig()
        assert cfg.log_level == "INFO"
        assert cfg.schema_table_path is None
        assert cfg.reduced_table_path is None
        assert cfg.section_table_path is None
        assert cfg.indent == "  "
        assert cfg.array_tags == ["extension", "name", "identifier", "address", "telecom", "communication"]

    def test_home_dir_default(self, monkeypatch):
        """home_dir defaults to ~/.pioeditor and log_dir derives from it."""
        from pioeditor.config import PioEditorConfig

        monkeypatch.delenv("PIOEDITOR_HOME_DIR", raising=False)
        cfg = PioEditorConfig()
        assert cfg.home_dir == Path.home() / ".pioeditor"
        assert cfg.log_dir == cfg.home_dir / "logs"

    def test_env_override(self, monkeypatch, tmp_path):
        """Environment variables with PIOEDITOR_ prefix override defaults."""
        from pioeditor.config import PioEditorConfig

        monkeypatch.setenv("PIOEDITOR_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("PIOEDITOR_SCHEMA_TABLE_PATH", str(tmp_path / "full.yaml"))
        monkeypatch.setenv("PIOEDITOR_ARRAY_TAGS", '["name", "entry"]')
        cfg = PioEditorConfig()
        assert cfg.log_level == "DEBUG"
        assert cfg.schema_table_path == tmp_path / "full.yaml"
        assert cfg.array_tags == ["name", "entry"]

    def test_invalid_log_level(self, monkeypatch):
        """An unsupported log level fails validation."""
        from pydantic import ValidationError

        from pioeditor.config import PioEditorConfig

        monkeypatch.setenv("PIOEDITOR_LOG_LEVEL", "LOUD")
        with pytest.raises(ValidationError):
            PioEditorConfig()

    def test_get_config_is_cached(self):
        """get_config returns the same instance until the cache is cleared."""
        from pioeditor.config import get_config

        assert get_config() is get_config()
        get_config.cache_clear()
