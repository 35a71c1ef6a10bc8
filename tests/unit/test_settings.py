"""Tests for schemasync/lib/settings.py - environment and YAML settings."""

import pytest
from pydantic import ValidationError

from schemasync.lib.errors import ConfigurationError
from schemasync.lib.settings import EngineSettings, LoggingConfig, load_settings


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run in an empty directory with no SCHEMASYNC_ variables set."""
    monkeypatch.chdir(tmp_path)
    for name in ("SCHEMASYNC_MAX_WORKERS", "SCHEMASYNC_STORE_ROOT", "SCHEMASYNC_LOGGING__LEVEL"):
        monkeypatch.delenv(name, raising=False)


class TestLoggingConfig:
    """Tests for LoggingConfig validation."""

    def test_defaults(self):
        """INFO, console, no file."""
        config = LoggingConfig()
        assert (config.level, config.format, config.file) == ("INFO", "console", None)
        assert config.json_format is False

    def test_normalises_case(self):
        """Level is upper-cased and format lower-cased."""
        config = LoggingConfig(level="debug", format="JSON")
        assert config.level == "DEBUG"
        assert config.json_format is True

    def test_rejects_unknown_level(self):
        """Unknown levels fail validation."""
        with pytest.raises(ValidationError, match="level must be one of"):
            LoggingConfig(level="LOUD")


class TestEngineSettings:
    """Tests for environment-based settings."""

    def test_defaults(self):
        """Sequential runs, no store."""
        settings = EngineSettings()
        assert settings.max_workers == 1
        assert settings.store_root is None
        assert settings.store_retry_attempts == 3

    def test_environment(self, monkeypatch):
        """SCHEMASYNC_ variables override defaults, nested with __."""
        monkeypatch.setenv("SCHEMASYNC_MAX_WORKERS", "4")
        monkeypatch.setenv("SCHEMASYNC_LOGGING__LEVEL", "warning")
        settings = EngineSettings()
        assert settings.max_workers == 4
        assert settings.logging.level == "WARNING"

    def test_dotenv_file(self, tmp_path):
        """A .env file in the working directory is read."""
        (tmp_path / ".env").write_text("SCHEMASYNC_STORE_ROOT=./packages\n", encoding="utf-8")
        assert EngineSettings().store_root == "./packages"


class TestLoadSettings:
    """Tests for YAML settings files."""

    def test_no_file(self):
        """Without a path, environment settings are returned."""
        assert load_settings().max_workers == 1

    def test_yaml_overrides(self, tmp_path, monkeypatch):
        """YAML values win over the environment."""
        monkeypatch.setenv("SCHEMASYNC_MAX_WORKERS", "4")
        path = tmp_path / "settings.yaml"
        path.write_text(
            "logging:\n"
            "  level: DEBUG\n"
            "  format: json\n"
            "max_workers: 2\n"
            "message_templates:\n"
            "  minimum-constraint: '{value} too small'\n",
            encoding="utf-8",
        )
        settings = load_settings(path)
        assert settings.max_workers == 2
        assert settings.logging.json_format is True
        assert settings.message_templates == {"minimum-constraint": "{value} too small"}

    def test_empty_file(self, tmp_path):
        """An empty YAML file means defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_settings(path).max_workers == 1

    def test_missing_file(self, tmp_path):
        """A missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="Settings file not found"):
            load_settings(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Broken YAML is a configuration error."""
        path = tmp_path / "bad.yaml"
        path.write_text("max_workers: [1, 2\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path):
        """The top level must be a mapping."""
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_settings(path)

    def test_invalid_values(self, tmp_path):
        """Out-of-range values are reported with their messages."""
        path = tmp_path / "settings.yaml"
        path.write_text("max_workers: 0\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid settings") as exc_info:
            load_settings(path)
        assert exc_info.value.details["errors"]
