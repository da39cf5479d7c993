"""Tests for library settings."""

import pytest
from pydantic import ValidationError

from fhirmodel.config import Settings, get_settings


class TestSettings:
    """Test settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        """Test default values."""
        for name in [
            "FHIRMODEL_LOG_LEVEL",
            "FHIRMODEL_LOG_FORMAT",
            "FHIRMODEL_DEFINITIONS_PATH",
            "FHIRMODEL_IGNORE_UNKNOWN_FIELDS",
            "FHIRMODEL_JSON_INDENT",
            "FHIRMODEL_XML_PRETTY",
        ]:
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.log_level == "INFO"
        assert settings.log_format == "console"
        assert settings.definitions_path is None
        assert settings.ignore_unknown_fields is False
        assert settings.json_indent is None
        assert settings.xml_pretty is False

    def test_environment_prefix(self, monkeypatch):
        """Test FHIRMODEL_ environment variables override defaults."""
        monkeypatch.setenv("FHIRMODEL_LOG_LEVEL", "debug")
        monkeypatch.setenv("FHIRMODEL_XML_PRETTY", "true")

        settings = Settings(_env_file=None)

        assert settings.log_level == "DEBUG"
        assert settings.xml_pretty is True

    def test_invalid_log_level(self):
        """Test unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="VERBOSE")

    def test_invalid_log_format(self):
        """Test unknown renderers are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_format="xml")

    def test_definitions_path_must_exist(self, tmp_path):
        """Test the extra definitions directory must exist."""
        assert Settings(_env_file=None, definitions_path=tmp_path).definitions_path == (
            tmp_path
        )
        with pytest.raises(ValidationError):
            Settings(_env_file=None, definitions_path=tmp_path / "missing")

    def test_get_settings_cached(self):
        """Test get_settings returns one shared instance."""
        assert get_settings() is get_settings()
