"""Base configuration settings."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library settings.

    Values are read from ``FHIRMODEL_*`` environment variables or a local
    ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FHIRMODEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    # Definitions
    definitions_path: Optional[Path] = Field(
        default=None,
        description="Extra directory of type definition files loaded after the bundled ones",
    )

    # Parsing policy
    ignore_unknown_fields: bool = Field(
        default=False,
        description="Skip unrecognised keys while deserializing instead of failing",
    )

    # Output
    json_indent: Optional[int] = None
    xml_pretty: bool = False

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that the log level is one stdlib logging understands."""
        level = v.upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate the log renderer name."""
        fmt = v.lower()
        if fmt not in {"console", "json"}:
            raise ValueError(f"log_format must be 'console' or 'json', got {v!r}")
        return fmt

    @field_validator("definitions_path")
    @classmethod
    def validate_definitions_path(cls, v: Optional[Path]) -> Optional[Path]:
        """Ensure an extra definitions directory exists when configured."""
        if v is not None and not v.is_dir():
            raise ValueError(f"definitions_path is not a directory: {v}")
        return v
