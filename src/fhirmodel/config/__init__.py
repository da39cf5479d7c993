"""Configuration module for fhirmodel."""

from fhirmodel.config.base import Settings
from fhirmodel.config.loader import get_settings

__all__ = ["Settings", "get_settings"]
