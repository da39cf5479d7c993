"""Validation of instances against their descriptors."""

from fhirmodel.validation.issues import (
    ValidationIssue,
    ValidationReport,
    ValidationSeverity,
    ValidationType,
)
from fhirmodel.validation.validator import Validator, validate

__all__ = [
    "ValidationIssue",
    "ValidationReport",
    "ValidationSeverity",
    "ValidationType",
    "Validator",
    "validate",
]
