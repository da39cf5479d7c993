"""Core Exceptions Module.

This module defines the exceptions raised by the fhirmodel data model.
Structural errors are raised immediately; validation findings are collected
as ValidationIssue objects and can be converted into these exceptions.
"""

from typing import Optional


class FHIRModelError(Exception):
    """Base exception for all fhirmodel errors."""

    default_code = "FHIR_MODEL_ERROR"

    def __init__(
        self, message: str, path: Optional[str] = None, code: Optional[str] = None
    ):
        """Initialize exception.

        Args:
            message: Error message
            path: Element path the error refers to, if any
            code: Optional machine-readable error code
        """
        super().__init__(message)
        self.message = message
        self.path = path
        self.code = code or self.default_code

    def __str__(self) -> str:
        """Render the message prefixed with the element path."""
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class DefinitionError(FHIRModelError):
    """Raised when type definition data is malformed."""

    default_code = "DEFINITION_ERROR"


class DuplicateTypeError(FHIRModelError):
    """Raised when a type name is registered twice."""

    default_code = "DUPLICATE_TYPE"


class UnknownTypeError(FHIRModelError):
    """Raised when a type name is not present in the registry."""

    default_code = "UNKNOWN_TYPE"


class UnknownFieldError(FHIRModelError):
    """Raised when a field or wire key is not declared by a type."""

    default_code = "UNKNOWN_FIELD"


class CardinalityError(FHIRModelError):
    """Raised when a value violates a field's min/max bounds or list shape."""

    default_code = "CARDINALITY"


class ChoiceConflictError(CardinalityError):
    """Raised when more than one variant of a choice field is populated."""

    default_code = "CHOICE_CONFLICT"


class TypeMismatchError(FHIRModelError):
    """Raised when a value is not of any of the field's declared types."""

    default_code = "TYPE_MISMATCH"


class InvalidValueError(FHIRModelError):
    """Raised when a primitive value does not match its lexical pattern."""

    default_code = "INVALID_VALUE"


class InvalidCodeError(FHIRModelError):
    """Raised when a code is outside a required value set binding."""

    default_code = "INVALID_CODE"


class BindingWarning(UserWarning):
    """Soft finding for codes outside extensible, preferred or example bindings."""

    def __init__(self, message: str, path: Optional[str] = None):
        """Initialize warning.

        Args:
            message: Warning message
            path: Element path the warning refers to
        """
        super().__init__(message)
        self.message = message
        self.path = path
