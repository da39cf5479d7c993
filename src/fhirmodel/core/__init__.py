"""Core exceptions shared across fhirmodel."""

from fhirmodel.core.exceptions import (
    BindingWarning,
    CardinalityError,
    ChoiceConflictError,
    DefinitionError,
    DuplicateTypeError,
    FHIRModelError,
    InvalidCodeError,
    InvalidValueError,
    TypeMismatchError,
    UnknownFieldError,
    UnknownTypeError,
)

__all__ = [
    "BindingWarning",
    "CardinalityError",
    "ChoiceConflictError",
    "DefinitionError",
    "DuplicateTypeError",
    "FHIRModelError",
    "InvalidCodeError",
    "InvalidValueError",
    "TypeMismatchError",
    "UnknownFieldError",
    "UnknownTypeError",
]
