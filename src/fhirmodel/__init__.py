"""fhirmodel: descriptor-driven FHIR R4 data model.

Resources and datatypes are described by immutable descriptors loaded from
generated definition files. Instances are built against those descriptors,
serialized to and from hash, JSON and XML documents by one walker, and
checked by a Validator that collects findings.
"""

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
from fhirmodel.descriptors import (
    UNBOUNDED,
    Binding,
    BindingStrength,
    FieldDescriptor,
    TypeDescriptor,
    TypeKind,
    TypeRegistry,
    get_registry,
)
from fhirmodel.model import (
    ChoiceValue,
    Instance,
    append_value,
    clear_value,
    get_primitive_element,
    get_value,
    new_instance,
    set_primitive_element,
    set_value,
)
from fhirmodel.serialization import deserialize, deserialize_resource, serialize
from fhirmodel.validation import (
    ValidationIssue,
    ValidationReport,
    ValidationSeverity,
    Validator,
    validate,
)

__version__ = "1.0.0"

__all__ = [
    "UNBOUNDED",
    "Binding",
    "BindingStrength",
    "BindingWarning",
    "CardinalityError",
    "ChoiceConflictError",
    "ChoiceValue",
    "DefinitionError",
    "DuplicateTypeError",
    "FHIRModelError",
    "FieldDescriptor",
    "Instance",
    "InvalidCodeError",
    "InvalidValueError",
    "TypeDescriptor",
    "TypeKind",
    "TypeMismatchError",
    "TypeRegistry",
    "UnknownFieldError",
    "UnknownTypeError",
    "ValidationIssue",
    "ValidationReport",
    "ValidationSeverity",
    "Validator",
    "append_value",
    "clear_value",
    "deserialize",
    "deserialize_resource",
    "get_primitive_element",
    "get_registry",
    "get_value",
    "new_instance",
    "serialize",
    "set_primitive_element",
    "set_value",
    "validate",
]
