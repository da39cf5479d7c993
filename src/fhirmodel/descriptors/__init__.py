"""Descriptors describing FHIR types and their fields."""

from fhirmodel.descriptors.fields import (
    UNBOUNDED,
    Binding,
    BindingStrength,
    FieldDescriptor,
    choice_suffix,
)
from fhirmodel.descriptors.loader import (
    bundled_definitions,
    load_definitions,
    load_type_file,
    parse_type,
)
from fhirmodel.descriptors.primitives import PrimitiveType, ValueType
from fhirmodel.descriptors.registry import (
    ELEMENT,
    RESOURCE,
    TypeRegistry,
    build_registry,
    get_registry,
)
from fhirmodel.descriptors.types import TypeDescriptor, TypeKind

__all__ = [
    "ELEMENT",
    "UNBOUNDED",
    "RESOURCE",
    "Binding",
    "BindingStrength",
    "FieldDescriptor",
    "PrimitiveType",
    "TypeDescriptor",
    "TypeKind",
    "TypeRegistry",
    "ValueType",
    "build_registry",
    "bundled_definitions",
    "choice_suffix",
    "get_registry",
    "load_definitions",
    "load_type_file",
    "parse_type",
]
