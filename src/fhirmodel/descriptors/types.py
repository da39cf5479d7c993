"""Type descriptors for resources, complex datatypes and backbone elements."""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from fhirmodel.core.exceptions import UnknownFieldError
from fhirmodel.descriptors.fields import FieldDescriptor


class TypeKind(str, Enum):
    """Kinds of composite FHIR type."""

    RESOURCE = "resource"
    COMPLEX_TYPE = "complex-type"
    BACKBONE_ELEMENT = "backbone-element"


class TypeDescriptor(BaseModel):
    """Ordered set of field descriptors making up one FHIR type.

    Nested backbone element types are carried in ``children`` and are
    registered alongside their parent under dotted names such as
    ``AuditEvent.Agent``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    kind: TypeKind
    fields: Tuple[FieldDescriptor, ...]
    children: Tuple["TypeDescriptor", ...] = Field(default=())

    _by_name: Dict[str, FieldDescriptor] = PrivateAttr(default_factory=dict)
    _by_wire_name: Dict[str, FieldDescriptor] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def check_unique_fields(self) -> "TypeDescriptor":
        """Reject duplicate field names, wire names or nested type names."""
        seen_names = set()
        seen_wire = set()
        for fd in self.fields:
            if fd.name in seen_names:
                raise ValueError(f"{self.name}: duplicate field name {fd.name!r}")
            if fd.wire_name in seen_wire:
                raise ValueError(f"{self.name}: duplicate wire name {fd.wire_name!r}")
            seen_names.add(fd.name)
            seen_wire.add(fd.wire_name)
        seen_children = set()
        for child in self.children:
            if child.name in seen_children:
                raise ValueError(f"{self.name}: duplicate nested type {child.name!r}")
            seen_children.add(child.name)
        return self

    def model_post_init(self, __context: Any) -> None:
        """Build lookup indexes."""
        self._by_name = {fd.name: fd for fd in self.fields}
        self._by_wire_name = {fd.wire_name: fd for fd in self.fields}

    def __hash__(self) -> int:
        return hash((self.name, self.kind))

    def __eq__(self, other: object) -> bool:
        return self is other

    @property
    def is_resource(self) -> bool:
        """Whether this type is a top-level resource."""
        return self.kind is TypeKind.RESOURCE

    @property
    def field_names(self) -> List[str]:
        """Field names in declaration order."""
        return [fd.name for fd in self.fields]

    def has_field(self, name: str) -> bool:
        """Check whether a field with this Python name exists."""
        return name in self._by_name

    def field(self, name: str) -> FieldDescriptor:
        """Look up a field by Python name.

        Raises:
            UnknownFieldError: If the type declares no such field
        """
        try:
            return self._by_name[name]
        except KeyError:
            raise UnknownFieldError(
                f"{self.name} has no field {name!r}", path=f"{self.name}.{name}"
            ) from None

    def field_by_wire_name(self, wire_name: str) -> Optional[FieldDescriptor]:
        """Look up a field by its wire name, without choice resolution."""
        return self._by_wire_name.get(wire_name)

    def resolve_wire_key(
        self, key: str
    ) -> Tuple[Optional[FieldDescriptor], Optional[str]]:
        """Map a document key to a field and, for choice variants, a type code.

        Args:
            key: Key as it appears in a JSON object or XML element name

        Returns:
            ``(field, variant_type)``; ``(None, None)`` when nothing matches
        """
        fd = self._by_wire_name.get(key)
        if fd is not None and not fd.is_choice:
            return fd, None
        for candidate in self.fields:
            if candidate.is_choice:
                variant = candidate.variant_type(key)
                if variant is not None:
                    return candidate, variant
        return None, None

    def resolve_variant_name(
        self, name: str
    ) -> Tuple[Optional[FieldDescriptor], Optional[str]]:
        """Map a type-suffixed Python name (``valueString``) to a choice field."""
        for candidate in self.fields:
            if candidate.is_choice and name.startswith(candidate.name):
                suffix = name[len(candidate.name):]
                for type_code in candidate.types:
                    if type_code[:1].upper() + type_code[1:] == suffix:
                        return candidate, type_code
        return None, None

    def is_attribute_field(self, fd: FieldDescriptor) -> bool:
        """Whether a field is an XML attribute rather than an element.

        Element ids and ``Extension.url`` are plain strings: they cannot
        carry an id or extensions of their own.
        """
        if fd.name == "id" and not self.is_resource:
            return True
        return self.name == "Extension" and fd.name == "url"

    def walk(self) -> Iterator["TypeDescriptor"]:
        """Yield this descriptor and all nested child descriptors."""
        yield self
        for child in self.children:
            yield from child.walk()


TypeDescriptor.model_rebuild()
