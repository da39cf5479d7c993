"""Runtime instances of FHIR types.

An Instance holds field values for one TypeDescriptor. Structural rules
(unknown fields, list shape, maximum cardinality, declared types) are
enforced when values are set; semantic rules (minimum cardinality, choice
exclusivity, bindings, lexical patterns) are left to the Validator so that
partially populated resources remain representable.

Primitive values may also carry an ``id`` and extensions. These live in a
sidecar ``Element`` instance per value (``get_primitive_element`` and
``set_primitive_element``), so that plain values stay plain Python values.
A primitive with an element but no value is allowed.
"""

from decimal import Decimal
from typing import Any, Iterator, List, Optional, Tuple, Union

from fhirmodel.core.exceptions import (
    CardinalityError,
    ChoiceConflictError,
    TypeMismatchError,
    UnknownFieldError,
)
from fhirmodel.descriptors.fields import FieldDescriptor
from fhirmodel.descriptors.registry import ELEMENT, RESOURCE, TypeRegistry, get_registry
from fhirmodel.descriptors.types import TypeDescriptor
from fhirmodel.model.choice import ChoiceValue

XHTML = "xhtml"


class Instance:
    """A value conforming to a TypeDescriptor.

    Fields are reachable as attributes using their Python names::

        event = new_instance("AuditEvent")
        event.action = "R"
        event.agent = [agent]

    Choice fields are read and written through their logical name with a
    ChoiceValue, or through the type-suffixed variant names
    (``valueString``). Variant writes do not clear sibling variants.
    """

    __slots__ = ("_descriptor", "_registry", "_values", "_elements")

    def __init__(
        self,
        descriptor: TypeDescriptor,
        registry: Optional[TypeRegistry] = None,
        **values: Any,
    ):
        """Initialize an instance.

        Args:
            descriptor: Type descriptor, shared and never copied
            registry: Registry used to resolve field types
            **values: Initial field values, set in the order given
        """
        object.__setattr__(self, "_descriptor", descriptor)
        if registry is None:
            registry = get_registry()
        object.__setattr__(self, "_registry", registry)
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "_elements", {})
        for name, value in values.items():
            set_value(self, name, value)

    @property
    def descriptor(self) -> TypeDescriptor:
        """The descriptor this instance conforms to."""
        return self._descriptor

    @property
    def registry(self) -> TypeRegistry:
        """The registry used to resolve field types."""
        return self._registry

    @property
    def type_name(self) -> str:
        """Qualified type name (``AuditEvent.Agent``)."""
        return self._descriptor.name

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return get_value(self, name)
        except UnknownFieldError as e:
            raise AttributeError(str(e)) from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in Instance.__slots__:
            raise AttributeError(f"{name} is read-only")
        set_value(self, name, value)

    def __delattr__(self, name: str) -> None:
        clear_value(self, name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Instance):
            return NotImplemented
        if self._descriptor is not other._descriptor:
            return False
        return (_comparable(self._values), self._elements) == (
            _comparable(other._values),
            other._elements,
        )

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        names = ", ".join(fd.name for fd, _ in self.populated_fields())
        return f"<Instance {self._descriptor.name} [{names}]>"

    def populated_fields(self) -> Iterator[Tuple[FieldDescriptor, Any]]:
        """Yield ``(field, stored)`` pairs in declaration order.

        ``stored`` is the raw stored value: a list for repeated fields, a
        ``{type_code: value}`` dict for choice fields, otherwise the value.
        Repeated primitive lists may hold None for items that only have an
        element.
        """
        for fd in self._descriptor.fields:
            if fd.name in self._values:
                yield fd, self._values[fd.name]

    def populated_entries(self) -> Iterator[Tuple[FieldDescriptor, Any, Any]]:
        """Yield ``(field, stored, elements)`` for fields with a value or element.

        ``elements`` mirrors ``stored``: an Element instance for single
        fields, a list aligned with the values for repeated fields, a
        ``{type_code: element}`` dict for choice fields, or None. ``stored``
        is None (``{}`` for choice fields) when only an element is present.
        """
        for fd in self._descriptor.fields:
            if fd.name in self._values or fd.name in self._elements:
                empty = {} if fd.is_choice else None
                yield fd, self._values.get(fd.name, empty), self._elements.get(fd.name)

    def choice_variants(self, name: str) -> List[ChoiceValue]:
        """Return every populated variant of a choice field, in set order."""
        fd = self._descriptor.field(name)
        if not fd.is_choice:
            raise TypeMismatchError(f"{fd.path} is not a choice field", path=fd.path)
        variants = self._values.get(fd.name, {})
        return [ChoiceValue(tc, v) for tc, v in variants.items()]

    def copy(self) -> "Instance":
        """Deep-copy the values; descriptors stay shared."""
        clone = Instance(self._descriptor, self._registry)
        object.__setattr__(clone, "_values", _copy_values(self._values))
        object.__setattr__(clone, "_elements", _copy_values(self._elements))
        return clone


def _copy_values(value: Any) -> Any:
    if isinstance(value, Instance):
        return value.copy()
    if isinstance(value, dict):
        return {k: _copy_values(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy_values(v) for v in value]
    return value


def _comparable(value: Any) -> Any:
    # Decimals compare by lexical form so that 1.0 and 1.00 stay distinct.
    if isinstance(value, Decimal):
        return ("decimal", str(value))
    if isinstance(value, dict):
        return {k: _comparable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_comparable(v) for v in value]
    return value


def new_instance(
    type_: Union[str, TypeDescriptor],
    registry: Optional[TypeRegistry] = None,
    **values: Any,
) -> Instance:
    """Create an instance of a type, optionally with initial values.

    Args:
        type_: Type name or descriptor
        registry: Registry to resolve names with; defaults to the shared one
        **values: Initial field values

    Returns:
        New instance with all other fields absent

    Raises:
        UnknownTypeError: If the type name is not registered
    """
    registry = registry if registry is not None else get_registry()
    if isinstance(type_, str):
        descriptor = registry.lookup(type_)
    else:
        descriptor = type_
    return Instance(descriptor, registry, **values)


def _resolve(
    instance: Instance, name: str
) -> Tuple[FieldDescriptor, Optional[str]]:
    descriptor = instance.descriptor
    if descriptor.has_field(name):
        return descriptor.field(name), None
    fd, variant = descriptor.resolve_variant_name(name)
    if fd is None:
        # raises UnknownFieldError
        descriptor.field(name)
    return fd, variant


def coerce_value(
    registry: TypeRegistry, fd: FieldDescriptor, type_code: str, value: Any
) -> Any:
    """Check a value against one declared type and normalise it.

    Args:
        registry: Registry used to resolve the type code
        fd: Field receiving the value
        type_code: One of ``fd.types``
        value: Candidate value

    Returns:
        The value as it will be stored

    Raises:
        TypeMismatchError: If the value does not conform to ``type_code``
    """
    if type_code == RESOURCE:
        if isinstance(value, Instance) and value.descriptor.is_resource:
            return value
        raise TypeMismatchError(
            f"expected a resource instance, got {_describe(value)}", path=fd.path
        )
    if registry.is_primitive(type_code):
        if isinstance(value, Instance):
            raise TypeMismatchError(
                f"expected {type_code} value, got {_describe(value)}", path=fd.path
            )
        return registry.primitive(type_code).coerce(value, fd.path)

    expected = registry.lookup(type_code)
    if isinstance(value, Instance) and value.descriptor is expected:
        return value
    raise TypeMismatchError(
        f"expected {type_code} instance, got {_describe(value)}", path=fd.path
    )


def _describe(value: Any) -> str:
    if isinstance(value, Instance):
        return f"{value.type_name} instance"
    return type(value).__name__


def _choice_from_value(fd: FieldDescriptor, value: Any) -> ChoiceValue:
    if isinstance(value, ChoiceValue):
        if value.type_code not in fd.types:
            raise TypeMismatchError(
                f"{value.type_code} is not one of {', '.join(fd.types)}", path=fd.path
            )
        return value
    if isinstance(value, Instance) and value.type_name in fd.types:
        return ChoiceValue(value.type_name, value)
    raise TypeMismatchError(
        f"choice field needs a ChoiceValue, got {_describe(value)}", path=fd.path
    )


def get_value(instance: Instance, name: str) -> Any:
    """Read a field.

    Args:
        instance: Instance to read
        name: Field name, logical choice name or choice variant name

    Returns:
        A list copy for repeated fields (empty when unset), a ChoiceValue
        for logical choice names, otherwise the value or None

    Raises:
        UnknownFieldError: If the name is not declared
        ChoiceConflictError: If a logical choice name has several variants
    """
    fd, variant = _resolve(instance, name)
    stored = instance._values.get(fd.name)

    if fd.is_choice:
        variants = stored or {}
        if variant is not None:
            return variants.get(variant)
        if not variants:
            return None
        if len(variants) > 1:
            raise ChoiceConflictError(
                f"{len(variants)} variants populated: "
                + ", ".join(fd.variant_wire_name(tc) for tc in variants),
                path=fd.path,
            )
        ((type_code, value),) = variants.items()
        return ChoiceValue(type_code, value)

    if fd.is_repeated:
        return list(stored or [])
    return stored


def set_value(instance: Instance, name: str, value: Any) -> None:
    """Write a field, enforcing shape, maximum cardinality and declared type.

    Setting ``None`` (or an empty list on a repeated field) clears the field.
    A single-valued field is overwritten. Repeated primitive lists may hold
    None for items that only carry an element; a replacement list of a
    different length drops the field's elements.

    Raises:
        UnknownFieldError: If the name is not declared
        CardinalityError: On list/scalar shape mismatch or more than ``max`` values
        TypeMismatchError: If a value is not of a declared type
    """
    fd, variant = _resolve(instance, name)
    values = instance._values
    registry = instance.registry

    if value is None:
        clear_value(instance, name)
        return

    if fd.is_choice:
        if variant is not None:
            coerced = coerce_value(registry, fd, variant, value)
            values.setdefault(fd.name, {})[variant] = coerced
        else:
            choice = _choice_from_value(fd, value)
            coerced = coerce_value(registry, fd, choice.type_code, choice.value)
            values[fd.name] = {choice.type_code: coerced}
            elements = instance._elements.get(fd.name, {})
            for type_code in [tc for tc in elements if tc != choice.type_code]:
                del elements[type_code]
            if not elements:
                instance._elements.pop(fd.name, None)
        return

    if fd.is_repeated:
        if not isinstance(value, (list, tuple)):
            raise CardinalityError(
                f"expected a list for {fd.cardinality} field, got {_describe(value)}",
                path=fd.path,
            )
        if fd.max is not None and len(value) > fd.max:
            raise CardinalityError(
                f"{len(value)} values exceed maximum of {fd.max}", path=fd.path
            )
        primitive = registry.is_primitive(fd.type_code)
        items = [
            None
            if item is None and primitive
            else coerce_value(registry, fd, fd.type_code, item)
            for item in value
        ]
        elements = instance._elements.get(fd.name)
        if elements is not None and len(elements) != len(items):
            del instance._elements[fd.name]
        if items:
            values[fd.name] = items
        else:
            values.pop(fd.name, None)
        return

    if isinstance(value, (list, tuple)):
        raise CardinalityError(
            f"expected a single value for {fd.cardinality} field, got a list",
            path=fd.path,
        )
    values[fd.name] = coerce_value(registry, fd, fd.type_code, value)


def append_value(instance: Instance, name: str, value: Any) -> None:
    """Add one value to a field.

    Raises:
        CardinalityError: If the field already holds ``max`` values
        TypeMismatchError: If the value is not of the declared type
    """
    fd, variant = _resolve(instance, name)
    if fd.is_choice:
        raise CardinalityError(
            "cannot append to a choice field; use set_value", path=fd.path
        )

    values = instance._values
    if not fd.is_repeated:
        if fd.name in values:
            raise CardinalityError("field already holds its single value", path=fd.path)
        values[fd.name] = coerce_value(instance.registry, fd, fd.type_code, value)
        return

    items = values.get(fd.name, [])
    if fd.max is not None and len(items) >= fd.max:
        raise CardinalityError(
            f"field already holds the maximum of {fd.max} values", path=fd.path
        )
    item = coerce_value(instance.registry, fd, fd.type_code, value)
    values[fd.name] = items + [item]
    if fd.name in instance._elements:
        instance._elements[fd.name] = instance._elements[fd.name] + [None]


def clear_value(instance: Instance, name: str) -> None:
    """Remove a field's value and element, or one choice variant's."""
    fd, variant = _resolve(instance, name)
    if fd.is_choice and variant is not None:
        for store in (instance._values, instance._elements):
            variants = store.get(fd.name, {})
            variants.pop(variant, None)
            if not variants:
                store.pop(fd.name, None)
        return
    instance._values.pop(fd.name, None)
    instance._elements.pop(fd.name, None)


def _element_type(instance: Instance, name: str) -> Tuple[FieldDescriptor, str]:
    fd, variant = _resolve(instance, name)
    if fd.is_choice and variant is None:
        raise TypeMismatchError(
            f"name a variant of {fd.wire_name}[x] to address its element", path=fd.path
        )
    type_code = variant or fd.type_code
    if (
        not instance.registry.is_primitive(type_code)
        or type_code == XHTML
        or instance.descriptor.is_attribute_field(fd)
    ):
        raise TypeMismatchError(
            f"{fd.path} cannot carry an id or extensions", path=fd.path
        )
    return fd, type_code


def get_primitive_element(instance: Instance, name: str) -> Any:
    """Read the ``id``/``extension`` element of a primitive field.

    Args:
        instance: Instance to read
        name: Primitive field name or choice variant name

    Returns:
        An Element instance or None; for repeated fields a list aligned
        with the values, holding None for items without an element

    Raises:
        TypeMismatchError: If the field is not an element-carrying primitive
    """
    fd, type_code = _element_type(instance, name)
    stored = instance._elements.get(fd.name)
    if fd.is_choice:
        return (stored or {}).get(type_code)
    if fd.is_repeated:
        if stored is None:
            return [None] * len(instance._values.get(fd.name, []))
        return list(stored)
    return stored


def set_primitive_element(instance: Instance, name: str, element: Any) -> None:
    """Attach an ``id``/``extension`` element to a primitive field.

    For repeated fields ``element`` is a list aligned with the values
    (None for items without an element). When the field has no values yet,
    value-less items are created for every element.

    Raises:
        TypeMismatchError: If the field cannot carry an element, or an
            element is not an ``Element`` instance
        CardinalityError: If a list does not match the number of values
    """
    fd, type_code = _element_type(instance, name)
    registry = instance.registry
    elements = instance._elements

    def check(item: Any) -> Any:
        if item is None:
            return None
        if isinstance(item, Instance) and item.descriptor is registry.lookup(ELEMENT):
            return item
        raise TypeMismatchError(
            f"expected {ELEMENT} instance, got {_describe(item)}", path=fd.path
        )

    if fd.is_choice:
        item = check(element)
        variants = elements.setdefault(fd.name, {})
        if item is None:
            variants.pop(type_code, None)
        else:
            variants[type_code] = item
        if not variants:
            del elements[fd.name]
        return

    if not fd.is_repeated:
        if isinstance(element, (list, tuple)):
            raise CardinalityError(
                f"expected a single element for {fd.cardinality} field, got a list",
                path=fd.path,
            )
        item = check(element)
        if item is None:
            elements.pop(fd.name, None)
        else:
            elements[fd.name] = item
        return

    if not isinstance(element, (list, tuple)):
        raise CardinalityError(
            f"expected a list of elements for {fd.cardinality} field", path=fd.path
        )
    items = [check(item) for item in element]
    current = instance._values.get(fd.name)
    if current is None:
        if fd.max is not None and len(items) > fd.max:
            raise CardinalityError(
                f"{len(items)} values exceed maximum of {fd.max}", path=fd.path
            )
        if any(item is not None for item in items):
            instance._values[fd.name] = [None] * len(items)
    elif len(items) != len(current):
        raise CardinalityError(
            f"{len(items)} elements for {len(current)} values", path=fd.path
        )
    if any(item is not None for item in items):
        elements[fd.name] = items
    else:
        elements.pop(fd.name, None)
