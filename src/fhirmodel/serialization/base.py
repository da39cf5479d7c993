"""Descriptor-driven serialization walker.

The walker visits fields in declaration order and delegates every
format-specific decision (node construction, primitive encoding, list
shape, resource wrapping) to a Format strategy. JSON, XML and the plain
hash representation all run through the same two functions,
``write_instance`` and ``read_instance``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Tuple

from fhirmodel.core.exceptions import (
    CardinalityError,
    ChoiceConflictError,
    TypeMismatchError,
    UnknownFieldError,
)
from fhirmodel.descriptors.fields import FieldDescriptor, choice_suffix
from fhirmodel.descriptors.primitives import PrimitiveType
from fhirmodel.descriptors.registry import ELEMENT, RESOURCE, TypeRegistry
from fhirmodel.descriptors.types import TypeDescriptor
from fhirmodel.model.choice import ChoiceValue
from fhirmodel.model.instance import XHTML, Instance, set_primitive_element, set_value
from fhirmodel.utils.logging import get_logger

logger = get_logger(__name__)

Entry = Tuple[str, List[Any], bool]

#: Key prefix of the sibling that carries a primitive's id and extensions.
ELEMENT_PREFIX = "_"


class Format(ABC):
    """Strategy for one document representation.

    Write side: the walker creates a node per instance, then hands each
    populated field to ``add_primitive`` or ``add_complex``. Read side: the
    walker asks for a node's ``entries`` and decodes each raw item with
    ``read_primitive``, ``read_object`` or ``read_resource``.
    """

    name: str = ""

    #: Whether repeated fields must appear as explicit lists in documents.
    explicit_lists: bool = True

    #: Whether primitive ids and extensions travel in ``_name`` sibling keys.
    element_siblings: bool = False

    # Writing

    @abstractmethod
    def new_node(self, descriptor: TypeDescriptor) -> Any:
        """Create an empty node for an instance of ``descriptor``."""

    @abstractmethod
    def add_primitive(
        self,
        node: Any,
        owner: TypeDescriptor,
        fd: FieldDescriptor,
        wire_name: str,
        primitive: PrimitiveType,
        values: List[Any],
        elements: List[Any],
        repeated: bool,
    ) -> None:
        """Attach primitive values of one field to ``node``.

        ``elements`` is aligned with ``values`` and holds the built node of
        each value's id/extension element, or None. A value is None when
        only its element is present.
        """

    @abstractmethod
    def add_complex(
        self,
        node: Any,
        wire_name: str,
        children: List[Any],
        repeated: bool,
        resources: bool = False,
    ) -> None:
        """Attach already-built child nodes of one field to ``node``.

        ``resources`` is set for fields typed ``Resource`` (``contained``).
        """

    @abstractmethod
    def finish(self, node: Any) -> Any:
        """Turn a finished root node into the output document."""

    # Reading

    @abstractmethod
    def parse(self, document: Any) -> Any:
        """Turn an input document into its root node."""

    @abstractmethod
    def resource_type(self, node: Any) -> Optional[str]:
        """Return the resource type named by a node, if any."""

    @abstractmethod
    def entries(self, node: Any, descriptor: TypeDescriptor) -> Iterator[Entry]:
        """Yield ``(wire_key, raw_items, is_list)`` for each key of a node."""

    @abstractmethod
    def read_primitive(
        self, raw: Any, primitive: PrimitiveType, path: str
    ) -> Tuple[Any, Any]:
        """Decode one raw primitive item into ``(value, element_node)``.

        Either part may be None; ``element_node`` is read as an ``Element``.
        """

    @abstractmethod
    def read_object(self, raw: Any, path: str) -> Any:
        """Return the node for one raw complex item."""

    @abstractmethod
    def read_resource(self, raw: Any, path: str) -> Tuple[str, Any]:
        """Return ``(resource_type, node)`` for one raw contained-resource item."""


def write_instance(fmt: Format, instance: Instance) -> Any:
    """Build the node for an instance and, recursively, its children.

    Raises:
        ChoiceConflictError: If a choice field has more than one variant
    """
    descriptor = instance.descriptor
    registry = instance.registry
    node = fmt.new_node(descriptor)

    for fd, stored, elements in instance.populated_entries():
        if fd.is_choice:
            elements = elements or {}
            type_codes = list(stored) + [tc for tc in elements if tc not in stored]
            if len(type_codes) > 1:
                raise ChoiceConflictError(
                    "cannot serialize more than one variant: "
                    + ", ".join(fd.variant_wire_name(tc) for tc in type_codes),
                    path=fd.path,
                )
            (type_code,) = type_codes
            wire_name = fd.variant_wire_name(type_code)
            values = [stored.get(type_code)]
            elements = [elements.get(type_code)]
        elif fd.is_repeated:
            type_code, wire_name = fd.type_code, fd.wire_name
            values = stored
            elements = elements or [None] * len(stored)
        else:
            type_code, wire_name = fd.type_code, fd.wire_name
            values = [stored]
            elements = [elements]
        _write_field(
            fmt,
            registry,
            node,
            descriptor,
            fd,
            wire_name,
            type_code,
            values,
            elements,
            fd.is_repeated and not fd.is_choice,
        )
    return node


def _write_field(
    fmt: Format,
    registry: TypeRegistry,
    node: Any,
    owner: TypeDescriptor,
    fd: FieldDescriptor,
    wire_name: str,
    type_code: str,
    values: List[Any],
    elements: List[Any],
    repeated: bool,
) -> None:
    if type_code == RESOURCE:
        children = [write_instance(fmt, value) for value in values]
        fmt.add_complex(node, wire_name, children, repeated, resources=True)
    elif registry.is_primitive(type_code):
        primitive = registry.primitive(type_code)
        element_nodes = [
            None if element is None else write_instance(fmt, element)
            for element in elements
        ]
        fmt.add_primitive(
            node, owner, fd, wire_name, primitive, values, element_nodes, repeated
        )
    else:
        children = [write_instance(fmt, value) for value in values]
        fmt.add_complex(node, wire_name, children, repeated)


def _carries_element(
    registry: TypeRegistry, owner: TypeDescriptor, fd: FieldDescriptor, type_code: str
) -> bool:
    """Whether values of ``fd`` (as ``type_code``) may have an id and extensions."""
    return (
        registry.is_primitive(type_code)
        and type_code != XHTML
        and not owner.is_attribute_field(fd)
    )


def read_instance(
    fmt: Format,
    registry: TypeRegistry,
    node: Any,
    descriptor: TypeDescriptor,
    strict: bool,
    path: Optional[str] = None,
) -> Instance:
    """Build an instance of ``descriptor`` from a parsed node.

    Args:
        fmt: Format the node came from
        registry: Registry used to resolve nested types
        node: Parsed node
        descriptor: Expected type
        strict: Raise on unknown keys instead of skipping them
        path: Element path of the node, for error messages

    Raises:
        UnknownFieldError: On an unknown key in strict mode
        CardinalityError: On list/scalar shape mismatch or too many values
        ChoiceConflictError: If a choice field appears with several variants
        TypeMismatchError: If a value does not fit its declared type
    """
    path = path or descriptor.name
    instance = Instance(descriptor, registry)
    pending: Dict[str, Dict[str, Any]] = {}

    for key, raws, is_list in fmt.entries(node, descriptor):
        sibling = fmt.element_siblings and key.startswith(ELEMENT_PREFIX)
        fd, variant = descriptor.resolve_wire_key(
            key[len(ELEMENT_PREFIX):] if sibling else key
        )
        type_code = None if fd is None else variant or fd.type_code
        if fd is None or (
            sibling and not _carries_element(registry, descriptor, fd, type_code)
        ):
            if strict:
                raise UnknownFieldError(f"unknown element {key!r}", path=f"{path}.{key}")
            logger.warning("unknown_field_ignored", key=key, path=path)
            continue

        field_path = f"{path}.{fd.name}"

        entry = pending.setdefault(
            fd.name,
            {"key": key, "type_code": type_code, "values": None, "elements": None},
        )
        if entry["type_code"] != type_code:
            raise ChoiceConflictError(
                f"both {entry['key']!r} and {key!r} present", path=field_path
            )
        if entry["elements" if sibling else "values"] is not None:
            raise CardinalityError(f"element {key!r} appears twice", path=field_path)

        if fd.is_repeated:
            if fmt.explicit_lists and not is_list:
                raise CardinalityError(
                    f"expected a list for {fd.cardinality} element {key!r}",
                    path=field_path,
                )
        elif is_list or len(raws) > 1:
            raise CardinalityError(
                f"element {key!r} allows a single value, got {len(raws)}",
                path=field_path,
            )

        if sibling:
            entry["elements"] = [
                _read_element(fmt, registry, raw, strict, field_path) for raw in raws
            ]
        elif registry.is_primitive(type_code):
            primitive = registry.primitive(type_code)
            decoded = [fmt.read_primitive(raw, primitive, field_path) for raw in raws]
            entry["values"] = [value for value, _ in decoded]
            if any(element is not None for _, element in decoded):
                entry["elements"] = [
                    _read_element(fmt, registry, element, strict, field_path)
                    for _, element in decoded
                ]
        else:
            entry["values"] = [
                _read_value(fmt, registry, raw, type_code, strict, field_path)
                for raw in raws
            ]

    for name, entry in pending.items():
        _store(instance, descriptor.field(name), entry, f"{path}.{name}")
    return instance


def _store(
    instance: Instance, fd: FieldDescriptor, entry: Dict[str, Any], path: str
) -> None:
    values = entry["values"]
    elements = entry["elements"]
    if values is None:
        values = [None] * len(elements)
    if elements is None:
        elements = [None] * len(values)
    elif len(elements) != len(values):
        raise CardinalityError(
            f"{len(values)} values but {len(elements)} id/extension entries",
            path=path,
        )
    if any(value is None and element is None for value, element in zip(values, elements)):
        raise TypeMismatchError(
            "primitive needs a value, an id or extensions", path=path
        )

    type_code = entry["type_code"]
    if fd.is_choice:
        name = f"{fd.name}{choice_suffix(type_code)}"
        if values[0] is not None:
            set_value(instance, fd.name, ChoiceValue(type_code, values[0]))
    else:
        name = fd.name
        if fd.is_repeated:
            set_value(instance, name, values)
        elif values[0] is not None:
            set_value(instance, name, values[0])

    if any(element is not None for element in elements):
        set_primitive_element(
            instance, name, elements if fd.is_repeated else elements[0]
        )


def _read_element(
    fmt: Format, registry: TypeRegistry, raw: Any, strict: bool, path: str
) -> Optional[Instance]:
    if raw is None:
        return None
    node = fmt.read_object(raw, path)
    element = read_instance(fmt, registry, node, registry.lookup(ELEMENT), strict, path)
    # Skipped unknown keys can leave nothing behind.
    return element if any(True for _ in element.populated_entries()) else None


def _read_value(
    fmt: Format,
    registry: TypeRegistry,
    raw: Any,
    type_code: str,
    strict: bool,
    path: str,
) -> Instance:
    if type_code == RESOURCE:
        type_name, child = fmt.read_resource(raw, path)
        descriptor = registry.lookup(type_name)
        if not descriptor.is_resource:
            raise TypeMismatchError(f"{type_name} is not a resource type", path=path)
        return read_instance(fmt, registry, child, descriptor, strict, path)
    child = fmt.read_object(raw, path)
    return read_instance(fmt, registry, child, registry.lookup(type_code), strict, path)


def read_root(
    fmt: Format,
    registry: TypeRegistry,
    document: Any,
    descriptor: Optional[TypeDescriptor],
    strict: bool,
) -> Instance:
    """Parse a document and build its root instance.

    When ``descriptor`` is None the type is taken from the document's
    resource type.

    Raises:
        TypeMismatchError: If the document's resource type disagrees with
            ``descriptor`` or is missing where one is required
        UnknownTypeError: If the document names an unregistered type
    """
    node = fmt.parse(document)
    declared = fmt.resource_type(node)

    if descriptor is None:
        if declared is None:
            raise TypeMismatchError("document does not declare a resource type")
        descriptor = registry.lookup(declared)
        if not descriptor.is_resource:
            raise TypeMismatchError(f"{declared} is not a resource type")
    elif descriptor.is_resource:
        if declared is None:
            raise TypeMismatchError(
                f"document does not declare a resource type, expected {descriptor.name}"
            )
        if declared != descriptor.name:
            raise TypeMismatchError(
                f"document is a {declared}, expected {descriptor.name}"
            )

    return read_instance(fmt, registry, node, descriptor, strict)
