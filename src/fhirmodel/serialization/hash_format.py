"""Plain ordered-map ("hash") representation.

Nodes are ``dict`` objects keyed by wire name. Resources carry their type
under ``resourceType`` as the first key. Primitive values keep their
Python representation, so decimals stay ``Decimal``.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from fhirmodel.core.exceptions import TypeMismatchError
from fhirmodel.descriptors.fields import FieldDescriptor
from fhirmodel.descriptors.primitives import PrimitiveType
from fhirmodel.descriptors.types import TypeDescriptor
from fhirmodel.serialization.base import ELEMENT_PREFIX, Entry, Format

RESOURCE_TYPE = "resourceType"


class HashFormat(Format):
    """Ordered ``dict`` trees mirroring the FHIR JSON structure."""

    name = "hash"
    explicit_lists = True
    element_siblings = True

    def new_node(self, descriptor: TypeDescriptor) -> Dict[str, Any]:
        node: Dict[str, Any] = {}
        if descriptor.is_resource:
            node[RESOURCE_TYPE] = descriptor.name
        return node

    def add_primitive(
        self,
        node: Dict[str, Any],
        owner: TypeDescriptor,
        fd: FieldDescriptor,
        wire_name: str,
        primitive: PrimitiveType,
        values: List[Any],
        elements: List[Any],
        repeated: bool,
    ) -> None:
        # Lists keep null placeholders so values and elements stay aligned.
        if any(value is not None for value in values):
            node[wire_name] = list(values) if repeated else values[0]
        if any(element is not None for element in elements):
            node[ELEMENT_PREFIX + wire_name] = list(elements) if repeated else elements[0]

    def add_complex(
        self,
        node: Dict[str, Any],
        wire_name: str,
        children: List[Any],
        repeated: bool,
        resources: bool = False,
    ) -> None:
        node[wire_name] = children if repeated else children[0]

    def finish(self, node: Dict[str, Any]) -> Any:
        return node

    def parse(self, document: Any) -> Dict[str, Any]:
        if not isinstance(document, dict):
            raise TypeMismatchError(
                f"expected a mapping document, got {type(document).__name__}"
            )
        return document

    def resource_type(self, node: Dict[str, Any]) -> Optional[str]:
        value = node.get(RESOURCE_TYPE)
        if value is not None and not isinstance(value, str):
            raise TypeMismatchError(f"{RESOURCE_TYPE} must be a string")
        return value

    def entries(self, node: Dict[str, Any], descriptor: TypeDescriptor) -> Iterator[Entry]:
        for key, value in node.items():
            if key == RESOURCE_TYPE and descriptor.is_resource:
                continue
            # null and [] both mean absent
            if value is None or value == []:
                continue
            if isinstance(value, (list, tuple)):
                yield key, list(value), True
            else:
                yield key, [value], False

    def read_primitive(
        self, raw: Any, primitive: PrimitiveType, path: str
    ) -> Tuple[Any, Any]:
        if raw is None:
            return None, None
        if isinstance(raw, (dict, list)):
            raise TypeMismatchError(
                f"expected {primitive.name} value, got {type(raw).__name__}", path=path
            )
        return primitive.from_native(raw, path), None

    def read_object(self, raw: Any, path: str) -> Dict[str, Any]:
        if not isinstance(raw, dict):
            raise TypeMismatchError(
                f"expected an object, got {type(raw).__name__}", path=path
            )
        return raw

    def read_resource(self, raw: Any, path: str) -> Tuple[str, Dict[str, Any]]:
        node = self.read_object(raw, path)
        type_name = self.resource_type(node)
        if type_name is None:
            raise TypeMismatchError("contained resource has no resourceType", path=path)
        return type_name, node
