"""FHIR XML representation.

Layout rules:

- every element lives in the ``http://hl7.org/fhir`` namespace;
- primitives are elements carrying a ``value`` attribute, with their own
  ``id`` attribute and ``extension`` children when present;
- element ``id`` and ``Extension.url`` are attributes of their parent;
- repeated fields are repeated elements;
- contained resources are wrapped: ``<contained><Patient>..</Patient></contained>``;
- ``xhtml`` narrative is embedded as an XHTML ``div`` element.

Documents are built with ``xml.etree.ElementTree`` and parsed with
``defusedxml.ElementTree``.
"""

import copy
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeET

from fhirmodel.config import get_settings
from fhirmodel.core.exceptions import TypeMismatchError
from fhirmodel.descriptors.fields import FieldDescriptor
from fhirmodel.descriptors.primitives import PrimitiveType
from fhirmodel.descriptors.types import TypeDescriptor
from fhirmodel.serialization.base import Entry, Format

FHIR_NS = "http://hl7.org/fhir"
XHTML_NS = "http://www.w3.org/1999/xhtml"
XHTML = "xhtml"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _declare_namespace(element: ET.Element, namespace: str) -> None:
    # Unqualified tags plus an explicit xmlns keep unprefixed output.
    element.attrib = {"xmlns": namespace, **element.attrib}


def _strip_namespace(element: ET.Element, namespace: str) -> None:
    prefix = f"{{{namespace}}}"
    for item in element.iter():
        if isinstance(item.tag, str) and item.tag.startswith(prefix):
            item.tag = item.tag[len(prefix):]


class XmlFormat(Format):
    """FHIR XML text documents."""

    name = "xml"
    explicit_lists = False

    def __init__(self, pretty: Optional[bool] = None):
        """Initialize the format.

        Args:
            pretty: Indent output; defaults to ``Settings.xml_pretty``
        """
        self.pretty = pretty if pretty is not None else get_settings().xml_pretty

    def new_node(self, descriptor: TypeDescriptor) -> ET.Element:
        return ET.Element(descriptor.name)

    def add_primitive(
        self,
        node: ET.Element,
        owner: TypeDescriptor,
        fd: FieldDescriptor,
        wire_name: str,
        primitive: PrimitiveType,
        values: List[Any],
        elements: List[Any],
        repeated: bool,
    ) -> None:
        if owner.is_attribute_field(fd):
            node.set(wire_name, primitive.to_lexical(values[0]))
            return
        for value, element in zip(values, elements):
            if primitive.name == XHTML:
                node.append(self._parse_xhtml(value, fd.path))
                continue
            # The element node already holds the id attribute and extensions.
            child = ET.Element(wire_name) if element is None else element
            child.tag = wire_name
            if value is not None:
                child.set("value", primitive.to_lexical(value))
            node.append(child)

    def add_complex(
        self,
        node: ET.Element,
        wire_name: str,
        children: List[Any],
        repeated: bool,
        resources: bool = False,
    ) -> None:
        for child in children:
            if resources:
                wrapper = ET.SubElement(node, wire_name)
                wrapper.append(child)
            else:
                child.tag = wire_name
                node.append(child)

    def finish(self, node: ET.Element) -> str:
        if self.pretty:
            ET.indent(node)
        _declare_namespace(node, FHIR_NS)
        return ET.tostring(node, encoding="unicode")

    def parse(self, document: Union[str, bytes, ET.Element]) -> ET.Element:
        if isinstance(document, ET.Element):
            root = document
        elif isinstance(document, (str, bytes)):
            try:
                root = SafeET.fromstring(document)
            except (ET.ParseError, DefusedXmlException) as e:
                raise TypeMismatchError(f"invalid XML document: {e}") from e
        else:
            raise TypeMismatchError(f"expected XML text, got {type(document).__name__}")

        if not root.tag.startswith(f"{{{FHIR_NS}}}"):
            raise TypeMismatchError(f"root element {root.tag!r} is not in the FHIR namespace")
        return root

    def resource_type(self, node: ET.Element) -> Optional[str]:
        return _local_name(node.tag)

    def entries(self, node: ET.Element, descriptor: TypeDescriptor) -> Iterator[Entry]:
        for key, value in node.attrib.items():
            yield _local_name(key), [value], False

        groups: Dict[str, List[ET.Element]] = {}
        for child in node:
            groups.setdefault(_local_name(child.tag), []).append(child)
        for key, elements in groups.items():
            yield key, elements, len(elements) > 1

    def read_primitive(
        self, raw: Any, primitive: PrimitiveType, path: str
    ) -> Tuple[Any, Any]:
        if isinstance(raw, str):
            return primitive.from_lexical(raw, path), None
        if primitive.name == XHTML:
            return self._render_xhtml(raw, path), None

        text = raw.get("value")
        element = ET.Element(
            raw.tag, {key: value for key, value in raw.attrib.items() if key != "value"}
        )
        element.extend(raw)
        has_element = len(element.attrib) > 0 or len(element) > 0
        if text is None and not has_element:
            raise TypeMismatchError(
                f"{primitive.name} element has no value, id or extensions", path=path
            )
        value = None if text is None else primitive.from_lexical(text, path)
        return value, element if has_element else None

    def read_object(self, raw: Any, path: str) -> ET.Element:
        if isinstance(raw, str):
            raise TypeMismatchError("expected an element, got an attribute", path=path)
        return raw

    def read_resource(self, raw: Any, path: str) -> Tuple[str, ET.Element]:
        wrapper = self.read_object(raw, path)
        children = list(wrapper)
        if len(children) != 1:
            raise TypeMismatchError(
                f"resource wrapper must hold exactly one resource, found {len(children)}",
                path=path,
            )
        return _local_name(children[0].tag), children[0]

    @staticmethod
    def _parse_xhtml(value: str, path: str) -> ET.Element:
        try:
            div = SafeET.fromstring(value)
        except (ET.ParseError, DefusedXmlException) as e:
            raise TypeMismatchError(f"invalid xhtml: {e}", path=path) from e
        if div.tag != f"{{{XHTML_NS}}}div":
            raise TypeMismatchError("xhtml must be a div in the XHTML namespace", path=path)
        _strip_namespace(div, XHTML_NS)
        _declare_namespace(div, XHTML_NS)
        return div

    @staticmethod
    def _render_xhtml(element: ET.Element, path: str) -> str:
        if element.tag != f"{{{XHTML_NS}}}div":
            raise TypeMismatchError("narrative div is not in the XHTML namespace", path=path)
        div = copy.deepcopy(element)
        div.tail = None
        _strip_namespace(div, XHTML_NS)
        _declare_namespace(div, XHTML_NS)
        return ET.tostring(div, encoding="unicode")
